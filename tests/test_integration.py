"""Integration tests for end-to-end CLI workflows."""

import pytest

from rentledger.cli.main import cli


@pytest.fixture
def invoke(cli_runner, temp_db, cli_env, tmp_path):
    """Run a rentledger command against the temporary database."""

    def _invoke(*args, env=None):
        return cli_runner.invoke(
            cli,
            ["--db-path", temp_db.database_path, "--env-file", str(tmp_path / "absent.env"), *args],
            env={**cli_env, **(env or {})},
        )

    return _invoke


def test_help(cli_runner):
    """Test that help works without settings or a database."""
    result = cli_runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "split-bills" in result.output
    assert "check-notifications" in result.output


def test_full_workflow(invoke, fixtures_dir):
    """Test bank sync -> split -> notifications -> ledger -> status."""
    result = invoke("sync-bank", str(fixtures_dir / "bank_transactions.json"))
    assert result.exit_code == 0, result.output
    assert "bank_sync run 1: success" in result.output
    assert "imported: 5" in result.output

    result = invoke("split-bills", "--month", "3", "--year", "2025")
    assert result.exit_code == 0, result.output
    assert "created: 4" in result.output
    assert "sent: 4" in result.output

    result = invoke("requests", "list", "--status", "sent")
    assert result.exit_code == 0
    assert "2025-03-Electricity" in result.output
    assert "2025-03-Water" in result.output

    result = invoke("check-notifications", str(fixtures_dir / "notifications.json"))
    assert result.exit_code == 0, result.output
    assert "matched: 2" in result.output
    assert "needs review: 1" in result.output

    result = invoke("events", "list", "--unmatched")
    assert result.exit_code == 0
    assert "review:" in result.output

    result = invoke("requests", "list", "--status", "paid")
    assert "Jane Doe" in result.output
    assert "Sam Lee" in result.output
    assert "2025-03-20" in result.output

    result = invoke("ledger", "list", "--start-date", "2025-03-01", "--end-date", "2025-03-31")
    assert result.exit_code == 0, result.output
    assert "Showing 1-5 of 5" in result.output
    assert "utility_reimbursement" in result.output

    result = invoke("ledger", "summary", "--period", "month")
    assert result.exit_code == 0
    assert "2025-03" in result.output
    lines = result.output.splitlines()
    electricity = next(line for line in lines if "- electricity" in line)
    reimbursed = next(line for line in lines if "+ utility_reimbursement" in line)
    assert electricity.endswith("$300.00")
    assert reimbursed.endswith("$200.00")

    result = invoke("audit", "--dry-run")
    assert result.exit_code == 0
    assert "total: 0" in result.output

    result = invoke("status")
    assert result.exit_code == 0
    assert "Status: warning" in result.output
    assert "Needing review:       1" in result.output


class TestRequestCommands:
    """Tests for manual request actions."""

    @pytest.fixture
    def request_ids(self, temp_db, splitter, electricity_bill):
        splitter.split_pending_bills()
        ids = {r.participant: r.id for r in temp_db.list_payment_requests()}
        temp_db.disconnect()
        return ids

    def test_mark_paid_and_undo(self, invoke, request_ids):
        """Test the paid and undo round trip."""
        jane = request_ids["Jane Doe"]
        result = invoke("requests", "mark-paid", str(jane), "--date", "2025-03-20")
        assert result.exit_code == 0, result.output
        assert f"Marked request {jane} (2025-03-Electricity, Jane Doe) as paid" in result.output

        result = invoke("ledger", "list", "--type", "income")
        assert "2025-03-15" in result.output

        result = invoke("requests", "undo", str(jane))
        assert result.exit_code == 0
        assert f"Request {jane} is pending again" in result.output

        result = invoke("ledger", "list", "--type", "income")
        assert "No ledger entries found." in result.output

    def test_mark_sent_and_forego(self, invoke, request_ids):
        """Test sending and giving up on a request."""
        sam = request_ids["Sam Lee"]
        result = invoke("requests", "mark-sent", str(sam))
        assert f"Marked request {sam} as sent" in result.output

        result = invoke("requests", "forego", str(sam))
        assert result.exit_code == 0
        assert f"Request {sam} foregone" in result.output

        result = invoke("requests", "forego", str(sam))
        assert result.exit_code == 1
        assert "status is 'foregone'" in result.output

    def test_undo_open_request(self, invoke, request_ids):
        """Test that undoing an open request fails."""
        result = invoke("requests", "undo", str(request_ids["Jane Doe"]))
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_unknown_request(self, invoke):
        """Test actions on a missing request."""
        result = invoke("requests", "mark-paid", "999")
        assert result.exit_code == 1
        assert "Payment request 999 not found" in result.output

    def test_invalid_date(self, invoke, request_ids):
        """Test a bad --date value."""
        result = invoke("requests", "mark-paid", str(request_ids["Jane Doe"]), "--date", "someday")
        assert result.exit_code == 1
        assert "Invalid date format" in result.output

    def test_filters(self, invoke, request_ids):
        """Test listing with filters."""
        assert "No payment requests found." in invoke("requests", "list", "--status", "paid").output
        result = invoke("requests", "list", "--tracking-id", "2025-03-Electricity", "--bill-type", "electricity")
        assert "Jane Doe" in result.output
        assert "Sam Lee" in result.output


class TestJobCommands:
    """Tests for job commands."""

    def test_split_bills_needs_month_and_year(self, invoke):
        """Test that --month alone is rejected."""
        result = invoke("split-bills", "--month", "3")
        assert result.exit_code == 1
        assert "--month and --year must be given together" in result.output

    def test_rent_requests(self, invoke):
        """Test the rent request command."""
        env = {"RENTLEDGER_MONTHLY_RENT": "1685.00", "RENTLEDGER_RENT_PARTICIPANT": "Jane Doe"}
        result = invoke("rent-requests", "--month", "4", "--year", "2025", env=env)
        assert result.exit_code == 0, result.output
        assert "Created rent request 1 for 2025-04" in result.output

        result = invoke("rent-requests", "--month", "4", "--year", "2025", env=env)
        assert "Rent request for 2025-04 already exists" in result.output

    def test_rent_requests_not_configured(self, invoke):
        """Test the rent request command without rent settings."""
        result = invoke("rent-requests", "--month", "4", "--year", "2025")
        assert result.exit_code == 1
        assert "must be configured" in result.output

    def test_failed_job_exits_nonzero(self, invoke, tmp_path):
        """Test that a failed run is reported with exit code 1."""
        bad = tmp_path / "bad.json"
        bad.write_text("{not json")
        result = invoke("sync-bank", str(bad))
        assert result.exit_code == 1
        assert "failed" in result.output

    def test_audit(self, invoke):
        """Test a repairing audit on a clean database."""
        result = invoke("audit")
        assert result.exit_code == 0
        assert "audit run 1: success" in result.output

    def test_invalid_settings(self, invoke):
        """Test that bad configuration stops the command."""
        result = invoke("status", env={"RENTLEDGER_SPLIT_COUNT": "zero"})
        assert result.exit_code == 1
        assert "RENTLEDGER_SPLIT_COUNT must be an integer" in result.output


class TestLedgerCommands:
    """Tests for ledger commands."""

    def test_empty_ledger(self, invoke):
        """Test listing an empty ledger."""
        result = invoke("ledger", "list")
        assert result.exit_code == 0
        assert "No ledger entries found." in result.output

    def test_conflicting_period_options(self, invoke):
        """Test that period flags and explicit dates do not mix."""
        result = invoke("ledger", "list", "--this-month", "--start-date", "2025-01-01")
        assert result.exit_code == 1
        assert "cannot be combined" in result.output

    def test_paging(self, invoke, electricity_bill, temp_db):
        """Test the paging footer."""
        temp_db.disconnect()
        result = invoke("ledger", "list", "--limit", "1")
        assert "Showing 1-1 of 1" in result.output
        assert "PGE WEB ONLINE" in result.output
