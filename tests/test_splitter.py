"""Tests for bill splitting."""

from datetime import date
from decimal import Decimal

import pytest

from rentledger.config import Settings
from rentledger.domain.entities import BillType, ExpenseType, Participant, RequestStatus
from rentledger.domain.errors import ValidationError
from rentledger.domain.ports import OutboundNotifier
from rentledger.domain.splitter import BillSplitterService, render_request_note, split_amount


class TestSplitAmount:
    """Tests for split_amount."""

    def test_odd_cent_goes_to_remainder(self):
        """Test that $100.01 split three ways neither creates nor loses a cent."""
        third = Decimal(1) / Decimal(3)
        plan = split_amount(Decimal("100.01"), {"Jane Doe": third, "Sam Lee": third}, "Alex")

        assert [s.amount for s in plan.shares] == [Decimal("33.34"), Decimal("33.34")]
        assert plan.remainder == Decimal("33.33")
        assert plan.remainder_to == "Alex"
        assert sum(s.amount for s in plan.shares) + plan.remainder == Decimal("100.01")

    def test_even_split(self):
        """Test a total that divides evenly."""
        third = Decimal(1) / Decimal(3)
        plan = split_amount(Decimal("300.00"), {"Jane Doe": third, "Sam Lee": third}, "Alex")
        assert plan.share_for("Jane Doe") == Decimal("100.00")
        assert plan.share_for("Sam Lee") == Decimal("100.00")
        assert plan.remainder == Decimal("100.00")
        assert plan.share_for("Nobody") is None

    @pytest.mark.parametrize("total", ["0.01", "0.02", "10.00", "99.99", "100.01", "1234.57"])
    def test_sum_is_exact(self, total):
        """Test that shares plus remainder always equal the total."""
        third = Decimal(1) / Decimal(3)
        plan = split_amount(Decimal(total), {"A": third, "B": third}, "C")
        assert sum(s.amount for s in plan.shares) + plan.remainder == Decimal(total)

    def test_custom_ratios(self):
        """Test uneven share ratios."""
        plan = split_amount(Decimal("200.00"), {"A": Decimal("0.5"), "B": Decimal("0.25")}, "C")
        assert plan.share_for("A") == Decimal("100.00")
        assert plan.share_for("B") == Decimal("50.00")
        assert plan.remainder == Decimal("50.00")

    def test_ratios_covering_whole_bill(self):
        """Test that shares never add up to more than the total."""
        third = Decimal(1) / Decimal(3)
        plan = split_amount(Decimal("100.01"), {"A": third, "B": third, "C": third}, "Alex")

        assert [s.amount for s in plan.shares] == [Decimal("33.34"), Decimal("33.34"), Decimal("33.33")]
        assert plan.remainder == Decimal("0.00")
        assert sum(s.amount for s in plan.shares) == Decimal("100.01")

    @pytest.mark.parametrize("total", ["0.02", "0.05", "100.01", "100.02", "1234.57"])
    def test_whole_bill_remainder_not_negative(self, total):
        """Test full-ratio splits across totals that round up."""
        quarter = Decimal("0.25")
        plan = split_amount(Decimal(total), {"A": quarter, "B": quarter, "C": quarter, "D": quarter}, "Alex")
        assert plan.remainder >= 0
        assert sum(s.amount for s in plan.shares) + plan.remainder == Decimal(total)

    def test_negative_total(self):
        """Test that negative totals are rejected."""
        with pytest.raises(ValidationError):
            split_amount(Decimal("-1.00"), {"A": Decimal("0.5")}, "C")

    def test_ratios_over_one(self):
        """Test that shares adding up to more than the bill are rejected."""
        with pytest.raises(ValidationError):
            split_amount(Decimal("10.00"), {"A": Decimal("0.6"), "B": Decimal("0.6")}, "C")

    def test_remainder_holder_cannot_hold_share(self):
        """Test that the remainder participant is not also a shareholder."""
        with pytest.raises(ValidationError):
            split_amount(Decimal("10.00"), {"C": Decimal("0.5")}, "C")


class TestSplitPendingBills:
    """Tests for BillSplitterService.split_pending_bills."""

    def test_creates_one_request_per_roommate(self, temp_db, splitter, electricity_bill):
        """Test that a $300 electricity bill yields $100 requests."""
        result = splitter.split_pending_bills()

        assert len(result.created) == 2
        assert result.expenses_processed == 1
        requests = temp_db.list_payment_requests()
        assert {r.participant for r in requests} == {"Jane Doe", "Sam Lee"}
        for request in requests:
            assert request.amount == Decimal("100.00")
            assert request.total_amount == Decimal("300.00")
            assert request.status == RequestStatus.PENDING
            assert request.paid_date is None
            assert request.bill_type == BillType.ELECTRICITY
            assert (request.month, request.year) == (3, 2025)
            assert request.tracking_id == "2025-03-Electricity"
            assert request.expense_id == electricity_bill.id

    def test_running_twice_is_idempotent(self, temp_db, splitter, electricity_bill):
        """Test that a second run creates nothing."""
        splitter.split_pending_bills()
        second = splitter.split_pending_bills()

        assert second.created == []
        assert len(temp_db.list_payment_requests()) == 2

    def test_reimported_bill_is_not_requested_twice(self, temp_db, splitter, electricity_bill):
        """Test dedup on billing period, not on the expense."""
        splitter.split_pending_bills()
        # Same bill arrives again under a new bank transaction
        temp_db.create_expense(
            date=date(2025, 3, 11),
            amount=Decimal("300.00"),
            name="PGE WEB ONLINE",
            expense_type=ExpenseType.ELECTRICITY,
        )

        result = splitter.split_pending_bills()

        assert result.created == []
        assert result.skipped == 2
        assert len(temp_db.list_payment_requests()) == 2

    def test_only_split_bill_types(self, temp_db, splitter):
        """Test that non-split expenses are ignored."""
        temp_db.create_expense(
            date=date(2025, 3, 5), amount=Decimal("80.00"), name="COMCAST", expense_type=ExpenseType.INTERNET
        )
        result = splitter.split_pending_bills()
        assert result.expenses_processed == 0
        assert temp_db.list_payment_requests() == []

    def test_month_filter(self, temp_db, splitter, electricity_bill):
        """Test limiting the run to one billing month."""
        temp_db.create_expense(
            date=date(2025, 4, 9), amount=Decimal("90.00"), name="EBMUD", expense_type=ExpenseType.WATER
        )
        result = splitter.split_pending_bills(month=4, year=2025)

        assert len(result.created) == 2
        assert {r.tracking_id for r in temp_db.list_payment_requests()} == {"2025-04-Water"}

    def test_month_requires_year(self, splitter):
        """Test that a month filter without a year is rejected."""
        with pytest.raises(ValidationError):
            splitter.split_pending_bills(month=3)

    def test_no_roommates(self, temp_db, electricity_bill):
        """Test that nothing is created without roommates."""
        service = BillSplitterService(temp_db, Settings())
        assert service.split_pending_bills().created == []


class TestDelivery:
    """Tests for request delivery after creation."""

    def test_acknowledged_requests_are_sent(self, temp_db, settings, notifier, electricity_bill):
        """Test that delivered requests move to sent."""
        service = BillSplitterService(temp_db, settings, notifier)
        result = service.split_pending_bills()

        assert result.sent == 2
        assert {r.status for r in temp_db.list_payment_requests()} == {RequestStatus.SENT}
        assert {s.handle for s in notifier.sent} == {"jane-doe", "sam-lee"}
        assert all(s.note.startswith("2025-03-Electricity") for s in notifier.sent)

    def test_failed_delivery_keeps_request(self, temp_db, settings, electricity_bill):
        """Test that a delivery failure does not undo creation."""

        class BrokenNotifier(OutboundNotifier):
            def send(self, channel, summary):
                raise ConnectionError("SMS gateway down")

        service = BillSplitterService(temp_db, settings, BrokenNotifier())
        result = service.split_pending_bills()

        assert len(result.created) == 2
        assert result.delivery_failures == 2
        assert {r.status for r in temp_db.list_payment_requests()} == {RequestStatus.PENDING}

    def test_unacknowledged_delivery(self, temp_db, settings, electricity_bill):
        """Test that a negative acknowledgement leaves the request pending."""

        class SilentNotifier(OutboundNotifier):
            def send(self, channel, summary):
                return False

        service = BillSplitterService(temp_db, settings, SilentNotifier())
        result = service.split_pending_bills()

        assert result.sent == 0
        assert {r.status for r in temp_db.list_payment_requests()} == {RequestStatus.PENDING}


class TestRentRequests:
    """Tests for monthly rent requests."""

    def test_create_rent_request(self, temp_db, splitter):
        """Test the rent request for the rent participant."""
        result = splitter.create_rent_requests(4, 2025)

        assert len(result.created) == 1
        request = temp_db.get_payment_request(result.created[0])
        assert request.participant == "Jane Doe"
        assert request.bill_type == BillType.RENT
        assert request.amount == Decimal("1685.00")
        assert request.total_amount == Decimal("1685.00")
        assert request.tracking_id == "2025-04-Rent"
        assert request.expense_id is None

    def test_rent_request_is_idempotent(self, temp_db, splitter):
        """Test that rent is requested once per month."""
        splitter.create_rent_requests(4, 2025)
        result = splitter.create_rent_requests(4, 2025)
        assert result.created == []
        assert result.skipped == 1

    def test_rent_not_configured(self, temp_db):
        """Test that rent requests need configuration."""
        service = BillSplitterService(temp_db, Settings(roommates=(Participant("Jane Doe"),)))
        with pytest.raises(ValidationError):
            service.create_rent_requests(4, 2025)


class TestRenderRequestNote:
    """Tests for outbound request notes."""

    def test_utility_note(self, temp_db, splitter, electricity_bill):
        """Test the note of a utility request."""
        splitter.split_pending_bills()
        request = temp_db.list_payment_requests()[0]
        assert render_request_note(request) == (
            "2025-03-Electricity - Electricity bill for 2025-03: Total $300.00, "
            "your share is $100.00 (1/3). I paid the full amount."
        )

    def test_rent_note(self, temp_db, splitter):
        """Test the note of a rent request."""
        result = splitter.create_rent_requests(4, 2025)
        request = temp_db.get_payment_request(result.created[0])
        assert render_request_note(request) == "2025-04-Rent - Rent for 2025-04"
