"""Shared pytest fixtures for rentledger tests."""

import logging
import tempfile
import os
from datetime import date
from decimal import Decimal
from pathlib import Path
import pytest

from rentledger.config import Settings
from rentledger.database.factories import create_sqlite_database
from rentledger.domain.entities import ExpenseType, Participant
from rentledger.domain.auditor import IntegrityAuditor
from rentledger.domain.ledger import LedgerService
from rentledger.domain.matcher import MatcherService
from rentledger.domain.notifications import NotificationService
from rentledger.domain.ports import LoggingNotifier
from rentledger.domain.splitter import BillSplitterService
from rentledger.domain.sync import BankSyncService


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def settings():
    """Three-way split: two roommates plus the landlord."""
    return Settings(
        roommates=(
            Participant(name="Jane Doe", handle="jane-doe"),
            Participant(name="Sam Lee", handle="sam-lee"),
        ),
        landlord="Alex",
        split_count=3,
        monthly_rent=Decimal("1685.00"),
        rent_participant="Jane Doe",
    )


@pytest.fixture
def notifier():
    """Notifier that records what it sends."""
    return LoggingNotifier()


@pytest.fixture
def splitter(temp_db, settings):
    """Create a BillSplitterService without delivery."""
    return BillSplitterService(temp_db, settings)


@pytest.fixture
def matcher(temp_db, settings):
    """Create a MatcherService with a temporary database."""
    return MatcherService(temp_db, settings)


@pytest.fixture
def notification_service(temp_db):
    """Create a NotificationService with a temporary database."""
    return NotificationService(temp_db)


@pytest.fixture
def ledger_service(temp_db):
    """Create a LedgerService with a temporary database."""
    return LedgerService(temp_db)


@pytest.fixture
def auditor(temp_db, settings):
    """Create an IntegrityAuditor with a temporary database."""
    return IntegrityAuditor(temp_db, settings)


@pytest.fixture
def sync_service(temp_db):
    """Create a BankSyncService with a temporary database."""
    return BankSyncService(temp_db)


@pytest.fixture
def electricity_bill(temp_db):
    """The March 2025 electricity bill, $300.00."""
    expense_id = temp_db.create_expense(
        date=date(2025, 3, 10),
        amount=Decimal("300.00"),
        name="PGE WEB ONLINE",
        expense_type=ExpenseType.ELECTRICITY,
        merchant="PG&E",
    )
    return temp_db.get_expense(expense_id)


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    yield CliRunner()

    # Commands install log handlers bound to the runner's captured streams
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if getattr(handler, "_rentledger_handler", False):
            root_logger.removeHandler(handler)


@pytest.fixture
def cli_env():
    """Environment for CLI invocations with the same household as ``settings``."""
    return {
        "RENTLEDGER_ROOMMATES": "Jane Doe:jane-doe,Sam Lee:sam-lee",
        "RENTLEDGER_LANDLORD": "Alex",
        "RENTLEDGER_SPLIT_COUNT": "3",
        "RENTLEDGER_MONTHLY_RENT": "",
        "RENTLEDGER_RENT_PARTICIPANT": "",
        "RENTLEDGER_SPLIT_BILL_TYPES": "",
        "RENTLEDGER_MATCH_WINDOW_DAYS": "",
        "RENTLEDGER_MATCH_ON_ACTOR": "",
        "RENTLEDGER_NAME_SIMILARITY": "",
        "RENTLEDGER_LOG_FILE": "",
        "LOG_LEVEL": "WARNING",
    }


@pytest.fixture
def fixtures_dir():
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"
