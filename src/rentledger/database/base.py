"""Abstract database interface."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Optional

# Import entities directly to avoid circular import through domain services
from rentledger.domain.entities import (
    Adjustment,
    BillType,
    EventType,
    Expense,
    ExpenseType,
    Income,
    IncomeType,
    JobRun,
    JobStatus,
    JobType,
    LedgerBasis,
    PaymentEvent,
    PaymentRequest,
    RawTransaction,
    RequestStatus,
)


class Database(ABC):
    """Abstract database interface for rentledger.

    Every mutating method commits on its own unless it runs inside
    ``transaction()``, in which case the outermost block commits or rolls
    back everything.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """Run the enclosed operations atomically.

        Nested blocks join the outermost one. Any exception rolls back the
        whole transaction and propagates.
        """
        pass

    # Raw transaction operations
    @abstractmethod
    def create_raw_transaction(
        self,
        external_id: str,
        date: date,
        amount: Decimal,
        description: Optional[str] = None,
        merchant: Optional[str] = None,
        account_id: Optional[str] = None,
        provider_category: Optional[str] = None,
    ) -> int:
        """Store a raw bank transaction. Returns raw transaction ID.

        Raises:
            DuplicateError: If the external id was already imported
        """
        pass

    @abstractmethod
    def get_raw_transaction(self, raw_transaction_id: int) -> Optional[RawTransaction]:
        """Get raw transaction by ID."""
        pass

    @abstractmethod
    def raw_transaction_exists(self, external_id: str) -> bool:
        """Check if a raw transaction with the external id was imported."""
        pass

    # Expense operations
    @abstractmethod
    def create_expense(
        self,
        date: date,
        amount: Decimal,
        name: str,
        expense_type: ExpenseType,
        merchant: Optional[str] = None,
        category: Optional[str] = None,
        raw_transaction_id: Optional[int] = None,
    ) -> int:
        """Create an expense. Returns expense ID."""
        pass

    @abstractmethod
    def get_expense(self, expense_id: int) -> Optional[Expense]:
        """Get expense by ID."""
        pass

    @abstractmethod
    def list_expenses(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        expense_types: Optional[Iterable[ExpenseType]] = None,
        exclude_types: Optional[Iterable[ExpenseType]] = None,
    ) -> list[Expense]:
        """List expenses ordered by date, then ID."""
        pass

    @abstractmethod
    def list_unrequested_expenses(
        self,
        expense_types: Iterable[ExpenseType],
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[Expense]:
        """List expenses of the given types that no payment request links to."""
        pass

    @abstractmethod
    def find_duplicate_expense_groups(self) -> list[list[int]]:
        """Return ID groups of expenses sharing (date, amount, name), lowest ID first."""
        pass

    @abstractmethod
    def expense_has_references(self, expense_id: int) -> bool:
        """Check if any payment request or adjustment references the expense."""
        pass

    @abstractmethod
    def delete_expense(self, expense_id: int) -> None:
        """Delete an expense."""
        pass

    # Income operations
    @abstractmethod
    def create_income(
        self,
        income_type: IncomeType,
        date: date,
        amount: Decimal,
        description: Optional[str] = None,
        payer: Optional[str] = None,
        payment_request_id: Optional[int] = None,
        received_date: Optional[date] = None,
    ) -> int:
        """Create an income row. Returns income ID.

        Raises:
            DuplicateError: If the payment request already has an income row
        """
        pass

    @abstractmethod
    def get_income(self, income_id: int) -> Optional[Income]:
        """Get income by ID."""
        pass

    @abstractmethod
    def get_income_for_request(self, payment_request_id: int) -> Optional[Income]:
        """Get the income row linked to a payment request."""
        pass

    @abstractmethod
    def list_income(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        basis: LedgerBasis = LedgerBasis.ACCRUAL,
        income_type: Optional[IncomeType] = None,
        unlinked_only: bool = False,
    ) -> list[Income]:
        """List income rows, filtering dates on the basis' date column."""
        pass

    @abstractmethod
    def link_income_to_request(self, income_id: int, payment_request_id: int) -> None:
        """Set the payment request an income row belongs to."""
        pass

    @abstractmethod
    def delete_income(self, income_id: int) -> None:
        """Delete an income row."""
        pass

    # Payment request operations
    @abstractmethod
    def create_payment_request(
        self,
        participant: str,
        bill_type: BillType,
        month: int,
        year: int,
        amount: Decimal,
        total_amount: Optional[Decimal],
        tracking_id: str,
        expense_id: Optional[int] = None,
        created_at: Optional[datetime] = None,
    ) -> int:
        """Create a pending payment request. Returns request ID.

        Raises:
            DuplicateError: If (bill_type, month, year, participant) exists
        """
        pass

    @abstractmethod
    def get_payment_request(self, payment_request_id: int) -> Optional[PaymentRequest]:
        """Get payment request by ID."""
        pass

    @abstractmethod
    def payment_request_exists(self, bill_type: BillType, month: int, year: int, participant: str) -> bool:
        """Check the request dedup key."""
        pass

    @abstractmethod
    def list_payment_requests(
        self,
        statuses: Optional[Iterable[RequestStatus]] = None,
        bill_types: Optional[Iterable[BillType]] = None,
        tracking_id: Optional[str] = None,
        created_since: Optional[datetime] = None,
        ids: Optional[Iterable[int]] = None,
    ) -> list[PaymentRequest]:
        """List payment requests, newest first (created_at desc, id desc)."""
        pass

    @abstractmethod
    def transition_payment_request(
        self,
        payment_request_id: int,
        from_statuses: Iterable[RequestStatus],
        to_status: RequestStatus,
        paid_date: Optional[datetime] = None,
    ) -> bool:
        """Move a request to ``to_status`` only if it is in ``from_statuses``.

        ``paid_date`` is written as given, so non-paid targets clear it.
        Returns False when the status no longer matches.
        """
        pass

    @abstractmethod
    def set_request_paid_date(self, payment_request_id: int, paid_date: Optional[datetime]) -> None:
        """Overwrite a request's paid date."""
        pass

    @abstractmethod
    def set_request_total_amount(self, payment_request_id: int, total_amount: Decimal) -> None:
        """Overwrite a request's bill total."""
        pass

    # Payment event operations
    @abstractmethod
    def create_payment_event(
        self,
        external_message_id: str,
        occurred_at: datetime,
        event_type: Optional[EventType] = None,
        actor: Optional[str] = None,
        amount: Optional[Decimal] = None,
        note: Optional[str] = None,
        tracking_id: Optional[str] = None,
        review_reason: Optional[str] = None,
    ) -> int:
        """Store a payment event. Returns event ID.

        Raises:
            DuplicateError: If the external message id was already stored
        """
        pass

    @abstractmethod
    def get_payment_event(self, event_id: int) -> Optional[PaymentEvent]:
        """Get payment event by ID."""
        pass

    @abstractmethod
    def payment_event_exists(self, external_message_id: str) -> bool:
        """Check if a message was already normalized."""
        pass

    @abstractmethod
    def list_payment_events(
        self,
        event_type: Optional[EventType] = None,
        matched: Optional[bool] = None,
        payment_request_id: Optional[int] = None,
    ) -> list[PaymentEvent]:
        """List events oldest first (occurred_at, id)."""
        pass

    @abstractmethod
    def mark_event_matched(self, event_id: int, payment_request_id: int) -> None:
        """Link an event to the request it settled."""
        pass

    @abstractmethod
    def set_event_review_reason(self, event_id: int, reason: Optional[str]) -> None:
        """Record why an event needs manual review."""
        pass

    @abstractmethod
    def unlink_events_for_request(self, payment_request_id: int) -> int:
        """Clear matched/link fields on every event of a request. Returns count."""
        pass

    # Adjustment operations
    @abstractmethod
    def create_adjustment(
        self,
        expense_id: int,
        payment_request_id: int,
        adjustment_amount: Decimal,
        description: Optional[str] = None,
    ) -> int:
        """Create an adjustment. Returns adjustment ID.

        Raises:
            DuplicateError: If the payment request already has an adjustment
        """
        pass

    @abstractmethod
    def get_adjustment_for_request(self, payment_request_id: int) -> Optional[Adjustment]:
        """Get the adjustment created for a payment request."""
        pass

    @abstractmethod
    def list_adjustments(self, expense_ids: Optional[Iterable[int]] = None) -> list[Adjustment]:
        """List adjustments, optionally for some expenses."""
        pass

    @abstractmethod
    def delete_adjustment(self, adjustment_id: int) -> None:
        """Delete an adjustment."""
        pass

    # Job run operations
    @abstractmethod
    def create_job_run(self, job_type: JobType) -> int:
        """Record a running job. Returns job run ID."""
        pass

    @abstractmethod
    def finish_job_run(
        self,
        job_run_id: int,
        status: JobStatus,
        counts: Optional[dict[str, Any]] = None,
        errors: Optional[list[str]] = None,
    ) -> None:
        """Record a job's outcome."""
        pass

    @abstractmethod
    def get_job_run(self, job_run_id: int) -> Optional[JobRun]:
        """Get job run by ID."""
        pass

    @abstractmethod
    def list_job_runs(self, job_type: Optional[JobType] = None, limit: Optional[int] = None) -> list[JobRun]:
        """List job runs, newest first."""
        pass
