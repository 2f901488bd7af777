"""Domain model entities for rentledger.

These are pure data classes representing business concepts, independent of
database schema. The enums are closed: every branch over them is exhaustive,
so adding a member is a change that has to be handled everywhere it is used.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class ExpenseType(str, Enum):
    """Category assigned to a bank transaction by the classifier."""

    ELECTRICITY = "electricity"
    WATER = "water"
    INTERNET = "internet"
    GAS = "gas"
    RENT = "rent"
    MAINTENANCE = "maintenance"
    INSURANCE = "insurance"
    PROPERTY_TAX = "property_tax"
    LANDSCAPING = "landscaping"
    SUPPLIES = "supplies"
    OTHER = "other"


class BillType(str, Enum):
    """Kind of obligation a payment request settles."""

    RENT = "rent"
    ELECTRICITY = "electricity"
    WATER = "water"

    @property
    def is_utility(self) -> bool:
        return self is not BillType.RENT


def bill_type_for(expense_type: ExpenseType) -> Optional[BillType]:
    """Map an expense type to the bill type it can be requested as."""
    if expense_type is ExpenseType.ELECTRICITY:
        return BillType.ELECTRICITY
    if expense_type is ExpenseType.WATER:
        return BillType.WATER
    if expense_type is ExpenseType.RENT:
        return BillType.RENT
    if expense_type in (
        ExpenseType.INTERNET,
        ExpenseType.GAS,
        ExpenseType.MAINTENANCE,
        ExpenseType.INSURANCE,
        ExpenseType.PROPERTY_TAX,
        ExpenseType.LANDSCAPING,
        ExpenseType.SUPPLIES,
        ExpenseType.OTHER,
    ):
        return None
    raise ValueError(f"Unhandled expense type: {expense_type!r}")


class RequestStatus(str, Enum):
    """Payment request lifecycle: pending -> sent -> paid | foregone."""

    PENDING = "pending"
    SENT = "sent"
    PAID = "paid"
    FOREGONE = "foregone"

    @property
    def is_open(self) -> bool:
        return self in OPEN_STATUSES


OPEN_STATUSES = frozenset({RequestStatus.PENDING, RequestStatus.SENT})


class IncomeType(str, Enum):
    RENT = "rent"
    UTILITY_REIMBURSEMENT = "utility_reimbursement"
    OTHER = "other"


def income_type_for(bill_type: BillType) -> IncomeType:
    """Income type recorded when a request of ``bill_type`` is paid."""
    if bill_type is BillType.RENT:
        return IncomeType.RENT
    if bill_type in (BillType.ELECTRICITY, BillType.WATER):
        return IncomeType.UTILITY_REIMBURSEMENT
    raise ValueError(f"Unhandled bill type: {bill_type!r}")


class EventType(str, Enum):
    """Kind of payment notification."""

    REQUEST_SENT = "request_sent"
    PAYMENT_RECEIVED = "payment_received"
    DECLINED = "declined"
    REMINDER = "reminder"
    EXPIRED = "expired"


class JobType(str, Enum):
    BANK_SYNC = "bank_sync"
    BILL_SPLIT = "bill_split"
    NOTIFICATION_CHECK = "notification_check"
    AUDIT = "audit"


class JobStatus(str, Enum):
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class LedgerBasis(str, Enum):
    """Accrual dates income by billing period, cash by money movement."""

    ACCRUAL = "accrual"
    CASH = "cash"


class EntryType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class SummaryPeriod(str, Enum):
    DAY = "day"
    MONTH = "month"
    YEAR = "year"


@dataclass(frozen=True)
class RawTransaction:
    """Bank transaction as delivered by the bank feed.

    Amounts follow the aggregator convention: positive is money out,
    negative is money in.
    """

    id: int
    external_id: str
    account_id: Optional[str]
    date: date
    amount: Decimal
    description: Optional[str]
    merchant: Optional[str]
    provider_category: Optional[str]
    imported_at: datetime


@dataclass(frozen=True)
class BankTransaction:
    """Transaction pulled from a bank feed, before it is stored."""

    external_id: str
    date: date
    amount: Decimal
    description: Optional[str] = None
    merchant: Optional[str] = None
    account_id: Optional[str] = None
    provider_category: Optional[str] = None


@dataclass(frozen=True)
class Expense:
    """Classified outgoing transaction."""

    id: int
    raw_transaction_id: Optional[int]
    date: date
    amount: Decimal
    name: str
    merchant: Optional[str]
    expense_type: ExpenseType
    category: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class Income:
    """Money received.

    ``date`` is the accrual date (billing period), ``received_date`` the day
    the money actually moved.
    """

    id: int
    income_type: IncomeType
    date: date
    amount: Decimal
    description: Optional[str]
    payer: Optional[str]
    payment_request_id: Optional[int]
    received_date: Optional[date]
    created_at: datetime

    @property
    def cash_date(self) -> date:
        return self.received_date or self.date


@dataclass(frozen=True)
class PaymentRequest:
    """Amount owed by one participant for one bill and billing period."""

    id: int
    participant: str
    bill_type: BillType
    month: int
    year: int
    amount: Decimal
    total_amount: Optional[Decimal]
    status: RequestStatus
    paid_date: Optional[datetime]
    tracking_id: str
    expense_id: Optional[int]
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class PaymentEvent:
    """Normalized payment notification."""

    id: Optional[int]
    external_message_id: str
    type: Optional[EventType]
    actor: Optional[str]
    amount: Optional[Decimal]
    note: Optional[str]
    tracking_id: Optional[str]
    occurred_at: datetime
    matched: bool = False
    payment_request_id: Optional[int] = None
    review_reason: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class RawMessage:
    """Inbound notification message as pulled from a mailbox."""

    external_id: str
    subject: Optional[str]
    body: Optional[str]
    received_at: datetime


@dataclass(frozen=True)
class Adjustment:
    """Reduction of an expense by a reimbursement received for it."""

    id: int
    expense_id: int
    payment_request_id: int
    adjustment_amount: Decimal
    description: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class JobRun:
    """Audit row for one pipeline invocation."""

    id: int
    job_type: JobType
    status: JobStatus
    started_at: datetime
    finished_at: Optional[datetime]
    counts: dict[str, Any] = field(default_factory=dict)
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class Participant:
    """Person who shares a bill."""

    name: str
    handle: Optional[str] = None
    ratio: Optional[Decimal] = None


@dataclass(frozen=True)
class RequestSummary:
    """What an outbound notifier needs to deliver a payment request."""

    payment_request_id: int
    participant: str
    handle: Optional[str]
    bill_type: BillType
    amount: Decimal
    total_amount: Optional[Decimal]
    tracking_id: str
    note: str


@dataclass(frozen=True)
class LedgerEntry:
    """One row of the merged income/expense feed."""

    entry_type: EntryType
    id: int
    date: date
    amount: Decimal
    description: Optional[str]
    category: str
    party: Optional[str]
    created_at: datetime
    running_balance: Decimal
    tracking_id: Optional[str] = None
    payment_status: Optional[RequestStatus] = None
    net_amount: Optional[Decimal] = None

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.entry_type is EntryType.INCOME else -self.amount


@dataclass(frozen=True)
class LedgerTotals:
    total_income: Decimal
    total_expenses: Decimal

    @property
    def net(self) -> Decimal:
        return self.total_income - self.total_expenses


@dataclass(frozen=True)
class LedgerPage:
    entries: tuple[LedgerEntry, ...]
    totals: LedgerTotals
    limit: Optional[int]
    offset: int
    total_count: int


@dataclass(frozen=True)
class SummaryBucket:
    """Income and expense totals for one period."""

    period_key: str
    income_by_category: dict[str, Decimal]
    expenses_by_category: dict[str, Decimal]
    total_income: Decimal
    total_expenses: Decimal

    @property
    def net(self) -> Decimal:
        return self.total_income - self.total_expenses
