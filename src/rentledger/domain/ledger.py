"""Ledger aggregation domain service.

Read-only views over Income and Expense: a merged, dated feed with a
running balance, and per-period summaries.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from rentledger.database.base import Database
from rentledger.domain.entities import (
    EntryType,
    Expense,
    ExpenseType,
    Income,
    LedgerBasis,
    LedgerEntry,
    LedgerPage,
    LedgerTotals,
    SummaryBucket,
    SummaryPeriod,
)
from rentledger.domain.errors import ValidationError

# Same-day, same-instant rows list income before expenses
_KIND_ORDER = {EntryType.INCOME: 0, EntryType.EXPENSE: 1}


def _sort_key(entry: LedgerEntry) -> tuple:
    return (entry.date, entry.created_at, _KIND_ORDER[entry.entry_type], entry.id)


def period_key(day: date, period: SummaryPeriod) -> str:
    """Bucket label for a date, e.g. ``2025-03`` for a month."""
    if period is SummaryPeriod.DAY:
        return day.isoformat()
    if period is SummaryPeriod.MONTH:
        return f"{day.year:04d}-{day.month:02d}"
    if period is SummaryPeriod.YEAR:
        return f"{day.year:04d}"
    raise ValueError(f"Unhandled summary period: {period!r}")


def with_running_balance(entries: Iterable[LedgerEntry]) -> list[LedgerEntry]:
    """Return entries in chronological order with running balances filled in.

    The balance is the cumulative sum of signed amounts ordered by
    (date, created_at, kind, id), whatever order the entries arrive in.
    """
    balance = Decimal("0.00")
    ordered = []
    for entry in sorted(entries, key=_sort_key):
        balance += entry.signed_amount
        ordered.append(
            LedgerEntry(
                entry_type=entry.entry_type,
                id=entry.id,
                date=entry.date,
                amount=entry.amount,
                description=entry.description,
                category=entry.category,
                party=entry.party,
                created_at=entry.created_at,
                running_balance=balance,
                tracking_id=entry.tracking_id,
                payment_status=entry.payment_status,
                net_amount=entry.net_amount,
            )
        )
    return ordered


def _matches_search(entry: LedgerEntry, needle: str) -> bool:
    haystack = (entry.description, entry.category, entry.party, entry.tracking_id)
    return any(needle in value.lower() for value in haystack if value)


class LedgerService:
    """Service for building ledger views."""

    def __init__(self, db: Database):
        """Initialize ledger service.

        Args:
            db: Database instance
        """
        self.db = db

    def _adjustment_totals(self, expenses: list[Expense]) -> dict[int, Decimal]:
        totals: dict[int, Decimal] = defaultdict(lambda: Decimal("0.00"))
        if not expenses:
            return totals
        for adjustment in self.db.list_adjustments(expense_ids=[e.id for e in expenses]):
            totals[adjustment.expense_id] += adjustment.adjustment_amount
        return totals

    def _income_entries(self, incomes: list[Income], basis: LedgerBasis) -> list[LedgerEntry]:
        request_ids = [i.payment_request_id for i in incomes if i.payment_request_id is not None]
        requests = {r.id: r for r in self.db.list_payment_requests(ids=request_ids)} if request_ids else {}

        entries = []
        for income in incomes:
            request = requests.get(income.payment_request_id)
            entries.append(
                LedgerEntry(
                    entry_type=EntryType.INCOME,
                    id=income.id,
                    date=income.cash_date if basis is LedgerBasis.CASH else income.date,
                    amount=income.amount,
                    description=income.description,
                    category=income.income_type.value,
                    party=income.payer,
                    created_at=income.created_at,
                    running_balance=Decimal("0.00"),
                    tracking_id=request.tracking_id if request else None,
                    payment_status=request.status if request else None,
                )
            )
        return entries

    def _expense_entries(self, expenses: list[Expense]) -> list[LedgerEntry]:
        adjustments = self._adjustment_totals(expenses)
        return [
            LedgerEntry(
                entry_type=EntryType.EXPENSE,
                id=expense.id,
                date=expense.date,
                amount=expense.amount,
                description=expense.name,
                category=expense.expense_type.value,
                party=expense.merchant,
                created_at=expense.created_at,
                running_balance=Decimal("0.00"),
                net_amount=expense.amount - adjustments[expense.id],
            )
            for expense in expenses
        ]

    def _load(
        self,
        start_date: Optional[date],
        end_date: Optional[date],
        entry_type: Optional[EntryType],
        basis: LedgerBasis,
        include_other: bool,
    ) -> tuple[list[LedgerEntry], list[LedgerEntry]]:
        incomes: list[LedgerEntry] = []
        expenses: list[LedgerEntry] = []
        if entry_type is None or entry_type is EntryType.INCOME:
            incomes = self._income_entries(
                self.db.list_income(start_date=start_date, end_date=end_date, basis=basis), basis
            )
        if entry_type is None or entry_type is EntryType.EXPENSE:
            exclude = None if include_other else [ExpenseType.OTHER]
            expenses = self._expense_entries(
                self.db.list_expenses(start_date=start_date, end_date=end_date, exclude_types=exclude)
            )
        return incomes, expenses

    def get_feed(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        entry_type: Optional[EntryType] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
        basis: LedgerBasis = LedgerBasis.ACCRUAL,
        newest_first: bool = True,
        include_other: bool = False,
    ) -> LedgerPage:
        """Build a page of the merged income and expense feed.

        Running balances cover every entry in the date range and type
        filter, so they do not change with search, paging or sort order.
        Totals and total_count cover the entries matching the search.

        Args:
            start_date: Optional start date filter
            end_date: Optional end date filter
            entry_type: Optional filter to income or expenses only
            search: Optional case-insensitive text filter
            limit: Optional page size
            offset: Number of entries to skip
            basis: Accrual or cash dating of income
            newest_first: Display order
            include_other: If True, include expenses of type 'other'

        Returns:
            LedgerPage with entries, totals and paging information

        Raises:
            ValidationError: If paging arguments are negative or dates reversed
        """
        if limit is not None and limit < 0:
            raise ValidationError(f"Limit must not be negative, got {limit}")
        if offset < 0:
            raise ValidationError(f"Offset must not be negative, got {offset}")
        if start_date and end_date and start_date > end_date:
            raise ValidationError(f"Start date {start_date} is after end date {end_date}")

        incomes, expenses = self._load(start_date, end_date, entry_type, basis, include_other)
        entries = with_running_balance(incomes + expenses)

        if search and search.strip():
            needle = search.strip().lower()
            entries = [e for e in entries if _matches_search(e, needle)]

        totals = LedgerTotals(
            total_income=sum((e.amount for e in entries if e.entry_type is EntryType.INCOME), Decimal("0.00")),
            total_expenses=sum((e.amount for e in entries if e.entry_type is EntryType.EXPENSE), Decimal("0.00")),
        )

        if newest_first:
            entries.reverse()
        page = entries[offset:] if limit is None else entries[offset : offset + limit]

        return LedgerPage(
            entries=tuple(page),
            totals=totals,
            limit=limit,
            offset=offset,
            total_count=len(entries),
        )

    def get_summary(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        period: SummaryPeriod = SummaryPeriod.MONTH,
        basis: LedgerBasis = LedgerBasis.ACCRUAL,
        include_other: bool = False,
    ) -> list[SummaryBucket]:
        """Summarize income and expenses per period and category.

        Expenses count at their gross amount; reimbursements show up once,
        as income, so each bucket's net agrees with the feed balance.
        Buckets are returned newest period first.
        """
        if start_date and end_date and start_date > end_date:
            raise ValidationError(f"Start date {start_date} is after end date {end_date}")

        incomes, expenses = self._load(start_date, end_date, None, basis, include_other)
        income_by: dict[str, dict[str, Decimal]] = defaultdict(lambda: defaultdict(Decimal))
        expenses_by: dict[str, dict[str, Decimal]] = defaultdict(lambda: defaultdict(Decimal))

        for entry in incomes:
            income_by[period_key(entry.date, period)][entry.category] += entry.amount
        for entry in expenses:
            expenses_by[period_key(entry.date, period)][entry.category] += entry.amount

        buckets = []
        for key in sorted(set(income_by) | set(expenses_by), reverse=True):
            income = dict(income_by.get(key, {}))
            spent = dict(expenses_by.get(key, {}))
            buckets.append(
                SummaryBucket(
                    period_key=key,
                    income_by_category=income,
                    expenses_by_category=spent,
                    total_income=sum(income.values(), Decimal("0.00")),
                    total_expenses=sum(spent.values(), Decimal("0.00")),
                )
            )
        return buckets
