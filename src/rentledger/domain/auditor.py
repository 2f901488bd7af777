"""Integrity auditor domain service.

Finds and repairs inconsistencies between requests, income and expenses
that manual edits, re-imports or interrupted jobs can leave behind. Every
repair is a documented heuristic; cases the heuristics cannot settle are
flagged and left alone. Repairing twice in a row fixes nothing the second
time.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, time
from decimal import Decimal

from rentledger.config import Settings
from rentledger.database.base import Database
from rentledger.domain.entities import (
    Income,
    IncomeType,
    PaymentRequest,
    RequestStatus,
)
from rentledger.utils.amount_parser import amounts_equal, round_half_up
from rentledger.utils.date_parser import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IntegrityReport:
    """Counts of inconsistencies currently in the database."""

    orphaned_income: int = 0
    invalid_status_pairs: int = 0
    missing_totals: int = 0
    duplicate_expenses: int = 0

    @property
    def total(self) -> int:
        return self.orphaned_income + self.invalid_status_pairs + self.missing_totals + self.duplicate_expenses

    def as_counts(self) -> dict[str, int]:
        return {
            "orphaned_income": self.orphaned_income,
            "invalid_status_pairs": self.invalid_status_pairs,
            "missing_totals": self.missing_totals,
            "duplicate_expenses": self.duplicate_expenses,
        }


@dataclass
class AuditResult:
    """Repairs made by one auditor run and the cases left for review."""

    relinked_income: int = 0
    cleared_paid_dates: int = 0
    stamped_paid_dates: int = 0
    backfilled_totals: int = 0
    deleted_duplicates: int = 0
    flagged: list[str] = field(default_factory=list)

    @property
    def total_fixes(self) -> int:
        return (
            self.relinked_income
            + self.cleared_paid_dates
            + self.stamped_paid_dates
            + self.backfilled_totals
            + self.deleted_duplicates
        )

    def as_counts(self) -> dict[str, int]:
        return {
            "relinked_income": self.relinked_income,
            "cleared_paid_dates": self.cleared_paid_dates,
            "stamped_paid_dates": self.stamped_paid_dates,
            "backfilled_totals": self.backfilled_totals,
            "deleted_duplicates": self.deleted_duplicates,
            "flagged": len(self.flagged),
        }


def _has_invalid_pair(request: PaymentRequest) -> bool:
    if request.status is RequestStatus.PAID:
        return request.paid_date is None
    return request.paid_date is not None


class IntegrityAuditor:
    """Service for detecting and repairing cross-entity inconsistencies."""

    def __init__(self, db: Database, settings: Settings):
        """Initialize integrity auditor.

        Args:
            db: Database instance
            settings: Split bill types and split count used for backfills
        """
        self.db = db
        self.settings = settings

    def _orphaned_income(self) -> list[Income]:
        return self.db.list_income(income_type=IncomeType.UTILITY_REIMBURSEMENT, unlinked_only=True)

    def _missing_totals(self) -> list[PaymentRequest]:
        return [
            r
            for r in self.db.list_payment_requests(bill_types=self.settings.split_bill_types)
            if r.total_amount is None
        ]

    def scan(self) -> IntegrityReport:
        """Count inconsistencies without changing anything."""
        requests = self.db.list_payment_requests()
        return IntegrityReport(
            orphaned_income=len(self._orphaned_income()),
            invalid_status_pairs=sum(1 for r in requests if _has_invalid_pair(r)),
            missing_totals=len(self._missing_totals()),
            duplicate_expenses=sum(len(g) - 1 for g in self.db.find_duplicate_expense_groups()),
        )

    def repair(self) -> AuditResult:
        """Run every check and apply its repair in one transaction.

        Returns:
            AuditResult with per-check fix counts and flagged cases
        """
        result = AuditResult()
        with self.db.transaction():
            self._relink_orphaned_income(result)
            self._fix_status_pairs(result)
            self._backfill_totals(result)
            self._remove_duplicate_expenses(result)

        for item in result.flagged:
            logger.warning("Flagged for review: %s", item)
        logger.info("Integrity repair finished: %s", result.as_counts())
        return result

    def _relink_orphaned_income(self, result: AuditResult) -> None:
        """Attach unlinked reimbursements to the one paid request they settle.

        A candidate is a paid utility request without income, for the same
        amount, paid on the income's received or accrual date.
        """
        orphans = self._orphaned_income()
        if not orphans:
            return

        paid = [
            r
            for r in self.db.list_payment_requests(statuses=[RequestStatus.PAID])
            if r.bill_type.is_utility and r.paid_date is not None
        ]
        claimed: set[int] = set()
        for income in orphans:
            dates = {income.date, income.received_date}
            candidates = [
                r
                for r in paid
                if r.id not in claimed
                and amounts_equal(r.amount, income.amount)
                and r.paid_date.date() in dates
                and self.db.get_income_for_request(r.id) is None
            ]
            if len(candidates) != 1:
                result.flagged.append(
                    f"Income {income.id} ({income.amount}) has {len(candidates)} candidate requests"
                )
                continue
            request = candidates[0]
            self.db.link_income_to_request(income.id, request.id)
            claimed.add(request.id)
            result.relinked_income += 1
            logger.info("Relinked income %d to request %d", income.id, request.id)

    def _fix_status_pairs(self, result: AuditResult) -> None:
        for request in self.db.list_payment_requests():
            if not _has_invalid_pair(request):
                continue
            if request.status is RequestStatus.PAID:
                income = self.db.get_income_for_request(request.id)
                if income is not None and income.received_date is not None:
                    paid_date = datetime.combine(income.received_date, time())
                else:
                    paid_date = utcnow()
                self.db.set_request_paid_date(request.id, paid_date)
                result.stamped_paid_dates += 1
            else:
                self.db.set_request_paid_date(request.id, None)
                result.cleared_paid_dates += 1

    def _backfill_totals(self, result: AuditResult) -> None:
        # Approximation: the landlord's share is assumed equal to the others
        for request in self._missing_totals():
            total = round_half_up(request.amount * Decimal(self.settings.split_count))
            self.db.set_request_total_amount(request.id, total)
            result.backfilled_totals += 1

    def _remove_duplicate_expenses(self, result: AuditResult) -> None:
        for group in self.db.find_duplicate_expense_groups():
            keep, *duplicates = group
            for expense_id in duplicates:
                if self.db.expense_has_references(expense_id):
                    result.flagged.append(
                        f"Expense {expense_id} duplicates expense {keep} but is referenced"
                    )
                    continue
                self.db.delete_expense(expense_id)
                result.deleted_duplicates += 1
