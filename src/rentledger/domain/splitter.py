"""Bill splitting domain service.

Turns shared utility expenses into one payment request per roommate and
issues the monthly rent request. Requests are deduplicated on
(bill_type, month, year, participant), never on the expense, because the
same bill can come back from the bank under a new transaction id.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Mapping, Optional

from rentledger.config import Settings
from rentledger.database.base import Database
from rentledger.domain.entities import (
    BillType,
    Expense,
    ExpenseType,
    PaymentRequest,
    RequestStatus,
    RequestSummary,
    bill_type_for,
)
from rentledger.domain.errors import (
    DuplicateError,
    NotFoundError,
    ValidationError,
    duplicate_payment_request,
    payment_request_not_found,
)
from rentledger.domain.ports import OutboundNotifier
from rentledger.utils.amount_parser import format_amount, round_half_up
from rentledger.utils.date_parser import month_bounds
from rentledger.utils.tracking_id import tracking_id_for

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


@dataclass(frozen=True)
class SplitShare:
    participant: str
    amount: Decimal


@dataclass(frozen=True)
class SplitPlan:
    """Shares of a bill.

    ``sum(shares) + remainder == total`` holds exactly; the remainder
    belongs to ``remainder_to``.
    """

    total: Decimal
    shares: tuple[SplitShare, ...]
    remainder_to: str
    remainder: Decimal

    def share_for(self, participant: str) -> Optional[Decimal]:
        for share in self.shares:
            if share.participant == participant:
                return share.amount
        return None


@dataclass
class SplitResult:
    """Outcome of a splitter run."""

    created: list[int] = field(default_factory=list)
    skipped: int = 0
    expenses_processed: int = 0
    sent: int = 0
    delivery_failures: int = 0

    def as_counts(self) -> dict[str, int]:
        return {
            "created": len(self.created),
            "skipped": self.skipped,
            "expenses_processed": self.expenses_processed,
            "sent": self.sent,
            "delivery_failures": self.delivery_failures,
        }


def split_amount(total: Decimal, participants: Mapping[str, Decimal], remainder_to: str) -> SplitPlan:
    """Split a bill total among participants.

    Each share is ``round_half_up(total * ratio)``; whatever is left,
    including the odd cent, goes to ``remainder_to``. When the ratios
    cover the whole bill, rounding up can overshoot the total; the extra
    cents are then taken back one at a time from the last shares, so the
    remainder is never negative.

    Args:
        total: Bill total
        participants: Participant name to share ratio
        remainder_to: Participant who keeps the remainder

    Returns:
        SplitPlan with one share per participant

    Raises:
        ValidationError: If the total is negative or ratios exceed 1
    """
    total = round_half_up(Decimal(total))
    if total < 0:
        raise ValidationError(f"Cannot split a negative amount: {total}")
    if remainder_to in participants:
        raise ValidationError(f"'{remainder_to}' cannot both hold a share and the remainder")
    if any(ratio <= 0 for ratio in participants.values()):
        raise ValidationError("Share ratios must be positive")
    if sum(participants.values(), Decimal(0)) > 1:
        raise ValidationError("Share ratios add up to more than the whole bill")

    amounts = {name: round_half_up(total * Decimal(ratio)) for name, ratio in participants.items()}
    overshoot = sum(amounts.values(), Decimal(0)) - total
    # Half-up rounding adds under one cent per share
    for name in reversed(list(amounts)):
        if overshoot <= 0:
            break
        amounts[name] -= _CENT
        overshoot -= _CENT

    shares = tuple(SplitShare(participant=name, amount=amount) for name, amount in amounts.items())
    remainder = total - sum((s.amount for s in shares), Decimal(0))
    return SplitPlan(total=total, shares=shares, remainder_to=remainder_to, remainder=remainder)


def _share_fraction(split_count: int) -> str:
    return f"1/{split_count}"


def render_request_note(request: PaymentRequest, split_count: int = 3) -> str:
    """Build the note sent with a payment request.

    The note starts with the tracking id so that a reply quoting it can be
    matched back to the request.
    """
    period = f"{request.year:04d}-{request.month:02d}"
    if request.bill_type is BillType.RENT:
        return f"{request.tracking_id} - Rent for {period}"
    if request.bill_type in (BillType.ELECTRICITY, BillType.WATER):
        total = request.total_amount if request.total_amount is not None else request.amount
        return (
            f"{request.tracking_id} - {request.bill_type.value.capitalize()} bill for {period}: "
            f"Total {format_amount(total)}, your share is {format_amount(request.amount)} "
            f"({_share_fraction(split_count)}). I paid the full amount."
        )
    raise ValueError(f"Unhandled bill type: {request.bill_type!r}")


class BillSplitterService:
    """Service for creating payment requests from bills."""

    def __init__(self, db: Database, settings: Settings, notifier: Optional[OutboundNotifier] = None):
        """Initialize bill splitter service.

        Args:
            db: Database instance
            settings: Household settings (roommates, split count, rent)
            notifier: Optional notifier that delivers created requests
        """
        self.db = db
        self.settings = settings
        self.notifier = notifier

    def plan_for(self, total: Decimal) -> SplitPlan:
        """Split a bill total among the configured roommates."""
        ratios = {p.name: self.settings.share_ratio(p) for p in self.settings.roommates}
        return split_amount(total, ratios, self.settings.landlord)

    def split_pending_bills(self, month: Optional[int] = None, year: Optional[int] = None) -> SplitResult:
        """Create requests for split bills that have none yet.

        Each expense is handled in its own transaction. The billing period
        of a request is the month of the expense date.

        Args:
            month: Optional billing month filter (requires year)
            year: Optional billing year filter

        Returns:
            SplitResult with created request IDs and skip counts
        """
        result = SplitResult()
        if not self.settings.roommates:
            logger.warning("No roommates configured, nothing to split")
            return result

        start_date = end_date = None
        if month is not None or year is not None:
            if month is None or year is None:
                raise ValidationError("Month and year must be given together")
            if not 1 <= month <= 12:
                raise ValidationError(f"Invalid month: {month}")
            start_date, end_date = month_bounds(month, year)

        expense_types = [ExpenseType(bill_type.value) for bill_type in self.settings.split_bill_types]
        expenses = self.db.list_unrequested_expenses(expense_types, start_date=start_date, end_date=end_date)
        logger.info("Found %d bills without payment requests", len(expenses))

        for expense in expenses:
            result.expenses_processed += 1
            try:
                created, skipped = self._split_expense(expense)
            except DuplicateError as e:
                # Another run created the same request between check and insert
                logger.warning("Skipped expense %d: %s", expense.id, e)
                result.skipped += 1
                continue
            result.created.extend(created)
            result.skipped += skipped

        self._deliver(result)
        logger.info("Bill split finished: %s", result.as_counts())
        return result

    def _split_expense(self, expense: Expense) -> tuple[list[int], int]:
        bill_type = bill_type_for(expense.expense_type)
        if bill_type is None or not bill_type.is_utility:
            raise ValidationError(f"Expense {expense.id} is not a split bill")
        month, year = expense.date.month, expense.date.year
        tracking_id = tracking_id_for(bill_type, month, year)
        plan = self.plan_for(expense.amount)

        created: list[int] = []
        skipped = 0
        with self.db.transaction():
            for share in plan.shares:
                if self.db.payment_request_exists(bill_type, month, year, share.participant):
                    logger.info(
                        "Skipping: %s",
                        duplicate_payment_request(share.participant, bill_type.value, month, year),
                    )
                    skipped += 1
                    continue
                created.append(
                    self.db.create_payment_request(
                        participant=share.participant,
                        bill_type=bill_type,
                        month=month,
                        year=year,
                        amount=share.amount,
                        total_amount=plan.total,
                        tracking_id=tracking_id,
                        expense_id=expense.id,
                    )
                )
        logger.info(
            "Split %s %s among %d roommates (%s kept by %s)",
            tracking_id,
            format_amount(plan.total),
            len(plan.shares),
            format_amount(plan.remainder),
            plan.remainder_to,
        )
        return created, skipped

    def create_rent_requests(self, month: int, year: int) -> SplitResult:
        """Create the monthly rent request for the rent participant.

        Raises:
            ValidationError: If rent or the rent participant is not configured
        """
        if self.settings.monthly_rent is None or not self.settings.rent_participant:
            raise ValidationError("Monthly rent and rent participant must be configured")
        if not 1 <= month <= 12:
            raise ValidationError(f"Invalid month: {month}")

        result = SplitResult(expenses_processed=0)
        participant = self.settings.rent_participant
        amount = round_half_up(self.settings.monthly_rent)
        try:
            with self.db.transaction():
                if self.db.payment_request_exists(BillType.RENT, month, year, participant):
                    result.skipped += 1
                else:
                    result.created.append(
                        self.db.create_payment_request(
                            participant=participant,
                            bill_type=BillType.RENT,
                            month=month,
                            year=year,
                            amount=amount,
                            total_amount=amount,
                            tracking_id=tracking_id_for(BillType.RENT, month, year),
                        )
                    )
        except DuplicateError as e:
            logger.warning("Rent request already exists: %s", e)
            result.skipped += 1

        self._deliver(result)
        return result

    def summarize(self, request: PaymentRequest) -> RequestSummary:
        roommate = self.settings.find_roommate(request.participant)
        return RequestSummary(
            payment_request_id=request.id,
            participant=request.participant,
            handle=roommate.handle if roommate else None,
            bill_type=request.bill_type,
            amount=request.amount,
            total_amount=request.total_amount,
            tracking_id=request.tracking_id,
            note=render_request_note(request, self.settings.split_count),
        )

    def deliver(self, payment_request_id: int) -> bool:
        """Send one request and mark it sent on acknowledgement.

        Delivery problems are logged and leave the request pending.

        Raises:
            NotFoundError: If the request doesn't exist
        """
        if self.notifier is None:
            return False
        request = self.db.get_payment_request(payment_request_id)
        if request is None:
            raise NotFoundError(payment_request_not_found(payment_request_id))
        if request.status is not RequestStatus.PENDING:
            return False

        summary = self.summarize(request)
        try:
            acknowledged = self.notifier.send(summary.handle, summary)
        except Exception:
            logger.warning("Delivery of payment request %d failed", request.id, exc_info=True)
            return False
        if not acknowledged:
            logger.warning("Payment request %d was not acknowledged", request.id)
            return False
        return self.db.transition_payment_request(request.id, [RequestStatus.PENDING], RequestStatus.SENT)

    def _deliver(self, result: SplitResult) -> None:
        if self.notifier is None:
            return
        for request_id in result.created:
            if self.deliver(request_id):
                result.sent += 1
            else:
                result.delivery_failures += 1
