"""Payment matching domain service.

Owns the payment request state machine::

    pending -> sent -> paid
       |        |
       +--------+----> foregone

A payment notification settles at most one open request. Matching first
tries the tracking id quoted in the payment note, then falls back to
amount, recency and payer name. Anything that cannot be pinned to a single
request is left unmatched for a person to look at.
"""

import difflib
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional

from rentledger.config import Settings
from rentledger.database.base import Database
from rentledger.domain.entities import (
    OPEN_STATUSES,
    BillType,
    EventType,
    PaymentEvent,
    PaymentRequest,
    RequestStatus,
    income_type_for,
)
from rentledger.domain.errors import (
    AmbiguousMatchError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    invalid_transition,
    no_match_candidates,
    payment_event_not_found,
    payment_request_not_found,
)
from rentledger.utils.amount_parser import amounts_equal, format_amount
from rentledger.utils.date_parser import utcnow

logger = logging.getLogger(__name__)

RENT_BILLING_DAY = 1
UTILITY_BILLING_DAY = 15


def billing_date(bill_type: BillType, month: int, year: int) -> date:
    """Accrual date of the income recorded for a paid request."""
    if bill_type is BillType.RENT:
        return date(year, month, RENT_BILLING_DAY)
    if bill_type in (BillType.ELECTRICITY, BillType.WATER):
        return date(year, month, UTILITY_BILLING_DAY)
    raise ValueError(f"Unhandled bill type: {bill_type!r}")


def _normalize_name(name: str) -> str:
    return " ".join(name.lower().replace("-", " ").replace("_", " ").split())


def names_similar(actor: str, participant: str, threshold: float = 0.85) -> bool:
    """Check if a payer name from a notification refers to a participant.

    Names match when they are equal, share a first name, or are close
    enough by difflib ratio.
    """
    left, right = _normalize_name(actor), _normalize_name(participant)
    if not left or not right:
        return False
    if left == right or left.split()[0] == right.split()[0]:
        return True
    return difflib.SequenceMatcher(None, left, right).ratio() >= threshold


@dataclass
class MatchResult:
    """Outcome of a matcher run."""

    matched: list[int] = field(default_factory=list)
    unmatched: int = 0
    conflicts: int = 0
    marked_sent: int = 0

    def as_counts(self) -> dict[str, int]:
        return {
            "matched": len(self.matched),
            "unmatched": self.unmatched,
            "conflicts": self.conflicts,
            "marked_sent": self.marked_sent,
        }


class MatcherService:
    """Service for reconciling payment events with payment requests."""

    def __init__(self, db: Database, settings: Settings):
        """Initialize matcher service.

        Args:
            db: Database instance
            settings: Matching window and name similarity settings
        """
        self.db = db
        self.settings = settings

    # Candidate selection

    def _actor_matches(self, actor: Optional[str], request: PaymentRequest) -> bool:
        if not actor:
            return True
        if names_similar(actor, request.participant, self.settings.name_similarity):
            return True
        roommate = self.settings.find_roommate(request.participant)
        return bool(
            roommate
            and roommate.handle
            and names_similar(actor, roommate.handle, self.settings.name_similarity)
        )

    def _by_tracking_id(self, event: PaymentEvent) -> Optional[PaymentRequest]:
        if not event.tracking_id:
            return None
        requests = self.db.list_payment_requests(statuses=OPEN_STATUSES, tracking_id=event.tracking_id)
        if len(requests) > 1:
            # One request per participant shares the id; narrow to the payer
            requests = [
                r
                for r in requests
                if self._actor_matches(event.actor, r)
                and (event.amount is None or amounts_equal(r.amount, event.amount))
            ]
        if len(requests) == 1:
            return requests[0]
        logger.info(
            "Tracking id %s on event %s resolved to %d open requests, falling back to amount",
            event.tracking_id,
            event.id,
            len(requests),
        )
        return None

    def _by_amount(self, event: PaymentEvent) -> list[PaymentRequest]:
        if event.amount is None:
            return []
        window_start = event.occurred_at - timedelta(days=self.settings.match_window_days)
        requests = self.db.list_payment_requests(statuses=OPEN_STATUSES, created_since=window_start)
        candidates = [r for r in requests if amounts_equal(r.amount, event.amount)]
        if self.settings.match_on_actor and event.actor:
            candidates = [r for r in candidates if self._actor_matches(event.actor, r)]
        return candidates

    def find_candidates(self, event: PaymentEvent) -> list[PaymentRequest]:
        """Return open requests the event could settle, best first.

        A tracking id that resolves to one request wins outright. Otherwise
        candidates come from the amount path, newest request first.
        """
        request = self._by_tracking_id(event)
        if request is not None:
            return [request]
        return self._by_amount(event)

    # Matching

    def match_event(self, event_id: int) -> PaymentRequest:
        """Match one payment event and confirm the payment.

        Returns:
            The paid PaymentRequest

        Raises:
            NotFoundError: If the event doesn't exist
            AmbiguousMatchError: If no request qualifies
            ConflictError: If the event was already matched or the request
                changed state concurrently
        """
        event = self.db.get_payment_event(event_id)
        if event is None:
            raise NotFoundError(payment_event_not_found(event_id))
        if event.matched:
            raise ConflictError(f"Payment event {event_id} is already matched")
        if event.type is not EventType.PAYMENT_RECEIVED:
            raise AmbiguousMatchError(no_match_candidates(event_id, "not a payment"))
        if event.amount is None:
            raise AmbiguousMatchError(no_match_candidates(event_id, "no amount"))

        candidates = self.find_candidates(event)
        if not candidates:
            raise AmbiguousMatchError(
                no_match_candidates(
                    event_id,
                    f"no open request for {format_amount(event.amount)}"
                    + (f" from {event.actor}" if event.actor else ""),
                )
            )

        # Candidates are ordered created_at desc, id desc
        chosen = candidates[0]
        logger.info(
            "Matched event %d (%s %s) to request %d (%s, %s) out of %d candidates",
            event_id,
            event.actor,
            format_amount(event.amount),
            chosen.id,
            chosen.participant,
            chosen.tracking_id,
            len(candidates),
        )
        return self.confirm_payment(chosen.id, event=event)

    def process_pending_events(self) -> MatchResult:
        """Match every unmatched event once.

        Payments that cannot be matched keep a review reason. Request-sent
        notifications move the requests they quote from pending to sent.
        """
        result = MatchResult()
        for event in self.db.list_payment_events(matched=False):
            if event.type is EventType.PAYMENT_RECEIVED:
                try:
                    request = self.match_event(event.id)
                except AmbiguousMatchError as e:
                    result.unmatched += 1
                    if event.review_reason != str(e):
                        self.db.set_event_review_reason(event.id, str(e))
                    logger.info("%s", e)
                except ConflictError as e:
                    result.conflicts += 1
                    logger.warning("Skipped event %d: %s", event.id, e)
                else:
                    result.matched.append(request.id)
            elif event.type is EventType.REQUEST_SENT:
                result.marked_sent += self._apply_request_sent(event)

        logger.info("Matching finished: %s", result.as_counts())
        return result

    def _apply_request_sent(self, event: PaymentEvent) -> int:
        if not event.tracking_id:
            return 0
        count = 0
        for request in self.db.list_payment_requests(
            statuses=[RequestStatus.PENDING], tracking_id=event.tracking_id
        ):
            if not self._actor_matches(event.actor, request):
                continue
            if self.db.transition_payment_request(request.id, [RequestStatus.PENDING], RequestStatus.SENT):
                logger.info("Request %d marked sent from event %d", request.id, event.id)
                count += 1
        return count

    # State transitions

    def _require_request(self, payment_request_id: int) -> PaymentRequest:
        request = self.db.get_payment_request(payment_request_id)
        if request is None:
            raise NotFoundError(payment_request_not_found(payment_request_id))
        return request

    def confirm_payment(
        self,
        payment_request_id: int,
        event: Optional[PaymentEvent] = None,
        paid_date: Optional[datetime] = None,
    ) -> PaymentRequest:
        """Mark a request paid and record the money received.

        In one transaction: the request moves to paid (only if still open),
        an Income dated by the billing period is created, utility requests
        get one Adjustment against their expense, and the event, if any, is
        marked matched.

        Args:
            payment_request_id: Request being paid
            event: Payment event that settled it, for automatic matches
            paid_date: Payment time for manual confirmation, defaults to now

        Returns:
            The paid PaymentRequest

        Raises:
            NotFoundError: If the request doesn't exist
            InvalidTransitionError: If the request is not open anymore
        """
        paid_at = event.occurred_at if event is not None else (paid_date or utcnow())

        with self.db.transaction():
            request = self._require_request(payment_request_id)
            if not self.db.transition_payment_request(
                request.id, OPEN_STATUSES, RequestStatus.PAID, paid_date=paid_at
            ):
                current = self._require_request(payment_request_id)
                raise InvalidTransitionError(invalid_transition(request.id, current.status.value, "mark paid"))

            if self.db.get_income_for_request(request.id) is None:
                self.db.create_income(
                    income_type=income_type_for(request.bill_type),
                    date=billing_date(request.bill_type, request.month, request.year),
                    amount=request.amount,
                    description=f"{request.tracking_id} from {request.participant}",
                    payer=request.participant,
                    payment_request_id=request.id,
                    received_date=paid_at.date(),
                )

            if (
                request.bill_type.is_utility
                and request.expense_id is not None
                and self.db.get_adjustment_for_request(request.id) is None
            ):
                self.db.create_adjustment(
                    expense_id=request.expense_id,
                    payment_request_id=request.id,
                    adjustment_amount=request.amount,
                    description=f"Reimbursement from {request.participant} ({request.tracking_id})",
                )

            if event is not None:
                self.db.mark_event_matched(event.id, request.id)

        return self._require_request(payment_request_id)

    def mark_paid(self, payment_request_id: int, paid_date: Optional[datetime] = None) -> PaymentRequest:
        """Manually mark a request paid, with the same effects as a match."""
        request = self.confirm_payment(payment_request_id, paid_date=paid_date)
        logger.info("Request %d marked paid manually", payment_request_id)
        return request

    def mark_sent(self, payment_request_id: int) -> PaymentRequest:
        """Record that a pending request was delivered.

        Raises:
            NotFoundError: If the request doesn't exist
            InvalidTransitionError: If the request is not pending
        """
        request = self._require_request(payment_request_id)
        if not self.db.transition_payment_request(request.id, [RequestStatus.PENDING], RequestStatus.SENT):
            current = self._require_request(payment_request_id)
            raise InvalidTransitionError(invalid_transition(request.id, current.status.value, "mark sent"))
        return self._require_request(payment_request_id)

    def forego(self, payment_request_id: int) -> PaymentRequest:
        """Give up on collecting an open request. No income is recorded.

        Raises:
            NotFoundError: If the request doesn't exist
            InvalidTransitionError: If the request is not open
        """
        request = self._require_request(payment_request_id)
        if not self.db.transition_payment_request(request.id, OPEN_STATUSES, RequestStatus.FOREGONE):
            current = self._require_request(payment_request_id)
            raise InvalidTransitionError(invalid_transition(request.id, current.status.value, "forego"))
        logger.info("Request %d foregone", payment_request_id)
        return self._require_request(payment_request_id)

    def undo(self, payment_request_id: int) -> PaymentRequest:
        """Return a paid or foregone request to pending.

        Deletes the Income and Adjustment linked to the request, unlinks its
        matched events and clears the paid date, all in one transaction.
        Rows are found by their link to the request, never by amount.

        Raises:
            NotFoundError: If the request doesn't exist
            InvalidTransitionError: If the request is still open
        """
        with self.db.transaction():
            request = self._require_request(payment_request_id)
            if request.status.is_open:
                raise InvalidTransitionError(invalid_transition(request.id, request.status.value, "undo"))

            income = self.db.get_income_for_request(request.id)
            if income is not None:
                self.db.delete_income(income.id)
            adjustment = self.db.get_adjustment_for_request(request.id)
            if adjustment is not None:
                self.db.delete_adjustment(adjustment.id)
            unlinked = self.db.unlink_events_for_request(request.id)

            if not self.db.transition_payment_request(
                request.id, [RequestStatus.PAID, RequestStatus.FOREGONE], RequestStatus.PENDING
            ):
                raise ConflictError(f"Payment request {request.id} changed while undoing")

        logger.info(
            "Undid request %d: removed income=%s adjustment=%s, unlinked %d events",
            payment_request_id,
            income.id if income else None,
            adjustment.id if adjustment else None,
            unlinked,
        )
        return self._require_request(payment_request_id)
