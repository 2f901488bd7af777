"""Payment notification normalizer.

Payment apps announce requests and payments with e-mails whose only
structure is the wording of the subject line. ``parse`` turns one of those
messages into a PaymentEvent without any I/O; ``NotificationService``
stores the events once per message.
"""

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional

from rentledger.database.base import Database
from rentledger.domain.entities import EventType, PaymentEvent, RawMessage
from rentledger.domain.errors import DuplicateError, ValidationError
from rentledger.utils.amount_parser import parse_amount
from rentledger.utils.date_parser import to_naive_utc
from rentledger.utils.tracking_id import extract_tracking_id

logger = logging.getLogger(__name__)

MISSING_AMOUNT = "payment notification has no amount"

_AMOUNT_RE = re.compile(r"\$\s?(\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)")
_NOTE_RE = re.compile(r'(?:Payment note|Note):\s*"(.+?)"', re.IGNORECASE | re.DOTALL)

# (type, phrase in subject, actor pattern); first phrase found wins.
# Reminders repeat the "You requested" wording, so they are checked first.
_SUBJECT_PATTERNS: tuple[tuple[EventType, tuple[str, ...], re.Pattern], ...] = (
    (
        EventType.REMINDER,
        ("reminder:",),
        re.compile(r"Reminder:\s*You requested \$[\d,.]+ from (.+?)\s*$", re.IGNORECASE),
    ),
    (
        EventType.PAYMENT_RECEIVED,
        ("paid you", "completed your request"),
        re.compile(r"^\s*(.+?) (?:paid you|completed your request)", re.IGNORECASE),
    ),
    (
        EventType.REQUEST_SENT,
        ("you requested",),
        re.compile(r"You requested \$[\d,.]+ from (.+?)\s*$", re.IGNORECASE),
    ),
    (
        EventType.DECLINED,
        ("declined",),
        re.compile(r"^\s*(.+?) declined your request", re.IGNORECASE),
    ),
    (
        EventType.EXPIRED,
        ("expired",),
        re.compile(r"Your request to (.+?) has expired", re.IGNORECASE),
    ),
)


def _classify_subject(subject: str) -> tuple[Optional[EventType], Optional[str]]:
    lowered = subject.lower()
    for event_type, phrases, actor_re in _SUBJECT_PATTERNS:
        if any(phrase in lowered for phrase in phrases):
            match = actor_re.search(subject)
            actor = match.group(1).strip() if match else None
            return event_type, actor or None
    return None, None


def _first_amount(*texts: Optional[str]) -> Optional[Decimal]:
    for text in texts:
        if not text:
            continue
        match = _AMOUNT_RE.search(text)
        if match:
            return parse_amount(match.group(1))
    return None


def _note(body: Optional[str]) -> Optional[str]:
    if not body:
        return None
    match = _NOTE_RE.search(body)
    return match.group(1).strip() if match else None


def parse(message: RawMessage) -> PaymentEvent:
    """Normalize a raw notification message into a payment event.

    Fields that cannot be found are left as None; a payment without an
    amount is kept and later routed to manual review.

    Args:
        message: Inbound message

    Returns:
        Unsaved PaymentEvent (id is None)

    Raises:
        ValidationError: If the message has no external id
    """
    if not message.external_id or not message.external_id.strip():
        raise ValidationError("Notification message has no external id")

    subject = message.subject or ""
    event_type, actor = _classify_subject(subject)
    note = _note(message.body)
    tracking_id = extract_tracking_id(note) or extract_tracking_id(f"{subject}\n{message.body or ''}")

    return PaymentEvent(
        id=None,
        external_message_id=message.external_id.strip(),
        type=event_type,
        actor=actor,
        amount=_first_amount(subject, message.body),
        note=note,
        tracking_id=tracking_id,
        occurred_at=to_naive_utc(message.received_at),
    )


@dataclass
class IngestResult:
    """Outcome of storing a batch of notification messages."""

    stored: list[int] = field(default_factory=list)
    duplicates: int = 0
    needs_review: int = 0
    rejected: list[str] = field(default_factory=list)

    def as_counts(self) -> dict[str, int]:
        return {
            "stored": len(self.stored),
            "duplicates": self.duplicates,
            "needs_review": self.needs_review,
            "rejected": len(self.rejected),
        }


class NotificationService:
    """Service for storing normalized payment notifications."""

    def __init__(self, db: Database):
        """Initialize notification service.

        Args:
            db: Database instance
        """
        self.db = db

    def ingest(self, messages: Iterable[RawMessage]) -> IngestResult:
        """Parse and store messages, once per external message id.

        A redelivered message is counted as a duplicate and ignored. A
        malformed message is rejected on its own without stopping the batch.
        """
        result = IngestResult()
        for message in messages:
            try:
                event = parse(message)
            except ValidationError as e:
                logger.warning("Rejected notification: %s", e)
                result.rejected.append(str(e))
                continue

            if self.db.payment_event_exists(event.external_message_id):
                result.duplicates += 1
                continue

            review_reason = None
            if event.type is EventType.PAYMENT_RECEIVED and event.amount is None:
                review_reason = MISSING_AMOUNT
            try:
                event_id = self.db.create_payment_event(
                    external_message_id=event.external_message_id,
                    occurred_at=event.occurred_at,
                    event_type=event.type,
                    actor=event.actor,
                    amount=event.amount,
                    note=event.note,
                    tracking_id=event.tracking_id,
                    review_reason=review_reason,
                )
            except DuplicateError:
                result.duplicates += 1
                continue

            result.stored.append(event_id)
            if review_reason is not None:
                result.needs_review += 1
                logger.warning("Payment event %d needs review: %s", event_id, review_reason)
            logger.debug(
                "Stored %s event %d (actor=%s, amount=%s)",
                event.type.value if event.type else "unrecognized",
                event_id,
                event.actor,
                event.amount,
            )

        logger.info("Notification ingest finished: %s", result.as_counts())
        return result
