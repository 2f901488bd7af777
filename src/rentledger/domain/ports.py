"""Ports to external collaborators and the adapters shipped with rentledger.

The core only talks to banks, mailboxes and payment apps through these
interfaces. Each job receives its port objects as arguments, so no
connection or token outlives a single invocation.
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional

from rentledger.domain.entities import BankTransaction, RawMessage, RequestSummary
from rentledger.domain.errors import ExternalServiceError, ValidationError
from rentledger.utils.amount_parser import parse_amount
from rentledger.utils.date_parser import parse_date, parse_datetime, to_naive_utc

logger = logging.getLogger(__name__)


class BankFeed(ABC):
    """Source of bank transactions."""

    @abstractmethod
    def pull(self, cursor: Optional[str] = None) -> list[BankTransaction]:
        """Fetch transactions newer than ``cursor``.

        Raises:
            ExternalServiceError: If the feed is unavailable
        """
        pass


class NotificationSource(ABC):
    """Source of inbound payment notification messages."""

    @abstractmethod
    def pull(self, since: Optional[datetime] = None) -> list[RawMessage]:
        """Fetch messages received at or after ``since``.

        Raises:
            ExternalServiceError: If the mailbox is unavailable
        """
        pass


class OutboundNotifier(ABC):
    """Delivers payment requests to participants."""

    @abstractmethod
    def send(self, channel: Optional[str], summary: RequestSummary) -> bool:
        """Deliver a request. Returns True on acknowledgement."""
        pass


def _load_records(path: Path, key: str) -> list[dict[str, Any]]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ExternalServiceError(f"Could not read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ExternalServiceError(f"{path} is not valid JSON: {e}") from e

    if isinstance(data, dict):
        data = data.get(key, [])
    if not isinstance(data, list) or not all(isinstance(r, dict) for r in data):
        raise ValidationError(f"{path} must contain a list of {key} objects")
    return data


def _first(record: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value not in (None, ""):
            return value
    return None


class JsonFileBankFeed(BankFeed):
    """Bank feed backed by a JSON export of transactions.

    Accepts a list of objects, or an object with a ``transactions`` list.
    Each object needs an id, a date and an amount (positive is money out).
    """

    def __init__(self, path: str):
        self.path = Path(path)

    def pull(self, cursor: Optional[str] = None) -> list[BankTransaction]:
        since = parse_date(cursor) if cursor else None
        transactions = []
        for record in _load_records(self.path, "transactions"):
            transaction = self._to_transaction(record)
            if since is not None and transaction.date < since:
                continue
            transactions.append(transaction)
        logger.info("Read %d transactions from %s", len(transactions), self.path)
        return transactions

    @staticmethod
    def _to_transaction(record: dict[str, Any]) -> BankTransaction:
        external_id = _first(record, "external_id", "transaction_id", "id")
        raw_date = _first(record, "date", "posted")
        raw_amount = _first(record, "amount")
        if external_id is None or raw_date is None or raw_amount is None:
            raise ValidationError(f"Bank transaction needs id, date and amount: {record}")
        try:
            amount = parse_amount(str(raw_amount))
            txn_date = raw_date if isinstance(raw_date, date) else parse_date(str(raw_date))
        except ValueError as e:
            raise ValidationError(f"Invalid bank transaction {external_id}: {e}") from e

        category = _first(record, "provider_category", "category")
        if isinstance(category, list):
            category = category[0] if category else None
        return BankTransaction(
            external_id=str(external_id),
            date=txn_date,
            amount=amount,
            description=_first(record, "description", "name"),
            merchant=_first(record, "merchant", "merchant_name", "payee"),
            account_id=_first(record, "account_id"),
            provider_category=category,
        )


class JsonFileNotificationSource(NotificationSource):
    """Notification source backed by a JSON export of e-mail messages."""

    def __init__(self, path: str):
        self.path = Path(path)

    def pull(self, since: Optional[datetime] = None) -> list[RawMessage]:
        messages = []
        for record in _load_records(self.path, "messages"):
            message = self._to_message(record)
            if since is not None and message.received_at < since:
                continue
            messages.append(message)
        logger.info("Read %d messages from %s", len(messages), self.path)
        return messages

    @staticmethod
    def _to_message(record: dict[str, Any]) -> RawMessage:
        raw_received = _first(record, "received_at", "date")
        if raw_received is None:
            raise ValidationError(f"Message needs a received_at timestamp: {record}")
        try:
            received_at = parse_datetime(str(raw_received))
        except ValueError as e:
            raise ValidationError(f"Invalid received_at '{raw_received}': {e}") from e
        external_id = _first(record, "external_id", "message_id", "id")
        return RawMessage(
            external_id=str(external_id) if external_id is not None else "",
            subject=record.get("subject"),
            body=record.get("body"),
            received_at=to_naive_utc(received_at),
        )


class LoggingNotifier(OutboundNotifier):
    """Notifier that only logs the request it would deliver."""

    def __init__(self) -> None:
        self.sent: list[RequestSummary] = []

    def send(self, channel: Optional[str], summary: RequestSummary) -> bool:
        logger.info(
            "Payment request for %s via %s: %s",
            summary.participant,
            channel or "default channel",
            summary.note,
        )
        self.sent.append(summary)
        return True
