"""Bank sync domain service."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from rentledger.database.base import Database
from rentledger.domain.classifier import Classifier
from rentledger.domain.entities import BankTransaction, ExpenseType, IncomeType
from rentledger.domain.errors import DuplicateError
from rentledger.domain.ports import BankFeed

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of storing a batch of bank transactions."""

    imported: int = 0
    duplicates: int = 0
    expenses: int = 0
    income: int = 0
    ignored: int = 0

    def as_counts(self) -> dict[str, int]:
        return {
            "imported": self.imported,
            "duplicates": self.duplicates,
            "expenses": self.expenses,
            "income": self.income,
            "ignored": self.ignored,
        }


class BankSyncService:
    """Service for importing and classifying bank transactions."""

    def __init__(self, db: Database, classifier: Optional[Classifier] = None):
        """Initialize bank sync service.

        Args:
            db: Database instance
            classifier: Optional classifier, defaults to the built-in rules
        """
        self.db = db
        self.classifier = classifier or Classifier()

    def sync(self, feed: BankFeed, cursor: Optional[str] = None) -> SyncResult:
        """Pull transactions from a feed and ingest them.

        Raises:
            ExternalServiceError: If the feed is unavailable
        """
        return self.ingest(feed.pull(cursor))

    def ingest(self, transactions: Iterable[BankTransaction]) -> SyncResult:
        """Store each transaction once and record what it means.

        Money out becomes an Expense. Money in becomes rent Income when it
        classifies as rent; other deposits are kept only as raw
        transactions.
        """
        result = SyncResult()
        new = []
        for transaction in transactions:
            if self.db.raw_transaction_exists(transaction.external_id):
                result.duplicates += 1
            else:
                new.append(transaction)
        if new:
            self.classifier.classify_many(new)

        for transaction in new:
            expense_type = self.classifier.classify(transaction)
            try:
                with self.db.transaction():
                    self._store(transaction, expense_type, result)
            except DuplicateError:
                result.duplicates += 1
                continue
            result.imported += 1

        logger.info("Bank sync finished: %s", result.as_counts())
        return result

    def _store(self, transaction: BankTransaction, expense_type: ExpenseType, result: SyncResult) -> None:
        raw_id = self.db.create_raw_transaction(
            external_id=transaction.external_id,
            date=transaction.date,
            amount=transaction.amount,
            description=transaction.description,
            merchant=transaction.merchant,
            account_id=transaction.account_id,
            provider_category=transaction.provider_category,
        )
        name = transaction.description or transaction.merchant or transaction.external_id

        if transaction.amount > 0:
            self.db.create_expense(
                date=transaction.date,
                amount=transaction.amount,
                name=name,
                expense_type=expense_type,
                merchant=transaction.merchant,
                category=transaction.provider_category,
                raw_transaction_id=raw_id,
            )
            result.expenses += 1
        elif transaction.amount < 0 and expense_type is ExpenseType.RENT:
            self.db.create_income(
                income_type=IncomeType.RENT,
                date=transaction.date,
                amount=abs(Decimal(transaction.amount)),
                description=name,
                payer=transaction.merchant,
                received_date=transaction.date,
            )
            result.income += 1
        else:
            result.ignored += 1
