"""Transaction classifier.

Maps a bank transaction to an expense type using an ordered keyword table.
Classification is pure: the same transaction under the same rule table
always gets the same type.
"""

import logging
from collections import Counter
from decimal import Decimal
from typing import Iterable, Optional, Sequence, Union

from rentledger.domain.entities import BankTransaction, ExpenseType, RawTransaction
from rentledger.domain.errors import ValidationError

logger = logging.getLogger(__name__)

Transaction = Union[BankTransaction, RawTransaction]
Rule = tuple[ExpenseType, tuple[str, ...]]

# Evaluated top to bottom; the first rule with a matching keyword wins.
DEFAULT_RULES: tuple[Rule, ...] = (
    (ExpenseType.ELECTRICITY, ("PG&E", "PGE", "PACIFIC GAS")),
    (ExpenseType.WATER, ("EBMUD", "GREAT OAKS WATER", "WATER DISTRICT")),
    # Mobile plans are phone service, not internet
    (ExpenseType.OTHER, ("XFINITY MOBILE",)),
    (ExpenseType.INTERNET, ("COMCAST", "XFINITY", "SONIC.NET", "AT&T INTERNET")),
    (ExpenseType.INSURANCE, ("STATE FARM", "ALLSTATE", "HOMEOWNERS INS", "GEICO")),
    (ExpenseType.PROPERTY_TAX, ("PROPERTY TAX", "TAX COLLECTOR", "COUNTY TAX")),
    (ExpenseType.LANDSCAPING, ("GARDENER", "LANDSCAP", "LAWN", "YARD")),
    (ExpenseType.MAINTENANCE, ("HOME DEPOT", "LOWES", "LOWE'S", "REPAIR", "PLUMB", "MAINTENANCE")),
    (ExpenseType.SUPPLIES, ("COSTCO", "TARGET", "AMAZON", "WALMART")),
)

_RENT_KEYWORDS = ("RENT", "TENANT")


def _text(transaction: Transaction) -> tuple[str, str]:
    return (transaction.description or "").upper(), (transaction.merchant or "").upper()


def _match_rules(rules: Sequence[Rule], name: str, merchant: str) -> Optional[ExpenseType]:
    for expense_type, keywords in rules:
        for keyword in keywords:
            if keyword in name or keyword in merchant:
                return expense_type
    return None


def _match_provider_category(category: Optional[str], merchant: str) -> Optional[ExpenseType]:
    if not category:
        return None
    category = category.lower()
    if "utilities" in category:
        if "WATER" in merchant or "EBMUD" in merchant:
            return ExpenseType.WATER
        if "PGE" in merchant or "ELECTRIC" in merchant:
            return ExpenseType.ELECTRICITY
    if "home improvement" in category or "hardware" in category:
        return ExpenseType.MAINTENANCE
    return None


def classify(transaction: Transaction, rules: Sequence[Rule] = DEFAULT_RULES) -> ExpenseType:
    """Classify a transaction.

    Negative amounts are money in; an inflow whose description or
    merchant mentions rent or a tenant is rent. Otherwise the rule table
    is tried in order, then the provider's category, and anything left
    is ``other``.

    Args:
        transaction: Bank transaction to classify
        rules: Ordered (expense type, keywords) table, keywords upper-case

    Returns:
        ExpenseType for the transaction
    """
    name, merchant = _text(transaction)

    if Decimal(transaction.amount) < 0 and any(k in name or k in merchant for k in _RENT_KEYWORDS):
        return ExpenseType.RENT

    matched = _match_rules(rules, name, merchant)
    if matched is not None:
        return matched

    matched = _match_provider_category(transaction.provider_category, merchant)
    if matched is not None:
        return matched

    return ExpenseType.OTHER


class Classifier:
    """Classifier bound to a validated rule table."""

    def __init__(self, rules: Optional[Iterable[Rule]] = None):
        """Initialize classifier.

        Args:
            rules: Optional custom rule table, defaults to DEFAULT_RULES

        Raises:
            ValidationError: If a rule is malformed
        """
        self.rules = DEFAULT_RULES if rules is None else self._validate(rules)

    @staticmethod
    def _validate(rules: Iterable[Rule]) -> tuple[Rule, ...]:
        validated = []
        for expense_type, keywords in rules:
            if not isinstance(expense_type, ExpenseType):
                raise ValidationError(f"Unknown expense type in rule table: {expense_type!r}")
            if isinstance(keywords, str):
                raise ValidationError(f"Keywords for {expense_type.value} must be a list, not a string")
            keywords = tuple(keywords)
            cleaned = tuple(k.strip().upper() for k in keywords if isinstance(k, str) and k.strip())
            if not cleaned or len(cleaned) != len(keywords):
                raise ValidationError(f"Keywords for {expense_type.value} must be non-empty strings")
            validated.append((expense_type, cleaned))
        return tuple(validated)

    def classify(self, transaction: Transaction) -> ExpenseType:
        return classify(transaction, self.rules)

    def classify_many(self, transactions: Iterable[Transaction]) -> Counter:
        """Classify several transactions and log a per-type summary.

        Returns:
            Counter of expense type values
        """
        summary: Counter = Counter()
        for transaction in transactions:
            summary[self.classify(transaction).value] += 1
        logger.info("Classification summary: %s", dict(summary))
        return summary
