"""Tests for the transaction classifier."""

import logging
from datetime import date
from decimal import Decimal

import pytest

from rentledger.domain.classifier import DEFAULT_RULES, Classifier, classify
from rentledger.domain.entities import BankTransaction, ExpenseType
from rentledger.domain.errors import ValidationError


def _txn(description, amount="50.00", merchant=None, provider_category=None):
    return BankTransaction(
        external_id="t-1",
        date=date(2025, 3, 1),
        amount=Decimal(amount),
        description=description,
        merchant=merchant,
        provider_category=provider_category,
    )


@pytest.mark.parametrize(
    "description,merchant,expected",
    [
        ("PGE WEB ONLINE", None, ExpenseType.ELECTRICITY),
        ("Payment", "Pacific Gas and Electric", ExpenseType.ELECTRICITY),
        ("EBMUD AUTOPAY", None, ExpenseType.WATER),
        ("COMCAST CABLE", None, ExpenseType.INTERNET),
        ("XFINITY MOBILE", None, ExpenseType.OTHER),
        ("THE HOME DEPOT #1234", None, ExpenseType.MAINTENANCE),
        ("Zelle to gardener", None, ExpenseType.LANDSCAPING),
        ("BLUE BOTTLE COFFEE", None, ExpenseType.OTHER),
    ],
)
def test_classify_by_keyword(description, merchant, expected):
    """Test keyword rules against description and merchant."""
    assert classify(_txn(description, merchant=merchant)) == expected


def test_first_matching_rule_wins():
    """Test that rule order decides between overlapping keywords."""
    # XFINITY MOBILE is listed before the internet rule that matches XFINITY
    assert classify(_txn("XFINITY MOBILE BILL")) == ExpenseType.OTHER
    assert classify(_txn("XFINITY INTERNET")) == ExpenseType.INTERNET


def test_rent_inflow():
    """Test that money in mentioning rent or a tenant is rent."""
    assert classify(_txn("RENT MARCH", amount="-1685.00")) == ExpenseType.RENT
    assert classify(_txn("Deposit from tenant", amount="-1685.00")) == ExpenseType.RENT


def test_rent_inflow_by_merchant():
    """Test that the rent check also reads the merchant."""
    assert classify(_txn("ZELLE FROM JANE DOE", amount="-1685.00", merchant="Tenant Jane Doe")) == ExpenseType.RENT
    assert classify(_txn("ZELLE FROM JANE DOE", amount="-1685.00")) == ExpenseType.OTHER


def test_rent_keyword_on_outflow_is_not_rent():
    """Test that the rent special case only applies to inflows."""
    assert classify(_txn("RENTAL CAR", amount="80.00")) == ExpenseType.OTHER


def test_provider_category_fallback():
    """Test provider category heuristics after the rule table."""
    assert classify(_txn("AUTOPAY", merchant="City Water", provider_category="Utilities")) == ExpenseType.WATER
    assert (
        classify(_txn("AUTOPAY", merchant="Valley Electric Co", provider_category="Utilities"))
        == ExpenseType.ELECTRICITY
    )
    assert classify(_txn("STORE 77", provider_category="Home Improvement")) == ExpenseType.MAINTENANCE
    assert classify(_txn("AUTOPAY", merchant="Unknown", provider_category="Utilities")) == ExpenseType.OTHER


def test_classification_is_deterministic():
    """Test that reclassifying the same input gives the same type."""
    txn = _txn("PGE WEB ONLINE", merchant="PG&E")
    results = {classify(txn) for _ in range(5)}
    assert results == {ExpenseType.ELECTRICITY}


def test_missing_text():
    """Test transactions with no description or merchant."""
    assert classify(_txn(None)) == ExpenseType.OTHER


class TestClassifier:
    """Tests for the Classifier class."""

    def test_default_rules(self):
        """Test that the default classifier uses DEFAULT_RULES."""
        assert Classifier().rules == DEFAULT_RULES

    def test_custom_rules_are_normalized(self):
        """Test that keywords are stripped and upper-cased."""
        classifier = Classifier([(ExpenseType.SUPPLIES, [" bed bath "])])
        assert classifier.rules == ((ExpenseType.SUPPLIES, ("BED BATH",)),)
        assert classifier.classify(_txn("Bed Bath and Beyond")) == ExpenseType.SUPPLIES

    def test_invalid_expense_type(self):
        """Test that unknown expense types are rejected."""
        with pytest.raises(ValidationError):
            Classifier([("groceries", ["SAFEWAY"])])

    def test_empty_keyword(self):
        """Test that empty keywords are rejected."""
        with pytest.raises(ValidationError):
            Classifier([(ExpenseType.SUPPLIES, ["COSTCO", ""])])

    def test_string_keywords(self):
        """Test that a bare string is not accepted as a keyword list."""
        with pytest.raises(ValidationError):
            Classifier([(ExpenseType.SUPPLIES, "COSTCO")])

    def test_classify_many_logs_summary(self, caplog):
        """Test classification summary counts."""
        classifier = Classifier()
        with caplog.at_level(logging.INFO, logger="rentledger.domain.classifier"):
            summary = classifier.classify_many(
                [_txn("PGE WEB ONLINE"), _txn("EBMUD"), _txn("PGE AUTOPAY"), _txn("COFFEE")]
            )
        assert summary == {"electricity": 2, "water": 1, "other": 1}
        assert "Classification summary" in caplog.text
