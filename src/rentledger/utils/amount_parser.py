"""Amount parsing and rounding utilities."""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import re

CENT = Decimal("0.01")

# Two amounts closer than this are the same amount of money.
AMOUNT_EPSILON = Decimal("0.01")


def parse_amount(amount_str: str) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles various formats:
    - "123.45"
    - "$123.45"
    - "$ 123.45"
    - "-123.45"
    - "-$123.45"
    - "1,234.56"
    - "(123.45)" (negative in parentheses)

    Args:
        amount_str: Amount string

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    amount_str = amount_str.strip()

    # Handle parentheses notation (negative)
    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1]

    amount_str = re.sub(r"[$€£¥]", "", amount_str)
    amount_str = amount_str.replace(",", "").replace(" ", "")

    try:
        amount = Decimal(amount_str)
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Could not parse amount '{amount_str}': {e}")
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str}': not a finite number")
    return -amount if is_negative else amount


def round_half_up(amount: Decimal) -> Decimal:
    """Round to cents, halves away from zero."""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def amounts_equal(left: Decimal, right: Decimal) -> bool:
    """Return True when two amounts are within the currency epsilon."""
    return abs(Decimal(left) - Decimal(right)) < AMOUNT_EPSILON


def format_amount(amount: Decimal) -> str:
    """Format an amount as dollars, e.g. ``$1,234.50``."""
    value = round_half_up(amount)
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"
