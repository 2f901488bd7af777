"""Correlation tokens embedded in outbound payment request notes.

A tracking id has the form ``YYYY-MM-Type``, e.g. ``2025-03-Electricity``.
It is derived only from the bill type and billing period, so every
participant's request for the same bill carries the same token.
"""

import re
from typing import Optional

from rentledger.domain.entities import BillType

_TRACKING_ID_RE = re.compile(
    r"\b(\d{4})-(0[1-9]|1[0-2])-(" + "|".join(t.value for t in BillType) + r")\b",
    re.IGNORECASE,
)


def tracking_id_for(bill_type: BillType, month: int, year: int) -> str:
    """Build the tracking id for a bill type and billing period."""
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")
    return f"{year:04d}-{month:02d}-{bill_type.value.capitalize()}"


def extract_tracking_id(text: Optional[str]) -> Optional[str]:
    """Find the first tracking id in free text and return it normalized."""
    if not text:
        return None
    match = _TRACKING_ID_RE.search(text)
    if match is None:
        return None
    year, month, bill_type = match.groups()
    return tracking_id_for(BillType(bill_type.lower()), int(month), int(year))


def parse_tracking_id(tracking_id: Optional[str]) -> Optional[tuple[BillType, int, int]]:
    """Split a tracking id into (bill_type, month, year), or None if invalid."""
    if not tracking_id:
        return None
    match = _TRACKING_ID_RE.fullmatch(tracking_id.strip())
    if match is None:
        return None
    year, month, bill_type = match.groups()
    return BillType(bill_type.lower()), int(month), int(year)
