"""Configuration loading for rentledger.

Loads settings from a .env file and environment variables with sensible
defaults. Invalid values raise ValidationError with a clear message.
"""

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from rentledger.domain.entities import BillType, Participant
from rentledger.domain.errors import ValidationError

DEFAULT_SPLIT_BILL_TYPES = (BillType.ELECTRICITY, BillType.WATER)


@dataclass(frozen=True)
class Settings:
    """Household and matching configuration."""

    roommates: tuple[Participant, ...] = ()
    """Participants who owe a share of split bills (the landlord is not one)"""

    landlord: str = "Landlord"
    """Participant who pays bills up front and keeps any leftover cents"""

    split_count: int = 3
    """Number of equal shares a split bill is divided into"""

    split_bill_types: tuple[BillType, ...] = DEFAULT_SPLIT_BILL_TYPES
    """Bill types that generate payment requests when an expense appears"""

    monthly_rent: Optional[Decimal] = None
    rent_participant: Optional[str] = None

    match_window_days: int = 30
    """Requests older than this (relative to the payment) are not candidates"""

    match_on_actor: bool = True
    """Require the payer name to resemble the participant when matching by amount"""

    name_similarity: float = 0.85

    database_path: Optional[str] = None
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def __post_init__(self) -> None:
        if self.split_count < 1:
            raise ValidationError(f"Split count must be at least 1, got {self.split_count}")
        if self.match_window_days < 1:
            raise ValidationError(f"Match window must be at least 1 day, got {self.match_window_days}")
        if not 0 < self.name_similarity <= 1:
            raise ValidationError(f"Name similarity must be in (0, 1], got {self.name_similarity}")
        names = [p.name for p in self.roommates]
        if len(set(names)) != len(names):
            raise ValidationError("Roommate names must be unique")
        if self.landlord in names:
            raise ValidationError(f"Landlord '{self.landlord}' cannot also be a roommate")
        if sum(self.share_ratio(p) for p in self.roommates) > 1:
            raise ValidationError("Roommate shares add up to more than the whole bill")
        if BillType.RENT in self.split_bill_types:
            raise ValidationError("Rent is requested from the rent participant, not split")

    def share_ratio(self, participant: Participant) -> Decimal:
        """Fraction of a split bill the participant owes."""
        if participant.ratio is not None:
            return participant.ratio
        return Decimal(1) / Decimal(self.split_count)

    def find_roommate(self, name: str) -> Optional[Participant]:
        for participant in self.roommates:
            if participant.name == name:
                return participant
        return None


def _parse_roommates(value: str) -> tuple[Participant, ...]:
    """Parse ``Name[:handle][:ratio]`` entries separated by commas."""
    participants = []
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        parts = [p.strip() for p in entry.split(":")]
        ratio = None
        if len(parts) > 2 and parts[2]:
            try:
                ratio = Decimal(parts[2])
            except InvalidOperation:
                raise ValidationError(f"Invalid share ratio for roommate '{parts[0]}': {parts[2]}")
        participants.append(
            Participant(name=parts[0], handle=parts[1] if len(parts) > 1 and parts[1] else None, ratio=ratio)
        )
    return tuple(participants)


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ValidationError(f"{name} must be a boolean, got '{value}'")


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer, got '{value}'")


def load_settings(env_file: Optional[str] = ".env") -> Settings:
    """
    Load settings from a .env file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (RENTLEDGER_ROOMMATES, RENTLEDGER_SPLIT_COUNT, ...)
    2. .env file
    3. Default values

    Example .env:
        ```
        RENTLEDGER_ROOMMATES=Jane Doe:jane-doe,Sam Lee:sam-lee
        RENTLEDGER_LANDLORD=Alex
        RENTLEDGER_MONTHLY_RENT=1685.00
        RENTLEDGER_RENT_PARTICIPANT=Jane Doe
        ```

    Raises:
        ValidationError: If a value is malformed
    """
    if env_file is not None and Path(env_file).exists():
        load_dotenv(env_file)

    kwargs: dict = {}

    roommates = os.getenv("RENTLEDGER_ROOMMATES")
    if roommates:
        kwargs["roommates"] = _parse_roommates(roommates)
    landlord = os.getenv("RENTLEDGER_LANDLORD")
    if landlord:
        kwargs["landlord"] = landlord.strip()

    split_count = os.getenv("RENTLEDGER_SPLIT_COUNT")
    if split_count:
        kwargs["split_count"] = _parse_int("RENTLEDGER_SPLIT_COUNT", split_count)

    bill_types = os.getenv("RENTLEDGER_SPLIT_BILL_TYPES")
    if bill_types:
        try:
            kwargs["split_bill_types"] = tuple(
                BillType(t.strip().lower()) for t in bill_types.split(",") if t.strip()
            )
        except ValueError as e:
            raise ValidationError(f"Invalid RENTLEDGER_SPLIT_BILL_TYPES: {e}")

    monthly_rent = os.getenv("RENTLEDGER_MONTHLY_RENT")
    if monthly_rent:
        try:
            kwargs["monthly_rent"] = Decimal(monthly_rent)
        except InvalidOperation:
            raise ValidationError(f"RENTLEDGER_MONTHLY_RENT must be an amount, got '{monthly_rent}'")
    rent_participant = os.getenv("RENTLEDGER_RENT_PARTICIPANT")
    if rent_participant:
        kwargs["rent_participant"] = rent_participant.strip()

    window = os.getenv("RENTLEDGER_MATCH_WINDOW_DAYS")
    if window:
        kwargs["match_window_days"] = _parse_int("RENTLEDGER_MATCH_WINDOW_DAYS", window)
    match_on_actor = os.getenv("RENTLEDGER_MATCH_ON_ACTOR")
    if match_on_actor:
        kwargs["match_on_actor"] = _parse_bool("RENTLEDGER_MATCH_ON_ACTOR", match_on_actor)
    similarity = os.getenv("RENTLEDGER_NAME_SIMILARITY")
    if similarity:
        try:
            kwargs["name_similarity"] = float(similarity)
        except ValueError:
            raise ValidationError(f"RENTLEDGER_NAME_SIMILARITY must be a number, got '{similarity}'")

    kwargs["database_path"] = os.getenv("RENTLEDGER_DB_PATH")
    kwargs["log_level"] = os.getenv("LOG_LEVEL", "INFO").upper()
    kwargs["log_file"] = os.getenv("RENTLEDGER_LOG_FILE")

    return Settings(**kwargs)
