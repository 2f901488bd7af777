"""Utility functions for rentledger."""

from rentledger.utils.date_parser import parse_date
from rentledger.utils.amount_parser import parse_amount, round_half_up

__all__ = ["parse_date", "parse_amount", "round_half_up"]
