"""Utility functions for payledger."""

from payledger.utils.date_parser import parse_date, parse_timestamp
from payledger.utils.amount_parser import parse_amount

__all__ = ["parse_date", "parse_timestamp", "parse_amount"]
