"""
Date recognition helpers for spreadsheet cells.

Type inference only needs a yes/no answer per cell, so parsing is strict: a
string counts as a date when it matches one of a fixed, ordered list of
formats rather than whatever a permissive parser can coax out of it.
"""

from datetime import date, datetime
from typing import Any, Optional
import logging

import pandas as pd

logger = logging.getLogger(__name__)

# Tried in order; the first format that parses wins.
STRICT_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%m/%d/%Y")

# Upper bound for numeric values read as epoch milliseconds (2100-01-01).
EPOCH_MS_UPPER_BOUND = 4102444800000


def parse_strict_date(value: Any) -> Optional[date]:
    """
    Parse a string under ``STRICT_DATE_FORMATS``.

    Returns:
        The parsed date, or None when no format matches.
    """
    if not isinstance(value, str):
        return None
    candidate = value.strip()
    if not candidate:
        return None
    for fmt in STRICT_DATE_FORMATS:
        try:
            return datetime.strptime(candidate, fmt).date()
        except ValueError:
            continue
    return None


def is_date_like(value: Any) -> bool:
    """
    Return True when a cell value reads as a date.

    Accepts native ``date``/``datetime`` objects (pandas timestamps included),
    positive numbers within the epoch-milliseconds range, and strings that
    parse under ``STRICT_DATE_FORMATS``.
    """
    if value is None or value is pd.NaT:
        return False
    if isinstance(value, (date, datetime, pd.Timestamp)):
        return True
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return 0 < value < EPOCH_MS_UPPER_BOUND
    return parse_strict_date(value) is not None
