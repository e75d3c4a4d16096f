"""
Column type inference over sampled spreadsheet values.

Each non-empty sample lands in exactly one bucket, tested in the order
boolean -> integer -> number -> date -> string; the column takes the type of
the fullest bucket and reports that bucket's share as its support.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Optional
import math
import re
import logging

from sheetsync.api.schemas.imports import ScalarType
from sheetsync.utils.date import is_date_like

logger = logging.getLogger(__name__)

BOOLEAN_TOKENS = {"true", "false", "yes", "no", "y", "n", "1", "0"}

# Bucket order used to break ties between equally full buckets.
_TIE_BREAK_ORDER = (
    ScalarType.STRING,
    ScalarType.INTEGER,
    ScalarType.NUMBER,
    ScalarType.DATE,
    ScalarType.BOOLEAN,
)

_NUMBER_NOISE = re.compile(r"[,\s]")


@dataclass(frozen=True)
class ColumnInference:
    type: ScalarType
    support: float
    min_support: float = 0.6

    @property
    def meets_support(self) -> bool:
        return self.support >= self.min_support


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def _as_number(value: Any) -> Optional[float]:
    """Numeric reading of a cell after dropping thousands separators and spaces."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        try:
            return float(value)
        except OverflowError:
            return None
    if not isinstance(value, str):
        return None
    cleaned = _NUMBER_NOISE.sub("", value)
    if not cleaned or "_" in cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def is_boolean_value(value: Any) -> bool:
    if isinstance(value, bool):
        return True
    return isinstance(value, str) and value.strip().lower() in BOOLEAN_TOKENS


def is_integer_value(value: Any) -> bool:
    number = _as_number(value)
    return number is not None and math.isfinite(number) and number.is_integer()


def is_number_value(value: Any) -> bool:
    number = _as_number(value)
    return number is not None and math.isfinite(number)


def classify_value(value: Any) -> ScalarType:
    """Bucket a single non-empty value; the first matching predicate wins."""
    if is_boolean_value(value):
        return ScalarType.BOOLEAN
    if is_integer_value(value):
        return ScalarType.INTEGER
    if is_number_value(value):
        return ScalarType.NUMBER
    if is_date_like(value):
        return ScalarType.DATE
    return ScalarType.STRING


def infer_column_type(samples: Iterable[Any], min_support: float = 0.6) -> ColumnInference:
    """
    Infer the scalar type of a column from sample values.

    Empty values (None, NaN, blank strings) are ignored. A column with no
    non-empty samples is reported as ``string`` with full support.

    Args:
        samples: Raw cell values from one column.
        min_support: Support level at which the result counts as confident;
            reported through ``ColumnInference.meets_support`` only.
    """
    counts = {scalar_type: 0 for scalar_type in _TIE_BREAK_ORDER}
    total = 0
    for value in samples:
        if _is_empty(value):
            continue
        total += 1
        counts[classify_value(value)] += 1

    if total == 0:
        return ColumnInference(ScalarType.STRING, 1.0, min_support)

    best_type = _TIE_BREAK_ORDER[0]
    best_count = -1
    for scalar_type in _TIE_BREAK_ORDER:
        if counts[scalar_type] > best_count:
            best_type = scalar_type
            best_count = counts[scalar_type]

    return ColumnInference(best_type, best_count / total, min_support)


def type_match_confidence(inferred: ScalarType, canonical: ScalarType, support: float) -> float:
    """
    Confidence that a column inferred as ``inferred`` fits a ``canonical`` field.

    Integers are numbers, so integer data in a number field scores well; number
    data in an integer field scores lower because it may hold fractions.
    """
    inferred = ScalarType(inferred)
    canonical = ScalarType(canonical)
    if inferred == canonical:
        return max(0.95, support)
    if inferred == ScalarType.INTEGER and canonical == ScalarType.NUMBER:
        return max(0.85, support * 0.9)
    if inferred == ScalarType.NUMBER and canonical == ScalarType.INTEGER:
        return max(0.7, support * 0.7)
    return min(0.5, support)
