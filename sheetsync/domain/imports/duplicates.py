"""
Duplicate detection between incoming rows and existing entity records.

Each row is reduced to four comparison fields (sku, brand, model, price), the
weighted field similarity against every existing record is mapped to a
duplicate probability with a logistic curve, and the row's best (highest)
probability decides whether it can be inserted without review.

The comparison is O(incoming x existing); callers cap the existing side.
"""
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List, Optional, Sequence, Tuple
import math
import re
import logging

from sheetsync.api.schemas.imports import AutoInsertVerdict, DuplicateReport, ReviewVerdict
from sheetsync.domain.imports.similarity import jaro_winkler
from sheetsync.utils.serialization import display_text, make_json_safe

logger = logging.getLogger(__name__)

FIELD_WEIGHTS = {"sku": 0.55, "brand": 0.15, "model": 0.20, "price": 0.10}
LOGISTIC_CENTER = 0.8
LOGISTIC_STEEPNESS = 8.0
AUTO_INSERT_CONFIDENCE = 0.90
EARLY_EXIT_PROBABILITY = 0.99
MISSING_PRICE_SIMILARITY = 0.5

# Ordered (field, literal keys, header pattern) triples. A literal key present
# on the row wins; otherwise the first header matching the pattern is used.
FIELD_LOCATORS: Tuple[Tuple[str, Tuple[str, ...], re.Pattern], ...] = (
    ("sku", ("sku", "SKU"), re.compile(r"sku|item\s?code|id", re.IGNORECASE)),
    ("brand", ("brand",), re.compile(r"brand|maker|manufacturer", re.IGNORECASE)),
    ("model", ("model",), re.compile(r"model", re.IGNORECASE)),
    ("price", ("price",), re.compile(r"price|amount", re.IGNORECASE)),
)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_PRICE_NOISE = re.compile(r"[,\s$€£]")


@dataclass(frozen=True)
class ComparisonFields:
    sku: Any = None
    brand: Any = None
    model: Any = None
    price: Any = None


@lru_cache(maxsize=256)
def resolve_field_keys(keys: Tuple[str, ...]) -> Dict[str, Tuple[str, ...]]:
    """
    Work out, once per key set, which keys supply each comparison field.

    Returns:
        Field name -> candidate keys in lookup order (literal keys first,
        then the first pattern-matching header).
    """
    resolved: Dict[str, Tuple[str, ...]] = {}
    for field, literals, pattern in FIELD_LOCATORS:
        candidates = [key for key in literals if key in keys]
        guessed = next((key for key in keys if pattern.search(key)), None)
        if guessed is not None and guessed not in candidates:
            candidates.append(guessed)
        resolved[field] = tuple(candidates)
    return resolved


def extract_fields(row: Dict[str, Any], keys: Optional[Sequence[str]] = None) -> ComparisonFields:
    """Pull the comparison fields out of a row (first non-null candidate wins)."""
    resolved = resolve_field_keys(tuple(keys if keys is not None else row.keys()))
    values = {}
    for field, candidates in resolved.items():
        values[field] = next((row.get(key) for key in candidates if row.get(key) is not None), None)
    return ComparisonFields(**values)


def _tokenize(value: Any) -> str:
    return _NON_ALNUM.sub(" ", display_text(value).lower()).strip()


def field_similarity(a: Any, b: Any) -> float:
    left, right = _tokenize(a), _tokenize(b)
    if not left and not right:
        return 1.0
    if not left or not right:
        return 0.0
    return jaro_winkler(left, right)


def _parse_price(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    else:
        try:
            number = float(_PRICE_NOISE.sub("", str(value)))
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def price_similarity(a: Any, b: Any) -> float:
    left, right = _parse_price(a), _parse_price(b)
    if left is None or right is None:
        return MISSING_PRICE_SIMILARITY
    return 1 - min(1.0, abs(left - right) / max(1.0, left))


def weighted_score(a: ComparisonFields, b: ComparisonFields) -> float:
    # A missing sku on either side contributes nothing rather than a free match.
    sku_sim = field_similarity(a.sku, b.sku) if (a.sku and b.sku) else 0.0
    return (
        FIELD_WEIGHTS["sku"] * sku_sim
        + FIELD_WEIGHTS["brand"] * field_similarity(a.brand, b.brand)
        + FIELD_WEIGHTS["model"] * field_similarity(a.model, b.model)
        + FIELD_WEIGHTS["price"] * price_similarity(a.price, b.price)
    )


def duplicate_probability(a: ComparisonFields, b: ComparisonFields) -> float:
    score = weighted_score(a, b)
    probability = 1 / (1 + math.exp(-LOGISTIC_STEEPNESS * (score - LOGISTIC_CENTER)))
    return max(0.0, min(1.0, probability))


def best_duplicate_probability(row: ComparisonFields, existing: Sequence[ComparisonFields]) -> float:
    best = 0.0
    for candidate in existing:
        probability = duplicate_probability(row, candidate)
        if probability > best:
            best = probability
        if best > EARLY_EXIT_PROBABILITY:
            break
    return best


def build_duplicate_report(
    incoming_rows: Sequence[Dict[str, Any]],
    source_headers: Sequence[str],
    existing_docs: Sequence[Dict[str, Any]],
) -> DuplicateReport:
    """
    Partition incoming rows into auto-insert and review buckets.

    Args:
        incoming_rows: Raw rows keyed by the file's original headers.
        source_headers: The original headers, in file order.
        existing_docs: Documents already stored for the entity.

    Returns:
        DuplicateReport in which every incoming row appears exactly once.
    """
    existing = [extract_fields(doc) for doc in existing_docs]
    report = DuplicateReport()

    for index, row in enumerate(incoming_rows):
        fields = extract_fields(row, keys=source_headers)
        probability = best_duplicate_probability(fields, existing)
        not_duplicate = 1 - probability
        safe_row = make_json_safe(row)
        if not_duplicate >= AUTO_INSERT_CONFIDENCE:
            report.auto_insert.append(AutoInsertVerdict(
                row_index=index, row=safe_row, confidence_not_duplicate=not_duplicate,
            ))
        else:
            report.review.append(ReviewVerdict(
                row_index=index, row=safe_row, probability_duplicate=probability,
            ))

    logger.info(
        "Duplicate report: %d auto-insert, %d for review (%d existing records compared)",
        len(report.auto_insert),
        len(report.review),
        len(existing),
    )
    return report
