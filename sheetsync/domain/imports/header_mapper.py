"""
Header mapping against an entity's canonical schema.

Every incoming header is scored against each canonical field by name (the
best Jaro-Winkler score over the field name and its aliases) and by type (the
column's inferred type against the field's declared type). Only headers that
clear both thresholds are mapped automatically; the rest wait for a human or
the AI assistant.
"""
from typing import Any, Dict, List, Optional, Sequence
import re
import logging

from sheetsync.api.schemas.imports import CanonicalField, MappingProposal
from sheetsync.domain.imports.similarity import jaro_winkler
from sheetsync.domain.imports.type_inference import infer_column_type, type_match_confidence

logger = logging.getLogger(__name__)

AUTOMAP_THRESHOLD = 0.95
TYPE_SAMPLE_LIMIT = 50

_HEADER_SEPARATORS = re.compile(r"[\s_\-/]+")


def normalize_header(header: Any) -> str:
    """
    Normalize a spreadsheet header for comparison and storage.

    Examples:
        "Tracking_Number" -> "tracking number"
        " Ship-Date / ETA " -> "ship date eta"
    """
    return _HEADER_SEPARATORS.sub(" ", str(header if header is not None else "").lower()).strip()


def is_auto_mappable(name_confidence: float, type_confidence: float) -> bool:
    return name_confidence >= AUTOMAP_THRESHOLD and type_confidence >= AUTOMAP_THRESHOLD


def _best_field(header: str, canonical_fields: Sequence[CanonicalField]):
    best: Optional[CanonicalField] = None
    best_score = 0.0
    for field in canonical_fields:
        candidates = [field.name, *field.aliases]
        score = max(jaro_winkler(header, candidate) for candidate in candidates)
        if best is None or score > best_score:
            best = field
            best_score = score
    return best, best_score


def propose_header_mapping(
    headers: Sequence[str],
    sample_rows: Sequence[Dict[str, Any]],
    canonical_fields: Sequence[CanonicalField],
) -> List[MappingProposal]:
    """
    Propose a canonical field for each incoming header, preserving header order.

    Args:
        headers: Incoming (normalized) headers.
        sample_rows: Rows keyed by those headers; the first 50 feed type inference.
        canonical_fields: Fields of the active or cold-start schema profile.

    Returns:
        One MappingProposal per header. With no canonical fields every header
        comes back unmatched with zero confidence.
    """
    samples = list(sample_rows[:TYPE_SAMPLE_LIMIT])
    proposals: List[MappingProposal] = []

    for header in headers:
        best, name_confidence = _best_field(header, canonical_fields)
        inference = infer_column_type(row.get(header) for row in samples)

        type_confidence = (
            type_match_confidence(inference.type, best.type, inference.support)
            if best is not None
            else 0.0
        )
        confident = is_auto_mappable(name_confidence, type_confidence)

        logger.debug(
            "Header '%s' -> %s (name=%.3f type=%.3f inferred=%s/%.2f)",
            header,
            best.name if best else None,
            name_confidence,
            type_confidence,
            inference.type.value,
            inference.support,
        )

        proposals.append(MappingProposal(
            incoming=header,
            inferred_type=inference.type,
            inferred_support=inference.support,
            best_match=best.name if best else None,
            best_match_type=best.type if best else None,
            name_confidence=name_confidence,
            type_confidence=type_confidence,
            auto_mapped=confident,
            needs_user_decision=not confident,
        ))

    return proposals
