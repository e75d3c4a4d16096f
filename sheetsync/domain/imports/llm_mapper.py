"""
LLM-assisted header mapping.

The assistant is only consulted for headers the local mapper could not resolve
and is strictly best-effort: any failure (missing key, network error, timeout,
non-JSON reply, unexpected shape) yields no suggestions and the affected
columns simply stay flagged for a user decision.
"""
from typing import Any, Dict, List, Optional, Protocol, Sequence
import json
import re
import logging

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage, SystemMessage

from sheetsync.api.schemas.imports import AISuggestion, CanonicalField, MappingProposal
from sheetsync.core.config import settings
from sheetsync.domain.imports.header_mapper import is_auto_mappable, normalize_header
from sheetsync.domain.imports.scrubbing import build_scrubbed_samples

logger = logging.getLogger(__name__)

RATIONALE_MAX_CHARS = 200

MAPPING_SYSTEM_PROMPT = """You map spreadsheet column headers to a canonical schema.
Rules:
- Consider BOTH header wording and example values.
- Example values are masked: uppercase letters are 'A', lowercase 'a', digits '0'.
- Prefer exact or near-exact synonyms.
- Types: string | number | integer | date | boolean.
- If unsure, return mapTo=null with confidences <= 0.6.
- Output ONLY a JSON array of objects with keys incoming, mapTo, nameConfidence,
  typeConfidence, rationale. No extra text."""

_CODE_FENCE_OPEN = re.compile(r"^\s*```(?:json)?\s*", re.IGNORECASE)
_CODE_FENCE_CLOSE = re.compile(r"\s*```\s*$")


class MappingAssistant(Protocol):
    def suggest(
        self,
        incoming_headers: Sequence[str],
        canonical_fields: Sequence[CanonicalField],
        samples_by_header: Dict[str, List[str]],
    ) -> List[AISuggestion]:
        ...


class NullMappingAssistant:
    """Assistant used when LLM mapping is disabled; never suggests anything."""

    def suggest(self, incoming_headers, canonical_fields, samples_by_header) -> List[AISuggestion]:
        return []


def strip_code_fences(content: str) -> str:
    """Remove a surrounding ```/```json fence from a model reply."""
    text = _CODE_FENCE_OPEN.sub("", content)
    return _CODE_FENCE_CLOSE.sub("", text).strip()


def _clamp(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number:  # NaN
        return 0.0
    return max(0.0, min(1.0, number))


def parse_suggestions(content: str) -> List[AISuggestion]:
    """
    Parse a model reply into suggestions.

    Raises:
        ValueError: When the reply is not a JSON array.
    """
    parsed = json.loads(strip_code_fences(content))
    if not isinstance(parsed, list):
        raise ValueError("Mapping reply is not a JSON array")

    suggestions: List[AISuggestion] = []
    for item in parsed:
        if not isinstance(item, dict) or not isinstance(item.get("incoming"), str):
            continue
        map_to = item.get("mapTo")
        rationale = item.get("rationale")
        suggestions.append(AISuggestion(
            incoming=item["incoming"],
            map_to=map_to if isinstance(map_to, str) and map_to.strip() else None,
            name_confidence=_clamp(item.get("nameConfidence", 0)),
            type_confidence=_clamp(item.get("typeConfidence", 0)),
            rationale=str(rationale)[:RATIONALE_MAX_CHARS] if rationale else None,
        ))
    return suggestions


def _message_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
        elif isinstance(block, str):
            parts.append(block)
    return "".join(parts)


class AnthropicMappingAssistant:
    """Mapping assistant backed by Claude through LangChain."""

    def __init__(self, api_key: str, model: Optional[str] = None, llm=None):
        self._llm = llm or ChatAnthropic(
            model=model or settings.llm_mapping_model,
            api_key=api_key,
            temperature=0,
            max_tokens=2048,
            timeout=settings.llm_api_timeout,
            max_retries=settings.llm_max_retries,
        )

    def suggest(
        self,
        incoming_headers: Sequence[str],
        canonical_fields: Sequence[CanonicalField],
        samples_by_header: Dict[str, List[str]],
    ) -> List[AISuggestion]:
        if not incoming_headers:
            return []

        payload = {
            "incoming": list(incoming_headers),
            "sampleValues": samples_by_header,
            "schema": {
                "fields": [{"name": f.name, "type": f.type.value} for f in canonical_fields],
                "instructions": "Pick the best match for each incoming header. Confidences are 0..1. Use rationale briefly.",
            },
        }

        try:
            response = self._llm.invoke([
                SystemMessage(content=MAPPING_SYSTEM_PROMPT),
                HumanMessage(content=json.dumps(payload)),
            ])
            suggestions = parse_suggestions(_message_text(response.content))
        except Exception as exc:
            logger.warning("LLM mapping assistance unavailable, continuing without it: %s", exc)
            return []

        logger.info(
            "LLM mapping assistant returned %d suggestion(s) for %d header(s)",
            len(suggestions),
            len(incoming_headers),
        )
        return suggestions


def get_mapping_assistant() -> MappingAssistant:
    """Return the configured assistant, or the null assistant when LLM mapping is off."""
    api_key = (settings.anthropic_api_key or "").strip()
    if not settings.llm_mapping_enabled or not api_key:
        return NullMappingAssistant()
    return AnthropicMappingAssistant(api_key=api_key)


def apply_ai_suggestions(
    proposals: List[MappingProposal],
    assistant: MappingAssistant,
    canonical_fields: Sequence[CanonicalField],
    sample_rows: Sequence[Dict[str, Any]],
    max_sample_rows: int = 20,
) -> List[MappingProposal]:
    """
    Ask the assistant about unresolved headers and merge its answers back.

    Confidences merge by taking the maximum, so a strong local score never
    regresses. A suggestion without ``mapTo``, or naming a field outside the
    canonical schema, leaves the proposal flagged for a user decision.
    """
    pending = [p.incoming for p in proposals if p.needs_user_decision]
    if not pending or not canonical_fields:
        return proposals

    samples = build_scrubbed_samples(sample_rows, pending, max_rows=max_sample_rows)
    try:
        suggestions = assistant.suggest(pending, canonical_fields, samples)
    except Exception as exc:
        logger.warning("Mapping assistant raised, ignoring its output: %s", exc)
        suggestions = []

    fields_by_name = {field.name: field for field in canonical_fields}
    by_incoming = {s.incoming: s for s in suggestions}

    merged: List[MappingProposal] = []
    for proposal in proposals:
        suggestion = by_incoming.get(proposal.incoming)
        if not proposal.needs_user_decision or suggestion is None:
            merged.append(proposal)
            continue

        target = fields_by_name.get(normalize_header(suggestion.map_to or ""))
        if target is None:
            merged.append(proposal.model_copy(update={"rationale": suggestion.rationale}))
            continue

        name_confidence = max(proposal.name_confidence, suggestion.name_confidence)
        type_confidence = max(proposal.type_confidence, suggestion.type_confidence)
        confident = is_auto_mappable(name_confidence, type_confidence)
        merged.append(proposal.model_copy(update={
            "best_match": target.name,
            "best_match_type": target.type,
            "name_confidence": name_confidence,
            "type_confidence": type_confidence,
            "auto_mapped": confident,
            "needs_user_decision": not confident,
            "ai_suggested": True,
            "rationale": suggestion.rationale,
        }))

    return merged
