"""
Tests for the LLM mapping assistant glue: reply parsing, PII scrubbing and
merging suggestions into the local proposals. No network calls are made.
"""
import json

import pytest

from sheetsync.api.schemas.imports import AISuggestion, CanonicalField, ScalarType
from sheetsync.domain.imports.header_mapper import propose_header_mapping
from sheetsync.domain.imports.llm_mapper import (
    AnthropicMappingAssistant,
    NullMappingAssistant,
    apply_ai_suggestions,
    get_mapping_assistant,
    parse_suggestions,
    strip_code_fences,
)
from sheetsync.domain.imports.scrubbing import build_scrubbed_samples, scrub_value


class ScriptedAssistant:
    def __init__(self, suggestions):
        self.suggestions = suggestions
        self.calls = []

    def suggest(self, incoming_headers, canonical_fields, samples_by_header):
        self.calls.append((list(incoming_headers), samples_by_header))
        return self.suggestions


class FakeReply:
    def __init__(self, content):
        self.content = content


class FakeChatModel:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.messages = None

    def invoke(self, messages):
        self.messages = messages
        if self.error:
            raise self.error
        return FakeReply(self.content)


FIELDS = [
    CanonicalField(name="vendor", type=ScalarType.STRING),
    CanonicalField(name="ship date", type=ScalarType.DATE),
]


def _pending_proposals():
    rows = [{"supplier": "Acme Corp", "etd": "2024-01-05"}, {"supplier": "Globex", "etd": "2024-02-11"}]
    return propose_header_mapping(["supplier", "etd"], rows, FIELDS), rows


def test_strip_code_fences():
    assert strip_code_fences('```json\n[{"a": 1}]\n```') == '[{"a": 1}]'
    assert strip_code_fences("```\n[]\n```") == "[]"
    assert strip_code_fences("[]") == "[]"


def test_parse_suggestions_clamps_confidences_and_drops_malformed_items():
    reply = json.dumps([
        {"incoming": "supplier", "mapTo": "vendor", "nameConfidence": 1.7, "typeConfidence": -2},
        {"incoming": "etd", "mapTo": None, "nameConfidence": "high"},
        {"mapTo": "vendor"},
        "nonsense",
    ])

    suggestions = parse_suggestions(reply)

    assert [s.incoming for s in suggestions] == ["supplier", "etd"]
    assert suggestions[0].name_confidence == 1.0
    assert suggestions[0].type_confidence == 0.0
    assert suggestions[1].map_to is None
    assert suggestions[1].name_confidence == 0.0


def test_parse_suggestions_rejects_non_array():
    with pytest.raises(ValueError):
        parse_suggestions('{"incoming": "supplier"}')


def test_scrub_value_masks_letters_and_digits():
    assert scrub_value("Acme-42 Ltd.") == "Aaaa-00 Aaa."
    assert scrub_value(None) == ""


def test_scrubbed_samples_are_limited_per_header():
    rows = [{"supplier": f"Vendor {i}"} for i in range(30)]

    samples = build_scrubbed_samples(rows, ["supplier"], max_rows=20)

    assert len(samples["supplier"]) == 20
    assert samples["supplier"][0] == "Aaaaaa 0"


def test_merge_accepts_confident_suggestion():
    proposals, rows = _pending_proposals()
    assistant = ScriptedAssistant([
        AISuggestion(incoming="supplier", map_to="vendor", name_confidence=0.97, type_confidence=0.99,
                     rationale="supplier is a vendor"),
    ])

    merged = apply_ai_suggestions(proposals, assistant, FIELDS, rows)

    supplier = merged[0]
    assert supplier.best_match == "vendor"
    assert supplier.auto_mapped is True
    assert supplier.needs_user_decision is False
    assert supplier.ai_suggested is True
    assert supplier.rationale == "supplier is a vendor"
    # Only unresolved headers are sent, with masked samples.
    sent_headers, samples = assistant.calls[0]
    assert "supplier" in sent_headers
    assert samples["supplier"] == ["Aaaa Aaaa", "Aaaaaa"]


def test_merge_never_lowers_local_confidence():
    proposals, rows = _pending_proposals()
    etd_before = proposals[1]
    assistant = ScriptedAssistant([
        AISuggestion(incoming="etd", map_to="ship date", name_confidence=0.1, type_confidence=0.2),
    ])

    merged = apply_ai_suggestions(proposals, assistant, FIELDS, rows)

    etd = merged[1]
    assert etd.best_match == "ship date"
    assert etd.name_confidence == max(etd_before.name_confidence, 0.1)
    assert etd.type_confidence == max(etd_before.type_confidence, 0.2)
    assert etd.needs_user_decision is True


def test_merge_ignores_targets_outside_the_schema():
    proposals, rows = _pending_proposals()
    assistant = ScriptedAssistant([
        AISuggestion(incoming="supplier", map_to="carrier", name_confidence=1.0, type_confidence=1.0),
        AISuggestion(incoming="etd", map_to=None, rationale="not sure"),
    ])

    merged = apply_ai_suggestions(proposals, assistant, FIELDS, rows)

    assert merged[0].needs_user_decision is True
    assert merged[0].ai_suggested is False
    assert merged[1].needs_user_decision is True
    assert merged[1].rationale == "not sure"


def test_null_assistant_changes_nothing():
    proposals, rows = _pending_proposals()

    merged = apply_ai_suggestions(proposals, NullMappingAssistant(), FIELDS, rows)

    assert merged == proposals


def test_anthropic_assistant_parses_fenced_reply():
    llm = FakeChatModel(content='```json\n[{"incoming": "supplier", "mapTo": "vendor", '
                                '"nameConfidence": 0.96, "typeConfidence": 0.98}]\n```')
    assistant = AnthropicMappingAssistant(api_key="test-key", llm=llm)

    suggestions = assistant.suggest(["supplier"], FIELDS, {"supplier": ["Aaaa"]})

    assert suggestions == [
        AISuggestion(incoming="supplier", map_to="vendor", name_confidence=0.96, type_confidence=0.98),
    ]
    payload = json.loads(llm.messages[1].content)
    assert payload["incoming"] == ["supplier"]
    assert payload["schema"]["fields"][1] == {"name": "ship date", "type": "date"}


@pytest.mark.parametrize("llm", [
    FakeChatModel(error=TimeoutError("timed out")),
    FakeChatModel(content="I think supplier means vendor."),
    FakeChatModel(content='{"incoming": "supplier"}'),
])
def test_anthropic_assistant_failures_yield_no_suggestions(llm):
    assistant = AnthropicMappingAssistant(api_key="test-key", llm=llm)

    assert assistant.suggest(["supplier"], FIELDS, {"supplier": ["Aaaa"]}) == []


def test_get_mapping_assistant_without_key_is_null(monkeypatch):
    from sheetsync.core.config import settings

    monkeypatch.setattr(settings, "anthropic_api_key", "")
    assert isinstance(get_mapping_assistant(), NullMappingAssistant)

    monkeypatch.setattr(settings, "anthropic_api_key", "sk-test")
    monkeypatch.setattr(settings, "llm_mapping_enabled", False)
    assert isinstance(get_mapping_assistant(), NullMappingAssistant)


def test_assistant_is_not_called_when_every_header_auto_maps():
    fields = [CanonicalField(name="vendor", type=ScalarType.STRING)]
    rows = [{"vendor": "Acme"}, {"vendor": "Globex"}]
    proposals = propose_header_mapping(["vendor"], rows, fields)
    assistant = ScriptedAssistant([AISuggestion(incoming="vendor", map_to="vendor")])

    merged = apply_ai_suggestions(proposals, assistant, fields, rows)

    assert assistant.calls == []
    assert merged == proposals
