"""
Request/response models for the spreadsheet import pipeline.

Attributes are snake_case in Python and camelCase on the wire, matching the
payloads the dashboard front-end sends and expects.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ScalarType(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"


class SchemaStatus(str, Enum):
    USING_EXISTING_STANDARD = "USING_EXISTING_STANDARD"
    COLD_START_WILL_LEARN = "COLD_START_WILL_LEARN"


class ImportStatus(str, Enum):
    DRY_RUN = "DRY_RUN"
    COMMITTED = "COMMITTED"


class CanonicalField(CamelModel):
    """One column of an entity's standard schema."""
    name: str
    type: ScalarType = ScalarType.STRING
    aliases: List[str] = Field(default_factory=list)

    @field_validator("name")
    def normalize_name(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError("field name cannot be blank")
        return normalized


class MappingProposal(CamelModel):
    incoming: str
    inferred_type: ScalarType
    inferred_support: float
    best_match: Optional[str] = None
    best_match_type: Optional[ScalarType] = None
    name_confidence: float = 0.0
    type_confidence: float = 0.0
    auto_mapped: bool = False
    needs_user_decision: bool = True
    ai_suggested: bool = False
    rationale: Optional[str] = None


class AISuggestion(CamelModel):
    incoming: str
    map_to: Optional[str] = None
    name_confidence: float = 0.0
    type_confidence: float = 0.0
    rationale: Optional[str] = None


class AutoInsertVerdict(CamelModel):
    row_index: int
    row: Dict[str, Any]
    confidence_not_duplicate: float


class ReviewVerdict(CamelModel):
    row_index: int
    row: Dict[str, Any]
    probability_duplicate: float


class DuplicateReport(CamelModel):
    auto_insert: List[AutoInsertVerdict] = Field(default_factory=list)
    review: List[ReviewVerdict] = Field(default_factory=list)


class InspectResponse(CamelModel):
    import_id: str
    sheet: str
    headers: List[str]
    schema_status: SchemaStatus
    mapping: List[MappingProposal]
    duplicates: DuplicateReport


class MappingDecision(CamelModel):
    """A reviewed header mapping; a blank ``map_to`` keeps the incoming name."""
    incoming: str
    map_to: Optional[str] = None


class DuplicateDecision(CamelModel):
    row_index: int
    action: Literal["insert", "skip"]


class CommitResponse(CamelModel):
    ok: bool = True
    inserted: int
    skipped: int


class ImportSessionOut(CamelModel):
    import_id: str
    entity: str
    file_hash: str
    status: ImportStatus
    stats: Optional[Dict[str, Any]] = None
    decisions: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SchemaProfileOut(CamelModel):
    entity: str
    version: int
    active: bool
    fields: List[CanonicalField]
    created_at: Optional[datetime] = None


class SchemaProfilesResponse(CamelModel):
    entity: str
    active: Optional[SchemaProfileOut] = None
    history: List[SchemaProfileOut] = Field(default_factory=list)
