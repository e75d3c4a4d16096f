"""
Versioned canonical schemas per entity.

Profiles are append-only: adopting a new standard deactivates the current
active profile and inserts the next version, so earlier versions stay
available for audit.
"""
from typing import Any, Dict, List, Optional, Sequence
import logging

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from sheetsync.api.schemas.imports import CanonicalField, MappingDecision, ScalarType
from sheetsync.db.models import SchemaProfile
from sheetsync.domain.imports.header_mapper import normalize_header
from sheetsync.domain.imports.type_inference import infer_column_type

logger = logging.getLogger(__name__)


def profile_fields(profile: Optional[SchemaProfile]) -> List[CanonicalField]:
    if profile is None:
        return []
    return [CanonicalField.model_validate(field) for field in (profile.fields or [])]


def get_active_profile(db: Session, entity: str) -> Optional[SchemaProfile]:
    return db.execute(
        select(SchemaProfile).where(
            SchemaProfile.entity == entity,
            SchemaProfile.active.is_(True),
        )
    ).scalar_one_or_none()


def list_profiles(db: Session, entity: str) -> List[SchemaProfile]:
    """All profile versions of an entity, newest first."""
    return list(db.execute(
        select(SchemaProfile)
        .where(SchemaProfile.entity == entity)
        .order_by(SchemaProfile.version.desc())
    ).scalars().all())


def adopt_profile(db: Session, entity: str, fields: Sequence[CanonicalField]) -> SchemaProfile:
    """
    Make ``fields`` the active standard for ``entity``.

    Runs inside the caller's transaction: prior active profiles are
    deactivated (never deleted) and a new version is flushed, not committed.
    """
    current_version = db.execute(
        select(func.max(SchemaProfile.version)).where(SchemaProfile.entity == entity)
    ).scalar() or 0

    db.execute(
        update(SchemaProfile)
        .where(SchemaProfile.entity == entity, SchemaProfile.active.is_(True))
        .values(active=False)
    )
    db.flush()

    profile = SchemaProfile(
        entity=entity,
        version=current_version + 1,
        active=True,
        fields=[field.model_dump(mode="json") for field in fields],
    )
    db.add(profile)
    db.flush()

    logger.info(
        "Adopted schema profile v%d for '%s' with %d field(s)",
        profile.version,
        entity,
        len(fields),
    )
    return profile


def infer_cold_start_fields(
    headers: Sequence[str],
    rows: Sequence[Dict[str, Any]],
    sample_rows: int = 200,
) -> List[CanonicalField]:
    """
    Infer a transient profile from the file itself when no standard exists.

    Args:
        headers: Normalized headers.
        rows: Rows keyed by those normalized headers.
        sample_rows: Number of leading rows sampled per column.
    """
    sample = rows[:sample_rows]
    fields: List[CanonicalField] = []
    seen = set()
    for header in headers:
        if not header or header in seen:
            continue
        seen.add(header)
        inference = infer_column_type(row.get(header) for row in sample)
        fields.append(CanonicalField(name=header, type=inference.type, aliases=[]))
    return fields


def build_adopted_fields(
    mapping: Sequence[MappingDecision],
    normalized_headers: Sequence[str],
) -> List[CanonicalField]:
    """
    Fields recorded when an import is adopted as the new standard.

    With an explicit mapping every mapped pair becomes a ``string`` field named
    after the target and aliased by the incoming header as supplied; without
    one the normalized headers become the fields. Types are not re-inferred.
    """
    fields: Dict[str, CanonicalField] = {}
    mapped = [decision for decision in mapping if (decision.map_to or "").strip()]

    if mapped:
        for decision in mapped:
            name = normalize_header(decision.map_to)
            field = fields.setdefault(name, CanonicalField(name=name, type=ScalarType.STRING, aliases=[]))
            if decision.incoming not in field.aliases:
                field.aliases.append(decision.incoming)
        return list(fields.values())

    for header in normalized_headers:
        name = normalize_header(header)
        if name and name not in fields:
            fields[name] = CanonicalField(name=name, type=ScalarType.STRING, aliases=[])
    return list(fields.values())
