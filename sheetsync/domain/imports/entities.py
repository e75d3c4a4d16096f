"""
Registry of importable business entities and access to their records.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from sheetsync.db.models import EntityRecord
from sheetsync.domain.imports.errors import ImportInputError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntityDefinition:
    name: str
    aliases: Tuple[str, ...] = ()


ENTITY_REGISTRY: Tuple[EntityDefinition, ...] = (
    EntityDefinition("shipment", ("shipments",)),
    EntityDefinition("inventory", ("inventories", "inventory item", "inventory items")),
    EntityDefinition("order", ("orders",)),
)

_ENTITY_LOOKUP: Dict[str, str] = {
    label: definition.name
    for definition in ENTITY_REGISTRY
    for label in (definition.name, *definition.aliases)
}


def resolve_entity(entity: Optional[str]) -> str:
    """
    Return the canonical entity name for a user-supplied label.

    Raises:
        ImportInputError: When the label names no registered entity.
    """
    label = " ".join((entity or "").strip().lower().split())
    canonical = _ENTITY_LOOKUP.get(label)
    if canonical is None:
        known = ", ".join(definition.name for definition in ENTITY_REGISTRY)
        raise ImportInputError(f"Unknown entity: '{entity}'. Expected one of: {known}.")
    return canonical


def fetch_recent_documents(db: Session, entity: str, limit: int) -> List[Dict[str, Any]]:
    """Most recently created documents of an entity, newest first."""
    rows = db.execute(
        select(EntityRecord.data)
        .where(EntityRecord.entity == entity)
        .order_by(EntityRecord.created_at.desc())
        .limit(limit)
    ).scalars().all()
    return [dict(data or {}) for data in rows]
