"""
ORM models for the import pipeline.

Business records of every registered entity live in ``entity_records`` as JSON
documents keyed by their natural key; the schema profile and import ledger
tables carry the importer's own state.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
)

from sheetsync.db.session import Base


def _utcnow():
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class SchemaProfile(Base):
    """One version of an entity's canonical field list."""

    __tablename__ = "schema_profiles"

    id = Column(String(36), primary_key=True, default=_new_id)
    entity = Column(String(100), nullable=False, index=True)
    version = Column(Integer, nullable=False, default=1)
    active = Column(Boolean, nullable=False, default=True)
    fields = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index(
            "uq_schema_profiles_active_entity",
            "entity",
            unique=True,
            postgresql_where=active.is_(True),
            sqlite_where=active.is_(True),
        ),
    )


class ImportSession(Base):
    """Ledger row for one import attempt of a given file content."""

    __tablename__ = "import_sessions"

    id = Column(String(36), primary_key=True, default=_new_id)
    entity = Column(String(100), nullable=False)
    file_hash = Column(String(64), nullable=False)
    status = Column(String(20), nullable=False, default="DRY_RUN")
    stats = Column(JSON, nullable=True)
    decisions = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("entity", "file_hash", name="uq_import_sessions_entity_hash"),
    )


class EntityRecord(Base):
    """A business document (shipment, inventory item, order) stored as JSON."""

    __tablename__ = "entity_records"

    id = Column(String(36), primary_key=True, default=_new_id)
    entity = Column(String(100), nullable=False, index=True)
    key_field = Column(String(100), nullable=False)
    record_key = Column(String(500), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("entity", "key_field", "record_key", name="uq_entity_records_key"),
        Index("idx_entity_records_recent", "entity", "created_at"),
    )


def create_import_tables(engine) -> None:
    """Create the importer tables if they do not exist yet."""
    Base.metadata.create_all(bind=engine)
