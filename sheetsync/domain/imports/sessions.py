"""
Import session ledger.

One row per ``(entity, file_hash)``: inspecting the same bytes again updates
the DRY_RUN row instead of adding another, and the commit moves it to
COMMITTED. Functions here flush but never commit; the caller owns the
transaction.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from sheetsync.api.schemas.imports import ImportSessionOut, ImportStatus
from sheetsync.db.models import ImportSession
from sheetsync.utils.serialization import make_json_safe

logger = logging.getLogger(__name__)


def get_session(db: Session, entity: str, file_hash: str) -> Optional[ImportSession]:
    return db.execute(
        select(ImportSession).where(
            ImportSession.entity == entity,
            ImportSession.file_hash == file_hash,
        )
    ).scalar_one_or_none()


def get_session_by_id(db: Session, import_id: str) -> Optional[ImportSession]:
    return db.get(ImportSession, import_id)


def list_sessions(db: Session, entity: Optional[str] = None, limit: int = 50) -> List[ImportSession]:
    query = select(ImportSession).order_by(ImportSession.updated_at.desc()).limit(limit)
    if entity:
        query = query.where(ImportSession.entity == entity)
    return list(db.execute(query).scalars().all())


def upsert_dry_run(db: Session, entity: str, file_hash: str, stats: Dict[str, Any]) -> ImportSession:
    """
    Record an inspection of a file.

    A COMMITTED session is returned unchanged: committed ledger rows are final.
    """
    session_row = get_session(db, entity, file_hash)
    if session_row is None:
        session_row = ImportSession(
            entity=entity,
            file_hash=file_hash,
            status=ImportStatus.DRY_RUN.value,
            stats=make_json_safe(stats),
        )
        db.add(session_row)
        db.flush()
        logger.info("Created DRY_RUN import session %s for '%s'", session_row.id, entity)
        return session_row

    if session_row.status == ImportStatus.COMMITTED.value:
        logger.info(
            "Import session %s for '%s' is already COMMITTED; leaving it untouched",
            session_row.id,
            entity,
        )
        return session_row

    session_row.stats = make_json_safe(stats)
    session_row.updated_at = datetime.now(timezone.utc)
    db.flush()
    logger.info("Refreshed DRY_RUN import session %s for '%s'", session_row.id, entity)
    return session_row


def mark_committed(
    db: Session,
    entity: str,
    file_hash: str,
    stats: Dict[str, Any],
    decisions: Optional[Dict[str, Any]] = None,
) -> ImportSession:
    """
    Move the session for a file to COMMITTED, creating it if it was never inspected.

    This does not refuse a second commit of the same file; callers check the
    current status first.
    """
    session_row = get_session(db, entity, file_hash)
    if session_row is None:
        session_row = ImportSession(entity=entity, file_hash=file_hash)
        db.add(session_row)

    session_row.status = ImportStatus.COMMITTED.value
    session_row.stats = make_json_safe(stats)
    session_row.decisions = make_json_safe(decisions) if decisions is not None else None
    session_row.updated_at = datetime.now(timezone.utc)
    db.flush()
    logger.info("Import session %s for '%s' marked COMMITTED", session_row.id, entity)
    return session_row


def to_session_out(session_row: ImportSession) -> ImportSessionOut:
    return ImportSessionOut(
        import_id=session_row.id,
        entity=session_row.entity,
        file_hash=session_row.file_hash,
        status=ImportStatus(session_row.status),
        stats=session_row.stats,
        decisions=session_row.decisions,
        created_at=session_row.created_at,
        updated_at=session_row.updated_at,
    )
