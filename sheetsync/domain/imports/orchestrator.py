"""
Inspect/commit orchestration for spreadsheet imports.

``inspect_file`` is the dry run: it proposes a header mapping, scores
duplicates and records a DRY_RUN ledger row without touching business
records. ``commit_import`` applies the reviewed mapping and duplicate
decisions inside one database transaction and marks the ledger COMMITTED.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple
import hashlib
import time
import uuid
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from sheetsync.api.schemas.imports import (
    DuplicateDecision,
    DuplicateReport,
    ImportStatus,
    InspectResponse,
    MappingDecision,
    SchemaStatus,
)
from sheetsync.core.config import settings
from sheetsync.db.models import EntityRecord
from sheetsync.domain.imports.duplicates import build_duplicate_report
from sheetsync.domain.imports.entities import fetch_recent_documents, resolve_entity
from sheetsync.domain.imports.errors import (
    CommitFailedError,
    ImportAlreadyCommittedError,
    ImportInputError,
)
from sheetsync.domain.imports.header_mapper import normalize_header, propose_header_mapping
from sheetsync.domain.imports.llm_mapper import MappingAssistant, apply_ai_suggestions
from sheetsync.domain.imports.processors.spreadsheet_processor import read_first_sheet
from sheetsync.domain.imports.schema_profiles import (
    adopt_profile,
    build_adopted_fields,
    get_active_profile,
    infer_cold_start_fields,
    profile_fields,
)
from sheetsync.domain.imports.sessions import (
    get_session,
    get_session_by_id,
    mark_committed,
    upsert_dry_run,
)
from sheetsync.utils.locks import ImportLockManager
from sheetsync.utils.serialization import display_text, make_json_safe

logger = logging.getLogger(__name__)

# Natural keys tried in order when upserting a committed row (compared on
# lower-cased keys with separators removed, so "Tracking Number" matches).
RECORD_KEY_PRIORITY = ("id", "shipmentid", "trackingnumber", "orderid", "sku")
GENERATED_KEY_FIELD = "_generated"


@dataclass
class CommitResult:
    import_id: str
    inserted: int
    skipped: int
    total: int


def compute_file_hash(file_content: bytes) -> str:
    return hashlib.sha256(file_content).hexdigest()


def _rekey_rows(
    rows: Sequence[Dict[str, Any]],
    original_headers: Sequence[str],
    normalized_headers: Sequence[str],
) -> List[Dict[str, Any]]:
    return [
        {normalized: row.get(original) for original, normalized in zip(original_headers, normalized_headers)}
        for row in rows
    ]


def inspect_file(
    db: Session,
    file_content: bytes,
    file_name: str,
    entity: Optional[str] = None,
    assistant: Optional[MappingAssistant] = None,
) -> InspectResponse:
    """
    Dry-run an import: mapping proposal plus duplicate report, no business writes.

    Args:
        db: Database session; the ledger upsert is committed on success.
        file_content: Raw uploaded bytes.
        file_name: Original file name (selects the reader).
        entity: Target entity label; defaults to ``settings.default_entity``.
        assistant: Optional mapping assistant consulted for unresolved headers.

    Raises:
        ImportInputError: For missing/empty/unreadable files or unknown entities.
    """
    started = time.time()
    entity_name = resolve_entity(entity or settings.default_entity)
    parsed = read_first_sheet(file_content, file_name)
    file_hash = compute_file_hash(file_content)

    normalized_headers = [normalize_header(h) for h in parsed.headers]
    normalized_rows = _rekey_rows(parsed.rows, parsed.headers, normalized_headers)

    active_profile = get_active_profile(db, entity_name)
    canonical_fields = profile_fields(active_profile)
    if canonical_fields:
        schema_status = SchemaStatus.USING_EXISTING_STANDARD
    else:
        schema_status = SchemaStatus.COLD_START_WILL_LEARN
        canonical_fields = infer_cold_start_fields(
            normalized_headers,
            normalized_rows,
            sample_rows=settings.import_cold_start_sample_rows,
        )
        logger.info(
            "No active schema for '%s'; inferred %d field(s) from the upload",
            entity_name,
            len(canonical_fields),
        )

    sample_rows = normalized_rows[:settings.import_mapping_sample_rows]
    proposals = propose_header_mapping(normalized_headers, sample_rows, canonical_fields)
    if assistant is not None:
        proposals = apply_ai_suggestions(
            proposals,
            assistant,
            canonical_fields,
            sample_rows,
            max_sample_rows=settings.import_ai_sample_rows,
        )

    existing_docs = fetch_recent_documents(db, entity_name, settings.import_existing_record_cap)
    report = build_duplicate_report(parsed.rows, parsed.headers, existing_docs)

    stats = {
        "fileName": file_name,
        "sheet": parsed.sheet,
        "rows": len(parsed.rows),
        "headers": normalized_headers,
        "hasActiveProfile": active_profile is not None,
        "mappingAuto": sum(1 for p in proposals if p.auto_mapped),
        "mappingNeedUser": sum(1 for p in proposals if p.needs_user_decision),
        "potentialDuplicates": len(report.review),
        "autoInsertCandidates": len(report.auto_insert),
    }

    try:
        session_row = upsert_dry_run(db, entity_name, file_hash, stats)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Inspected '%s' for '%s' in %.2fs: %d row(s), %d auto-mapped header(s), %d row(s) for review",
        file_name,
        entity_name,
        time.time() - started,
        len(parsed.rows),
        stats["mappingAuto"],
        len(report.review),
    )

    return InspectResponse(
        import_id=session_row.id,
        sheet=parsed.sheet,
        headers=normalized_headers,
        schema_status=schema_status,
        mapping=proposals,
        duplicates=DuplicateReport(
            auto_insert=report.auto_insert[:settings.import_inspect_auto_insert_limit],
            review=report.review[:settings.import_inspect_review_limit],
        ),
    )


def build_target_lookup(mapping: Sequence[MappingDecision]) -> Dict[str, str]:
    """Normalized incoming header -> normalized target field."""
    lookup: Dict[str, str] = {}
    for decision in mapping:
        target = normalize_header(decision.map_to or "")
        if target:
            lookup[normalize_header(decision.incoming)] = target
    return lookup


def apply_mapping(
    row: Dict[str, Any],
    original_headers: Sequence[str],
    normalized_headers: Sequence[str],
    targets: Dict[str, str],
) -> Dict[str, Any]:
    """
    Re-key a raw row by the reviewed mapping; unmapped headers keep their
    normalized name. When several columns land on one field the rightmost
    column wins, empty or not.
    """
    document: Dict[str, Any] = {}
    for original, normalized in zip(original_headers, normalized_headers):
        target = targets.get(normalized) or normalized
        document[target] = row.get(original)
    return document


def select_record_key(document: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    """Pick the natural key used to upsert a document, or (None, None)."""
    compacted = {}
    for key, value in document.items():
        compacted.setdefault(normalize_header(key).replace(" ", ""), value)

    for key_field in RECORD_KEY_PRIORITY:
        value = compacted.get(key_field)
        if value is None:
            continue
        record_key = display_text(value).strip()
        if record_key:
            return key_field, record_key
    return None, None


def upsert_record(db: Session, entity: str, document: Dict[str, Any]) -> EntityRecord:
    """
    Insert or update one document by its natural key.

    Updates overwrite the supplied fields and keep ``created_at``; documents
    without a natural key are always inserted under a generated key.
    """
    data = make_json_safe(document)
    key_field, record_key = select_record_key(document)

    if key_field is None:
        record = EntityRecord(
            entity=entity,
            key_field=GENERATED_KEY_FIELD,
            record_key=str(uuid.uuid4()),
            data=data,
        )
        db.add(record)
        db.flush()
        return record

    record = db.execute(
        select(EntityRecord).where(
            EntityRecord.entity == entity,
            EntityRecord.key_field == key_field,
            EntityRecord.record_key == record_key,
        )
    ).scalar_one_or_none()

    if record is None:
        record = EntityRecord(entity=entity, key_field=key_field, record_key=record_key, data=data)
        db.add(record)
    else:
        record.data = {**(record.data or {}), **data}
    db.flush()
    return record


def _skip_indexes(dup_decisions: Sequence[DuplicateDecision]) -> set:
    # The first decision recorded for a row wins.
    first_action: Dict[int, str] = {}
    for decision in dup_decisions:
        first_action.setdefault(decision.row_index, decision.action)
    return {index for index, action in first_action.items() if action == "skip"}


def commit_import(
    db: Session,
    file_content: bytes,
    file_name: str,
    entity: Optional[str],
    mapping: Sequence[MappingDecision],
    dup_decisions: Sequence[DuplicateDecision],
    adopt_as_standard: bool = False,
    import_id: Optional[str] = None,
) -> CommitResult:
    """
    Apply a reviewed import atomically.

    Either every accepted row is upserted, the optional new schema standard is
    adopted and the ledger row becomes COMMITTED, or nothing changes.

    Raises:
        ImportInputError: For bad uploads, unknown entities, or an ``import_id``
            that belongs to different file content.
        ImportAlreadyCommittedError: When this file content was already
            committed for the entity.
        CommitFailedError: When the transaction failed and was rolled back.
    """
    started = time.time()
    entity_name = resolve_entity(entity or settings.default_entity)
    parsed = read_first_sheet(file_content, file_name)
    file_hash = compute_file_hash(file_content)
    normalized_headers = [normalize_header(h) for h in parsed.headers]

    with ImportLockManager.acquire(entity_name, file_hash):
        if import_id:
            inspected = get_session_by_id(db, import_id)
            if inspected is None or (inspected.entity, inspected.file_hash) != (entity_name, file_hash):
                raise ImportInputError(
                    f"Import '{import_id}' does not match the uploaded file for entity '{entity_name}'."
                )

        existing_session = get_session(db, entity_name, file_hash)
        if existing_session is not None and existing_session.status == ImportStatus.COMMITTED.value:
            raise ImportAlreadyCommittedError(entity_name, file_hash)

        targets = build_target_lookup(mapping)
        skip_rows = _skip_indexes(dup_decisions)
        inserted = 0
        skipped = 0

        try:
            if adopt_as_standard:
                adopt_profile(db, entity_name, build_adopted_fields(mapping, normalized_headers))

            for index, row in enumerate(parsed.rows):
                if index in skip_rows:
                    skipped += 1
                    continue
                document = apply_mapping(row, parsed.headers, normalized_headers, targets)
                upsert_record(db, entity_name, document)
                inserted += 1

            session_row = mark_committed(
                db,
                entity_name,
                file_hash,
                stats={"inserted": inserted, "skipped": skipped, "total": len(parsed.rows)},
                decisions={
                    "mapping": [m.model_dump(by_alias=True) for m in mapping],
                    "dupDecisions": [d.model_dump(by_alias=True) for d in dup_decisions],
                    "adoptAsStandard": adopt_as_standard,
                },
            )
            committed_id = session_row.id
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.error("Commit of '%s' for '%s' rolled back: %s", file_name, entity_name, exc)
            raise CommitFailedError(str(exc) or exc.__class__.__name__) from exc

    logger.info(
        "Committed '%s' for '%s' in %.2fs: %d upserted, %d skipped",
        file_name,
        entity_name,
        time.time() - started,
        inserted,
        skipped,
    )
    return CommitResult(import_id=committed_id, inserted=inserted, skipped=skipped, total=len(parsed.rows))
