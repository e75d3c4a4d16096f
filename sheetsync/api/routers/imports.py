"""
Spreadsheet import endpoints: inspect (dry run), commit, and ledger/schema lookups.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.orm import Session

from sheetsync.api.dependencies import mapping_assistant_dependency, parse_json_list, read_upload
from sheetsync.api.schemas.imports import (
    CommitResponse,
    DuplicateDecision,
    ImportSessionOut,
    InspectResponse,
    MappingDecision,
    SchemaProfileOut,
    SchemaProfilesResponse,
)
from sheetsync.db.session import get_db
from sheetsync.domain.imports.entities import resolve_entity
from sheetsync.domain.imports.errors import (
    CommitFailedError,
    ImportAlreadyCommittedError,
    ImportInputError,
)
from sheetsync.domain.imports.llm_mapper import MappingAssistant
from sheetsync.domain.imports.orchestrator import commit_import, inspect_file
from sheetsync.domain.imports.schema_profiles import list_profiles, profile_fields
from sheetsync.domain.imports.sessions import get_session_by_id, to_session_out

router = APIRouter(prefix="/import", tags=["imports"])

logger = logging.getLogger(__name__)


@router.post("/inspect", response_model=InspectResponse)
async def inspect_import_endpoint(
    file: UploadFile = File(...),
    entity: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    assistant: MappingAssistant = Depends(mapping_assistant_dependency),
):
    """
    Analyze an uploaded spreadsheet without importing it.

    Parameters:
    - file: The spreadsheet (first sheet is used; .xlsx, .xls or .csv)
    - entity: Target entity (shipment, inventory, order)

    Returns:
    - Header mapping proposal against the entity's active schema (or a cold-start one)
    - Duplicate report split into auto-insert and review buckets
    - The DRY_RUN import id
    """
    content = await read_upload(file)
    logger.info("Received /import/inspect for '%s' (entity=%s)", file.filename, entity)
    try:
        return inspect_file(db, content, file.filename, entity=entity, assistant=assistant)
    except ImportInputError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/commit", response_model=CommitResponse)
async def commit_import_endpoint(
    file: UploadFile = File(...),
    entity: Optional[str] = Form(None),
    mapping: str = Form("[]"),
    duplicates: str = Form("[]"),
    adopt_as_standard: bool = Form(False, alias="adoptAsStandard"),
    import_id: Optional[str] = Form(None, alias="importId"),
    db: Session = Depends(get_db),
):
    """
    Import a reviewed spreadsheet in a single transaction.

    Parameters:
    - file: The same spreadsheet that was inspected
    - entity: Target entity
    - mapping: JSON array of {incoming, mapTo}
    - duplicates: JSON array of {rowIndex, action: "insert" | "skip"}
    - adoptAsStandard: Store the mapping as the entity's new schema standard
    - importId: Optional id returned by /import/inspect

    Returns:
    - Number of rows upserted and skipped
    """
    content = await read_upload(file)
    mapping_decisions = parse_json_list(mapping, MappingDecision, "mapping")
    duplicate_decisions = parse_json_list(duplicates, DuplicateDecision, "duplicates")

    logger.info(
        "Received /import/commit for '%s' (entity=%s, %d mapping(s), %d duplicate decision(s), adopt=%s)",
        file.filename,
        entity,
        len(mapping_decisions),
        len(duplicate_decisions),
        adopt_as_standard,
    )

    try:
        result = commit_import(
            db,
            content,
            file.filename,
            entity,
            mapping_decisions,
            duplicate_decisions,
            adopt_as_standard=adopt_as_standard,
            import_id=import_id,
        )
    except ImportInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ImportAlreadyCommittedError as e:
        raise HTTPException(status_code=409, detail=e.message)
    except CommitFailedError as e:
        raise HTTPException(status_code=500, detail=e.message)

    return CommitResponse(ok=True, inserted=result.inserted, skipped=result.skipped)


@router.get("/sessions/{import_id}", response_model=ImportSessionOut)
async def get_import_session_endpoint(import_id: str, db: Session = Depends(get_db)):
    """Return one import ledger entry."""
    session_row = get_session_by_id(db, import_id)
    if session_row is None:
        raise HTTPException(status_code=404, detail="Import session not found")
    return to_session_out(session_row)


@router.get("/schema-profiles/{entity}", response_model=SchemaProfilesResponse)
async def get_schema_profiles_endpoint(entity: str, db: Session = Depends(get_db)):
    """Return the active schema standard of an entity and every earlier version."""
    try:
        entity_name = resolve_entity(entity)
    except ImportInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    history = [
        SchemaProfileOut(
            entity=profile.entity,
            version=profile.version,
            active=profile.active,
            fields=profile_fields(profile),
            created_at=profile.created_at,
        )
        for profile in list_profiles(db, entity_name)
    ]
    active = next((profile for profile in history if profile.active), None)
    return SchemaProfilesResponse(entity=entity_name, active=active, history=history)
