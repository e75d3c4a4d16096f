"""
Shared dependencies and helpers for the API routers.
"""
import json
from typing import Any, List, Type, TypeVar

from fastapi import HTTPException, UploadFile
from pydantic import BaseModel, ValidationError

from sheetsync.core.config import settings
from sheetsync.domain.imports.llm_mapper import MappingAssistant, get_mapping_assistant

ModelT = TypeVar("ModelT", bound=BaseModel)


def mapping_assistant_dependency() -> MappingAssistant:
    """Mapping assistant for the request; overridden in tests."""
    return get_mapping_assistant()


async def read_upload(file: UploadFile) -> bytes:
    """
    Read an uploaded file, enforcing the configured size limit.

    Raises:
    - HTTPException 400: If the upload is empty
    - HTTPException 413: If the upload exceeds ``upload_max_file_size_mb``
    """
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="No file")
    max_bytes = settings.upload_max_file_size_mb * 1024 * 1024
    if len(content) > max_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"File exceeds the {settings.upload_max_file_size_mb} MB upload limit",
        )
    return content


def parse_json_list(raw: str, model: Type[ModelT], field_name: str) -> List[ModelT]:
    """
    Parse a JSON array form field into a list of models.

    Raises:
    - HTTPException 400: If the field is not a JSON array of valid items
    """
    try:
        payload: Any = json.loads(raw or "[]")
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=400, detail=f"Invalid JSON in '{field_name}': {e.msg}")
    if not isinstance(payload, list):
        raise HTTPException(status_code=400, detail=f"'{field_name}' must be a JSON array")
    try:
        return [model.model_validate(item) for item in payload]
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid '{field_name}': {e.errors()[0]['msg']}")
