"""
Spreadsheet parsing for the import pipeline.

Only the first worksheet is read, with the header on row 1. Cell values are
converted once into plain Python scalars (None, bool, int, float, datetime,
str) so that nothing downstream has to know about numpy or pandas types.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List
import io
import os
import logging

import numpy as np
import pandas as pd

from sheetsync.domain.imports.errors import ImportInputError

logger = logging.getLogger(__name__)

EXCEL_EXTENSIONS = (".xlsx", ".xlsm", ".xls")
CSV_EXTENSIONS = (".csv",)


@dataclass
class ParsedSheet:
    sheet: str
    headers: List[str]
    rows: List[Dict[str, Any]] = field(default_factory=list)


def normalize_cell(value: Any) -> Any:
    """Convert a pandas/numpy cell into a builtin scalar; NaN and NaT become None."""
    if value is None:
        return None
    if isinstance(value, (list, dict, tuple)):
        return value
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return float(value)
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, np.datetime64):
        return pd.Timestamp(value).to_pydatetime()
    return value


def _frame_to_sheet(df: pd.DataFrame, sheet_name: str) -> ParsedSheet:
    headers = [str(column) for column in df.columns]
    df.columns = headers
    rows = [
        {header: normalize_cell(value) for header, value in record.items()}
        for record in df.to_dict("records")
    ]
    return ParsedSheet(sheet=sheet_name, headers=headers, rows=rows)


def _read_excel_first_sheet(file_content: bytes) -> ParsedSheet:
    # Try openpyxl first (xlsx/xlsm), then let pandas pick an engine (xls)
    try:
        workbook = pd.ExcelFile(io.BytesIO(file_content), engine="openpyxl")
    except Exception:
        try:
            workbook = pd.ExcelFile(io.BytesIO(file_content))
        except Exception as e:
            raise ImportInputError(f"Could not read Excel file: {str(e)}") from e

    if not workbook.sheet_names:
        raise ImportInputError("Workbook contains no sheets")
    sheet_name = workbook.sheet_names[0]
    df = workbook.parse(sheet_name, header=0)
    return _frame_to_sheet(df, str(sheet_name))


def _read_csv(file_content: bytes, file_name: str) -> ParsedSheet:
    try:
        df = pd.read_csv(io.BytesIO(file_content))
    except pd.errors.EmptyDataError:
        raise ImportInputError("Empty sheet")
    except Exception as e:
        raise ImportInputError(f"Could not read CSV file: {str(e)}") from e
    sheet_name = os.path.splitext(os.path.basename(file_name or "sheet.csv"))[0] or "sheet"
    return _frame_to_sheet(df, sheet_name)


def read_first_sheet(file_content: bytes, file_name: str) -> ParsedSheet:
    """
    Parse the first worksheet of an uploaded file.

    Args:
        file_content: Raw uploaded bytes.
        file_name: Original file name; its extension selects the reader.

    Raises:
        ImportInputError: For missing content, unsupported types, unreadable
            files, or a sheet without data rows.
    """
    if not file_content:
        raise ImportInputError("No file")

    extension = os.path.splitext((file_name or "").lower())[1]
    if extension in CSV_EXTENSIONS:
        parsed = _read_csv(file_content, file_name)
    elif extension in EXCEL_EXTENSIONS:
        parsed = _read_excel_first_sheet(file_content)
    else:
        raise ImportInputError(
            f"Unsupported file type '{extension or file_name}'. Upload .xlsx, .xls or .csv."
        )

    if not parsed.rows:
        raise ImportInputError("Empty sheet")

    logger.info(
        "Parsed sheet '%s' from '%s': %d row(s), %d column(s)",
        parsed.sheet,
        file_name,
        len(parsed.rows),
        len(parsed.headers),
    )
    return parsed
