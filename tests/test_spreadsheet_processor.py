from datetime import datetime

import numpy as np
import pandas as pd
import pytest

from sheetsync.domain.imports.errors import ImportInputError
from sheetsync.domain.imports.processors.spreadsheet_processor import normalize_cell, read_first_sheet
from sheetsync.utils.serialization import display_text, make_json_safe
from tests.utils.spreadsheets import csv_bytes, xlsx_bytes


def test_normalize_cell_returns_builtin_scalars():
    assert normalize_cell(np.int64(7)) == 7 and type(normalize_cell(np.int64(7))) is int
    assert type(normalize_cell(np.float64(1.5))) is float
    assert normalize_cell(np.bool_(True)) is True
    assert normalize_cell(float("nan")) is None
    assert normalize_cell(pd.NaT) is None
    assert normalize_cell(pd.Timestamp("2024-05-01 08:00")) == datetime(2024, 5, 1, 8, 0)


def test_csv_rows_keep_header_order_and_blank_cells_become_none():
    content = b"Tracking Number,Pallets,Notes\n1Z001,4,\n1Z002,,fragile\n"

    parsed = read_first_sheet(content, "loads.csv")

    assert parsed.sheet == "loads"
    assert parsed.headers == ["Tracking Number", "Pallets", "Notes"]
    assert parsed.rows[0] == {"Tracking Number": "1Z001", "Pallets": 4.0, "Notes": None}
    assert parsed.rows[1]["Pallets"] is None


def test_workbook_dates_are_datetimes():
    content = xlsx_bytes([{"Ship Date": datetime(2024, 5, 1), "Pallets": 3}])

    parsed = read_first_sheet(content, "plan.xlsx")

    assert parsed.rows == [{"Ship Date": datetime(2024, 5, 1), "Pallets": 3}]


@pytest.mark.parametrize("content,file_name", [
    (b"", "x.csv"),
    (b"a,b\n", "x.csv"),
    (b"", "x.xlsx"),
    (b"not a workbook", "x.xlsx"),
    (csv_bytes([{"a": 1}]), "x.pdf"),
])
def test_unusable_uploads_raise_input_error(content, file_name):
    with pytest.raises(ImportInputError):
        read_first_sheet(content, file_name)


def test_make_json_safe_and_display_text():
    document = {"when": datetime(2024, 1, 2, 3, 4), "price": float("inf"), "tags": ("a", "b")}

    assert make_json_safe(document) == {"when": "2024-01-02T03:04:00", "price": None, "tags": ["a", "b"]}
    assert display_text(1001.0) == "1001"
    assert display_text(True) == "true"
    assert display_text(None) == ""
