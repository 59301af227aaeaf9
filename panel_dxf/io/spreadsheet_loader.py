"""
Spreadsheet loading.

Reads the first sheet of an Excel workbook (.xlsx, .xls) or a CSV file with
pandas. The first row is the header; header labels are mapped to the
dimension field identities through ColumnsConfig. The whole sheet is read
into memory at once.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import pandas as pd

from panel_dxf.logging_config import timed
from panel_dxf.project_config import ColumnsConfig
from panel_dxf.records import FIELD_LENGTH, FIELD_WIDTH, FIELDS

logger = logging.getLogger(__name__)

EXCEL_EXTENSIONS = ('.xlsx', '.xls')
SPREADSHEET_EXTENSIONS = EXCEL_EXTENSIONS + ('.csv',)


class SpreadsheetLoadError(Exception):
    """Spreadsheet could not be read or has no usable dimension columns."""


@dataclass
class SpreadsheetData:
    """Rows of one sheet keyed by field identity."""
    source: Path
    sheet_name: str
    columns: List[str]
    rows: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def file_name(self) -> str:
        return self.source.name


def _read_frame(path: Path) -> Tuple[str, pd.DataFrame]:
    if path.suffix.lower() == '.csv':
        return path.stem, pd.read_csv(path)
    with pd.ExcelFile(path) as xls:
        if not xls.sheet_names:
            raise SpreadsheetLoadError(f"Workbook has no sheets: {path}")
        sheet_name = xls.sheet_names[0]
        return str(sheet_name), xls.parse(sheet_name)


def normalize_frame(df: pd.DataFrame, columns: Optional[ColumnsConfig] = None) -> List[Dict[str, Any]]:
    """Turn a DataFrame into raw rows keyed by field identity.

    Unrecognised columns are dropped, empty rows are skipped and NaN cells
    become None.

    Raises:
        SpreadsheetLoadError: If the width or length column is missing
    """
    label_map = (columns or ColumnsConfig()).label_map()

    mapping: Dict[Any, str] = {}
    for header in df.columns:
        field_name = label_map.get(str(header).strip().casefold())
        if field_name and field_name not in mapping.values():
            mapping[header] = field_name

    missing = [name for name in (FIELD_WIDTH, FIELD_LENGTH) if name not in mapping.values()]
    if missing:
        raise SpreadsheetLoadError(
            f"Missing columns {missing}; found headers {[str(c) for c in df.columns]}"
        )

    rows: List[Dict[str, Any]] = []
    for _, raw in df[list(mapping)].iterrows():
        if raw.isna().all():
            continue
        row = {name: None for name in FIELDS}
        for header, value in raw.items():
            row[mapping[header]] = None if pd.isna(value) else value
        rows.append(row)
    return rows


@timed(operation="Loading spreadsheet")
def load_rows(path: Union[str, Path], columns: Optional[ColumnsConfig] = None) -> SpreadsheetData:
    """Load dimension rows from a spreadsheet file.

    Args:
        path: .xlsx, .xls or .csv file
        columns: Header label mapping (defaults if None)

    Returns:
        SpreadsheetData with one raw row per non-empty data row

    Raises:
        SpreadsheetLoadError: If the file is missing, of an unsupported type,
            unreadable, or lacks width/length columns
    """
    path = Path(path)
    if path.suffix.lower() not in SPREADSHEET_EXTENSIONS:
        raise SpreadsheetLoadError(
            f"Unsupported file type {path.suffix!r}, expected one of {SPREADSHEET_EXTENSIONS}"
        )
    if not path.is_file():
        raise SpreadsheetLoadError(f"File not found: {path}")

    try:
        sheet_name, df = _read_frame(path)
    except SpreadsheetLoadError:
        raise
    except Exception as exc:
        raise SpreadsheetLoadError(f"Cannot read {path.name}: {exc}") from exc

    rows = normalize_frame(df, columns)
    logger.info("Loaded %d rows from %s [%s]", len(rows), path.name, sheet_name)
    return SpreadsheetData(
        source=path,
        sheet_name=sheet_name,
        columns=[str(c) for c in df.columns],
        rows=rows,
    )
