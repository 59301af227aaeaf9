"""
Pytest configuration and fixtures for the panel DXF generator.

Provides:
- Raw row fixtures (the three-row scenario, manual entries)
- Spreadsheet file fixtures (.xlsx and .csv written with pandas)
- Output folder fixtures
- DXF read-back helpers
"""

import io
import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

import ezdxf
import pandas as pd
import pytest

from panel_dxf.logging_config import PACKAGE_LOGGER
from panel_dxf.project_config import ProjectConfig


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo setup_logging() calls made by a test."""
    yield
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


# ============================================================================
# Row Fixtures
# ============================================================================

@pytest.fixture
def scenario_rows() -> List[Dict[str, Any]]:
    """One good row, one with a non-numeric width, one good row with quantity."""
    return [
        {"width": 100, "length": 50},
        {"width": "abc", "length": 50},
        {"width": 200, "length": 80, "quantity": 3},
    ]


@pytest.fixture
def config() -> ProjectConfig:
    return ProjectConfig()


# ============================================================================
# Output Folder Fixtures
# ============================================================================

@pytest.fixture
def out_dir(tmp_path: Path) -> Path:
    """Empty existing output folder."""
    path = tmp_path / "out"
    path.mkdir()
    return path


# ============================================================================
# Spreadsheet Fixtures
# ============================================================================

RUSSIAN_HEADER = ["Ширина", "Длина", "Толщина", "Количество"]
ENGLISH_HEADER = ["Width", "Length", "Thickness", "Quantity"]


def make_xlsx(path: Path, header: Sequence[str], rows: Sequence[Sequence[Any]],
              sheet_name: str = "Panels") -> Path:
    """Write a single-sheet workbook with a header row."""
    df = pd.DataFrame(list(rows), columns=list(header))
    with pd.ExcelWriter(path) as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)
    return path


@pytest.fixture
def panels_xlsx(tmp_path: Path) -> Path:
    """Workbook with the original Russian headers and a blank row."""
    return make_xlsx(
        tmp_path / "panels.xlsx",
        RUSSIAN_HEADER,
        [
            [100, 50, None, None],
            ["abc", 50, None, None],
            [None, None, None, None],
            [200, 80, None, 3],
            [500, 300, 18, 4],
        ],
    )


@pytest.fixture
def panels_csv(tmp_path: Path) -> Path:
    path = tmp_path / "panels.csv"
    path.write_text(
        "Width,Length,Thickness,Quantity\n"
        "100,50,,\n"
        "250.5,120,16,2\n",
        encoding="utf-8",
    )
    return path


# ============================================================================
# DXF Helpers
# ============================================================================

def read_dxf_text(text: str):
    """Parse DXF text with ezdxf."""
    return ezdxf.read(io.StringIO(text))


def closed_rectangles(doc) -> List[Tuple[Tuple[float, float], Tuple[float, float]]]:
    """(min_corner, max_corner) of each closed LWPOLYLINE in modelspace."""
    result = []
    for polyline in doc.modelspace().query('LWPOLYLINE'):
        assert polyline.closed
        points = list(polyline.get_points('xy'))
        assert len(points) == 4
        xs = [p[0] for p in points]
        ys = [p[1] for p in points]
        result.append(((min(xs), min(ys)), (max(xs), max(ys))))
    return result


def assert_single_rectangle(text: str, width: float, length: float, layer: str = "Rectangles") -> None:
    """Assert that DXF text holds exactly one rectangle (0,0)-(width,length)."""
    doc = read_dxf_text(text)
    entities = list(doc.modelspace())
    assert len(entities) == 1
    assert entities[0].dxf.layer == layer
    assert closed_rectangles(doc) == [((0, 0), (width, length))]
