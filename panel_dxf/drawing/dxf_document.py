"""
DXF drawing documents for panel outlines.

Each document holds one layer and one closed rectangle (LWPOLYLINE) with
corners (0, 0) and (width, length) in the same units as the input values.
Uses the ezdxf library for DXF creation and serialization.

Usage:
    from panel_dxf.drawing.dxf_document import build_drawing, to_text

    document = build_drawing(record)
    text = to_text(document)
"""

import io
import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, Tuple

import ezdxf
from ezdxf import units

from panel_dxf.project_config import DrawingConfig
from panel_dxf.records import DimensionRecord

logger = logging.getLogger(__name__)

UNITS = {
    'unitless': units.InsertUnits.Unitless,
    'mm': units.MM,
    'cm': units.CM,
    'm': units.M,
    'in': units.IN,
}

Point = Tuple[float, float]


@contextmanager
def _fixed_metadata() -> Iterator[None]:
    """Write constant timestamps and GUIDs so equal drawings give equal text."""
    previous = ezdxf.options.write_fixed_meta_data_for_testing
    ezdxf.options.write_fixed_meta_data_for_testing = True
    try:
        yield
    finally:
        ezdxf.options.write_fixed_meta_data_for_testing = previous


class DrawingDocument:
    """In-memory DXF drawing with a layer table and an active layer."""

    def __init__(self, dxf_version: str = 'R2010', unit: str = 'mm'):
        """Create an empty drawing.

        Args:
            dxf_version: DXF version (R2000, R2004, R2007, R2010, R2013, R2018);
                R12 has no LWPOLYLINE entity
            unit: Drawing unit recorded in the header ($INSUNITS)
        """
        if unit not in UNITS:
            raise ValueError(f"Unknown unit {unit!r}, expected one of {sorted(UNITS)}")
        self.doc = ezdxf.new(dxf_version, units=UNITS[unit])
        self.msp = self.doc.modelspace()
        self.active_layer = '0'

    def add_layer(self, name: str, color: int = 7, linetype: str = 'CONTINUOUS') -> None:
        """Add a layer to the layer table."""
        self.doc.layers.add(name, color=color, linetype=linetype)

    def set_active_layer(self, name: str) -> None:
        """Make an existing layer the target of subsequent entities."""
        if name not in self.layer_names:
            raise KeyError(f"Layer not defined: {name}")
        self.active_layer = name

    @property
    def layer_names(self) -> List[str]:
        return [layer.dxf.name for layer in self.doc.layers]

    def add_rectangle(self, corner: Point, width: float, height: float) -> None:
        """Add a closed axis-aligned rectangle on the active layer.

        Args:
            corner: Bottom-left corner (x, y)
            width: Size along X
            height: Size along Y
        """
        x, y = corner
        points = [
            (x, y),
            (x + width, y),
            (x + width, y + height),
            (x, y + height),
        ]
        self.msp.add_lwpolyline(points, close=True, dxfattribs={'layer': self.active_layer})

    def to_text(self) -> str:
        """Serialize the drawing to DXF text."""
        stream = io.StringIO()
        with _fixed_metadata():
            self.doc.write(stream)
        return stream.getvalue()


def build_drawing(record: DimensionRecord, config: Optional[DrawingConfig] = None) -> DrawingDocument:
    """Create the drawing for one panel.

    Args:
        record: Validated dimensions
        config: Layer and DXF settings (defaults if None)

    Returns:
        DrawingDocument with one rectangle (0, 0)-(width, length)
    """
    config = config or DrawingConfig()
    document = DrawingDocument(dxf_version=config.dxf_version, unit=config.units)
    document.add_layer(config.layer_name, color=config.layer_color, linetype=config.linetype)
    document.set_active_layer(config.layer_name)
    document.add_rectangle((0, 0), record.width, record.length)
    logger.debug("Built drawing %sx%s on layer %s", record.width, record.length, config.layer_name)
    return document


def to_text(document: DrawingDocument) -> str:
    """Serialize a drawing document to DXF text."""
    return document.to_text()
