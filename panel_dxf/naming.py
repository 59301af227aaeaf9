"""Output file names derived from dimension records."""

from decimal import Decimal
from typing import Optional

from panel_dxf.project_config import NamingConfig
from panel_dxf.records import DimensionRecord


def format_number(value: float) -> str:
    """Render a number in its shortest plain decimal form.

    The digits are those of repr() (the shortest string that round-trips the
    float), written without exponent and without a trailing ".0":
    500.0 -> "500", 18.50 -> "18.5", 1e-05 -> "0.00001".
    """
    if float(value).is_integer():
        return str(int(value))
    return format(Decimal(repr(float(value))).normalize(), 'f')


def generate_name(record: DimensionRecord, naming: Optional[NamingConfig] = None) -> str:
    """Build the file name for a record, e.g. "500x300_18mm_4pcs.dxf"."""
    naming = naming or NamingConfig()
    name = f"{format_number(record.width)}x{format_number(record.length)}"
    if record.thickness is not None:
        name += f"_{format_number(record.thickness)}{naming.thickness_suffix}"
    if record.quantity is not None:
        name += f"_{record.quantity}{naming.quantity_suffix}"
    return name + naming.extension


def numbered_name(name: str, n: int, extension: str = ".dxf") -> str:
    """Insert a collision counter before the extension: 500x300.dxf -> 500x300-2.dxf.

    Only `extension` is treated as the extension; with an empty extension the
    counter goes at the end ("100.5x50" -> "100.5x50-2").
    """
    if extension and name.endswith(extension):
        return f"{name[:-len(extension)]}-{n}{extension}"
    return f"{name}-{n}"
