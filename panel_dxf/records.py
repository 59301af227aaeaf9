"""
Dimension records and the row parser.

A raw row is a mapping keyed by the field identities below (spreadsheet
rows after header mapping, or a ManualEntry). Width and length are
required; thickness and quantity are optional and parsed leniently: a
malformed optional value is dropped with a warning instead of rejecting
the row.
"""

import logging
import math
import numbers
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import numpy as np

logger = logging.getLogger(__name__)

FIELD_WIDTH = "width"
FIELD_LENGTH = "length"
FIELD_THICKNESS = "thickness"
FIELD_QUANTITY = "quantity"
FIELDS = (FIELD_WIDTH, FIELD_LENGTH, FIELD_THICKNESS, FIELD_QUANTITY)

RawRow = Mapping[str, Any]


class RejectionReason(Enum):
    """Why a row (or a whole run) did not produce a drawing."""
    INVALID_CORE = "InvalidCore"
    WRITE_FAILED = "WriteFailed"
    DESTINATION_UNAVAILABLE = "DestinationUnavailable"
    PARSE_WARNING = "ParseWarning"


@dataclass(frozen=True)
class DimensionRecord:
    """Validated panel dimensions."""
    width: float
    length: float
    thickness: Optional[float] = None
    quantity: Optional[int] = None

    def __post_init__(self) -> None:
        if not (self.width > 0 and self.length > 0):
            raise ValueError(
                f"width and length must be positive, got {self.width}x{self.length}"
            )
        if self.thickness is not None and not self.thickness > 0:
            raise ValueError(f"thickness must be positive, got {self.thickness}")
        if self.quantity is not None and not self.quantity > 0:
            raise ValueError(f"quantity must be positive, got {self.quantity}")


@dataclass(frozen=True)
class ManualEntry:
    """The four text fields of the manual input form."""
    width: str = ""
    length: str = ""
    thickness: str = ""
    quantity: str = ""

    def as_raw_row(self) -> Dict[str, Any]:
        return {
            FIELD_WIDTH: self.width,
            FIELD_LENGTH: self.length,
            FIELD_THICKNESS: self.thickness,
            FIELD_QUANTITY: self.quantity,
        }


@dataclass(frozen=True)
class ParseResult:
    """Outcome of parsing one raw row.

    Exactly one of `record` / `reason` is set. `warnings` lists optional
    fields that were dropped because they were malformed.
    """
    record: Optional[DimensionRecord] = None
    reason: Optional[RejectionReason] = None
    detail: str = ""
    warnings: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.record is not None


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (float, np.floating)):
        return math.isnan(value)
    return False


def _to_float(value: Any) -> Optional[float]:
    """Convert a cell value to a finite float, or None if it is not a number.

    Accepts real numbers of any type (int, float, Decimal, Fraction, numpy
    scalars) and numeric text; values beyond the float range are not numbers.
    """
    if isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, str):
        value = value.strip()
        if value.count(',') == 1 and '.' not in value:
            value = value.replace(',', '.')
    elif not isinstance(value, (numbers.Real, Decimal)):
        return None
    try:
        number = float(value)
    except (OverflowError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _to_int(value: Any) -> Optional[int]:
    number = _to_float(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def _optional(raw: RawRow, name: str, convert, warnings: list) -> Optional[Union[int, float]]:
    value = raw.get(name)
    if _is_blank(value):
        return None
    number = convert(value)
    if number is None or number <= 0:
        warnings.append(f"{name}={value!r} ignored")
        return None
    return number


def parse_dimensions(raw: Union[RawRow, ManualEntry]) -> ParseResult:
    """Parse a raw row or manual entry into a DimensionRecord.

    Args:
        raw: Mapping keyed by field identity, or a ManualEntry

    Returns:
        ParseResult with either a record or RejectionReason.INVALID_CORE
    """
    if isinstance(raw, ManualEntry):
        raw = raw.as_raw_row()

    core: Dict[str, float] = {}
    for name in (FIELD_WIDTH, FIELD_LENGTH):
        value = raw.get(name)
        if _is_blank(value):
            return ParseResult(reason=RejectionReason.INVALID_CORE, detail=f"{name} is missing")
        number = _to_float(value)
        if number is None:
            return ParseResult(
                reason=RejectionReason.INVALID_CORE,
                detail=f"{name}={value!r} is not a number",
            )
        if number <= 0:
            return ParseResult(
                reason=RejectionReason.INVALID_CORE,
                detail=f"{name}={value!r} must be positive",
            )
        core[name] = number

    warnings: list = []
    thickness = _optional(raw, FIELD_THICKNESS, _to_float, warnings)
    quantity = _optional(raw, FIELD_QUANTITY, _to_int, warnings)
    if warnings:
        logger.debug("%s: %s", RejectionReason.PARSE_WARNING.value, "; ".join(warnings))

    record = DimensionRecord(
        width=core[FIELD_WIDTH],
        length=core[FIELD_LENGTH],
        thickness=thickness,
        quantity=quantity,
    )
    return ParseResult(record=record, warnings=tuple(warnings))
