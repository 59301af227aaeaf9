"""
Batch conversion of dimension rows to DXF files.

Provides:
- run_batch: convert every row into a folder, skipping bad rows
- save_single: convert one row to an explicit file path
- save_all / save_one: the same, with the destination asked from a picker
- BatchResult summary and JSON-friendly export

Rows are processed sequentially in input order; each write finishes before
the next row is parsed. A row that fails to parse or to write is recorded
and skipped. Only an unusable destination folder stops a run, and it does
so before the first row.

Usage:
    from panel_dxf.batch import run_batch
    from panel_dxf.io.sink import FileSystemSink

    result = run_batch(rows, FileSystemSink(), "./drawings")
    print(result.summary())
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple, Union

from panel_dxf.drawing.dxf_document import build_drawing, to_text
from panel_dxf.io.picker import DestinationPicker
from panel_dxf.io.sink import DestinationUnavailableError, StorageSink
from panel_dxf.logging_config import LogContext
from panel_dxf.naming import generate_name, numbered_name
from panel_dxf.project_config import COLLISION_OVERWRITE, ProjectConfig
from panel_dxf.records import (
    FIELD_LENGTH,
    FIELD_WIDTH,
    DimensionRecord,
    ManualEntry,
    RawRow,
    RejectionReason,
    parse_dimensions,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class ConversionResult:
    """Result of converting a single row."""
    index: int
    raw_width: Any = None
    raw_length: Any = None
    file_name: Optional[str] = None
    output_path: Optional[Path] = None
    success: bool = False
    reason: Optional[RejectionReason] = None
    error: Optional[str] = None
    warnings: Tuple[str, ...] = ()
    duration_seconds: float = 0.0

    @property
    def status(self) -> str:
        return "OK" if self.success else "SKIPPED"


@dataclass(frozen=True)
class SkippedRow:
    """A row that produced no file, with the values needed to fix it."""
    index: int
    reason: RejectionReason
    width: Any = None
    length: Any = None
    detail: str = ""


@dataclass
class BatchResult:
    """Result of a batch run."""
    results: List[ConversionResult] = field(default_factory=list)
    destination: Optional[Path] = None
    total_duration_seconds: float = 0.0

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def skipped_rows(self) -> List[SkippedRow]:
        """Skipped rows in input order."""
        return [
            SkippedRow(
                index=r.index,
                reason=r.reason,
                width=r.raw_width,
                length=r.raw_length,
                detail=r.error or "",
            )
            for r in self.results
            if not r.success
        ]

    @property
    def written_paths(self) -> List[Path]:
        return [r.output_path for r in self.results if r.success and r.output_path]

    @property
    def success_rate(self) -> float:
        """Success rate as percentage."""
        if self.total == 0:
            return 0.0
        return 100.0 * self.succeeded_count / self.total

    def summary(self) -> str:
        """Generate human-readable summary."""
        skipped = self.skipped_rows
        lines = [
            "Batch Conversion Summary",
            "=" * 40,
            f"Destination:     {self.destination or '-'}",
            f"Total rows:      {self.total}",
            f"Saved:           {self.succeeded_count}",
            f"Skipped:         {len(skipped)}",
            f"Success rate:    {self.success_rate:.1f}%",
            f"Total time:      {self.total_duration_seconds:.1f}s",
            "",
        ]

        if skipped:
            lines.append("Skipped rows:")
            for row in skipped:
                lines.append(
                    f"  - row {row.index}: width={row.width!r}, length={row.length!r} "
                    f"[{row.reason.value}] {row.detail}"
                )

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'destination': str(self.destination) if self.destination else None,
            'total': self.total,
            'succeeded_count': self.succeeded_count,
            'success_rate': self.success_rate,
            'skipped_rows': [
                {
                    'index': row.index,
                    'reason': row.reason.value,
                    'width': None if row.width is None else str(row.width),
                    'length': None if row.length is None else str(row.length),
                    'detail': row.detail,
                }
                for row in self.skipped_rows
            ],
            'written': [str(p) for p in self.written_paths],
            'total_duration_seconds': self.total_duration_seconds,
        }


class RunState(Enum):
    """Lifecycle of a picker-driven save."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED_AT_START = "failed_at_start"


@dataclass
class RunOutcome:
    """What a picker-driven save ended with.

    A cancelled save stays IDLE: nothing ran and nothing was written.
    """
    state: RunState
    message: str = ""
    cancelled: bool = False
    reason: Optional[RejectionReason] = None
    destination: Optional[Path] = None
    batch: Optional[BatchResult] = None
    single: Optional[ConversionResult] = None

    @property
    def succeeded(self) -> bool:
        if self.state is not RunState.COMPLETED:
            return False
        if self.single is not None:
            return self.single.success
        return self.batch is not None and not self.batch.skipped_rows


def _claim_name(name: str, claimed: Set[str], policy: str, extension: str) -> str:
    """Reserve a file name for this run, numbering repeats unless overwriting."""
    if policy == COLLISION_OVERWRITE or name not in claimed:
        claimed.add(name)
        return name
    n = 2
    while numbered_name(name, n, extension) in claimed:
        n += 1
    candidate = numbered_name(name, n, extension)
    claimed.add(candidate)
    return candidate


def _write_record(
    record: DimensionRecord,
    result: ConversionResult,
    sink: StorageSink,
    path: Path,
    config: ProjectConfig,
) -> None:
    text = to_text(build_drawing(record, config.drawing))
    try:
        sink.write(path, text)
    except OSError as e:
        result.reason = RejectionReason.WRITE_FAILED
        result.error = str(e)
        logger.error("Failed to write %s: %s", path, e)
        return
    result.success = True
    result.file_name = path.name
    result.output_path = path


def _convert_row(
    index: int,
    raw: RawRow,
    sink: StorageSink,
    folder: Path,
    config: ProjectConfig,
    claimed: Set[str],
) -> ConversionResult:
    start_time = time.perf_counter()
    result = ConversionResult(
        index=index,
        raw_width=raw.get(FIELD_WIDTH),
        raw_length=raw.get(FIELD_LENGTH),
    )

    parsed = parse_dimensions(raw)
    result.warnings = parsed.warnings
    if parsed.ok:
        name = generate_name(parsed.record, config.naming)
        name = _claim_name(
            name, claimed, config.output.collision_policy, config.naming.extension,
        )
        _write_record(parsed.record, result, sink, folder / name, config)
    else:
        result.reason = parsed.reason
        result.error = parsed.detail
        logger.warning("Row %d skipped: %s", index, parsed.detail)

    result.duration_seconds = time.perf_counter() - start_time
    return result


def run_batch(
    raw_rows: Iterable[RawRow],
    sink: StorageSink,
    folder: PathLike,
    config: Optional[ProjectConfig] = None,
    progress_callback: Optional[Callable[[int, int, ConversionResult], None]] = None,
) -> BatchResult:
    """Convert rows into DXF files inside `folder`.

    Args:
        raw_rows: Rows keyed by field identity, in output order
        sink: Storage sink (FileSystemSink, MemorySink, ...)
        folder: Destination folder
        config: Project configuration
        progress_callback: Called after each row: (current, total, result)

    Returns:
        BatchResult with one ConversionResult per row

    Raises:
        DestinationUnavailableError: If the folder cannot be used; raised
            before any row is processed
    """
    start_time = time.perf_counter()
    config = config or ProjectConfig()
    folder = Path(folder)

    sink.check_destination(folder)

    rows = list(raw_rows)
    claimed: Set[str] = set()
    results: List[ConversionResult] = []

    with LogContext(destination=str(folder)):
        logger.info("Starting batch conversion: %d rows -> %s", len(rows), folder)

        for i, raw in enumerate(rows):
            result = _convert_row(i, raw, sink, folder, config, claimed)
            results.append(result)

            if progress_callback:
                progress_callback(i + 1, len(rows), result)

            logger.debug(
                "[%d/%d] row %d: %s %s",
                i + 1, len(rows), i, result.status, result.file_name or result.error,
            )

        batch_result = BatchResult(
            results=results,
            destination=folder,
            total_duration_seconds=time.perf_counter() - start_time,
        )

        logger.info(
            "Batch conversion complete: %d/%d saved, %d skipped in %.2fs",
            batch_result.succeeded_count, batch_result.total,
            batch_result.total - batch_result.succeeded_count,
            batch_result.total_duration_seconds,
        )

    return batch_result


def save_single(
    raw: Union[RawRow, ManualEntry],
    sink: StorageSink,
    path: PathLike,
    config: Optional[ProjectConfig] = None,
) -> ConversionResult:
    """Convert one row and write it to `path` exactly as given."""
    start_time = time.perf_counter()
    config = config or ProjectConfig()
    if isinstance(raw, ManualEntry):
        raw = raw.as_raw_row()

    result = ConversionResult(
        index=0,
        raw_width=raw.get(FIELD_WIDTH),
        raw_length=raw.get(FIELD_LENGTH),
    )
    parsed = parse_dimensions(raw)
    result.warnings = parsed.warnings
    if parsed.ok:
        _write_record(parsed.record, result, sink, Path(path), config)
        if result.success:
            logger.info("DXF saved: %s", result.output_path)
    else:
        result.reason = parsed.reason
        result.error = parsed.detail

    result.duration_seconds = time.perf_counter() - start_time
    return result


def save_all(
    raw_rows: Iterable[RawRow],
    picker: DestinationPicker,
    sink: StorageSink,
    config: Optional[ProjectConfig] = None,
    progress_callback: Optional[Callable[[int, int, ConversionResult], None]] = None,
) -> RunOutcome:
    """Ask the picker for a folder, then run the batch into it."""
    folder = picker.choose_folder()
    if folder is None:
        logger.info("Batch save cancelled")
        return RunOutcome(state=RunState.IDLE, cancelled=True, message="Saving cancelled.")

    try:
        result = run_batch(raw_rows, sink, folder, config, progress_callback)
    except DestinationUnavailableError as e:
        logger.error("Batch not started: %s", e)
        return RunOutcome(
            state=RunState.FAILED_AT_START,
            reason=RejectionReason.DESTINATION_UNAVAILABLE,
            destination=Path(folder),
            message=f"Error saving files: {e}",
        )

    message = f"Saved {result.succeeded_count} DXF files to {folder}."
    skipped = result.skipped_rows
    if skipped:
        message += " Skipped rows: " + ", ".join(str(row.index) for row in skipped) + "."
    return RunOutcome(
        state=RunState.COMPLETED,
        destination=Path(folder),
        batch=result,
        message=message,
    )


def save_one(
    raw: Union[RawRow, ManualEntry],
    picker: DestinationPicker,
    sink: StorageSink,
    config: Optional[ProjectConfig] = None,
) -> RunOutcome:
    """Validate one row, ask the picker where to save it, then write it.

    The generated file name is only the picker's suggestion; the chosen path
    is used as-is.
    """
    config = config or ProjectConfig()
    parsed = parse_dimensions(raw)
    if not parsed.ok:
        return RunOutcome(
            state=RunState.FAILED_AT_START,
            reason=parsed.reason,
            message=f"Please enter valid width and length ({parsed.detail}).",
        )

    path = picker.choose_save_path(generate_name(parsed.record, config.naming))
    if path is None:
        return RunOutcome(state=RunState.IDLE, cancelled=True, message="Saving cancelled.")

    result = save_single(raw, sink, path, config)
    if result.success:
        message = f"DXF file saved: {result.output_path}"
    else:
        message = f"Error saving file: {result.error}"
    return RunOutcome(
        state=RunState.COMPLETED,
        reason=result.reason,
        destination=Path(path),
        single=result,
        message=message,
    )
