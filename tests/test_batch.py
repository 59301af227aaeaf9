"""
Unit tests for panel_dxf.batch module.

Tests:
- Result dataclasses and summary
- Batch run over a folder (skips, write failures, collisions)
- Destination failure before the first row
- Single-record save to an explicit path
- Picker-driven saves and cancellation
"""

import json
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from panel_dxf.batch import (
    BatchResult,
    ConversionResult,
    RunOutcome,
    RunState,
    SkippedRow,
    run_batch,
    save_all,
    save_one,
    save_single,
)
from panel_dxf.io.picker import PresetPicker
from panel_dxf.io.sink import DestinationUnavailableError, FileSystemSink, MemorySink
from panel_dxf.project_config import ProjectConfig
from panel_dxf.records import ManualEntry, RejectionReason
from tests.conftest import assert_single_rectangle


class FlakySink(MemorySink):
    """Memory sink that fails for chosen file names."""

    def __init__(self, failing_names):
        super().__init__()
        self.failing_names = set(failing_names)

    def write(self, path, content):
        if Path(path).name in self.failing_names:
            raise PermissionError(f"Permission denied: {path}")
        super().write(path, content)


class TestConversionResult:
    """Tests for ConversionResult dataclass."""

    def test_success_status(self):
        """Test successful conversion status."""
        result = ConversionResult(index=0, success=True)
        assert result.status == "OK"

    def test_skipped_status(self):
        """Test skipped conversion status."""
        result = ConversionResult(index=0, reason=RejectionReason.INVALID_CORE)
        assert result.status == "SKIPPED"


class TestBatchResult:
    """Tests for BatchResult dataclass."""

    def test_empty_result(self):
        """Test empty batch result."""
        result = BatchResult()
        assert result.total == 0
        assert result.succeeded_count == 0
        assert result.skipped_rows == []
        assert result.success_rate == 0.0

    def test_counting(self):
        """Test counting of saved and skipped rows."""
        result = BatchResult(results=[
            ConversionResult(0, success=True, output_path=Path("a.dxf")),
            ConversionResult(1, raw_width="abc", raw_length=50,
                             reason=RejectionReason.INVALID_CORE, error="bad"),
            ConversionResult(2, success=True, output_path=Path("b.dxf")),
            ConversionResult(3, success=True, output_path=Path("c.dxf")),
        ])
        assert result.total == 4
        assert result.succeeded_count == 3
        assert result.success_rate == 75.0
        assert result.skipped_rows == [
            SkippedRow(1, RejectionReason.INVALID_CORE, "abc", 50, "bad"),
        ]
        assert result.written_paths == [Path("a.dxf"), Path("b.dxf"), Path("c.dxf")]

    def test_summary_lists_skipped_rows(self):
        """Test that the summary names every skipped row with its values."""
        result = BatchResult(
            results=[
                ConversionResult(0, success=True),
                ConversionResult(1, raw_width="abc", raw_length=50,
                                 reason=RejectionReason.INVALID_CORE, error="width='abc' is not a number"),
            ],
            destination=Path("/out"),
        )
        summary = result.summary()

        assert "Saved:           1" in summary
        assert "Skipped:         1" in summary
        assert "Success rate:    50.0%" in summary
        assert "row 1" in summary
        assert "'abc'" in summary
        assert "InvalidCore" in summary

    def test_to_dict_is_json_serializable(self):
        """Test that to_dict output survives json.dumps."""
        result = BatchResult(
            results=[
                ConversionResult(0, success=True, output_path=Path("/out/a.dxf")),
                ConversionResult(1, raw_width=None, raw_length=5,
                                 reason=RejectionReason.WRITE_FAILED, error="disk full"),
            ],
            destination=Path("/out"),
        )
        d = json.loads(json.dumps(result.to_dict()))

        assert d['succeeded_count'] == 1
        assert d['success_rate'] == 50.0
        assert d['skipped_rows'][0]['reason'] == "WriteFailed"
        assert d['skipped_rows'][0]['width'] is None
        assert d['written'] == [str(Path("/out/a.dxf"))]


class TestRunBatch:
    """Tests for run_batch."""

    def test_scenario(self, scenario_rows, out_dir):
        """Test one bad row among two good ones."""
        result = run_batch(scenario_rows, FileSystemSink(), out_dir)

        assert result.succeeded_count == 2
        assert [(s.index, s.reason) for s in result.skipped_rows] == [
            (1, RejectionReason.INVALID_CORE),
        ]
        assert sorted(p.name for p in out_dir.iterdir()) == ["100x50.dxf", "200x80_3pcs.dxf"]

    def test_written_files_hold_rectangles(self, scenario_rows, out_dir):
        """Test that each written file holds its rectangle."""
        run_batch(scenario_rows, FileSystemSink(), out_dir)
        assert_single_rectangle((out_dir / "100x50.dxf").read_text(encoding="utf-8"), 100, 50)
        assert_single_rectangle((out_dir / "200x80_3pcs.dxf").read_text(encoding="utf-8"), 200, 80)

    def test_skipped_row_keeps_original_values(self, scenario_rows, out_dir):
        """Test that skipped rows report the values as read."""
        skipped = run_batch(scenario_rows, FileSystemSink(), out_dir).skipped_rows[0]
        assert skipped.width == "abc"
        assert skipped.length == 50

    def test_repeatable(self, scenario_rows, tmp_path):
        """Test that two runs into empty folders give identical files."""
        first_dir = tmp_path / "first"
        second_dir = tmp_path / "second"
        first_dir.mkdir()
        second_dir.mkdir()

        first = run_batch(scenario_rows, FileSystemSink(), first_dir)
        second = run_batch(scenario_rows, FileSystemSink(), second_dir)

        assert first.succeeded_count == second.succeeded_count
        assert [s.index for s in first.skipped_rows] == [s.index for s in second.skipped_rows]
        for path in first_dir.iterdir():
            assert path.read_text(encoding="utf-8") == (second_dir / path.name).read_text(encoding="utf-8")

    def test_rows_written_in_input_order(self):
        """Test that writes follow the input order."""
        sink = MagicMock()
        rows = [{"width": w, "length": 10} for w in (3, 1, 2)]

        run_batch(rows, sink, "/out")

        sink.check_destination.assert_called_once_with(Path("/out"))
        written = [Path(c.args[0]).name for c in sink.write.call_args_list]
        assert written == ["3x10.dxf", "1x10.dxf", "2x10.dxf"]

    def test_write_failure_skips_row_and_continues(self):
        """Test that a failed write skips only that row."""
        sink = FlakySink({"200x80_3pcs.dxf"})
        rows = [
            {"width": 200, "length": 80, "quantity": 3},
            {"width": 100, "length": 50},
        ]
        result = run_batch(rows, sink, "/out")

        assert result.succeeded_count == 1
        skipped = result.skipped_rows
        assert [(s.index, s.reason) for s in skipped] == [(0, RejectionReason.WRITE_FAILED)]
        assert "Permission denied" in skipped[0].detail
        assert list(sink.files) == [Path("/out/100x50.dxf")]

    def test_out_of_range_number_skips_row_and_continues(self):
        """Test that a width beyond the float range is skipped, not raised."""
        sink = MemorySink()
        rows = [
            {"width": 10 ** 400, "length": 50},
            {"width": 100, "length": 50},
        ]
        result = run_batch(rows, sink, "/out")

        assert result.succeeded_count == 1
        assert [(s.index, s.reason) for s in result.skipped_rows] == [
            (0, RejectionReason.INVALID_CORE),
        ]
        assert list(sink.files) == [Path("/out/100x50.dxf")]

    def test_decimal_cells_accepted(self):
        """Test rows holding Decimal values."""
        sink = MemorySink()
        result = run_batch([{"width": Decimal("250.5"), "length": Decimal("120")}], sink, "/out")
        assert result.succeeded_count == 1
        assert list(sink.files) == [Path("/out/250.5x120.dxf")]

    def test_unavailable_destination_fails_before_any_row(self, scenario_rows, tmp_path):
        """Test that an unusable folder raises before any write."""
        sink = MagicMock(wraps=FileSystemSink())
        with pytest.raises(DestinationUnavailableError):
            run_batch(scenario_rows, sink, tmp_path / "missing")
        sink.write.assert_not_called()
        assert not (tmp_path / "missing").exists()

    def test_empty_input(self, out_dir):
        """Test a run with no rows."""
        result = run_batch([], FileSystemSink(), out_dir)
        assert result.total == 0
        assert result.succeeded_count == 0
        assert list(out_dir.iterdir()) == []

    def test_duplicate_names_numbered(self, out_dir):
        """Test that repeated names get a counter by default."""
        rows = [{"width": 500, "length": 300}] * 3
        result = run_batch(rows, FileSystemSink(), out_dir)

        assert result.succeeded_count == 3
        assert sorted(p.name for p in out_dir.iterdir()) == [
            "500x300-2.dxf", "500x300-3.dxf", "500x300.dxf",
        ]

    def test_duplicate_names_without_extension(self):
        """Test counters with an empty configured extension and fractional sizes."""
        config = ProjectConfig.from_dict({"naming": {"extension": ""}})
        sink = MemorySink()
        run_batch([{"width": 100.5, "length": 50}] * 2, sink, "/out", config)
        assert sorted(p.name for p in sink.files) == ["100.5x50", "100.5x50-2"]

    def test_duplicate_names_overwrite_policy(self, out_dir):
        """Test that the overwrite policy keeps one file per name."""
        config = ProjectConfig.from_dict({"output": {"collision_policy": "overwrite"}})
        rows = [{"width": 500, "length": 300}] * 2
        result = run_batch(rows, FileSystemSink(), out_dir, config)

        assert result.succeeded_count == 2
        assert [p.name for p in out_dir.iterdir()] == ["500x300.dxf"]

    def test_existing_file_overwritten(self, out_dir):
        """Test that files from before the run are replaced."""
        (out_dir / "100x50.dxf").write_text("old")
        result = run_batch([{"width": 100, "length": 50}], FileSystemSink(), out_dir)
        assert result.written_paths == [out_dir / "100x50.dxf"]
        assert (out_dir / "100x50.dxf").read_text(encoding="utf-8") != "old"

    def test_progress_callback(self, scenario_rows):
        """Test that progress is reported after every row."""
        calls = []
        run_batch(scenario_rows, MemorySink(), "/out",
                  progress_callback=lambda i, n, r: calls.append((i, n, r.success)))
        assert calls == [(1, 3, True), (2, 3, False), (3, 3, True)]

    def test_optional_warning_recorded(self):
        """Test that a dropped optional field is kept as a warning."""
        result = run_batch([{"width": 1, "length": 2, "quantity": "lots"}], MemorySink(), "/out")
        assert result.succeeded_count == 1
        assert result.results[0].file_name == "1x2.dxf"
        assert result.results[0].warnings

    def test_timing(self, scenario_rows):
        """Test that run duration and destination are recorded."""
        result = run_batch(scenario_rows, MemorySink(), "/out")
        assert result.total_duration_seconds > 0
        assert result.destination == Path("/out")


class TestSaveSingle:
    """Tests for save_single."""

    def test_writes_to_path_verbatim(self, out_dir):
        """Test that the given path is used unchanged."""
        path = out_dir / "my panel.dxf"
        result = save_single({"width": 500, "length": 300, "thickness": 18}, FileSystemSink(), path)

        assert result.success
        assert result.output_path == path
        assert [p.name for p in out_dir.iterdir()] == ["my panel.dxf"]
        assert_single_rectangle(path.read_text(encoding="utf-8"), 500, 300)

    def test_manual_entry(self):
        """Test saving a manual entry."""
        sink = MemorySink()
        result = save_single(ManualEntry("10", "20"), sink, "/x/panel.dxf")
        assert result.success
        assert list(sink.files) == [Path("/x/panel.dxf")]

    def test_invalid_row(self):
        """Test that an invalid row writes nothing."""
        sink = MemorySink()
        result = save_single({"width": "", "length": 20}, sink, "/x/panel.dxf")
        assert result.reason is RejectionReason.INVALID_CORE
        assert sink.files == {}

    def test_write_failure(self):
        """Test that a failed write is reported as WriteFailed."""
        result = save_single({"width": 1, "length": 2}, FlakySink({"p.dxf"}), "/x/p.dxf")
        assert not result.success
        assert result.reason is RejectionReason.WRITE_FAILED


class TestSaveAll:
    """Tests for picker-driven batch saves."""

    def test_cancelled_folder_choice(self, scenario_rows):
        """Test that cancelling the folder choice runs nothing."""
        sink = MagicMock()
        outcome = save_all(scenario_rows, PresetPicker(), sink)

        assert outcome.state is RunState.IDLE
        assert outcome.cancelled
        assert outcome.batch is None
        assert "cancelled" in outcome.message
        sink.check_destination.assert_not_called()
        sink.write.assert_not_called()

    def test_completed(self, scenario_rows, out_dir):
        """Test a completed run with one skipped row."""
        outcome = save_all(scenario_rows, PresetPicker(folder=out_dir), FileSystemSink())

        assert outcome.state is RunState.COMPLETED
        assert outcome.batch.succeeded_count == 2
        assert outcome.destination == out_dir
        assert "Saved 2 DXF files" in outcome.message
        assert "Skipped rows: 1" in outcome.message
        assert not outcome.succeeded

    def test_all_rows_ok(self, out_dir):
        """Test that a run without skips succeeds."""
        outcome = save_all([{"width": 1, "length": 2}], PresetPicker(folder=out_dir), FileSystemSink())
        assert outcome.succeeded

    def test_failed_at_start(self, scenario_rows, tmp_path):
        """Test that a missing folder fails the run before it starts."""
        outcome = save_all(scenario_rows, PresetPicker(folder=tmp_path / "missing"), FileSystemSink())

        assert outcome.state is RunState.FAILED_AT_START
        assert outcome.reason is RejectionReason.DESTINATION_UNAVAILABLE
        assert outcome.batch is None
        assert not (tmp_path / "missing").exists()


class TestSaveOne:
    """Tests for picker-driven single saves."""

    def test_generated_name_suggested(self, out_dir):
        """Test that the generated name is offered to the picker."""
        picker = PresetPicker(save_path=out_dir)
        outcome = save_one({"width": 500, "length": 300, "thickness": 18, "quantity": 4},
                           picker, FileSystemSink())

        assert picker.suggested_names == ["500x300_18mm_4pcs.dxf"]
        assert outcome.succeeded
        assert (out_dir / "500x300_18mm_4pcs.dxf").exists()
        assert "DXF file saved" in outcome.message

    def test_chosen_path_overrides_generated_name(self, out_dir):
        """Test that the chosen path wins over the suggestion."""
        outcome = save_one(ManualEntry("500", "300"), PresetPicker(save_path=out_dir / "x.dxf"),
                           FileSystemSink())
        assert outcome.single.output_path == out_dir / "x.dxf"
        assert [p.name for p in out_dir.iterdir()] == ["x.dxf"]

    def test_cancelled(self):
        """Test that cancelling the save dialog writes nothing."""
        sink = MagicMock()
        outcome = save_one({"width": 1, "length": 2}, PresetPicker(), sink)
        assert outcome.cancelled
        assert outcome.state is RunState.IDLE
        sink.write.assert_not_called()

    def test_invalid_input_does_not_ask_picker(self):
        """Test that invalid input fails before the picker is asked."""
        picker = MagicMock()
        outcome = save_one(ManualEntry("abc", "2"), picker, MemorySink())

        assert outcome.reason is RejectionReason.INVALID_CORE
        assert not outcome.succeeded
        picker.choose_save_path.assert_not_called()

    def test_write_failure_reported(self):
        """Test that a failed write is reported in the outcome message."""
        outcome = save_one({"width": 1, "length": 2}, PresetPicker(save_path="/x/p.dxf"),
                           FlakySink({"p.dxf"}))
        assert outcome.state is RunState.COMPLETED
        assert not outcome.succeeded
        assert outcome.reason is RejectionReason.WRITE_FAILED
        assert "Error saving file" in outcome.message


class TestRunOutcome:
    """Tests for RunOutcome."""

    def test_not_completed_never_succeeded(self):
        """Test that idle and failed outcomes never count as success."""
        assert not RunOutcome(state=RunState.IDLE).succeeded
        assert not RunOutcome(state=RunState.FAILED_AT_START).succeeded
