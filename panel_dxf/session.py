"""
Conversion session: the state a front end keeps between user actions.

Holds the loaded spreadsheet rows, the source file name, the state of the
current save and the last status message. The conversion functions in
panel_dxf.batch stay stateless; the session passes its rows in as plain
arguments.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from panel_dxf.batch import ConversionResult, RunOutcome, RunState, save_all, save_one
from panel_dxf.io.picker import DestinationPicker
from panel_dxf.io.sink import FileSystemSink, StorageSink
from panel_dxf.io.spreadsheet_loader import SPREADSHEET_EXTENSIONS, SpreadsheetLoadError, load_rows
from panel_dxf.project_config import ProjectConfig
from panel_dxf.records import ManualEntry

logger = logging.getLogger(__name__)


class ConversionSession:
    """Loaded data and status for one user session."""

    def __init__(self, config: Optional[ProjectConfig] = None, sink: Optional[StorageSink] = None):
        self.config = config or ProjectConfig()
        self.sink = sink or FileSystemSink(
            encoding=self.config.output.encoding,
            create_missing_dirs=self.config.output.create_missing_dirs,
        )
        self.rows: List[Dict[str, Any]] = []
        self.file_name = ""
        self.status = ""
        self.state = RunState.IDLE
        self.progress: Tuple[int, int] = (0, 0)

    @property
    def has_data(self) -> bool:
        return bool(self.rows)

    def load_file(self, path: Union[str, Path]) -> bool:
        """Load rows from a spreadsheet, replacing any loaded data."""
        path = Path(path)
        try:
            data = load_rows(path, self.config.columns)
        except SpreadsheetLoadError as e:
            logger.error("Spreadsheet not loaded: %s", e)
            self.status = f"Error processing file: {e}"
            return False

        self.rows = data.rows
        self.file_name = data.file_name
        self.status = f"Loaded {len(self.rows)} rows from {self.file_name}."
        return True

    def pick_and_load(self, picker: DestinationPicker) -> bool:
        """Ask the picker for a spreadsheet and load it; False on cancel or error."""
        path = picker.choose_open_path(SPREADSHEET_EXTENSIONS)
        if path is None:
            return False
        return self.load_file(path)

    def clear(self) -> None:
        """Forget the loaded spreadsheet."""
        self.rows = []
        self.file_name = ""
        self.state = RunState.IDLE
        self.progress = (0, 0)
        self.status = "Spreadsheet removed and table cleared."

    def _finish(self, outcome: RunOutcome) -> RunOutcome:
        self.state = outcome.state
        self.status = outcome.message
        return outcome

    def save_manual(self, entry: ManualEntry, picker: DestinationPicker) -> RunOutcome:
        """Save the manually entered dimensions to a path chosen by the picker."""
        return self._finish(save_one(entry, picker, self.sink, self.config))

    def save_row(self, index: int, picker: DestinationPicker) -> RunOutcome:
        """Save one loaded row to a path chosen by the picker.

        Raises:
            IndexError: If no loaded row has this index
        """
        if not 0 <= index < len(self.rows):
            raise IndexError(f"Row {index} out of range (0..{len(self.rows) - 1})")
        return self._finish(save_one(self.rows[index], picker, self.sink, self.config))

    def _on_progress(self, current: int, total: int, result: ConversionResult) -> None:
        self.state = RunState.RUNNING
        self.progress = (current, total)

    def save_all(self, picker: DestinationPicker) -> RunOutcome:
        """Save every loaded row into a folder chosen by the picker."""
        if not self.rows:
            return self._finish(RunOutcome(state=RunState.IDLE, message="No data loaded."))
        self.progress = (0, len(self.rows))
        outcome = save_all(self.rows, picker, self.sink, self.config, self._on_progress)
        return self._finish(outcome)
