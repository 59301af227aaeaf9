"""
Destination pickers.

A picker stands in for the save/open/folder dialogs of an interactive
front end. Every method returns None when the user cancels.
"""

from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Union

PathLike = Union[str, Path]


class DestinationPicker(Protocol):
    def choose_save_path(self, suggested_name: str) -> Optional[Path]:
        ...

    def choose_folder(self) -> Optional[Path]:
        ...

    def choose_open_path(self, allowed_extensions: Sequence[str]) -> Optional[Path]:
        ...


class PresetPicker:
    """Answers picker requests from preset values (command-line arguments).

    Args:
        save_path: File to save a single drawing to; when it is an existing
            directory the suggested name is appended
        folder: Folder for batch output
        open_path: Spreadsheet to open
    """

    def __init__(
        self,
        save_path: Optional[PathLike] = None,
        folder: Optional[PathLike] = None,
        open_path: Optional[PathLike] = None,
    ):
        self.save_path = Path(save_path) if save_path else None
        self.folder = Path(folder) if folder else None
        self.open_path = Path(open_path) if open_path else None
        self.suggested_names: List[str] = []

    def choose_save_path(self, suggested_name: str) -> Optional[Path]:
        self.suggested_names.append(suggested_name)
        if self.save_path is None:
            return None
        if self.save_path.is_dir():
            return self.save_path / suggested_name
        return self.save_path

    def choose_folder(self) -> Optional[Path]:
        return self.folder

    def choose_open_path(self, allowed_extensions: Sequence[str]) -> Optional[Path]:
        return self.open_path
