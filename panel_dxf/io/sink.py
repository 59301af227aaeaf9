"""
Storage sinks: where generated DXF text ends up.

A sink exposes two operations:
- check_destination(folder): raise DestinationUnavailableError if a batch
  cannot write into `folder`
- write(path, content): persist one file, raising OSError on failure
"""

import logging
import os
from pathlib import Path
from typing import Dict, Protocol, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class DestinationUnavailableError(Exception):
    """The chosen output folder cannot be used for a batch run."""


class StorageSink(Protocol):
    def check_destination(self, folder: PathLike) -> None:
        ...

    def write(self, path: PathLike, content: str) -> None:
        ...


class FileSystemSink:
    """Writes text files to the local file system."""

    def __init__(self, encoding: str = 'utf-8', create_missing_dirs: bool = False):
        self.encoding = encoding
        self.create_missing_dirs = create_missing_dirs

    def check_destination(self, folder: PathLike) -> None:
        folder = Path(folder)
        if not folder.exists():
            if not self.create_missing_dirs:
                raise DestinationUnavailableError(f"Output folder not found: {folder}")
            try:
                folder.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise DestinationUnavailableError(
                    f"Cannot create output folder {folder}: {exc}"
                ) from exc
            logger.info("Created output folder %s", folder)
        if not folder.is_dir():
            raise DestinationUnavailableError(f"Not a directory: {folder}")
        if not os.access(folder, os.W_OK):
            raise DestinationUnavailableError(f"Output folder is not writable: {folder}")

    def write(self, path: PathLike, content: str) -> None:
        Path(path).write_text(content, encoding=self.encoding)


class MemorySink:
    """Keeps written content in a dict; used for dry runs."""

    def __init__(self) -> None:
        self.files: Dict[Path, str] = {}

    def check_destination(self, folder: PathLike) -> None:
        pass

    def write(self, path: PathLike, content: str) -> None:
        self.files[Path(path)] = content
