"""
Structured logging configuration for the panel_dxf package.

Provides:
- JSON formatter for machine-readable batch logs
- Console formatter for human-readable output
- Timing helpers (context manager and decorator)
- LogContext for tagging every record of a batch run

Usage:
    from panel_dxf.logging_config import setup_logging, get_logger

    setup_logging(level=logging.INFO, json_file="panel_dxf.log.json")

    logger = get_logger(__name__)
    logger.info("Row written", extra={"row": 3, "file_name": "500x300.dxf"})
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, TypeVar, Union

F = TypeVar('F', bound=Callable[..., Any])

PACKAGE_LOGGER = "panel_dxf"

# Attributes every LogRecord carries; anything else came in through `extra=`.
_RESERVED_KEYS = frozenset({
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
    'taskName', 'message', 'asctime',
})


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Collect the non-standard attributes of a log record."""
    return {
        key: value for key, value in record.__dict__.items()
        if key not in _RESERVED_KEYS
    }


class JSONFormatter(logging.Formatter):
    """Formats each record as one JSON line.

    Output format:
        {"timestamp": "...", "level": "INFO", "logger": "...", "message": "...", ...}
    """

    def __init__(self, include_extra: bool = True):
        """Initialize JSON formatter.

        Args:
            include_extra: Include fields passed via `extra={}`
        """
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.levelno >= logging.WARNING or record.levelno <= logging.DEBUG:
            entry["location"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        if self.include_extra:
            for key, value in _extra_fields(record).items():
                try:
                    json.dumps(value)
                    entry[key] = value
                except (TypeError, ValueError):
                    entry[key] = str(value)

        return json.dumps(entry, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Human-readable console formatter.

    Format: [TIME] LEVEL logger: message [extra_key=value ...]
    """

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
        'RESET': '\033[0m',
    }

    def __init__(self, use_colors: bool = True, show_extra: bool = True):
        """Initialize console formatter.

        Args:
            use_colors: Use ANSI colors (disable for file output)
            show_extra: Show extra fields inline
        """
        super().__init__()
        self.use_colors = use_colors
        self.show_extra = show_extra

    def _format_level(self, level: str) -> str:
        if self.use_colors and level in self.COLORS:
            return f"{self.COLORS[level]}{level:8}{self.COLORS['RESET']}"
        return f"{level:8}"

    @staticmethod
    def _format_extras(extras: Dict[str, Any]) -> str:
        parts: List[str] = []
        for key, value in extras.items():
            if isinstance(value, float):
                parts.append(f"{key}={value:.3g}")
            elif isinstance(value, (list, tuple)) and len(value) > 3:
                parts.append(f"{key}=[...{len(value)} items]")
            else:
                parts.append(f"{key}={value}")
        return " [" + ", ".join(parts) + "]" if parts else ""

    def format(self, record: logging.LogRecord) -> str:
        time_str = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        logger_name = record.name
        if logger_name.startswith(PACKAGE_LOGGER + "."):
            logger_name = logger_name[len(PACKAGE_LOGGER) + 1:]

        extra_str = self._format_extras(_extra_fields(record)) if self.show_extra else ""

        result = (
            f"[{time_str}] {self._format_level(record.levelname)} "
            f"{logger_name}: {record.getMessage()}{extra_str}"
        )
        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)
        return result


def setup_logging(
    level: int = logging.INFO,
    json_file: Optional[Union[str, Path]] = None,
    console: bool = True,
    use_colors: bool = True,
    root_logger: bool = False,
) -> logging.Logger:
    """Configure logging for the panel_dxf package.

    Args:
        level: Minimum log level (default INFO)
        json_file: Optional path for a JSON-lines log file
        console: Enable console output on stderr
        use_colors: Use ANSI colors in console
        root_logger: Configure the root logger instead of `panel_dxf`

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("" if root_logger else PACKAGE_LOGGER)
    logger.setLevel(level)
    logger.handlers.clear()

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(ConsoleFormatter(use_colors=use_colors))
        logger.addHandler(console_handler)

    if json_file:
        json_handler = logging.FileHandler(Path(json_file), encoding='utf-8')
        json_handler.setLevel(level)
        json_handler.setFormatter(JSONFormatter())
        logger.addHandler(json_handler)

    if not root_logger:
        logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module (typically `__name__`)."""
    return logging.getLogger(name)


@contextmanager
def log_timing(
    logger: logging.Logger,
    operation: str,
    level: int = logging.DEBUG,
    **extra_fields: Any
) -> Iterator[Dict[str, Any]]:
    """Log start, completion and failure of an operation with its duration.

    Example:
        with log_timing(logger, "Loading spreadsheet", path=str(path)):
            data = load_rows(path)

    Yields:
        dict that can be updated with additional fields for the completion record
    """
    timing_info: Dict[str, Any] = {}
    start_time = time.perf_counter()

    logger.log(level, "Starting: %s", operation, extra={
        "event": "start",
        "operation": operation,
        **extra_fields,
    })

    try:
        yield timing_info
    except Exception as e:
        elapsed = time.perf_counter() - start_time
        logger.error("Failed: %s (%.3fs) - %s", operation, elapsed, e, extra={
            "event": "error",
            "operation": operation,
            "elapsed_seconds": elapsed,
            "error": str(e),
            **extra_fields,
        })
        raise

    elapsed = time.perf_counter() - start_time
    timing_info['elapsed_seconds'] = elapsed
    logger.log(level, "Completed: %s (%.3fs)", operation, elapsed, extra={
        "event": "complete",
        "operation": operation,
        **extra_fields,
        **timing_info,
    })


def timed(
    logger: Optional[logging.Logger] = None,
    level: int = logging.DEBUG,
    operation: Optional[str] = None,
) -> Callable[[F], F]:
    """Decorator that wraps a function call in `log_timing`.

    Example:
        @timed(level=logging.INFO)
        def load_rows(path):
            ...
    """
    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            func_logger = logger or logging.getLogger(func.__module__)
            with log_timing(func_logger, operation or func.__name__, level):
                return func(*args, **kwargs)

        return wrapper  # type: ignore
    return decorator


class _ContextFilter(logging.Filter):
    """Copies the fields of a LogContext onto every passing record."""

    def __init__(self, fields: Dict[str, Any]):
        super().__init__()
        self.fields = fields

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self.fields.items():
            setattr(record, key, value)
        return True


class LogContext:
    """Adds common fields to every record logged by panel_dxf loggers.

    The batch converter uses it to tag all records of one run with the
    destination folder.

    Example:
        with LogContext(destination="/out"):
            logger.info("Row written")  # includes destination
    """

    _current: Optional['LogContext'] = None

    def __init__(self, **fields: Any):
        self.fields = fields
        self._previous: Optional['LogContext'] = None
        self._filter: Optional[_ContextFilter] = None

    def __enter__(self) -> 'LogContext':
        self._previous = LogContext._current
        LogContext._current = self

        # Handler-level filters see records from child loggers too.
        self._filter = _ContextFilter(self.fields)
        for handler in logging.getLogger(PACKAGE_LOGGER).handlers:
            handler.addFilter(self._filter)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._filter:
            for handler in logging.getLogger(PACKAGE_LOGGER).handlers:
                handler.removeFilter(self._filter)
            self._filter = None
        LogContext._current = self._previous

    @classmethod
    def current(cls) -> Optional['LogContext']:
        """Get the innermost active context."""
        return cls._current


def configure_default_logging(
    verbose: bool = False,
    json_file: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """Configure logging for command-line use.

    Console output at DEBUG if `verbose` else INFO, colored only when stderr
    is a terminal, plus an optional JSON-lines file.
    """
    level = logging.DEBUG if verbose else logging.INFO
    return setup_logging(
        level=level,
        json_file=json_file,
        console=True,
        use_colors=sys.stderr.isatty(),
    )
