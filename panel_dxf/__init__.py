"""
panel_dxf — DXF panel outlines from dimensions or spreadsheets.

Command-line entry point: main.py.
"""

from panel_dxf.logging_config import (
    setup_logging,
    get_logger,
    configure_default_logging,
    log_timing,
    timed,
    LogContext,
)

__version__ = "1.0.0"

__all__ = [
    "setup_logging",
    "get_logger",
    "configure_default_logging",
    "log_timing",
    "timed",
    "LogContext",
]
