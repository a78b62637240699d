"""
Logging setup: console output plus an optional debug-level log file.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def parse_level(level: Union[str, int, None]) -> int:
    """Turn 'debug', 'WARN', 'warning', ... into a logging level (INFO if unknown)."""
    if isinstance(level, int):
        return level
    return _LEVELS.get((level or "").strip().upper(), logging.INFO)


def setup_logging(level: Union[str, int] = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """Configure the root logger.

    The console handler writes to stderr at ``level``. When ``log_file`` is set a
    second handler records everything at DEBUG; if the file cannot be opened the
    console handler is kept on its own.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console_level = parse_level(level)
    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)
    root.setLevel(console_level)

    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as e:
            root.warning(f"Could not open log file {log_file}: {e}. Logging to console only")
        else:
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)
            root.setLevel(logging.DEBUG)

    # Connection pool chatter is not useful at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)

    return root
