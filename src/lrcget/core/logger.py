"""
Logging setup for the lrcget backend.

Every module logs through ``logging.getLogger(__name__)``. ``setup_logging``
is called once by the entry point and attaches:
    - a console handler (compact format)
    - an optional file handler (timestamped format), e.g. <data_dir>/lrcget.log
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
CONSOLE_LOG_FORMAT = "%(levelname)s: %(message)s"

LOG_FILENAME = "lrcget.log"

_ROOT_LOGGER_NAME = "lrcget"


def setup_logging(level: str = "info", log_dir: Optional[str] = None) -> logging.Logger:
    root = logging.getLogger(_ROOT_LOGGER_NAME)
    root.setLevel(logging.DEBUG)

    # Re-running setup (tests, repeated CLI invocations) must not stack handlers.
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(_parse_level(level))
    console.setFormatter(logging.Formatter(CONSOLE_LOG_FORMAT))
    root.addHandler(console)

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path / LOG_FILENAME, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, datefmt=FILE_DATE_FORMAT))
        root.addHandler(file_handler)

    root.propagate = False
    return root


def _parse_level(level: str) -> int:
    value = logging.getLevelName((level or "info").upper())
    if isinstance(value, int):
        return value
    return logging.INFO
