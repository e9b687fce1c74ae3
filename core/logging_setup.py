"""
core/logging_setup.py

Central logging configuration.
Writes to console and, when a logs_dir is given, to a log file under it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

LOG_FILE_NAME = "faceverify.log"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def parse_level(level: Union[int, str]) -> int:
    """
    Accept logging levels as ints or names ("DEBUG", "info", ...).
    Unknown names fall back to INFO.
    """
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(
    logs_dir: Optional[Union[str, Path]] = None,
    level: Union[int, str] = logging.INFO,
) -> Optional[Path]:
    """
    Initialise root logging for faceverify.

    Parameters
    ----------
    logs_dir : str, Path or None
        Directory where faceverify.log will be written. Accepts both
        plain strings (from YAML) and Path objects. None -> console only.
    level : int or str
        Logging level for the root logger (default: INFO).

    Returns
    -------
    Path of the log file, or None when logging to console only.
    """
    root = logging.getLogger()
    if root.handlers:
        for h in list(root.handlers):
            root.removeHandler(h)

    root.setLevel(parse_level(level))

    fmt = logging.Formatter(LOG_FORMAT)

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    root.addHandler(ch)

    if logs_dir is None:
        return None

    logs_path = Path(logs_dir)
    logs_path.mkdir(parents=True, exist_ok=True)
    log_file = logs_path / LOG_FILE_NAME

    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setFormatter(fmt)
    root.addHandler(fh)

    return log_file
