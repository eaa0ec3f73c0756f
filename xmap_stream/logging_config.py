"""
Logging setup for the xmap-stream command line.

The decoder only ever logs through module loggers; handlers are installed
here, once per process:
- console: warnings and errors (skipped frames, truncated streams)
- rotating file: every decode decision at DEBUG, one file per run
- progress logger: run announcements that bypass the console level
"""

import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

PROGRESS_LOGGER = "xmap_stream.progress"

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Per-request connection chatter from requests' transport
QUIET_LOGGERS = ("urllib3", "charset_normalizer")

_log_file_path: Optional[str] = None


def _run_log_file(log_dir: Optional[str], job_name: str) -> Path:
    base = Path(log_dir) if log_dir else Path.cwd()
    log_path = base / "logs"
    log_path.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return log_path / f"{job_name}_{stamp}.log"


def _console_handler(level: int, fmt: str) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def setup_logging(
    log_dir: Optional[str] = None,
    job_name: str = "xmap_stream",
    console_level: int = logging.WARNING,
    file_level: int = logging.DEBUG,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3
) -> str:
    """
    Install the console and rotating file handlers on the root logger.

    Calling it again returns the first run's log file and changes nothing.

    Args:
        log_dir: Parent of the ``logs/`` directory (default: working directory)
        job_name: Log file name prefix
        console_level: Threshold for console output
        file_level: Threshold for the log file
        max_bytes: Rotation size of the log file
        backup_count: Rotated files kept

    Returns:
        Path to the log file.
    """
    global _log_file_path

    if _log_file_path is not None:
        return _log_file_path

    log_file = _run_log_file(log_dir, job_name)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.handlers.clear()
    root.addHandler(_console_handler(console_level, "%(levelname)s: %(message)s"))

    file_handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count)
    file_handler.setLevel(file_level)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
    root.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _log_file_path = str(log_file)
    return _log_file_path


def get_progress_logger() -> logging.Logger:
    """Console logger for run announcements (upload started, dump decoded).

    Messages always reach the console, whatever the root console level, and
    do not propagate so they are not printed twice.
    """
    logger = logging.getLogger(PROGRESS_LOGGER)
    if not logger.handlers:
        logger.addHandler(_console_handler(logging.INFO, "%(message)s"))
        logger.setLevel(logging.INFO)
        logger.propagate = False
    return logger


def get_log_file_path() -> Optional[str]:
    return _log_file_path


def reset_logging() -> None:
    """Close and remove all installed handlers. Used between tests."""
    global _log_file_path
    _log_file_path = None

    for logger in (logging.getLogger(), logging.getLogger(PROGRESS_LOGGER)):
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()
