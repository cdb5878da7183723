# src/logging/handlers.py — v1
"""Size-based rotation with timestamp-suffixed backups.

Shared by the console transcript handler and the results/stats CSV streams.
A file is rotated when its size already exceeds the threshold at the time of
the next append: it is renamed to ``{name}.{timestamp}.bak`` and writing
continues in a fresh file.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path

logger = logging.getLogger(__name__)


def backup_path(path: Path, now: datetime | None = None) -> Path:
    """Return the rotated name for *path*: ``results.log.2026-01-01T10-00-00.123456Z.bak``."""
    ts = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H-%M-%S.%fZ")
    candidate = path.with_name(f"{path.name}.{ts}.bak")
    n = 1
    while candidate.exists():
        candidate = path.with_name(f"{path.name}.{ts}.{n}.bak")
        n += 1
    return candidate


def needs_rotation(path: Path, max_bytes: int) -> bool:
    """True when *path* exists and its size exceeds *max_bytes*."""
    try:
        return path.stat().st_size > max_bytes
    except FileNotFoundError:
        return False


def rotate_if_oversized(path: Path, max_bytes: int) -> Path | None:
    """Rename *path* to a timestamped backup if it exceeds *max_bytes*.

    Returns the backup path, or None when no rotation happened. OS errors are
    logged and swallowed so that a failed rotation never blocks the append.
    """
    try:
        if not needs_rotation(path, max_bytes):
            return None
        target = backup_path(path)
        path.rename(target)
    except OSError as e:
        logger.error("Error rotating log file %s: %s", path.name, e)
        return None
    logger.info("Rotated log file %s to %s", path.name, target)
    return target


class TimestampRotatingFileHandler(RotatingFileHandler):
    """RotatingFileHandler that keeps every backup under a timestamped name.

    Rolls over before emitting a record if the file already exceeds
    ``maxBytes``, matching the behaviour of the CSV streams.
    """

    def __init__(self, filename: str | Path, max_bytes: int, encoding: str = "utf-8") -> None:
        path = Path(filename).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(str(path), maxBytes=max_bytes, backupCount=0, encoding=encoding)

    def shouldRollover(self, record: logging.LogRecord) -> bool:  # noqa: N802
        if self.maxBytes <= 0:
            return False
        try:
            return os.path.getsize(self.baseFilename) > self.maxBytes
        except OSError:
            return False

    def doRollover(self) -> None:  # noqa: N802
        if self.stream:
            self.stream.close()
            self.stream = None  # type: ignore[assignment]
        path = Path(self.baseFilename)
        try:
            path.rename(backup_path(path))
        except OSError as e:
            # Logging from inside a handler would recurse; report on stderr.
            sys.stderr.write(f"Error rotating log file {path.name}: {e}\n")
        if not self.delay:
            self.stream = self._open()


def create_rotating_handler(log_file: str | Path, max_bytes: int) -> TimestampRotatingFileHandler:
    """Create a timestamp-rotating file handler, creating parent dirs.

    Args:
        log_file: Path to log file.
        max_bytes: Size threshold that triggers rotation.

    Returns:
        Configured TimestampRotatingFileHandler.
    """
    return TimestampRotatingFileHandler(log_file, max_bytes=max_bytes)
