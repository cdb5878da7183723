# src/tracking/log_stream.py — v1
"""Append-only CSV log stream with size-based rotation."""

from __future__ import annotations

import logging
from pathlib import Path

from batchrefiner.logging.handlers import rotate_if_oversized

logger = logging.getLogger(__name__)


class AppendOnlyLog:
    """A single comma-delimited log file under the log directory.

    Every append first rotates the file if it has grown past ``max_bytes``,
    then writes one whole line with a single ``write`` call.
    """

    def __init__(self, path: Path, max_bytes: int) -> None:
        self._path = Path(path)
        self._max_bytes = max_bytes

    @property
    def path(self) -> Path:
        return self._path

    def append(self, line: str) -> None:
        """Append one record; *line* must already end with a newline."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        rotate_if_oversized(self._path, self._max_bytes)
        with self._path.open("a", encoding="utf-8") as f:
            f.write(line)

    def read_lines(self) -> list[str]:
        """Current file's lines (rotated backups excluded)."""
        if not self._path.exists():
            return []
        return self._path.read_text(encoding="utf-8").splitlines()
