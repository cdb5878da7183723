# src/logging/logger.py — v1
"""Logger setup: console output plus a CSV console transcript.

The transcript (``console.log``) mirrors every console line as
``timestamp,LEVEL,message`` and rotates by size like the other streams.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from batchrefiner.logging.context import get_context

TRANSCRIPT_FILENAME = "console.log"


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class TextFormatter(logging.Formatter):
    """Human-readable console formatter."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_context()
        parts = [
            _iso_now(),
            f"[{record.levelname:8s}]",
            record.name,
        ]
        if ctx.batch is not None:
            parts.append(f"[batch {ctx.batch}]")
        if ctx.file_id is not None:
            parts.append(f"[file {ctx.file_id}]")
        parts.append(f"- {record.getMessage()}")
        text = " ".join(parts)
        if record.exc_info and record.exc_info[1] is not None:
            text += "\n" + self.formatException(record.exc_info)
        return text


class TranscriptFormatter(logging.Formatter):
    """Single-line CSV formatter for the console transcript."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage().replace("\n", " ")
        return f"{_iso_now()},{record.levelname},{message}"


def setup_logging(
    verbose: bool = False,
    log_dir: Path | None = None,
    max_log_size: int = 10 * 1024 * 1024,
) -> None:
    """Configure the root batchrefiner logger.

    Args:
        verbose: DEBUG level when True, INFO otherwise.
        log_dir: Directory for the console transcript (None = stdout only).
        max_log_size: Rotation threshold for the transcript in bytes.
    """
    root_logger = logging.getLogger("batchrefiner")
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    # Remove existing handlers to avoid duplicates on re-init
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(TextFormatter())
    root_logger.addHandler(console_handler)

    if log_dir is not None:
        from batchrefiner.logging.handlers import create_rotating_handler

        transcript = create_rotating_handler(
            Path(log_dir) / TRANSCRIPT_FILENAME, max_bytes=max_log_size,
        )
        transcript.setFormatter(TranscriptFormatter())
        root_logger.addHandler(transcript)

    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
