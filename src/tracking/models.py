# src/tracking/models.py — v1
"""Tracking domain models: BatchStatistics, LogEntry, FileOutcome."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

LogKind = Literal[
    "success", "failure", "error", "info",
    "api-error", "contract-error", "decrypt-error",
]

ERROR_KINDS: frozenset[str] = frozenset(
    {"error", "api-error", "contract-error", "decrypt-error"}
)

_MAX_PAYLOAD_CHARS = 200


class FileOutcome(str, Enum):
    """Terminal state of one file's pass through the pipeline."""

    SKIPPED_NO_KEY = "skipped_no_key"
    ALREADY_REFINED = "already_refined"
    SUCCESS = "success"
    FAILED = "failed"
    ERROR = "error"


class BatchStatistics(BaseModel):
    """Counters for a sub-batch or a whole run.

    Mutated in place by concurrently running file tasks; increments happen
    between awaits on a single event loop, so no lock is needed.
    """

    total: int = Field(default=0, ge=0)
    already_refined: int = Field(default=0, ge=0)
    processed: int = Field(default=0, ge=0)
    success: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)

    def merge(self, other: BatchStatistics) -> None:
        """Add another statistics block's counters (total excluded)."""
        self.already_refined += other.already_refined
        self.processed += other.processed
        self.success += other.success
        self.failed += other.failed

    @property
    def examined(self) -> int:
        """Files that reached the refinement check or beyond."""
        return self.already_refined + self.processed


class LogEntry(BaseModel):
    """One record of the per-file results stream."""

    kind: LogKind
    file_id: int
    data: Any = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def status(self) -> str:
        if self.kind in ERROR_KINDS:
            return "ERROR"
        if self.kind == "success":
            return "SUCCESS"
        if self.kind == "failure":
            return "FAILED"
        return "INFO"

    @property
    def message(self) -> str:
        if self.kind in ERROR_KINDS:
            if isinstance(self.data, str):
                return self.data
            if isinstance(self.data, dict) and self.data.get("message"):
                return str(self.data["message"])
            if isinstance(self.data, BaseException):
                return str(self.data)
            return _dump(self.data)
        if self.kind == "success":
            if isinstance(self.data, dict):
                return str(self.data.get("hash") or self.data.get("cid") or "success")
            return "success"
        if self.kind == "failure":
            return str(self.data or "Unknown error")
        if isinstance(self.data, str):
            return self.data
        return _dump(self.data)

    def to_line(self) -> str:
        """Render as ``timestamp,file_id,STATUS,message`` (newline-terminated)."""
        message = self.message.replace("\n", " ").replace("\r", " ")
        return f"{format_timestamp(self.timestamp)},{self.file_id},{self.status},{message}\n"


def format_timestamp(ts: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a Z suffix."""
    return ts.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _dump(data: Any) -> str:
    return json.dumps(data, default=str)[:_MAX_PAYLOAD_CHARS]
