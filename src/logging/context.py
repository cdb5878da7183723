# src/logging/context.py — v1
"""Contextual logging support: attach file_id and batch bounds to log records.

Context variables are copied into each asyncio task, so every file processed
concurrently inside a sub-batch sees its own file_id.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass

_file_id: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "file_id", default=None
)
_batch: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "batch", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    file_id: int | None = None
    batch: str | None = None


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(file_id=_file_id.get(), batch=_batch.get())


def set_file_context(file_id: int) -> None:
    """Set file-level context (called at the start of each file's task)."""
    _file_id.set(file_id)


def set_batch_context(start_id: int, end_id: int) -> None:
    """Set sub-batch context (inherited by the tasks it dispatches)."""
    _batch.set(f"{start_id}-{end_id}")


def clear_context() -> None:
    """Reset all context variables."""
    _file_id.set(None)
    _batch.set(None)
