# src/batch/models.py — v1
"""Batch window model."""

from __future__ import annotations

from collections.abc import Iterator

from pydantic import BaseModel, Field, model_validator


class BatchWindow(BaseModel):
    """Inclusive, descending window of positions split into sub-batches."""

    start_id: int = Field(ge=0)
    end_id: int = Field(ge=0)
    batch_size: int = Field(gt=0)

    @model_validator(mode="after")
    def validate_bounds(self) -> BatchWindow:
        if self.start_id < self.end_id:
            raise ValueError(
                f"start_id ({self.start_id}) must be >= end_id ({self.end_id})"
            )
        return self

    @property
    def size(self) -> int:
        return self.start_id - self.end_id + 1

    def sub_batches(self) -> Iterator[tuple[int, int]]:
        """Yield ``(first, last)`` pairs, first >= last, walking downwards."""
        position = self.start_id
        while position >= self.end_id:
            batch_end = max(self.end_id, position - self.batch_size + 1)
            yield position, batch_end
            position = batch_end - 1
