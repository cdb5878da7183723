# src/tracking/stats_aggregator.py — v1
"""Run-level statistics and persistence of per-file and per-batch records.

Owns the run's BatchStatistics plus two append-only streams in the log
directory:

    results.log  ``timestamp,file_id,STATUS,message``
    stats.log    ``timestamp,TYPE,Files a to b,Total: ..,Already Refined: ..,...``

The third stream, ``console.log``, is written by the logging setup.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal

from batchrefiner.tracking.log_stream import AppendOnlyLog
from batchrefiner.tracking.models import (
    BatchStatistics,
    LogEntry,
    LogKind,
    format_timestamp,
)

logger = logging.getLogger(__name__)

RESULTS_FILENAME = "results.log"
STATS_FILENAME = "stats.log"

StatsRecordType = Literal["START", "PROGRESS", "COMPLETE"]


class StatsAggregator:
    """Accumulates run statistics and persists outcome records."""

    def __init__(self, log_dir: Path, max_log_size: int) -> None:
        self._log_dir = Path(log_dir)
        self._results = AppendOnlyLog(self._log_dir / RESULTS_FILENAME, max_log_size)
        self._stats_log = AppendOnlyLog(self._log_dir / STATS_FILENAME, max_log_size)
        self.stats = BatchStatistics()

    @property
    def log_dir(self) -> Path:
        return self._log_dir

    @property
    def results_log(self) -> AppendOnlyLog:
        return self._results

    @property
    def stats_log(self) -> AppendOnlyLog:
        return self._stats_log

    def begin_run(self, start_id: int, end_id: int, batch_size: int) -> BatchStatistics:
        """Reset run-level counters and append a START record."""
        self.stats = BatchStatistics(total=start_id - end_id + 1)
        line = (
            f"{_now()},START,Files {start_id} to {end_id},"
            f"Batch size: {batch_size}\n"
        )
        try:
            self._stats_log.append(line)
        except OSError as e:
            logger.error("Error initializing stats log: %s", e)
        return self.stats

    def merge_batch(self, batch_stats: BatchStatistics) -> BatchStatistics:
        """Fold a finished sub-batch into the run-level counters."""
        self.stats.merge(batch_stats)
        return self.stats

    async def record(self, kind: LogKind, file_id: int, data: Any = None) -> None:
        """Append one per-file outcome record to results.log."""
        entry = LogEntry(kind=kind, file_id=file_id, data=data)
        self._results.append(entry.to_line())

    async def log_stats(
        self,
        stats: BatchStatistics,
        start_id: int,
        end_id: int,
        record_type: StatsRecordType = "PROGRESS",
    ) -> None:
        """Append a PROGRESS or COMPLETE record to stats.log."""
        total = stats.total or (start_id - end_id + 1)
        line = (
            f"{_now()},{record_type},Files {start_id} to {end_id},"
            f"Total: {total},"
            f"Already Refined: {stats.already_refined},"
            f"Processed: {stats.processed},"
            f"Success: {stats.success},"
            f"Failed: {stats.failed}\n"
        )
        self._stats_log.append(line)


def last_complete_record(log_dir: Path) -> str | None:
    """Return the most recent COMPLETE line of stats.log, if any."""
    lines = AppendOnlyLog(Path(log_dir) / STATS_FILENAME, max_bytes=0).read_lines()
    for line in reversed(lines):
        fields = line.split(",", 2)
        if len(fields) > 1 and fields[1] == "COMPLETE":
            return line
    return None


def _now() -> str:
    return format_timestamp(datetime.now(timezone.utc))
