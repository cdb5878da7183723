# src/batch/scheduler.py — v1
"""Batch scheduler: walks a window in sub-batches, one sub-batch at a time.

All files of a sub-batch run concurrently; the next sub-batch starts only
after every file of the current one has reached a terminal state. After each
sub-batch its counters are merged into the run totals and a PROGRESS record
is written; a COMPLETE record closes the run.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from batchrefiner.batch.models import BatchWindow
from batchrefiner.batch.sources import IdSource, RangeSource
from batchrefiner.logging.context import clear_context, set_batch_context
from batchrefiner.tracking.models import BatchStatistics, FileOutcome

if TYPE_CHECKING:
    from batchrefiner.pipeline.file_processor import FileProcessor
    from batchrefiner.tracking.stats_aggregator import StatsAggregator

logger = logging.getLogger(__name__)


class BatchScheduler:
    """Drive a FileProcessor over a BatchWindow."""

    def __init__(
        self,
        processor: FileProcessor,
        aggregator: StatsAggregator,
        source: IdSource | None = None,
    ) -> None:
        self._processor = processor
        self._aggregator = aggregator
        self._source = source or RangeSource()

    async def run(self, window: BatchWindow) -> BatchStatistics:
        """Process the whole window and return cumulative statistics."""
        logger.info(
            "Starting batch refinement for files from ID %d to %d with batch size %d (%s mode)",
            window.start_id, window.end_id, window.batch_size, self._source.name,
        )
        t0 = time.perf_counter()
        stats = self._aggregator.begin_run(window.start_id, window.end_id, window.batch_size)

        for first, last in window.sub_batches():
            batch_stats = await self.run_sub_batch(first, last)
            self._aggregator.merge_batch(batch_stats)
            await self._aggregator.log_stats(batch_stats, first, last, "PROGRESS")

        await self._aggregator.log_stats(stats, window.start_id, window.end_id, "COMPLETE")
        clear_context()

        logger.info("Batch refinement process completed in %.1fs", time.perf_counter() - t0)
        logger.info("Summary:")
        logger.info("Total files: %d", stats.total)
        logger.info("Files examined: %d", stats.examined)
        logger.info("Already refined files (skipped): %d", stats.already_refined)
        logger.info("Files processed: %d", stats.processed)
        logger.info("Successfully refined: %d", stats.success)
        logger.info("Failed refinements: %d", stats.failed)
        return stats

    async def run_sub_batch(self, first: int, last: int) -> BatchStatistics:
        """Dispatch positions ``first`` down to ``last`` concurrently."""
        logger.info("Processing batch from %d to %d", first, last)
        set_batch_context(first, last)
        batch_stats = BatchStatistics(total=first - last + 1)

        positions = list(range(first, last - 1, -1))
        file_ids = await self._source.resolve(positions)

        tasks = []
        for position, file_id in zip(positions, file_ids):
            if file_id is None:
                logger.warning("Index %d could not be resolved to a file id", position)
                batch_stats.processed += 1
                batch_stats.failed += 1
                await self._aggregator.record("failure", position, "Index out of range")
                continue
            tasks.append(self._processor.process(file_id, batch_stats))

        outcomes: list[FileOutcome] = await asyncio.gather(*tasks)
        logger.debug(
            "Batch %d-%d outcomes: %s", first, last, [o.value for o in outcomes],
        )
        return batch_stats
