# src/pipeline/file_processor.py — v1
"""Per-file refinement pipeline.

States, each short-circuiting on its terminal condition:

    1. permission lookup   no key          -> SKIPPED_NO_KEY
    2. refinement check    already done    -> ALREADY_REFINED (already_refined += 1)
    3. key recovery        processed += 1; no key -> FAILED (failed += 1)
    4. submission          payload -> SUCCESS (success += 1), else FAILED

Anything unexpected is caught here and counted as failed, so one file can
never take down the other files of its sub-batch.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from batchrefiner.logging.context import set_file_context
from batchrefiner.tracking.models import BatchStatistics, FileOutcome

if TYPE_CHECKING:
    from batchrefiner.api.refinement import RefinementClient
    from batchrefiner.chain.reader import ChainReader
    from batchrefiner.crypto.key_recovery import KeyRecovery
    from batchrefiner.tracking.stats_aggregator import StatsAggregator

logger = logging.getLogger(__name__)


class FileProcessor:
    """Runs one file through lookup, decryption and submission."""

    def __init__(
        self,
        chain: ChainReader,
        key_recovery: KeyRecovery,
        refinement: RefinementClient,
        results: StatsAggregator,
    ) -> None:
        self._chain = chain
        self._keys = key_recovery
        self._refinement = refinement
        self._results = results

    async def process(self, file_id: int, stats: BatchStatistics) -> FileOutcome:
        """Process *file_id*, updating *stats* in place. Never raises."""
        set_file_context(file_id)
        counted = False
        settled = False
        try:
            logger.debug("Checking file %d...", file_id)

            encrypted_key = await self._chain.get_file_permissions(file_id)
            if not encrypted_key:
                logger.info("File %d has no EEK or doesn't exist - skipping", file_id)
                return FileOutcome.SKIPPED_NO_KEY

            if await self._chain.check_file_refinement(file_id):
                logger.info("Skipping file %d as it has already been refined", file_id)
                stats.already_refined += 1
                return FileOutcome.ALREADY_REFINED

            logger.info("Found file %d with EEK - needs refinement", file_id)
            stats.processed += 1
            counted = True

            encryption_key = await self._keys.decrypt_eek(encrypted_key, file_id)
            if not encryption_key:
                logger.warning("Failed to decrypt EEK for file %d - skipping", file_id)
                stats.failed += 1
                settled = True
                await self._results.record("failure", file_id, "Failed to decrypt EEK")
                return FileOutcome.FAILED

            logger.debug("Decrypted EEK for file %d", file_id)
            result = await self._refinement.refine_file(file_id, encryption_key)
            if result is not None:
                stats.success += 1
                settled = True
                return FileOutcome.SUCCESS

            stats.failed += 1
            settled = True
            await self._results.record("failure", file_id, "Refinement API call failed")
            return FileOutcome.FAILED
        except Exception as e:
            logger.error("Error processing file %d: %s", file_id, e)
            if not counted:
                stats.processed += 1
            if not settled:
                stats.failed += 1
            try:
                await self._results.record("error", file_id, str(e))
            except OSError as log_error:
                logger.error("Could not record error for file %d: %s", file_id, log_error)
            return FileOutcome.ERROR
