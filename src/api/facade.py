# src/api/facade.py — v1
"""Public API facade: single entry point for a refinement run.

Usage:
    from batchrefiner.api.facade import run_refinement
    stats = await run_refinement(start_id=1000, end_id=1, batch_size=10)
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx

from batchrefiner.api.refinement import RefinementClient
from batchrefiner.batch.models import BatchWindow
from batchrefiner.batch.scheduler import BatchScheduler
from batchrefiner.batch.sources import IndexSource, RangeSource
from batchrefiner.chain.reader import ChainReader
from batchrefiner.config.settings import Settings
from batchrefiner.crypto.key_recovery import KeyRecovery
from batchrefiner.pipeline.file_processor import FileProcessor
from batchrefiner.tracking.models import BatchStatistics, FileOutcome
from batchrefiner.tracking.stats_aggregator import StatsAggregator

logger = logging.getLogger(__name__)


@dataclass
class Components:
    """Wired collaborators for one run."""

    settings: Settings
    aggregator: StatsAggregator
    chain: ChainReader
    key_recovery: KeyRecovery
    refinement: RefinementClient
    processor: FileProcessor


@asynccontextmanager
async def build_components(
    settings: Settings,
    rpc_client: httpx.AsyncClient | None = None,
    api_client: httpx.AsyncClient | None = None,
) -> AsyncIterator[Components]:
    """Validate settings and wire the pipeline; closes owned clients on exit.

    Raises:
        ConfigurationError: If required settings are missing.
    """
    settings.validate_required()

    aggregator = StatsAggregator(settings.log_dir, settings.max_log_size)
    chain = ChainReader(
        rpc_url=settings.rpc_url,
        registry_address=settings.data_registry_address,
        operator_address=settings.dlp_address,
        refiner_id=settings.refiner_id,
        results=aggregator,
        index_resolver_signature=settings.index_resolver_signature,
        client=rpc_client,
    )
    refinement = RefinementClient(
        base_url=settings.refinement_service_api_base_url,
        refiner_id=settings.refiner_id,
        env_vars=settings.storage_credentials,
        results=aggregator,
        client=api_client,
    )
    key_recovery = KeyRecovery(settings.private_key_bytes, results=aggregator)
    processor = FileProcessor(chain, key_recovery, refinement, aggregator)
    try:
        yield Components(settings, aggregator, chain, key_recovery, refinement, processor)
    finally:
        await chain.aclose()
        await refinement.aclose()


async def run_refinement(
    start_id: int,
    end_id: int,
    batch_size: int,
    settings: Settings | None = None,
    by_index: bool = False,
    rpc_client: httpx.AsyncClient | None = None,
    api_client: httpx.AsyncClient | None = None,
) -> BatchStatistics:
    """Refine every granted file in ``[end_id, start_id]`` and return totals.

    Args:
        start_id: Highest position (file id, or index when ``by_index``).
        end_id: Lowest position, inclusive.
        batch_size: Files processed concurrently per sub-batch.
        settings: Loaded from .env if None.
        by_index: Treat positions as registry indexes instead of file ids.
        rpc_client: Shared JSON-RPC client (created and closed here if None).
        api_client: Refinement service client (created and closed here if None).

    Raises:
        ConfigurationError: If required settings are missing.
        ValueError: If the window bounds are invalid.
    """
    settings = settings or Settings()
    window = BatchWindow(start_id=start_id, end_id=end_id, batch_size=batch_size)

    async with build_components(settings, rpc_client, api_client) as c:
        await c.chain.verify_network(settings.chain_id)
        source = IndexSource(c.chain) if by_index else RangeSource()
        scheduler = BatchScheduler(c.processor, c.aggregator, source=source)
        return await scheduler.run(window)


async def process_file(
    file_id: int,
    settings: Settings | None = None,
    rpc_client: httpx.AsyncClient | None = None,
    api_client: httpx.AsyncClient | None = None,
) -> FileOutcome:
    """Run a single file through the pipeline with throwaway statistics."""
    settings = settings or Settings()
    async with build_components(settings, rpc_client, api_client) as c:
        return await c.processor.process(file_id, BatchStatistics(total=1))
