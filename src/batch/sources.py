# src/batch/sources.py — v1
"""Pluggable sources mapping window positions to file ids.

``RangeSource`` treats each position as a file id. ``IndexSource`` treats
positions as registry-wide sequential indexes and resolves them on chain.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from batchrefiner.chain.reader import ChainReader


class IdSource(ABC):
    """Resolves a sub-batch's positions into file ids."""

    name: str = "source"

    @abstractmethod
    async def resolve(self, positions: list[int]) -> list[int | None]:
        """Return one file id per position, None where unresolvable."""


class RangeSource(IdSource):
    """Positions are file ids."""

    name = "range"

    async def resolve(self, positions: list[int]) -> list[int | None]:
        return list(positions)


class IndexSource(IdSource):
    """Positions are registry indexes resolved through the chain reader."""

    name = "index"

    def __init__(self, chain: ChainReader) -> None:
        self._chain = chain

    async def resolve(self, positions: list[int]) -> list[int | None]:
        return list(
            await asyncio.gather(*(self._chain.get_file_at_index(p) for p in positions))
        )
