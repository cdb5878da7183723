# src/crypto/key_recovery.py — v1
"""Recover a file's data encryption key from its registry envelope."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from batchrefiner.crypto.envelope import decrypt_envelope

if TYPE_CHECKING:
    from batchrefiner.tracking.stats_aggregator import StatsAggregator

logger = logging.getLogger(__name__)


def _strip_0x(value: str) -> str:
    return value[2:] if value[:2].lower() == "0x" else value


class KeyRecovery:
    """Decrypts encrypted encryption keys (EEKs) with the operator key."""

    def __init__(self, private_key: bytes, results: StatsAggregator | None = None) -> None:
        self._private_key = private_key
        self._results = results

    async def decrypt_eek(self, encrypted_key: str, file_id: int | None = None) -> str | None:
        """Decrypt a hex-encoded envelope into the plaintext key.

        Returns None on any failure (bad hex, short envelope, key or MAC
        mismatch, non-UTF-8 plaintext) and records a ``decrypt-error``
        entry; never raises.
        """
        try:
            envelope = bytes.fromhex(_strip_0x(encrypted_key))
            return decrypt_envelope(self._private_key, envelope).decode("utf-8")
        except Exception as e:
            logger.error("decryptEEK error for file %s: %s", file_id, e)
            if file_id is not None and self._results is not None:
                await self._results.record("decrypt-error", file_id, str(e))
            return None
