# src/api/refinement.py — v1
"""Client for the refinement service's ``/refine`` endpoint."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from batchrefiner.tracking.stats_aggregator import StatsAggregator

logger = logging.getLogger(__name__)

_REQUEST_HEADERS = {
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "en-US",
    "Connection": "keep-alive",
    "Content-Type": "application/json",
}

_MAX_ERROR_CHARS = 200


class RefinementClient:
    """Submits decrypted file keys to the refiner. One attempt per file."""

    def __init__(
        self,
        base_url: str,
        refiner_id: int,
        env_vars: dict[str, str] | None = None,
        results: StatsAggregator | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = f"{base_url.rstrip('/')}/refine"
        self._refiner_id = refiner_id
        self._env_vars = dict(env_vars or {})
        self._results = results
        self._client = client or httpx.AsyncClient()
        self._owns_client = client is None

    @property
    def url(self) -> str:
        return self._url

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def build_request_body(self, file_id: int, encryption_key: str) -> dict[str, Any]:
        return {
            "file_id": file_id,
            "encryption_key": encryption_key,
            "refiner_id": self._refiner_id,
            "env_vars": self._env_vars,
        }

    async def refine_file(self, file_id: int, encryption_key: str) -> dict[str, Any] | None:
        """POST the key for *file_id*; return the service payload or None.

        None covers transport errors, non-2xx responses and non-JSON bodies;
        each is recorded as an ``api-error`` entry.
        """
        logger.info("Refining file %d with URL: %s", file_id, self._url)
        body = self.build_request_body(file_id, encryption_key)
        try:
            response = await self._client.post(self._url, json=body, headers=_REQUEST_HEADERS)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            detail = _truncate(e.response.text) or str(e)
            logger.error("Error refining file %d: %s %s", file_id, e, detail)
            await self._record("api-error", file_id, detail)
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error refining file %d: %s", file_id, e)
            await self._record("api-error", file_id, str(e))
            return None

        if not isinstance(payload, dict):
            payload = {"result": payload}
        logger.info("Successfully refined file %d", file_id)
        await self._record("success", file_id, payload)
        return payload

    async def _record(self, kind: str, file_id: int, data: Any) -> None:
        if self._results is not None:
            await self._results.record(kind, file_id, data)  # type: ignore[arg-type]


def _truncate(text: str) -> str:
    return text[:_MAX_ERROR_CHARS]
