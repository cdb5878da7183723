# src/chain/reader.py — v1
"""Read-only queries against the DataRegistry contract.

Calls are encoded by hand from fixed function signatures and sent as raw
``eth_call`` JSON-RPC requests, so no name resolution or contract
introspection is involved. A single ``httpx.AsyncClient`` is shared by every
concurrent caller; requests carry no session state.

Uncertain reads are lenient: an empty result, an RPC failure and an ABI
decode failure all collapse to "no key" / "not refined" / "no such index".
Failures are recorded as ``contract-error`` entries, never raised.
"""

from __future__ import annotations

import itertools
import logging
from typing import TYPE_CHECKING, Any

import httpx
from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

if TYPE_CHECKING:
    from batchrefiner.tracking.stats_aggregator import StatsAggregator

logger = logging.getLogger(__name__)

FILE_PERMISSIONS_SIGNATURE = "filePermissions(uint256,address)"
FILE_REFINEMENTS_SIGNATURE = "fileRefinements(uint256,uint256)"


class ChainReadError(Exception):
    """Raised by the raw eth_call layer for RPC errors or malformed replies."""


def encode_call(signature: str, arg_types: list[str], args: list[Any]) -> bytes:
    """Selector of *signature* followed by ABI-encoded *args*."""
    return function_signature_to_4byte_selector(signature) + encode(arg_types, args)


class ChainReader:
    """Stateless reader for file permissions, refinements and index lookups."""

    def __init__(
        self,
        rpc_url: str,
        registry_address: str,
        operator_address: str,
        refiner_id: int,
        results: StatsAggregator | None = None,
        index_resolver_signature: str = "entryAt(uint256)",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._rpc_url = rpc_url
        self._registry = to_checksum_address(registry_address)
        self._operator = to_checksum_address(operator_address)
        self._refiner_id = refiner_id
        self._results = results
        self._index_signature = index_resolver_signature
        self._client = client or httpx.AsyncClient()
        self._owns_client = client is None
        self._ids = itertools.count(1)

    @property
    def registry_address(self) -> str:
        return self._registry

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # --- Raw JSON-RPC ---

    async def _rpc(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        r = await self._client.post(self._rpc_url, json=payload)
        r.raise_for_status()
        body = r.json()
        if not isinstance(body, dict):
            raise ChainReadError(f"Malformed RPC response: {body!r}")
        if body.get("error") is not None:
            e = body["error"]
            if not isinstance(e, dict):
                raise ChainReadError(f"RPC error: {e!r}")
            raise ChainReadError(f"RPC error: {e.get('code')} {e.get('message')}")
        if "result" not in body:
            raise ChainReadError("RPC response has no result")
        return body["result"]

    async def eth_call(self, data: bytes) -> bytes:
        """Run a read-only call against the registry and return raw bytes."""
        result = await self._rpc(
            "eth_call",
            [{"to": self._registry, "data": "0x" + data.hex()}, "latest"],
        )
        if not isinstance(result, str) or not result.startswith("0x"):
            raise ChainReadError(f"Unexpected eth_call result: {result!r}")
        return bytes.fromhex(result[2:])

    async def chain_id(self) -> int:
        """Chain id reported by the RPC endpoint."""
        result = await self._rpc("eth_chainId", [])
        if not isinstance(result, str):
            raise ChainReadError(f"Unexpected eth_chainId result: {result!r}")
        return int(result, 16)

    async def verify_network(self, expected_chain_id: int) -> bool:
        """Warn (without failing) when the endpoint serves another chain."""
        try:
            actual = await self.chain_id()
        except (httpx.HTTPError, ChainReadError, ValueError) as e:
            logger.warning("Could not read chain id from %s: %s", self._rpc_url, e)
            return False
        if actual != expected_chain_id:
            logger.warning(
                "RPC endpoint reports chain id %d, expected %d", actual, expected_chain_id,
            )
            return False
        logger.info("Connected to DataRegistry contract at %s", self._registry)
        return True

    # --- Registry queries ---

    async def get_file_permissions(self, file_id: int) -> str | None:
        """Encrypted key granted to the operator for *file_id*, or None."""
        logger.debug(
            "Checking file permissions for ID: %d with address: %s", file_id, self._operator,
        )
        value = await self._call_string(
            file_id,
            FILE_PERMISSIONS_SIGNATURE,
            ["uint256", "address"],
            [file_id, self._operator],
        )
        if value:
            logger.debug("Found EEK for file %d", file_id)
            return value
        logger.info("No EEK found for file %d", file_id)
        return None

    async def check_file_refinement(self, file_id: int, refiner_id: int | None = None) -> bool:
        """True if *refiner_id* (default: configured refiner) already refined the file."""
        refiner_id = refiner_id or self._refiner_id
        logger.debug("Checking if file %d has been refined by refiner %d", file_id, refiner_id)
        value = await self._call_string(
            file_id,
            FILE_REFINEMENTS_SIGNATURE,
            ["uint256", "uint256"],
            [file_id, refiner_id],
        )
        if value:
            logger.info("File %d has ALREADY been refined by refiner %d", file_id, refiner_id)
            await self._record("info", file_id, {"status": "already_refined", "refinerId": refiner_id})
            return True
        logger.debug("File %d has NOT been refined by refiner %d yet", file_id, refiner_id)
        await self._record("info", file_id, {"status": "not_refined", "refinerId": refiner_id})
        return False

    async def get_file_at_index(self, index: int) -> int | None:
        """Resolve a registry-wide sequential index to a file id.

        None means the index is out of range (empty reply, zero id or a
        failed read).
        """
        data = encode_call(self._index_signature, ["uint256"], [index])
        try:
            raw = await self.eth_call(data)
        except (httpx.HTTPError, ChainReadError, ValueError) as e:
            logger.error("Error resolving index %d from contract: %s", index, e)
            await self._record("contract-error", index, {"message": str(e)})
            return None
        if not raw:
            return None
        try:
            (file_id,) = decode(["uint256"], raw)
        except DecodingError as e:
            logger.error("Error decoding index %d result: %s", index, e)
            await self._record("contract-error", index, {"message": str(e)})
            return None
        return file_id or None

    async def _call_string(
        self, file_id: int, signature: str, arg_types: list[str], args: list[Any],
    ) -> str | None:
        data = encode_call(signature, arg_types, args)
        try:
            raw = await self.eth_call(data)
        except (httpx.HTTPError, ChainReadError, ValueError) as e:
            logger.error("Error calling %s for file %d: %s", signature, file_id, e)
            await self._record("contract-error", file_id, {"message": str(e)})
            return None

        logger.debug("Got raw result: %s...", raw.hex()[:50])
        if not raw:
            return None
        try:
            (value,) = decode(["string"], raw)
        except (DecodingError, UnicodeDecodeError) as e:
            logger.error("Error decoding result: %s", e)
            await self._record("contract-error", file_id, {"message": str(e)})
            return None
        return value or None

    async def _record(self, kind: str, file_id: int, data: Any) -> None:
        if self._results is not None:
            await self._results.record(kind, file_id, data)  # type: ignore[arg-type]
