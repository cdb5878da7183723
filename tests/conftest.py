# tests/conftest.py — v1
"""Shared test fixtures for all unit and integration tests.

Provides an operator key pair, validated settings pointing at fake
endpoints, and an in-memory DataRegistry served over ``httpx.MockTransport``.
No network access — all I/O is mocked or confined to tmp_path.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest
from cryptography.hazmat.primitives.asymmetric import ec
from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector

from batchrefiner.config.settings import Settings
from batchrefiner.crypto.envelope import encrypt_envelope, public_key_from_private
from batchrefiner.tracking.stats_aggregator import StatsAggregator

OPERATOR_ADDRESS = "0x" + "11" * 20
REGISTRY_ADDRESS = "0x" + "22" * 20
RPC_URL = "http://rpc.test"
REFINER_URL = "http://refiner.test"

PERMISSIONS_SELECTOR = function_signature_to_4byte_selector("filePermissions(uint256,address)")
REFINEMENTS_SELECTOR = function_signature_to_4byte_selector("fileRefinements(uint256,uint256)")
INDEX_SELECTOR = function_signature_to_4byte_selector("entryAt(uint256)")


# === Fake DataRegistry ===


def rpc_result(body: dict[str, Any], result: Any) -> httpx.Response:
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})


def rpc_error(body: dict[str, Any], message: str = "execution reverted") -> httpx.Response:
    return httpx.Response(
        200,
        json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32000, "message": message}},
    )


class FakeRegistry:
    """In-memory DataRegistry answering eth_call over JSON-RPC."""

    def __init__(self, chain_id: int = 14800) -> None:
        self.chain_id = chain_id
        self.permissions: dict[int, str] = {}
        self.refinements: dict[tuple[int, int], str] = {}
        self.entries: dict[int, int] = {}
        self.broken_ids: set[int] = set()
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if body["method"] == "eth_chainId":
            return rpc_result(body, hex(self.chain_id))

        data = bytes.fromhex(body["params"][0]["data"][2:])
        selector, args = data[:4], data[4:]

        if selector == PERMISSIONS_SELECTOR:
            file_id, _operator = decode(["uint256", "address"], args)
            self.calls.append(("filePermissions", (file_id,)))
            if file_id in self.broken_ids:
                return rpc_error(body)
            value = self.permissions.get(file_id, "")
            return rpc_result(body, "0x" + encode(["string"], [value]).hex())

        if selector == REFINEMENTS_SELECTOR:
            file_id, refiner_id = decode(["uint256", "uint256"], args)
            self.calls.append(("fileRefinements", (file_id, refiner_id)))
            value = self.refinements.get((file_id, refiner_id), "")
            return rpc_result(body, "0x" + encode(["string"], [value]).hex())

        if selector == INDEX_SELECTOR:
            (index,) = decode(["uint256"], args)
            self.calls.append(("entryAt", (index,)))
            return rpc_result(body, "0x" + encode(["uint256"], [self.entries.get(index, 0)]).hex())

        return rpc_error(body, "unknown selector")

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


class FakeRefiner:
    """Refinement service stub; ``responses`` maps file_id to (status, json)."""

    def __init__(self) -> None:
        self.responses: dict[int, tuple[int, Any]] = {}
        self.requests: list[dict[str, Any]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        status, payload = self.responses.get(
            body["file_id"], (200, {"cid": f"bafy{body['file_id']}"}),
        )
        return httpx.Response(status, json=payload)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


# === FIXTURES: Keys ===


@pytest.fixture(scope="session")
def operator_private_key() -> bytes:
    key = ec.generate_private_key(ec.SECP256K1())
    return key.private_numbers().private_value.to_bytes(32, "big")


@pytest.fixture(scope="session")
def operator_public_key(operator_private_key: bytes) -> bytes:
    return public_key_from_private(operator_private_key)


@pytest.fixture
def seal(operator_public_key: bytes) -> Callable[[str], str]:
    """Encrypt a plaintext key for the operator, hex-encoded like the registry."""

    def _seal(plaintext: str) -> str:
        return encrypt_envelope(operator_public_key, plaintext.encode()).hex()

    return _seal


# === FIXTURES: Settings & tracking ===


@pytest.fixture
def tmp_log_dir(tmp_path: Path) -> Path:
    """Temporary log directory."""
    return tmp_path / "logs"


@pytest.fixture
def settings(operator_private_key: bytes, tmp_log_dir: Path) -> Settings:
    """Complete, valid settings pointing at fake endpoints."""
    return Settings(
        _env_file=None,
        dlp_private_key="0x" + operator_private_key.hex(),
        dlp_address=OPERATOR_ADDRESS,
        data_registry_address=REGISTRY_ADDRESS,
        rpc_url=RPC_URL,
        refinement_service_api_base_url=REFINER_URL,
        refiner_id=7,
        batch_size=5,
        log_dir=tmp_log_dir,
        max_log_size=1024 * 1024,
        pinata_api_key="pk",
        pinata_api_secret="ps",
    )


@pytest.fixture
def aggregator(tmp_log_dir: Path) -> StatsAggregator:
    return StatsAggregator(tmp_log_dir, max_log_size=1024 * 1024)


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def refiner() -> FakeRefiner:
    return FakeRefiner()
