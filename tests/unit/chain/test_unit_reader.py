# tests/unit/chain/test_unit_reader.py — v1
"""Tests for chain/reader.py — raw eth_call reads against the registry."""

from __future__ import annotations

import json

import httpx
import pytest
from eth_abi import decode
from eth_utils import function_signature_to_4byte_selector

from batchrefiner.chain.reader import ChainReader, ChainReadError, encode_call

OPERATOR = "0x" + "11" * 20
REGISTRY = "0x" + "22" * 20


def _reader(client: httpx.AsyncClient, aggregator=None) -> ChainReader:
    return ChainReader(
        rpc_url="http://rpc.test",
        registry_address=REGISTRY,
        operator_address=OPERATOR,
        refiner_id=7,
        results=aggregator,
        client=client,
    )


def _static_client(result=None, error=None, status=200) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        payload = {"jsonrpc": "2.0", "id": body["id"]}
        if error is not None:
            payload["error"] = error
        else:
            payload["result"] = result
        return httpx.Response(status, json=payload)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _raw_client(body) -> httpx.AsyncClient:
    """Client whose endpoint answers every request with *body* verbatim."""
    return httpx.AsyncClient(
        transport=httpx.MockTransport(
            lambda request: httpx.Response(200, content=json.dumps(body).encode()),
        ),
    )


class TestEncodeCall:
    def test_selector_prefix(self):
        data = encode_call("filePermissions(uint256,address)", ["uint256", "address"], [5, OPERATOR])
        assert data[:4] == function_signature_to_4byte_selector("filePermissions(uint256,address)")
        file_id, address = decode(["uint256", "address"], data[4:])
        assert file_id == 5
        assert address.lower() == OPERATOR


class TestEthCall:
    @pytest.mark.asyncio
    async def test_request_shape(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(json.loads(request.content))
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "0x"})

        reader = _reader(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        assert await reader.eth_call(b"\x01\x02") == b""
        assert seen["method"] == "eth_call"
        call, block = seen["params"]
        assert call == {"to": reader.registry_address, "data": "0x0102"}
        assert block == "latest"

    @pytest.mark.asyncio
    async def test_rpc_error_raises(self):
        reader = _reader(_static_client(error={"code": -32000, "message": "revert"}))
        with pytest.raises(ChainReadError, match="revert"):
            await reader.eth_call(b"\x00")

    @pytest.mark.asyncio
    async def test_malformed_result_raises(self):
        reader = _reader(_static_client(result=123))
        with pytest.raises(ChainReadError):
            await reader.eth_call(b"\x00")

    @pytest.mark.asyncio
    async def test_string_error_member_raises(self):
        reader = _reader(_raw_client({"jsonrpc": "2.0", "id": 1, "error": "rate limited"}))
        with pytest.raises(ChainReadError, match="rate limited"):
            await reader.eth_call(b"\x00")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [None, 42, "busy", ["x"]])
    async def test_non_object_body_raises(self, body):
        reader = _reader(_raw_client(body))
        with pytest.raises(ChainReadError, match="Malformed RPC response"):
            await reader.eth_call(b"\x00")

    @pytest.mark.asyncio
    async def test_null_error_member_is_ignored(self):
        reader = _reader(_raw_client({"jsonrpc": "2.0", "id": 1, "error": None, "result": "0x"}))
        assert await reader.eth_call(b"\x00") == b""


class TestGetFilePermissions:
    @pytest.mark.asyncio
    async def test_returns_key(self, registry, aggregator):
        registry.permissions[12] = "deadbeef"
        reader = _reader(registry.client(), aggregator)
        assert await reader.get_file_permissions(12) == "deadbeef"
        assert registry.calls == [("filePermissions", (12,))]

    @pytest.mark.asyncio
    async def test_empty_string_is_absent(self, registry, aggregator):
        reader = _reader(registry.client(), aggregator)
        assert await reader.get_file_permissions(13) is None
        assert aggregator.results_log.read_lines() == []

    @pytest.mark.asyncio
    async def test_empty_result_is_absent(self, aggregator):
        reader = _reader(_static_client(result="0x"), aggregator)
        assert await reader.get_file_permissions(1) is None

    @pytest.mark.asyncio
    async def test_decode_failure_logged_as_contract_error(self, aggregator):
        reader = _reader(_static_client(result="0x1234"), aggregator)
        assert await reader.get_file_permissions(3) is None
        assert ",3,ERROR," in aggregator.results_log.read_lines()[-1]

    @pytest.mark.asyncio
    async def test_rpc_failure_logged_as_contract_error(self, registry, aggregator):
        registry.broken_ids.add(4)
        reader = _reader(registry.client(), aggregator)
        assert await reader.get_file_permissions(4) is None
        assert aggregator.results_log.read_lines()[-1].endswith(
            ",4,ERROR,RPC error: -32000 execution reverted"
        )

    @pytest.mark.asyncio
    async def test_http_failure_is_absent(self, aggregator):
        reader = _reader(_static_client(result="0x", status=503), aggregator)
        assert await reader.get_file_permissions(5) is None
        assert ",5,ERROR," in aggregator.results_log.read_lines()[-1]

    @pytest.mark.asyncio
    async def test_gateway_error_string_is_absent(self, aggregator):
        reader = _reader(_raw_client({"error": "rate limited"}), aggregator)
        assert await reader.get_file_permissions(6) is None
        assert aggregator.results_log.read_lines()[-1].endswith(",6,ERROR,RPC error: 'rate limited'")

    @pytest.mark.asyncio
    async def test_null_body_is_absent(self, aggregator):
        reader = _reader(_raw_client(None), aggregator)
        assert await reader.get_file_permissions(7) is None
        assert ",7,ERROR,Malformed RPC response" in aggregator.results_log.read_lines()[-1]


class TestCheckFileRefinement:
    @pytest.mark.asyncio
    async def test_already_refined(self, registry, aggregator):
        registry.refinements[(9, 7)] = "ipfs://bafy"
        reader = _reader(registry.client(), aggregator)
        assert await reader.check_file_refinement(9) is True
        assert '"already_refined"' in aggregator.results_log.read_lines()[-1]

    @pytest.mark.asyncio
    async def test_not_refined(self, registry, aggregator):
        reader = _reader(registry.client(), aggregator)
        assert await reader.check_file_refinement(9) is False
        assert '"not_refined"' in aggregator.results_log.read_lines()[-1]

    @pytest.mark.asyncio
    async def test_explicit_refiner(self, registry, aggregator):
        registry.refinements[(9, 3)] = "done"
        reader = _reader(registry.client(), aggregator)
        assert await reader.check_file_refinement(9, refiner_id=3) is True
        assert registry.calls[-1] == ("fileRefinements", (9, 3))

    @pytest.mark.asyncio
    async def test_decode_failure_collapses_to_false(self, aggregator):
        reader = _reader(_static_client(result="0xff"), aggregator)
        assert await reader.check_file_refinement(2) is False
        lines = aggregator.results_log.read_lines()
        assert ",2,ERROR," in lines[0]
        assert '"not_refined"' in lines[1]


class TestGetFileAtIndex:
    @pytest.mark.asyncio
    async def test_resolves(self, registry):
        registry.entries[0] = 501
        reader = _reader(registry.client())
        assert await reader.get_file_at_index(0) == 501

    @pytest.mark.asyncio
    async def test_out_of_range(self, registry):
        reader = _reader(registry.client())
        assert await reader.get_file_at_index(99) is None

    @pytest.mark.asyncio
    async def test_rpc_failure(self, aggregator):
        reader = _reader(_static_client(error={"code": 3, "message": "out of bounds"}), aggregator)
        assert await reader.get_file_at_index(1) is None


class TestVerifyNetwork:
    @pytest.mark.asyncio
    async def test_matching_chain(self, registry):
        assert await _reader(registry.client()).verify_network(14800) is True

    @pytest.mark.asyncio
    async def test_mismatched_chain(self, registry):
        assert await _reader(registry.client()).verify_network(1) is False

    @pytest.mark.asyncio
    async def test_null_chain_id_is_a_warning(self):
        assert await _reader(_static_client(result=None)).verify_network(14800) is False

    @pytest.mark.asyncio
    async def test_error_string_reply_is_a_warning(self):
        reader = _reader(_raw_client({"jsonrpc": "2.0", "id": 1, "error": "rate limited"}))
        assert await reader.verify_network(14800) is False

    @pytest.mark.asyncio
    async def test_chain_id_rejects_non_string(self):
        with pytest.raises(ChainReadError, match="eth_chainId"):
            await _reader(_static_client(result=14800)).chain_id()
