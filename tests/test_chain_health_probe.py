from __future__ import annotations

import json

import httpx
import pytest

from opswatch.errors import MalformedResponse
from opswatch.probes.chain_health import ChainHealthProbe


def _node(head: int, txs_per_block: dict[int, int]):
    requested: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if body["method"] == "eth_blockNumber":
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": hex(head)})
        if body["method"] == "eth_getBlockByNumber":
            number = int(body["params"][0], 16)
            assert body["params"][1] is True
            requested.append(number)
            txs = [{"hash": f"0x{number:x}{i}"} for i in range(txs_per_block.get(number, 0))]
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": {"number": hex(number), "transactions": txs}})
        return httpx.Response(404)

    return handler, requested


@pytest.mark.asyncio
async def test_healthy_when_window_has_enough_transactions() -> None:
    handler, requested = _node(20, {12: 2, 18: 2, 20: 1})
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        health = await ChainHealthProbe(client, block_window=10, min_transactions=5).check("http://rpc.test")

    assert requested == list(range(10, 21))
    assert health.transactions == 5
    assert health.blocks == 11
    assert health.healthy is True


@pytest.mark.asyncio
async def test_unhealthy_when_chain_is_quiet_and_window_floors_at_genesis() -> None:
    handler, requested = _node(3, {1: 1})
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        health = await ChainHealthProbe(client, block_window=10, min_transactions=5).check("http://rpc.test")

    assert requested == [0, 1, 2, 3]
    assert health.first_block == 0
    assert health.healthy is False


@pytest.mark.asyncio
async def test_missing_block_is_malformed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if body["method"] == "eth_blockNumber":
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "0x1"})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": None})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(MalformedResponse):
            await ChainHealthProbe(client).check("http://rpc.test")
