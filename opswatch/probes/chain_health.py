from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog

from opswatch.errors import MalformedResponse
from opswatch.probes.jsonrpc import parse_hex_quantity, rpc_call

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ChainHealth:
    head: int
    first_block: int
    transactions: int
    min_transactions: int

    @property
    def healthy(self) -> bool:
        return self.transactions >= self.min_transactions

    @property
    def blocks(self) -> int:
        return self.head - self.first_block + 1


class ChainHealthProbe:
    """Counts transactions in the blocks from ``head - window`` through ``head``."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        block_window: int = 10,
        min_transactions: int = 5,
        timeout_seconds: float = 15.0,
    ) -> None:
        self.client = client
        self.block_window = max(0, int(block_window))
        self.min_transactions = int(min_transactions)
        self.timeout_seconds = timeout_seconds

    async def check(self, endpoint: str) -> ChainHealth:
        head = parse_hex_quantity(
            await rpc_call(self.client, endpoint, "eth_blockNumber", [], timeout=self.timeout_seconds)
        )
        first = max(0, head - self.block_window)

        total = 0
        for number in range(first, head + 1):
            block = await rpc_call(
                self.client,
                endpoint,
                "eth_getBlockByNumber",
                [hex(number), True],
                timeout=self.timeout_seconds,
            )
            if not isinstance(block, dict):
                raise MalformedResponse(f"block {number} not returned")
            txs = block.get("transactions") or []
            if not isinstance(txs, list):
                raise MalformedResponse(f"block {number} has no transaction list")
            logger.debug("Block inspected", block=number, transactions=len(txs))
            total += len(txs)

        return ChainHealth(head=head, first_block=first, transactions=total, min_transactions=self.min_transactions)
