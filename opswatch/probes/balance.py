from __future__ import annotations

from decimal import Decimal, localcontext

import httpx
import structlog

from opswatch.probes.jsonrpc import parse_hex_quantity, rpc_call

logger = structlog.get_logger(__name__)

WEI_DECIMALS = 18


def from_smallest_unit(raw: int, decimals: int = WEI_DECIMALS) -> Decimal:
    """Exact integer-to-decimal scaling; no float is involved."""
    with localcontext() as ctx:
        ctx.prec = 100
        return Decimal(raw).scaleb(-decimals)


class BalanceProbe:
    """eth_getBalance against a single chain endpoint."""

    def __init__(self, client: httpx.AsyncClient, timeout_seconds: float = 15.0) -> None:
        self.client = client
        self.timeout_seconds = timeout_seconds

    async def check_balance(self, endpoint: str, address: str) -> Decimal:
        result = await rpc_call(
            self.client,
            endpoint,
            "eth_getBalance",
            [address, "latest"],
            timeout=self.timeout_seconds,
        )
        balance = from_smallest_unit(parse_hex_quantity(result))
        logger.debug("Balance read", address=address, endpoint=endpoint, balance=str(balance))
        return balance
