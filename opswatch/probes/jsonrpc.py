from __future__ import annotations

from typing import Any

import httpx

from opswatch.errors import MalformedResponse, RPCError


def build_request(method: str, params: list[Any], request_id: int = 1) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "method": method, "params": params, "id": request_id}


async def rpc_call(
    client: httpx.AsyncClient,
    url: str,
    method: str,
    params: list[Any],
    *,
    timeout: float = 15.0,
) -> Any:
    """POST one JSON-RPC request and return its ``result`` member."""
    if not url:
        raise RPCError(f"{method}: no endpoint configured")
    try:
        resp = await client.post(url, json=build_request(method, params), timeout=timeout)
    except httpx.HTTPError as exc:
        raise RPCError(f"{method}: {type(exc).__name__}: {exc}") from exc

    if resp.status_code // 100 != 2:
        raise RPCError(f"{method}: HTTP {resp.status_code}: {resp.text[:200]}")

    try:
        data = resp.json()
    except ValueError as exc:
        raise MalformedResponse(f"{method}: response is not JSON") from exc
    if not isinstance(data, dict):
        raise MalformedResponse(f"{method}: response is not an object")

    error = data.get("error")
    if error:
        if isinstance(error, dict):
            raise RPCError(f"{method}: {error.get('code')}: {error.get('message')}")
        raise RPCError(f"{method}: {error}")
    if "result" not in data:
        raise MalformedResponse(f"{method}: response has no result")
    return data["result"]


def parse_hex_quantity(value: Any) -> int:
    """Decode an Ethereum ``0x``-prefixed hexadecimal quantity."""
    if not isinstance(value, str) or not value.lower().startswith("0x") or len(value) < 3:
        raise MalformedResponse(f"not a hex quantity: {value!r}")
    try:
        return int(value[2:], 16)
    except ValueError as exc:
        raise MalformedResponse(f"not a hex quantity: {value!r}") from exc
