from __future__ import annotations

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Sequence

from opswatch.config import MonitoringConfig, NetworkKeys
from opswatch.errors import ConfigLoadError
from opswatch.notifications.notifier import Notifier
from opswatch.pipeline.base import MonitorPipeline, TickContext
from opswatch.pipeline.digest import Digest
from opswatch.probes.balance import BalanceProbe
from opswatch.store.config_store import Category, ConfigStore
from opswatch.store.wallet_state import WalletStateStore


class Network(str, Enum):
    L1 = "l1"
    L2 = "l2"


_CATEGORY = {
    Network.L1: Category.WALLET_L1,
    Network.L2: Category.WALLET_L2,
}


@dataclass(frozen=True)
class WalletItem:
    key: str
    address: str
    network: Network


@dataclass(frozen=True)
class NetworkEndpoint:
    """Per-tick snapshot of one network's endpoints."""

    network: Network
    rpc_url: str
    explorer_url: str
    network_env: str
    display_name: str

    def address_link(self, address: str) -> str:
        if not self.explorer_url:
            return address
        return f"[{address}]({self.explorer_url.rstrip('/')}/address/{address})"


@dataclass(frozen=True)
class WalletReading:
    balance: Decimal
    change: Decimal


class WalletPipeline(MonitorPipeline[WalletItem, WalletReading]):
    """Balances for L1 and L2 wallets, merged into one digest.

    Every successful reading is reported, together with its change since the
    previous tick.
    """

    family = "wallets"
    email_subject = "Wallet Balance Update"
    webhook_title = "Wallet Balance Change Update"

    def __init__(
        self,
        config: MonitoringConfig,
        config_store: ConfigStore,
        notifier: Notifier,
        probe: BalanceProbe,
        state_store: WalletStateStore,
    ) -> None:
        super().__init__(config, config_store, notifier)
        self.balance_probe = probe
        self.state_store = state_store

    def network_keys(self, network: Network) -> NetworkKeys:
        return self.config.l1 if network is Network.L1 else self.config.l2

    async def load_items(self) -> Sequence[WalletItem]:
        items: list[WalletItem] = []
        for network in Network:
            entries = await asyncio.to_thread(self.config_store.list, _CATEGORY[network])
            items.extend(WalletItem(key=e.key, address=e.value, network=network) for e in entries if e.value)
        return items

    async def load_extras(self, items: Sequence[WalletItem]) -> dict[str, Any]:
        keys = {network: self.network_keys(network) for network in Network}
        wanted = [k for nk in keys.values() for k in (nk.rpc_key, nk.explorer_key)]
        values = await asyncio.to_thread(self.config_store.get_many, wanted)

        networks: dict[Network, NetworkEndpoint] = {}
        used = {item.network for item in items}
        for network, nk in keys.items():
            rpc_url = values.get(nk.rpc_key, "").strip()
            if network in used and not rpc_url:
                raise ConfigLoadError(f"missing RPC endpoint {nk.rpc_key!r} for {network.value} wallets")
            networks[network] = NetworkEndpoint(
                network=network,
                rpc_url=rpc_url,
                explorer_url=values.get(nk.explorer_key, "").strip(),
                network_env=nk.network_env,
                display_name=nk.display_name,
            )
        return {"networks": networks}

    async def probe(self, ctx: TickContext, item: WalletItem) -> WalletReading:
        endpoint: NetworkEndpoint = ctx.extras["networks"][item.network]
        balance = await self.balance_probe.check_balance(endpoint.rpc_url, item.address)
        self.log.info("Balance read", address=item.address, network=endpoint.network_env, balance=str(balance))
        change = await asyncio.to_thread(self.state_store.upsert, item.address, endpoint.network_env, balance)
        return WalletReading(balance=balance, change=change)

    def describe(self, ctx: TickContext, item: WalletItem, value: WalletReading, digest: Digest) -> None:
        endpoint: NetworkEndpoint = ctx.extras["networks"][item.network]
        line = (
            f"{endpoint.display_name} wallet {endpoint.address_link(item.address)} ({item.key}): "
            f"balance {value.balance:.6f}, change {value.change:+.6f}"
        )
        digest.add_status(line)
        digest.add_alert(line)

    def item_label(self, item: WalletItem) -> str:
        return f"{item.network.value}:{item.address}"
