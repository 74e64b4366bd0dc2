"""Monitoring pipelines, one per probe family."""

from .base import MonitorPipeline, Stage, TickContext, TickReport
from .certificates import CertificatePipeline
from .chain_health import ChainHealthPipeline
from .digest import Digest, ItemOutcome
from .wallets import Network, WalletPipeline

__all__ = [
    "CertificatePipeline",
    "ChainHealthPipeline",
    "Digest",
    "ItemOutcome",
    "MonitorPipeline",
    "Network",
    "Stage",
    "TickContext",
    "TickReport",
    "WalletPipeline",
]
