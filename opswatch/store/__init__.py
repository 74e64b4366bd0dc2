"""Config table and wallet state persistence."""

from ..errors import StorageError
from .config_store import Category, ConfigEntry, ConfigStore
from .wallet_state import WalletState, WalletStateStore

__all__ = ["Category", "ConfigEntry", "ConfigStore", "StorageError", "WalletState", "WalletStateStore"]
