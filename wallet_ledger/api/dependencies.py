"""
Wallet system wiring for the API
"""

from typing import Optional
import threading

from ..accounts import AccountProvisioner
from ..config import WalletConfig, get_config
from ..processor import TransactionProcessor
from ..storage import LedgerStore, create_store


class WalletSystem:
    """Ledger store, processor and provisioner built from one configuration"""

    def __init__(self, config: Optional[WalletConfig] = None, store: Optional[LedgerStore] = None):
        self.config = config or get_config()
        self.store = store or create_store(
            self.config.database_url,
            lock_timeout=self.config.lock_timeout_seconds,
            min_connections=self.config.postgres_pool_min,
            max_connections=self.config.postgres_pool_max
        )
        self.processor = TransactionProcessor(self.store, self.config)
        self.provisioner = AccountProvisioner(self.store)

    def close(self) -> None:
        self.store.close()


_wallet_system: Optional[WalletSystem] = None
_wallet_system_lock = threading.Lock()


def get_wallet_system() -> WalletSystem:
    """FastAPI dependency returning the process-wide wallet system"""
    global _wallet_system
    with _wallet_system_lock:
        if _wallet_system is None:
            _wallet_system = WalletSystem()
        return _wallet_system


def shutdown_wallet_system() -> None:
    global _wallet_system
    with _wallet_system_lock:
        if _wallet_system is not None:
            _wallet_system.close()
            _wallet_system = None
