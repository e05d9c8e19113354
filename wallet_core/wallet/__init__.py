"""Vault, key material and the unlocked wallet session."""

from wallet_core.wallet.encryption import seal_vault, open_vault
from wallet_core.wallet.storage import WalletStorage, MemoryStorage
from wallet_core.wallet.manager import WalletManager

__all__ = [
    "seal_vault",
    "open_vault",
    "WalletStorage",
    "MemoryStorage",
    "WalletManager",
]
