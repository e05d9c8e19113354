"""Process-wide wallet session and the HTTP mapping of engine errors."""

from fastapi import HTTPException

from wallet_core.errors import (
    AccountExists,
    AlreadyTracked,
    AuthError,
    InvalidContract,
    InvalidKey,
    InvalidPhrase,
    NetworkConflict,
    NotAnAddress,
    PasswordTooShort,
    SwapFailed,
    TransactionFailed,
    UnknownAccount,
    UnknownNetwork,
    UnknownToken,
    WalletError,
    WalletLocked,
)
from wallet_core.wallet import WalletManager

# (error types, status code, fixed detail or None to use the error message)
ERROR_STATUS: list[tuple[tuple[type[WalletError], ...], int, str | None]] = [
    ((AuthError,), 401, "Incorrect password."),
    ((WalletLocked,), 423, None),
    ((InvalidPhrase, InvalidKey), 400, "Invalid recovery phrase or private key."),
    ((NotAnAddress,), 400, "Invalid contract address."),
    ((InvalidContract,), 400, "Address is not a token contract on this network."),
    ((PasswordTooShort,), 400, None),
    ((AlreadyTracked, AccountExists, NetworkConflict), 409, None),
    ((UnknownAccount, UnknownNetwork, UnknownToken), 404, None),
    ((SwapFailed, TransactionFailed), 502, None),
]


def http_error(error: WalletError) -> HTTPException:
    """Map an engine error to the HTTP error shown to the user."""
    for types, status, detail in ERROR_STATUS:
        if isinstance(error, types):
            return HTTPException(status_code=status, detail=detail or str(error))
    return HTTPException(status_code=400, detail=str(error))


# =============================================================================
# SINGLETON INSTANCE
# =============================================================================

wallet_manager = WalletManager()


def get_manager() -> WalletManager:
    """FastAPI dependency; overridden in tests."""
    return wallet_manager
