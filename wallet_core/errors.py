"""Error taxonomy for the wallet engine."""


class WalletError(Exception):
    """Base class for all wallet engine errors."""


class AuthError(WalletError):
    """Vault could not be opened: wrong password or corrupted data."""

    def __init__(self, message: str = "Invalid password or corrupted data"):
        super().__init__(message)


class PasswordTooShort(WalletError):
    """Vault password is shorter than the accepted minimum."""


class WalletLocked(WalletError):
    """Operation requires an unlocked session."""


class InvalidPhrase(WalletError):
    """Recovery phrase is malformed or fails its checksum."""


class InvalidKey(WalletError):
    """Raw private key is malformed."""


class AccountExists(WalletError):
    """An account with this address is already held."""


class NotAnAddress(WalletError):
    """Input string is not shaped like an address."""


class InvalidContract(WalletError):
    """Address is not a contract implementing the token read interface."""


class AlreadyTracked(WalletError):
    """Token (address, chain id) is already in the tracked set."""


class NetworkConflict(WalletError):
    """Two networks share the same chain id."""


class SwapFailed(WalletError):
    """Swap reverted, exceeded slippage, or timed out. Re-quote before retrying."""


class UnknownAccount(WalletError):
    """No account with the given identifier."""


class TransactionFailed(WalletError):
    """A plain send reverted or timed out."""


class UnknownNetwork(WalletError):
    """No configured network with the given chain id."""


class UnknownToken(WalletError):
    """Token is not in the tracked set."""
