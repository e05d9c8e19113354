"""
Account key-material lifecycle: generation, import, address derivation.

Keys follow BIP39/BIP44 on the standard EVM path m/44'/60'/0'/0/0, so a
phrase generated here restores the same address in other EVM wallets.
Nothing in this module touches storage or the network.
"""

from dataclasses import dataclass, field

from eth_account import Account as EthAccount
from eth_keys import constants as eth_constants
from eth_keys.exceptions import ValidationError as EthKeysValidationError
from eth_utils import ValidationError as EthValidationError
from mnemonic import Mnemonic
from web3 import Web3

from wallet_core.errors import InvalidKey, InvalidPhrase

# HD wallet support is opt-in in eth-account
EthAccount.enable_unaudited_hdwallet_features()

# Standard BIP39 English word list
MNEMONIC_GEN = Mnemonic("english")

# secp256k1 curve order
SECP256K1_N = eth_constants.SECPK1_N

# =============================================================================
# CONFIGURATION
# =============================================================================
DERIVATION_PATH = "m/44'/60'/0'/0/0"
PHRASE_WORDS = 12
_WORDS_TO_STRENGTH = {12: 128, 15: 160, 18: 192, 21: 224, 24: 256}


@dataclass(frozen=True)
class KeyMaterial:
    """Result of generate/import. Key material is excluded from repr."""

    address: str
    private_key: str = field(repr=False)
    mnemonic: str | None = field(default=None, repr=False)


def _normalize_phrase(phrase: str) -> str:
    return " ".join(phrase.strip().lower().split())


def generate(num_words: int = PHRASE_WORDS) -> KeyMaterial:
    """Create a fresh key pair and its recovery phrase (OS CSPRNG via secrets)."""
    if num_words not in _WORDS_TO_STRENGTH:
        raise ValueError("Phrase length must be 12, 15, 18, 21 or 24 words")
    phrase = MNEMONIC_GEN.generate(strength=_WORDS_TO_STRENGTH[num_words])
    return import_from_phrase(phrase)


def import_from_phrase(phrase: str) -> KeyMaterial:
    """
    Re-derive the key pair ``generate`` would have produced from phrase.

    Raises:
        InvalidPhrase: If the phrase has unknown words or a bad checksum.
    """
    normalized = _normalize_phrase(phrase or "")
    if not normalized or not MNEMONIC_GEN.check(normalized):
        raise InvalidPhrase("Recovery phrase is not valid")
    try:
        acct = EthAccount.from_mnemonic(normalized, account_path=DERIVATION_PATH)
    except (EthValidationError, ValueError) as e:
        raise InvalidPhrase("Recovery phrase is not valid") from e
    return KeyMaterial(
        address=acct.address,
        private_key=Web3.to_hex(acct.key),
        mnemonic=normalized,
    )


def import_from_key(hex_key: str) -> KeyMaterial:
    """
    Derive the address of a raw private key.

    Raises:
        InvalidKey: If the key is not 32 bytes of hex or is out of curve range.
    """
    key = (hex_key or "").strip()
    if not key.startswith(("0x", "0X")):
        key = "0x" + key
    if len(key) != 66:
        raise InvalidKey("Private key must be 32 bytes of hex")
    try:
        secret = int(key, 16)
    except ValueError as e:
        raise InvalidKey("Private key must be 32 bytes of hex") from e
    if not 0 < secret < SECP256K1_N:
        raise InvalidKey("Private key is out of range")
    try:
        acct = EthAccount.from_key(key)
    except (EthKeysValidationError, ValueError) as e:
        raise InvalidKey("Private key is not valid") from e
    return KeyMaterial(address=acct.address, private_key=Web3.to_hex(acct.key))


def derive_address(private_key: str) -> str:
    """Checksummed address for a private key. Pure."""
    return EthAccount.from_key(private_key).address


def is_phrase(secret: str) -> bool:
    """Phrases contain whitespace; raw keys never do."""
    return len((secret or "").strip().split()) > 1
