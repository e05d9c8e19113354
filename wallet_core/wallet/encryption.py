"""
AES-256-GCM vault encryption with a scrypt-derived key.

The sealed blob is a base64-wrapped JSON envelope carrying the KDF
parameters, salt and nonce next to the ciphertext, so parameters can be
raised later without orphaning existing vaults.
"""

import base64
import binascii
import json
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from wallet_core.errors import AuthError
from wallet_core.models import VaultBundle

# =============================================================================
# CONFIGURATION
# =============================================================================
ENVELOPE_VERSION = 1
KDF_NAME = "scrypt"
SCRYPT_N = 2**15  # 32 MiB with r=8
SCRYPT_R = 8
SCRYPT_P = 1
SALT_BYTES = 16
NONCE_BYTES = 12
KEY_BYTES = 32

# Refuse envelopes asking for more work than this (crafted-blob guard)
MAX_SCRYPT_N = 2**20
MAX_SCRYPT_COST = SCRYPT_N * SCRYPT_R * 4  # n * r * p, 4x the default


def _derive_key(password: str, salt: bytes, n: int, r: int, p: int) -> bytes:
    """Derive a 256-bit key from password using scrypt."""
    kdf = Scrypt(salt=salt, length=KEY_BYTES, n=n, r=r, p=p)
    return kdf.derive(password.encode())


def seal_vault(
    bundle: VaultBundle,
    password: str,
    n: int = SCRYPT_N,
    r: int = SCRYPT_R,
    p: int = SCRYPT_P,
) -> str:
    """
    Encrypt a vault bundle with password.

    Salt and nonce are fresh per call, so sealing the same bundle twice
    yields different blobs.

    Returns:
        Opaque base64 blob
    """
    plaintext = json.dumps(bundle.to_dict(), separators=(",", ":")).encode()

    salt = os.urandom(SALT_BYTES)
    nonce = os.urandom(NONCE_BYTES)
    key = _derive_key(password, salt, n, r, p)

    aad = f"{KDF_NAME}:{ENVELOPE_VERSION}".encode()
    ciphertext = AESGCM(key).encrypt(nonce, plaintext, aad)

    envelope = {
        "v": ENVELOPE_VERSION,
        "kdf": KDF_NAME,
        "n": n,
        "r": r,
        "p": p,
        "salt": base64.b64encode(salt).decode(),
        "nonce": base64.b64encode(nonce).decode(),
        "ct": base64.b64encode(ciphertext).decode(),
    }
    return base64.b64encode(json.dumps(envelope).encode()).decode()


def _parse_envelope(blob: str) -> tuple[bytes, bytes, bytes, int, int, int]:
    envelope = json.loads(base64.b64decode(blob, validate=True))
    if envelope["v"] != ENVELOPE_VERSION or envelope["kdf"] != KDF_NAME:
        raise ValueError("unsupported envelope")

    n, r, p = envelope["n"], envelope["r"], envelope["p"]
    if not all(type(v) is int for v in (n, r, p)):
        raise ValueError("kdf parameters must be integers")
    if n < 2 or n > MAX_SCRYPT_N or n & (n - 1) or not 1 <= r <= 8 or not 1 <= p <= 4:
        raise ValueError("kdf parameters out of range")
    if n * r * p > MAX_SCRYPT_COST:
        raise ValueError("kdf cost too high")

    salt = base64.b64decode(envelope["salt"], validate=True)
    nonce = base64.b64decode(envelope["nonce"], validate=True)
    ciphertext = base64.b64decode(envelope["ct"], validate=True)
    if len(nonce) != NONCE_BYTES:
        raise ValueError("bad nonce")
    return salt, nonce, ciphertext, n, r, p


def open_vault(blob: str, password: str) -> VaultBundle:
    """
    Decrypt a sealed blob with password.

    Raises:
        AuthError: For any failure. Wrong password, truncation, tampering
            and malformed JSON are indistinguishable to the caller.
    """
    try:
        salt, nonce, ciphertext, n, r, p = _parse_envelope(blob)
        key = _derive_key(password, salt, n, r, p)
        aad = f"{KDF_NAME}:{ENVELOPE_VERSION}".encode()
        plaintext = AESGCM(key).decrypt(nonce, ciphertext, aad)
        return VaultBundle.from_dict(json.loads(plaintext))
    except (
        InvalidTag,
        ValueError,
        KeyError,
        TypeError,
        AttributeError,
        OverflowError,
        binascii.Error,
    ):
        raise AuthError() from None
