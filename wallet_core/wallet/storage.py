"""Vault persistence: one opaque blob under one well-known key."""

import os
from pathlib import Path

from loguru import logger

from wallet_core.paths import DATA_DIR, VAULT_STORAGE_KEY


class WalletStorage:
    """
    File-backed blob store.

    Each key maps to one file; saves replace the whole blob atomically
    (write to a temp file, then rename over the old one).
    """

    def __init__(self, data_dir: Path | None = None, key: str = VAULT_STORAGE_KEY):
        self.data_dir = data_dir or DATA_DIR
        self.key = key

    @property
    def path(self) -> Path:
        return self.data_dir / f"{self.key}.blob"

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> str | None:
        """Return the stored blob, or None if nothing has been saved yet."""
        if not self.path.exists():
            return None
        return self.path.read_text().strip()

    def save(self, blob: str) -> None:
        """Replace the stored blob wholesale."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        tmp_path.write_text(blob)
        if os.name != "nt":
            os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, self.path)
        logger.debug(f"Vault blob written to {self.path}")

    def clear(self) -> None:
        """Delete the stored blob (wallet reset)."""
        if self.path.exists():
            self.path.unlink()
            logger.info("Vault blob deleted")


class MemoryStorage:
    """In-memory blob store with the same interface, for tests and embedding."""

    def __init__(self, blob: str | None = None):
        self.blob = blob

    def exists(self) -> bool:
        return self.blob is not None

    def load(self) -> str | None:
        return self.blob

    def save(self, blob: str) -> None:
        self.blob = blob

    def clear(self) -> None:
        self.blob = None
