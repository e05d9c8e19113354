"""Shared path constants and settings for the wallet engine."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Package root (wallet_core/)
CORE_ROOT = Path(__file__).parent

# Project root (where pyproject.toml lives)
PROJECT_ROOT = CORE_ROOT.parent

load_dotenv(PROJECT_ROOT / ".env")

# Data directory (vault blob lives here)
DATA_DIR = Path(os.getenv("WALLET_DATA_DIR", str(PROJECT_ROOT / "data")))

# =============================================================================
# Vault Persistence
# =============================================================================

# One well-known key; the blob under it is replaced wholesale on every save
VAULT_STORAGE_KEY = "wallet_vault"

# Minimum vault password length accepted at setup
MIN_PASSWORD_LENGTH = 4

# =============================================================================
# External APIs
# =============================================================================

# Optional API key appended to indexer (Etherscan-family) requests
INDEXER_API_KEY = os.getenv("INDEXER_API_KEY")

# Sentinel contract address used for a network's native asset
NATIVE_TOKEN_ADDRESS = "0x0000000000000000000000000000000000000000"
