"""Preset networks and built-in tokens."""

from wallet_core.models import Network, Token
from wallet_core.paths import NATIVE_TOKEN_ADDRESS

# Token logos (TrustWallet asset repository)
ASSET_REPO = "https://raw.githubusercontent.com/trustwallet/assets/master/blockchains"

# =============================================================================
# NETWORKS
# =============================================================================

BSC = Network(
    name="Binance Smart Chain",
    rpc_url="https://bsc-dataseed.binance.org/",
    chain_id=56,
    symbol="BNB",
    router_address="0x10ED43C718714eb63d5aA57B78B54704E256024E",  # PancakeSwap V2
    api_base_url="https://api.bscscan.com/api",
    explorer_url="https://bscscan.com",
)

ETHEREUM = Network(
    name="Ethereum Mainnet",
    rpc_url="https://eth.llamarpc.com",
    chain_id=1,
    symbol="ETH",
    router_address="0x7a250d5630B4cF539739dF2C5dAcb4c659F2488D",  # Uniswap V2
    api_base_url="https://api.etherscan.io/api",
    explorer_url="https://etherscan.io",
)

POLYGON = Network(
    name="Polygon",
    rpc_url="https://polygon-rpc.com",
    chain_id=137,
    symbol="MATIC",
    router_address="0xa5E0829CaCEd8fFDD4De3c43696c57F7D7A678ff",  # QuickSwap
    api_base_url="https://api.polygonscan.com/api",
    explorer_url="https://polygonscan.com",
)

AVALANCHE = Network(
    name="Avalanche C-Chain",
    rpc_url="https://api.avax.network/ext/bc/C/rpc",
    chain_id=43114,
    symbol="AVAX",
    router_address="0x60aE616a2155Ee3d9A68541Ba4544862310933d4",  # Trader Joe
    api_base_url="https://api.routescan.io/v2/network/mainnet/evm/43114/etherscan/api",
    explorer_url="https://snowtrace.io",
)

PRESET_NETWORKS: list[Network] = [BSC, ETHEREUM, POLYGON, AVALANCHE]

# =============================================================================
# BUILT-IN TOKENS
# =============================================================================

TOKEN_3TWENTY_ADDRESS = "0x2ffbdfa8638422bf3a5134434387b8fb5962da2c"

DEFAULT_TOKENS: list[Token] = [
    Token(
        address=TOKEN_3TWENTY_ADDRESS,
        symbol="3TWENTY",
        name="3Twenty Coin",
        decimals=18,
        chain_id=56,
    ),
    Token(
        address=NATIVE_TOKEN_ADDRESS,
        symbol="BNB",
        name="Binance Coin",
        decimals=18,
        chain_id=56,
        is_native=True,
        logo_url=f"{ASSET_REPO}/binance/info/logo.png",
    ),
    Token(
        address="0x55d398326f99059fF775485246999027B3197955",
        symbol="USDT",
        name="Tether USD",
        decimals=18,
        chain_id=56,
        logo_url=f"{ASSET_REPO}/smartchain/assets/0x55d398326f99059fF775485246999027B3197955/logo.png",
    ),
    Token(
        address=NATIVE_TOKEN_ADDRESS,
        symbol="ETH",
        name="Ethereum",
        decimals=18,
        chain_id=1,
        is_native=True,
        logo_url=f"{ASSET_REPO}/ethereum/info/logo.png",
    ),
    Token(
        address=NATIVE_TOKEN_ADDRESS,
        symbol="MATIC",
        name="Polygon",
        decimals=18,
        chain_id=137,
        is_native=True,
        logo_url=f"{ASSET_REPO}/polygon/info/logo.png",
    ),
    Token(
        address=NATIVE_TOKEN_ADDRESS,
        symbol="AVAX",
        name="Avalanche",
        decimals=18,
        chain_id=43114,
        is_native=True,
        logo_url=f"{ASSET_REPO}/avalanchec/info/logo.png",
    ),
]

DEFAULT_TOKEN_KEYS: frozenset[tuple[str, int]] = frozenset(t.key for t in DEFAULT_TOKENS)


def is_default_token(token: Token) -> bool:
    """Built-in tokens are reconstructible from this module and never persisted."""
    return token.key in DEFAULT_TOKEN_KEYS
