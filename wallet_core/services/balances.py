"""
Balance refresh and token metadata discovery.

Balances are read sequentially with a fixed pause between calls to stay
under public RPC rate limits. Refresh works on a snapshot of the token
set and returns per-token updates; the caller merges them back in one
write, so a token import that lands mid-refresh is never lost.
"""

import asyncio
from typing import Iterable

from loguru import logger
from web3 import Web3

from wallet_core.chain_client import ERC20_ABI
from wallet_core.errors import AlreadyTracked, InvalidContract, NotAnAddress
from wallet_core.models import Account, Network, Token
from wallet_core.units import format_units

# =============================================================================
# CONFIGURATION
# =============================================================================
BALANCE_CALL_DELAY_SECONDS = 0.2


# =============================================================================
# TOKEN REGISTRY
# =============================================================================


class TokenRegistry:
    """
    Tracked token set, unique by (address, chain id).

    Not thread-safe on its own; the session serializes writers.
    """

    def __init__(self, tokens: Iterable[Token] = ()) -> None:
        self._tokens: list[Token] = []
        for token in tokens:
            if not self.contains(token.address, token.chain_id):
                self._tokens.append(token)

    def __len__(self) -> int:
        return len(self._tokens)

    def contains(self, address: str, chain_id: int) -> bool:
        key = (address.lower(), chain_id)
        return any(t.key == key for t in self._tokens)

    def get(self, address: str, chain_id: int) -> Token | None:
        key = (address.lower(), chain_id)
        return next((t for t in self._tokens if t.key == key), None)

    def snapshot(self) -> tuple[Token, ...]:
        return tuple(self._tokens)

    def for_chain(self, chain_id: int) -> list[Token]:
        return [t for t in self._tokens if t.chain_id == chain_id]

    def add(self, token: Token) -> None:
        if self.contains(token.address, token.chain_id):
            raise AlreadyTracked(f"{token.symbol} is already tracked on chain {token.chain_id}")
        self._tokens.append(token)

    def remove(self, address: str, chain_id: int) -> Token | None:
        token = self.get(address, chain_id)
        if token is not None:
            self._tokens.remove(token)
        return token

    def remove_chain(self, chain_id: int) -> None:
        self._tokens = [t for t in self._tokens if t.chain_id != chain_id]

    def merge_balances(self, updates: dict[tuple[str, int], str]) -> None:
        """Apply fetched balances in one write. Decimals are never touched."""
        self._tokens = merge_balances(self._tokens, updates)


def merge_balances(tokens: Iterable[Token], updates: dict[tuple[str, int], str]) -> list[Token]:
    """Return tokens with any fetched balances applied; others keep their value."""
    return [t.with_balance(updates[t.key]) if t.key in updates else t for t in tokens]


# =============================================================================
# BALANCES
# =============================================================================


async def fetch_balance(client, owner: str, token: Token) -> str:
    """Read one balance as a decimal string, using the token's tracked decimals."""
    if token.is_native:
        raw = await client.get_native_balance(owner)
    else:
        raw = await client.call(token.address, ERC20_ABI, "balanceOf", Web3.to_checksum_address(owner))
    return format_units(raw, token.decimals)


async def fetch_balances(
    client,
    owner: str,
    network: Network,
    tokens: Iterable[Token],
    delay: float = BALANCE_CALL_DELAY_SECONDS,
) -> dict[tuple[str, int], str]:
    """
    Fetch balances for every token on network, one call at a time.

    A failing token is logged and left out of the result, so its previous
    balance survives the merge.

    Returns:
        {token.key: balance} for tokens whose call succeeded
    """
    relevant = [t for t in tokens if t.chain_id == network.chain_id]
    updates: dict[tuple[str, int], str] = {}

    for i, token in enumerate(relevant):
        if i > 0 and delay:
            await asyncio.sleep(delay)
        try:
            updates[token.key] = await fetch_balance(client, owner, token)
        except Exception as e:
            logger.warning(f"Balance fetch failed for {token.symbol} on {network.name}: {e}")

    logger.debug(f"Fetched {len(updates)}/{len(relevant)} balances on {network.name}")
    return updates


async def refresh_balances(
    client,
    account: Account,
    network: Network,
    tokens: Iterable[Token],
    delay: float = BALANCE_CALL_DELAY_SECONDS,
) -> list[Token]:
    """
    Refresh balances for account on network.

    Returns:
        The full token set with newly fetched balances merged in
    """
    snapshot = tuple(tokens)
    updates = await fetch_balances(client, account.address, network, snapshot, delay)
    return merge_balances(snapshot, updates)


# =============================================================================
# TOKEN METADATA
# =============================================================================


async def lookup_token(
    client,
    contract_address: str,
    network: Network,
    tracked: TokenRegistry | None = None,
) -> Token:
    """
    Read name/symbol/decimals of an ERC-20 contract.

    Raises:
        NotAnAddress: Input is not address-shaped.
        AlreadyTracked: (address, chain id) is already in tracked.
        InvalidContract: No code at address, or the read interface is missing.
    """
    address = (contract_address or "").strip()
    if not Web3.is_address(address):
        raise NotAnAddress(f"Not a valid address: {contract_address!r}")
    if tracked is not None and tracked.contains(address, network.chain_id):
        raise AlreadyTracked(f"Token {address} is already tracked on {network.name}")

    try:
        if not await client.is_contract(address):
            raise InvalidContract(f"No contract at {address} on {network.name}")
        name = await client.call(address, ERC20_ABI, "name")
        symbol = await client.call(address, ERC20_ABI, "symbol")
        decimals = int(await client.call(address, ERC20_ABI, "decimals"))
    except InvalidContract:
        raise
    except Exception as e:
        logger.warning(f"Token metadata read failed for {address}: {e}")
        raise InvalidContract(f"{address} is not a token contract on {network.name}") from e

    logger.info(f"Found token {symbol} ({decimals} decimals) at {address} on {network.name}")
    return Token(
        address=Web3.to_checksum_address(address),
        symbol=symbol or "UNK",
        name=name or "Unknown Token",
        decimals=decimals,
        chain_id=network.chain_id,
    )
