"""
DEX swap pipeline over a Uniswap-V2-style router.

quote -> allowance check -> (approve) -> execute, with a fixed 2%
slippage tolerance computed against the quoted output. Quotes are not
re-validated at execute time: a caller whose amount or token pair
changed since quoting must re-quote first (see ``SwapQuote.matches``).

Swaps are never retried automatically. Deadline and minimum output are
time-sensitive, so a failed swap surfaces as ``SwapFailed`` and the
orchestrator returns to a state that requires a fresh quote.
"""

import asyncio
import time
from dataclasses import replace
from enum import Enum

from loguru import logger
from web3 import Web3

from wallet_core.chain_client import ERC20_ABI, MAX_UINT256, ROUTER_ABI
from wallet_core.errors import SwapFailed
from wallet_core.models import Account, Network, SwapQuote, Token
from wallet_core.units import format_units, is_zero, parse_units

# =============================================================================
# CONFIGURATION
# =============================================================================
SLIPPAGE_BPS = 200  # 2%, fixed
DEADLINE_SECONDS = 600
APPROVE_GAS = 100_000
QUOTE_DEBOUNCE_SECONDS = 0.8


class SwapState(str, Enum):
    IDLE = "idle"
    QUOTING = "quoting"
    QUOTE_READY = "quote_ready"
    APPROVING = "approving"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


def minimum_output(quoted_amount_out: str, decimals: int) -> int:
    """floor(quote * 0.98) in the output token's integer representation."""
    return parse_units(quoted_amount_out, decimals) * (10_000 - SLIPPAGE_BPS) // 10_000


# =============================================================================
# SWAP ORCHESTRATOR
# =============================================================================


class SwapOrchestrator:
    """
    Swap state machine for one network.

    States: IDLE -> QUOTING -> QUOTE_READY -> (APPROVING -> QUOTE_READY)
    -> EXECUTING -> COMPLETED | FAILED.
    """

    def __init__(self, client, network: Network) -> None:
        self.client = client
        self.network = network
        self.state = SwapState.IDLE
        self.current_quote: SwapQuote | None = None
        self._wrapped_native: dict[str, str] = {}
        self._generation = 0

    async def _wrapped_native_address(self, router: str) -> str:
        key = router.lower()
        if key not in self._wrapped_native:
            self._wrapped_native[key] = await self.client.call(router, ROUTER_ABI, "WETH")
        return self._wrapped_native[key]

    async def _path(self, token_in: Token, token_out: Token, router: str) -> list[str]:
        """Direct two-hop path; a native leg is routed through the wrapped native token."""
        path = []
        for token in (token_in, token_out):
            if token.is_native:
                path.append(Web3.to_checksum_address(await self._wrapped_native_address(router)))
            else:
                path.append(Web3.to_checksum_address(token.address))
        return path

    # -------------------------------------------------------------------------
    # Quoting
    # -------------------------------------------------------------------------

    async def quote(
        self,
        amount_in: str,
        token_in: Token,
        token_out: Token,
        network: Network | None = None,
    ) -> SwapQuote | None:
        """
        Price amount_in of token_in in token_out through the router.

        Each call supersedes any quote still in flight: a result that
        arrives after a newer request started is dropped, so the latest
        request always decides ``current_quote``.

        Returns:
            SwapQuote, or None when there is nothing to quote (zero amount,
            no router on this network, same token on both sides, the
            router could not price the pair, or a newer request superseded
            this one).
        """
        self._generation += 1
        generation = self._generation
        network = network or self.network
        router = network.router_address
        self.current_quote = None

        if is_zero(amount_in) or not router or token_in.key == token_out.key:
            self.state = SwapState.IDLE
            return None
        if token_in.is_native and token_out.is_native:
            self.state = SwapState.IDLE
            return None

        self.state = SwapState.QUOTING
        try:
            amount_in_int = parse_units(amount_in, token_in.decimals)
            path = await self._path(token_in, token_out, router)
            amounts = await self.client.call(router, ROUTER_ABI, "getAmountsOut", amount_in_int, path)
        except Exception as e:
            logger.warning(f"Quote unavailable for {token_in.symbol}->{token_out.symbol}: {e}")
            if generation == self._generation:
                self.state = SwapState.IDLE
            return None

        if generation != self._generation:
            logger.debug(f"Discarding superseded quote #{generation}")
            return None

        quote = SwapQuote(
            token_in=token_in,
            token_out=token_out,
            amount_in=amount_in,
            amount_out=format_units(amounts[-1], token_out.decimals),
        )
        self.current_quote = quote
        self.state = SwapState.QUOTE_READY
        return quote

    async def check_allowance(self, owner: str, token_in: Token, amount_in: str, router: str) -> bool:
        """True if router may already spend amount_in of token_in for owner."""
        if token_in.is_native:
            return True
        allowance = await self.client.call(
            token_in.address,
            ERC20_ABI,
            "allowance",
            Web3.to_checksum_address(owner),
            Web3.to_checksum_address(router),
        )
        return allowance >= parse_units(amount_in, token_in.decimals)

    async def prepare_quote(
        self, owner: str | None, amount_in: str, token_in: Token, token_out: Token
    ) -> SwapQuote | None:
        """Quote, then flag whether an approval is needed before executing."""
        quote = await self.quote(amount_in, token_in, token_out)
        if quote is None or owner is None:
            return quote
        generation = self._generation
        try:
            allowance_ok = await self.check_allowance(
                owner, token_in, amount_in, self.network.router_address
            )
        except Exception as e:
            logger.warning(f"Allowance check failed for {token_in.symbol}: {e}")
            if generation == self._generation:
                self.current_quote = None
                self.state = SwapState.IDLE
            return None
        if generation != self._generation:
            logger.debug(f"Discarding superseded quote #{generation}")
            return None
        quote = replace(quote, allowance_ok=allowance_ok)
        self.current_quote = quote
        return quote

    # -------------------------------------------------------------------------
    # Approval & execution
    # -------------------------------------------------------------------------

    async def approve(self, account: Account, token_in: Token, router: str) -> str | None:
        """
        Approve router for the maximum amount and wait for confirmation.

        Returns:
            Approval transaction hash, or None for a native token
        """
        if token_in.is_native:
            return None

        self.state = SwapState.APPROVING
        try:
            tx_hash = await self.client.transact(
                account.private_key,
                token_in.address,
                ERC20_ABI,
                "approve",
                Web3.to_checksum_address(router),
                MAX_UINT256,
                gas=APPROVE_GAS,
            )
            await self.client.wait_for_receipt(tx_hash)
        except Exception as e:
            logger.error(f"Approval of {token_in.symbol} failed: {e}")
            self.state = SwapState.FAILED
            raise SwapFailed("Approval failed. Try again.") from e

        logger.info(f"Approved {token_in.symbol} for router {router}: {tx_hash}")
        if self.current_quote is not None:
            self.current_quote = replace(self.current_quote, allowance_ok=True)
        self.state = SwapState.QUOTE_READY
        return tx_hash

    async def execute(
        self,
        account: Account,
        amount_in: str,
        quoted_amount_out: str,
        token_in: Token,
        token_out: Token,
        router: str | None,
    ) -> str:
        """
        Submit the swap and wait for confirmation.

        The router entry point depends on which side (if any) is native.

        Raises:
            SwapFailed: On revert, slippage exceeded, timeout, or bad input.
        """
        self.state = SwapState.EXECUTING
        try:
            if not router:
                raise ValueError(f"No router configured on {self.network.name}")
            amount_in_int = parse_units(amount_in, token_in.decimals)
            min_out = minimum_output(quoted_amount_out, token_out.decimals)
            path = await self._path(token_in, token_out, router)
            deadline = int(time.time()) + DEADLINE_SECONDS
            to = Web3.to_checksum_address(account.address)

            if token_in.is_native:
                tx_hash = await self.client.transact(
                    account.private_key, router, ROUTER_ABI, "swapExactETHForTokens",
                    min_out, path, to, deadline,
                    value=amount_in_int,
                )
            elif token_out.is_native:
                tx_hash = await self.client.transact(
                    account.private_key, router, ROUTER_ABI, "swapExactTokensForETH",
                    amount_in_int, min_out, path, to, deadline,
                )
            else:
                tx_hash = await self.client.transact(
                    account.private_key, router, ROUTER_ABI, "swapExactTokensForTokens",
                    amount_in_int, min_out, path, to, deadline,
                )
            await self.client.wait_for_receipt(tx_hash)
        except Exception as e:
            logger.error(f"Swap {token_in.symbol}->{token_out.symbol} failed: {e}")
            self.state = SwapState.FAILED
            self.current_quote = None
            raise SwapFailed("Swap failed. Try again.") from e

        logger.info(
            f"Swapped {amount_in} {token_in.symbol} -> >= {format_units(min_out, token_out.decimals)} "
            f"{token_out.symbol}: {tx_hash}"
        )
        self.state = SwapState.COMPLETED
        self.current_quote = None
        return tx_hash


# =============================================================================
# DEBOUNCED QUOTING
# =============================================================================


class QuoteDebouncer:
    """
    Debounce quote requests while input is changing.

    A request only reaches the RPC endpoint after ``delay`` seconds without
    a newer request. A newer request cancels the pending one, and any
    result from a superseded request is dropped (last request wins).
    """

    def __init__(self, orchestrator: SwapOrchestrator, delay: float = QUOTE_DEBOUNCE_SECONDS) -> None:
        self.orchestrator = orchestrator
        self.delay = delay
        self.latest: SwapQuote | None = None
        self._generation = 0
        self._pending: asyncio.Task | None = None

    def submit(
        self, owner: str | None, amount_in: str, token_in: Token, token_out: Token
    ) -> asyncio.Task:
        """Schedule a quote; returns the task (resolves to None if superseded)."""
        self._generation += 1
        self.latest = None
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = asyncio.create_task(
            self._run(self._generation, owner, amount_in, token_in, token_out)
        )
        return self._pending

    async def _run(
        self, generation: int, owner: str | None, amount_in: str, token_in: Token, token_out: Token
    ) -> SwapQuote | None:
        await asyncio.sleep(self.delay)
        quote = await self.orchestrator.prepare_quote(owner, amount_in, token_in, token_out)
        if generation != self._generation:
            logger.debug(f"Discarding superseded quote #{generation}")
            return None
        self.latest = quote
        return quote
