"""
Transaction history from an Etherscan-family indexer.

Two queries per fetch (native transfers, then token-transfer events),
separated by a cooldown so the indexer's rate limiter does not trip
between them. Results are merged, deduplicated by (hash, symbol), sorted
newest first and capped.

History is informational: every failure path ends in an empty list for
that query, never an exception to the caller.
"""

import asyncio
import time
from typing import Any, Callable

import httpx
from loguru import logger

from wallet_core.models import Network, TransactionRecord
from wallet_core.paths import INDEXER_API_KEY
from wallet_core.retry import RateLimited, RetryPolicy

# =============================================================================
# CONFIGURATION
# =============================================================================
REQUEST_TIMEOUT = 30.0
MAX_RECORDS = 50
INDEXER_COOLDOWN_SECONDS = 1.5  # longer than the first retry delay
DEFAULT_POLICY = RetryPolicy(max_attempts=3, base_delay=1.0, rate_limit_multiplier=2.0)

NATIVE_ACTION = "txlist"
TOKEN_ACTION = "tokentx"


class IndexerError(Exception):
    """Indexer answered with an error status (retryable)."""


def _is_no_results(message: str, result: Any) -> bool:
    return "no transactions found" in message.lower() or result == []


def _is_rate_limited(message: str, result: Any) -> bool:
    text = f"{message} {result if isinstance(result, str) else ''}".lower()
    return "rate limit" in text


# =============================================================================
# RECORD MAPPING
# =============================================================================


def _to_int(value: Any, default: int = 0) -> int:
    """Integer from an indexer field; empty or missing means default."""
    if value is None or value == "":
        return default
    return int(value)


def _native_record(entry: dict, network: Network) -> TransactionRecord:
    return TransactionRecord(
        hash=entry["hash"],
        sender=entry.get("from", ""),
        recipient=entry.get("to", ""),
        value=str(_to_int(entry.get("value"))),
        timestamp=_to_int(entry.get("timeStamp")),
        symbol=network.symbol,
        decimals=network.native_decimals,
        success=entry.get("isError", "0") != "1" and entry.get("txreceipt_status", "1") != "0",
    )


def _token_record(entry: dict) -> TransactionRecord:
    return TransactionRecord(
        hash=entry["hash"],
        sender=entry.get("from", ""),
        recipient=entry.get("to", ""),
        value=str(_to_int(entry.get("value"))),
        timestamp=_to_int(entry.get("timeStamp")),
        symbol=entry.get("tokenSymbol") or "UNK",
        decimals=_to_int(entry.get("tokenDecimal"), 18),
    )


def _map_entries(
    entries: list, mapper: Callable[[dict], TransactionRecord], label: str
) -> list[TransactionRecord]:
    """Map entries one by one; a malformed entry is skipped, not fatal."""
    records = []
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("hash"):
            logger.warning(f"Skipping malformed {label} entry: {entry!r:.80}")
            continue
        try:
            records.append(mapper(entry))
        except (ValueError, TypeError) as e:
            logger.warning(f"Skipping malformed {label} entry {entry['hash']}: {e}")
    return records


def merge_records(
    *streams: list[TransactionRecord], limit: int = MAX_RECORDS
) -> list[TransactionRecord]:
    """
    Merge record streams: first occurrence of each (hash, symbol) wins,
    then newest first, capped at limit.
    """
    seen: set[tuple[str, str]] = set()
    merged: list[TransactionRecord] = []
    for stream in streams:
        for record in stream:
            if record.key in seen:
                continue
            seen.add(record.key)
            merged.append(record)
    merged.sort(key=lambda r: r.timestamp, reverse=True)
    return merged[:limit]


# =============================================================================
# HISTORY AGGREGATOR
# =============================================================================


class HistoryAggregator:
    """Best-effort history fetcher. Each ``fetch`` is a fresh pair of queries."""

    def __init__(
        self,
        http: httpx.AsyncClient | None = None,
        policy: RetryPolicy = DEFAULT_POLICY,
        cooldown: float = INDEXER_COOLDOWN_SECONDS,
        api_key: str | None = INDEXER_API_KEY,
        max_records: int = MAX_RECORDS,
    ) -> None:
        self._http = http
        self.policy = policy
        self.cooldown = cooldown
        self.api_key = api_key
        self.max_records = max_records

    async def fetch(self, address: str, network: Network) -> list[TransactionRecord]:
        """Native transfers + token transfers for address, merged and capped."""
        if not network.api_base_url:
            logger.debug(f"No indexer configured for {network.name}")
            return []

        try:
            if self._http is not None:
                return await self._fetch(self._http, address, network)
            async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as http:
                return await self._fetch(http, address, network)
        except Exception as e:
            logger.warning(f"History degraded for {address} on {network.name}: {e}")
            return []

    async def _fetch(
        self, http: httpx.AsyncClient, address: str, network: Network
    ) -> list[TransactionRecord]:
        native_entries = await self._query(http, network, NATIVE_ACTION, address)
        native = _map_entries(native_entries, lambda e: _native_record(e, network), NATIVE_ACTION)

        if self.cooldown:
            logger.debug(f"Indexer cooldown {self.cooldown}s before {TOKEN_ACTION}")
            await asyncio.sleep(self.cooldown)

        token_entries = await self._query(http, network, TOKEN_ACTION, address)
        tokens = _map_entries(token_entries, _token_record, TOKEN_ACTION)

        records = merge_records(native, tokens, limit=self.max_records)
        logger.info(
            f"History for {address} on {network.name}: {len(native)} native, "
            f"{len(tokens)} token, {len(records)} merged"
        )
        return records

    async def _query(
        self, http: httpx.AsyncClient, network: Network, action: str, address: str
    ) -> list[dict]:
        """One logical query with retries. Exhausted retries yield []."""
        try:
            return await self.policy.run(
                lambda: self._request(http, network, action, address),
                retry_on=(IndexerError, httpx.HTTPError),
                label=f"{network.name} {action}",
            )
        except (RateLimited, IndexerError, httpx.HTTPError) as e:
            logger.warning(f"History degraded: {action} on {network.name} gave up: {e}")
            return []

    async def _request(
        self, http: httpx.AsyncClient, network: Network, action: str, address: str
    ) -> list[dict]:
        params: dict[str, Any] = {
            "module": "account",
            "action": action,
            "address": address,
            "startblock": 0,
            "endblock": 99999999,
            "page": 1,
            "offset": self.max_records,
            "sort": "desc",
            # Cache buster: a cached empty/error answer must not be replayed
            "_": time.time_ns(),
        }
        if self.api_key:
            params["apikey"] = self.api_key

        resp = await http.get(network.api_base_url, params=params)
        if resp.status_code == 429:
            raise RateLimited(f"HTTP 429 from {network.name} indexer")
        resp.raise_for_status()

        try:
            payload = resp.json()
        except ValueError as e:
            raise IndexerError(f"Malformed indexer response: {e}") from e
        if not isinstance(payload, dict):
            raise IndexerError("Malformed indexer response: not an object")

        status = str(payload.get("status", "0"))
        message = str(payload.get("message", ""))
        result = payload.get("result")

        if status == "1" and isinstance(result, list):
            return result
        if _is_rate_limited(message, result):
            raise RateLimited(f"{network.name} indexer: {result or message}")
        if _is_no_results(message, result):
            return []
        raise IndexerError(f"{network.name} indexer: {result or message}")
