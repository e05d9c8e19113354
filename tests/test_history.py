import unittest
from dataclasses import replace

import httpx

from tests.fakes import DEV_ADDRESS, TEST_NETWORK
from wallet_core.models import TransactionRecord
from wallet_core.retry import RetryPolicy
from wallet_core.services.history import HistoryAggregator, merge_records

NO_WAIT = RetryPolicy(max_attempts=3, base_delay=0, rate_limit_multiplier=2)


def _native(tx_hash: str, ts: int, value: str = "1000", **extra) -> dict:
    return {"hash": tx_hash, "from": DEV_ADDRESS, "to": "0xabc", "value": value, "timeStamp": str(ts), **extra}


def _token(tx_hash: str, ts: int, symbol: str = "USDT", decimals: str = "18") -> dict:
    entry = _native(tx_hash, ts)
    entry.update(tokenSymbol=symbol, tokenDecimal=decimals)
    return entry


def _ok(result: list) -> dict:
    return {"status": "1", "message": "OK", "result": result}


RATE_LIMITED = {"status": "0", "message": "NOTOK", "result": "Max rate limit reached"}
NO_RESULTS = {"status": "0", "message": "No transactions found", "result": []}


class ScriptedIndexer:
    """Serves queued JSON answers per action and records every request."""

    def __init__(self, answers: dict[str, list]) -> None:
        self.answers = answers
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.answers[request.url.params["action"]]
        answer = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(answer, int):
            return httpx.Response(answer, json={})
        return httpx.Response(200, json=answer)

    def actions(self) -> list[str]:
        return [r.url.params["action"] for r in self.requests]


class HistoryAggregatorTests(unittest.IsolatedAsyncioTestCase):
    async def _fetch(self, indexer: ScriptedIndexer, network=TEST_NETWORK) -> list[TransactionRecord]:
        async with httpx.AsyncClient(transport=httpx.MockTransport(indexer)) as http:
            aggregator = HistoryAggregator(http=http, policy=NO_WAIT, cooldown=0, api_key="key")
            return await aggregator.fetch(DEV_ADDRESS, network)

    async def test_rate_limit_is_retried_until_success(self) -> None:
        indexer = ScriptedIndexer(
            {
                "txlist": [RATE_LIMITED, RATE_LIMITED, _ok([_native("0x01", 100)])],
                "tokentx": [NO_RESULTS],
            }
        )

        records = await self._fetch(indexer)

        self.assertEqual([r.hash for r in records], ["0x01"])
        self.assertEqual(indexer.actions(), ["txlist", "txlist", "txlist", "tokentx"])
        busters = [r.url.params["_"] for r in indexer.requests[:3]]
        self.assertEqual(len(set(busters)), 3)

    async def test_http_429_counts_as_rate_limit(self) -> None:
        indexer = ScriptedIndexer({"txlist": [429, _ok([_native("0x01", 100)])], "tokentx": [NO_RESULTS]})
        records = await self._fetch(indexer)
        self.assertEqual(len(records), 1)

    async def test_same_hash_native_and_token_are_both_kept(self) -> None:
        indexer = ScriptedIndexer(
            {
                "txlist": [_ok([_native("0xaa", 200)])],
                "tokentx": [_ok([_token("0xaa", 200, "USDT"), _token("0xaa", 200, "USDT")])],
            }
        )

        records = await self._fetch(indexer)

        self.assertEqual(sorted(r.symbol for r in records), ["TST", "USDT"])

    async def test_no_transactions_is_empty_without_retry(self) -> None:
        indexer = ScriptedIndexer({"txlist": [NO_RESULTS], "tokentx": [NO_RESULTS]})
        self.assertEqual(await self._fetch(indexer), [])
        self.assertEqual(indexer.actions(), ["txlist", "tokentx"])

    async def test_exhausted_retries_degrade_to_partial_history(self) -> None:
        indexer = ScriptedIndexer({"txlist": [RATE_LIMITED], "tokentx": [_ok([_token("0xbb", 50)])]})

        records = await self._fetch(indexer)

        self.assertEqual([r.hash for r in records], ["0xbb"])
        self.assertEqual(indexer.actions().count("txlist"), 3)

    async def test_server_errors_never_raise(self) -> None:
        indexer = ScriptedIndexer({"txlist": [500], "tokentx": [500]})
        self.assertEqual(await self._fetch(indexer), [])
        self.assertEqual(len(indexer.requests), 6)

    async def test_failed_native_transactions_are_flagged(self) -> None:
        indexer = ScriptedIndexer(
            {
                "txlist": [_ok([_native("0x01", 2, isError="1"), _native("0x02", 1, txreceipt_status="1")])],
                "tokentx": [NO_RESULTS],
            }
        )
        records = await self._fetch(indexer)
        self.assertEqual([(r.hash, r.success) for r in records], [("0x01", False), ("0x02", True)])

    async def test_malformed_entries_are_skipped_individually(self) -> None:
        indexer = ScriptedIndexer(
            {
                "txlist": [
                    _ok(
                        [
                            _native("0x01", 300),
                            _native("0x02", "yesterday"),
                            "0xnot-a-dict-hash",
                            {"from": DEV_ADDRESS},
                            _native("0x03", 100, value=""),
                        ]
                    )
                ],
                "tokentx": [_ok([_token("0x04", 200, decimals="six"), _token("0x05", 50)])],
            }
        )

        records = await self._fetch(indexer)

        self.assertEqual([r.hash for r in records], ["0x01", "0x03", "0x05"])
        self.assertEqual(records[1].value, "0")

    async def test_request_parameters(self) -> None:
        indexer = ScriptedIndexer({"txlist": [NO_RESULTS], "tokentx": [NO_RESULTS]})
        await self._fetch(indexer)
        params = indexer.requests[0].url.params
        self.assertEqual(params["module"], "account")
        self.assertEqual(params["address"], DEV_ADDRESS)
        self.assertEqual(params["sort"], "desc")
        self.assertEqual(params["apikey"], "key")

    async def test_network_without_indexer(self) -> None:
        indexer = ScriptedIndexer({})
        records = await self._fetch(indexer, replace(TEST_NETWORK, api_base_url=None))
        self.assertEqual(records, [])
        self.assertEqual(indexer.requests, [])


class MergeRecordsTests(unittest.TestCase):
    def _record(self, tx_hash: str, ts: int, symbol: str = "TST") -> TransactionRecord:
        return TransactionRecord(
            hash=tx_hash, sender="a", recipient="b", value="1", timestamp=ts, symbol=symbol, decimals=18
        )

    def test_sorted_newest_first_and_capped(self) -> None:
        native = [self._record(f"0x{i:02x}", i) for i in range(40)]
        tokens = [self._record(f"0x{i:02x}", i, "USDT") for i in range(30, 60)]

        merged = merge_records(native, tokens, limit=50)

        self.assertEqual(len(merged), 50)
        stamps = [r.timestamp for r in merged]
        self.assertEqual(stamps, sorted(stamps, reverse=True))
        self.assertEqual(merged[0].timestamp, 59)

    def test_first_occurrence_wins(self) -> None:
        first = self._record("0x01", 1)
        duplicate = replace(first, value="999")
        self.assertEqual(merge_records([first], [duplicate]), [first])


if __name__ == "__main__":
    unittest.main()
