import unittest
from types import SimpleNamespace

from web3.exceptions import TimeExhausted

from tests.fakes import DEV_ADDRESS, TEST_NETWORK
from wallet_core.chain_client import ChainClient
from wallet_core.errors import TransactionFailed


class StubEth:
    def __init__(self, code: bytes = b"", receipt: dict | None = None, timeout: bool = False) -> None:
        self.code = code
        self.receipt = receipt or {"status": 1}
        self.timeout = timeout
        self.requested: list[str] = []

    async def get_code(self, address: str) -> bytes:
        self.requested.append(address)
        return self.code

    async def get_balance(self, address: str) -> int:
        self.requested.append(address)
        return 42

    async def wait_for_transaction_receipt(self, tx_hash: str, timeout: float) -> dict:
        if self.timeout:
            raise TimeExhausted(f"{tx_hash} not mined")
        return self.receipt


def _client(eth: StubEth) -> ChainClient:
    return ChainClient(TEST_NETWORK, w3=SimpleNamespace(eth=eth))


class ChainClientTests(unittest.IsolatedAsyncioTestCase):
    async def test_reads_use_checksummed_addresses(self) -> None:
        eth = StubEth()
        self.assertEqual(await _client(eth).get_native_balance(DEV_ADDRESS.lower()), 42)
        self.assertEqual(eth.requested, [DEV_ADDRESS])

    async def test_is_contract(self) -> None:
        self.assertFalse(await _client(StubEth(code=b"")).is_contract(DEV_ADDRESS))
        self.assertTrue(await _client(StubEth(code=b"\x60\x80")).is_contract(DEV_ADDRESS))

    async def test_successful_receipt(self) -> None:
        receipt = await _client(StubEth(receipt={"status": 1, "blockNumber": 7})).wait_for_receipt("0x01")
        self.assertEqual(receipt["blockNumber"], 7)

    async def test_reverted_receipt(self) -> None:
        with self.assertRaises(TransactionFailed):
            await _client(StubEth(receipt={"status": 0})).wait_for_receipt("0x01")

    async def test_receipt_timeout(self) -> None:
        with self.assertRaises(TransactionFailed):
            await _client(StubEth(timeout=True)).wait_for_receipt("0x01", timeout=1)


if __name__ == "__main__":
    unittest.main()
