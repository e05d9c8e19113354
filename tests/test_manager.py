import asyncio
import unittest

from tests.fakes import (
    DEV_ADDRESS,
    DEV_KEY,
    DEV_PHRASE,
    TEST_NETWORK,
    TOKEN_A,
    TOKEN_B,
    FakeChainClient,
)
from wallet_core.chains import BSC, DEFAULT_TOKENS
from wallet_core.errors import (
    AccountExists,
    AlreadyTracked,
    AuthError,
    NetworkConflict,
    PasswordTooShort,
    SwapFailed,
    UnknownToken,
    WalletError,
    WalletLocked,
)
from wallet_core.models import Network, Token
from wallet_core.wallet import MemoryStorage, WalletManager
from wallet_core.wallet.encryption import open_vault

PASSWORD = "correct horse"
FAST_KDF = {"n": 2**10}


class GatedChainClient(FakeChainClient):
    """Native balance reads block until ``gate`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.gate = asyncio.Event()

    async def get_native_balance(self, address: str) -> int:
        await self.gate.wait()
        return await super().get_native_balance(address)


class SlowQuoteClient(FakeChainClient):
    """``getAmountsOut`` for exactly ``slow_amount`` blocks until ``gate`` is set."""

    slow_amount = 10**18

    def __init__(self) -> None:
        super().__init__()
        self.gate = asyncio.Event()

    async def call(self, contract_address: str, abi: list, fn_name: str, *args):
        if fn_name == "getAmountsOut" and args[0] == self.slow_amount:
            await self.gate.wait()
        return await super().call(contract_address, abi, fn_name, *args)


def _register_token(client: FakeChainClient, address: str, symbol: str, decimals: int) -> None:
    key = address.lower()
    client.contracts.add(key)
    client.responses[(key, "name")] = f"{symbol} Token"
    client.responses[(key, "symbol")] = symbol
    client.responses[(key, "decimals")] = decimals


class ManagerTestCase(unittest.IsolatedAsyncioTestCase):
    client_class = FakeChainClient

    async def asyncSetUp(self) -> None:
        self.storage = MemoryStorage()
        self.client = self.client_class()
        self.manager = self._manager()
        await self.manager.create_vault(PASSWORD)

    def _manager(self) -> WalletManager:
        return WalletManager(
            storage=self.storage,
            client_factory=self.client.factory(),
            balance_delay=0,
            kdf_params=FAST_KDF,
        )


class VaultLifecycleTests(ManagerTestCase):
    async def test_unlock_restores_accounts(self) -> None:
        account = await self.manager.import_account(DEV_PHRASE, "Main")

        other = self._manager()
        self.assertFalse(other.is_unlocked)
        await other.unlock(PASSWORD)

        restored = other.get_account()
        self.assertEqual(restored.id, account.id)
        self.assertEqual(restored.address, DEV_ADDRESS)
        self.assertEqual(restored.mnemonic, " ".join(DEV_PHRASE.split()))

    async def test_wrong_password(self) -> None:
        other = self._manager()
        with self.assertRaises(AuthError):
            await other.unlock("wrong password")
        self.assertFalse(other.is_unlocked)

    async def test_lock_discards_state(self) -> None:
        await self.manager.import_account(DEV_KEY)
        self.manager.lock()
        self.assertIsNone(self.manager.active_account)
        with self.assertRaises(WalletLocked):
            self.manager.accounts
        with self.assertRaises(WalletLocked):
            await self.manager.create_account()

    async def test_short_password_and_existing_vault(self) -> None:
        with self.assertRaises(PasswordTooShort):
            await self._manager().create_vault("abc")
        with self.assertRaises(WalletError):
            await self._manager().create_vault(PASSWORD)

    async def test_failed_first_save_leaves_session_locked(self) -> None:
        class FullDisk(MemoryStorage):
            def save(self, blob: str) -> None:
                raise OSError("No space left on device")

        manager = WalletManager(storage=FullDisk(), client_factory=self.client.factory(), kdf_params=FAST_KDF)
        with self.assertRaises(OSError):
            await manager.create_vault(PASSWORD)
        self.assertFalse(manager.is_unlocked)
        self.assertFalse(manager.has_vault())
        with self.assertRaises(WalletLocked):
            await manager.create_account()

    async def test_reset_deletes_vault(self) -> None:
        self.manager.reset()
        self.assertFalse(self.manager.has_vault())
        self.assertFalse(self.manager.is_unlocked)

    async def test_every_change_reseals_the_vault(self) -> None:
        before = self.storage.blob
        account = await self.manager.create_account()
        self.assertNotEqual(self.storage.blob, before)
        bundle = open_vault(self.storage.blob, PASSWORD)
        self.assertEqual([a.id for a in bundle.accounts], [account.id])


class AccountTests(ManagerTestCase):
    async def test_create_account_defaults(self) -> None:
        first = await self.manager.create_account()
        second = await self.manager.create_account("Savings")
        self.assertEqual(first.name, "Wallet 1")
        self.assertEqual(second.name, "Savings")
        self.assertEqual(len(first.mnemonic.split()), 12)
        self.assertEqual(self.manager.active_account.id, first.id)

    async def test_import_detects_phrase_or_key(self) -> None:
        from_key = await self.manager.import_account(DEV_KEY)
        self.assertIsNone(from_key.mnemonic)
        self.assertEqual(from_key.name, "Imported 1")

    async def test_same_address_cannot_be_added_twice(self) -> None:
        await self.manager.import_account(DEV_PHRASE)
        with self.assertRaises(AccountExists):
            await self.manager.import_account(DEV_KEY)
        self.assertEqual(len(self.manager.accounts), 1)

    async def test_rename_activate_remove(self) -> None:
        first = await self.manager.create_account()
        second = await self.manager.import_account(DEV_KEY)

        await self.manager.rename_account(second.id, "Hot")
        self.manager.set_active_account(second.id)
        self.assertEqual(self.manager.active_account.name, "Hot")

        await self.manager.remove_account(second.id)
        self.assertEqual(self.manager.active_account_id, first.id)

    async def test_export_secret_requires_vault_password(self) -> None:
        account = await self.manager.import_account(DEV_PHRASE)

        secret = self.manager.export_secret(account.id, PASSWORD)
        self.assertEqual(secret["privateKey"], DEV_KEY)
        self.assertEqual(secret["mnemonic"], DEV_PHRASE)

        with self.assertRaises(AuthError):
            self.manager.export_secret(account.id, PASSWORD + "x")
        self.manager.lock()
        with self.assertRaises(WalletLocked):
            self.manager.export_secret(account.id, PASSWORD)

    async def test_public_dict_has_no_key_material(self) -> None:
        account = await self.manager.import_account(DEV_PHRASE)
        public = account.public_dict()
        self.assertNotIn("privateKey", public)
        self.assertNotIn("mnemonic", public)
        self.assertTrue(public["hasMnemonic"])


class NetworkAndTokenTests(ManagerTestCase):
    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        await self.manager.import_account(DEV_KEY)
        await self.manager.add_network(TEST_NETWORK)
        _register_token(self.client, TOKEN_A, "TKA", 18)
        _register_token(self.client, TOKEN_B, "TKB", 6)

    async def test_add_network_tracks_native_asset(self) -> None:
        native = self.manager.get_token(TEST_NETWORK.chain_id, Token.native(TEST_NETWORK).address)
        self.assertTrue(native.is_native)
        self.assertEqual(native.symbol, "TST")

    async def test_duplicate_chain_id_is_rejected(self) -> None:
        clash = Network(name="Fake BSC", rpc_url="http://x", chain_id=BSC.chain_id, symbol="FBNB")
        with self.assertRaises(NetworkConflict):
            await self.manager.add_network(clash)
        with self.assertRaises(NetworkConflict):
            await self.manager.add_network(TEST_NETWORK)

    async def test_custom_tokens_persist_and_defaults_do_not(self) -> None:
        await self.manager.import_token(TEST_NETWORK.chain_id, TOKEN_A)

        bundle = open_vault(self.storage.blob, PASSWORD)
        persisted = {(t.symbol, t.chain_id) for t in bundle.custom_tokens}
        self.assertEqual(persisted, {("TST", 31337), ("TKA", 31337)})
        self.assertEqual([n.chain_id for n in bundle.custom_networks], [31337])

        other = self._manager()
        await other.unlock(PASSWORD)
        self.assertEqual(len(other.tokens), len(DEFAULT_TOKENS) + 2)
        self.assertEqual(other.get_token(31337, TOKEN_A.lower()).symbol, "TKA")

    async def test_import_token_twice(self) -> None:
        await self.manager.import_token(TEST_NETWORK.chain_id, TOKEN_A)
        with self.assertRaises(AlreadyTracked):
            await self.manager.import_token(TEST_NETWORK.chain_id, TOKEN_A.lower())

    async def test_builtin_tokens_cannot_be_removed(self) -> None:
        builtin = DEFAULT_TOKENS[0]
        with self.assertRaises(WalletError):
            await self.manager.remove_token(builtin.chain_id, builtin.address)

    async def test_remove_network_drops_its_tokens(self) -> None:
        await self.manager.import_token(TEST_NETWORK.chain_id, TOKEN_A)
        await self.manager.remove_network(TEST_NETWORK.chain_id)
        self.assertEqual(self.manager.tokens_for(TEST_NETWORK.chain_id), [])
        with self.assertRaises(UnknownToken):
            self.manager.get_token(TEST_NETWORK.chain_id, TOKEN_A)
        with self.assertRaises(WalletError):
            await self.manager.remove_network(BSC.chain_id)

    async def test_refresh_updates_balances(self) -> None:
        await self.manager.import_token(TEST_NETWORK.chain_id, TOKEN_B)
        self.client.native_balances[DEV_ADDRESS.lower()] = 2 * 10**18
        self.client.responses[(TOKEN_B.lower(), "balanceOf")] = 1_250_000

        tokens = await self.manager.refresh_balances(TEST_NETWORK.chain_id)

        self.assertEqual({t.symbol: t.balance for t in tokens}, {"TST": "2", "TKB": "1.25"})
        persisted = open_vault(self.storage.blob, PASSWORD).custom_tokens
        self.assertIn("1.25", [t.balance for t in persisted])

    async def test_stale_quote_is_refused(self) -> None:
        await self.manager.import_token(TEST_NETWORK.chain_id, TOKEN_A)
        await self.manager.import_token(TEST_NETWORK.chain_id, TOKEN_B)
        self.client.responses[(TOKEN_A.lower(), "allowance")] = 10**30
        self.client.responses[(TEST_NETWORK.router_address.lower(), "getAmountsOut")] = (
            lambda amount, path: [amount, amount // 10**12]
        )

        quote = await self.manager.quote_swap(TEST_NETWORK.chain_id, "1", TOKEN_A, TOKEN_B)
        self.assertEqual(quote.amount_out, "1")

        with self.assertRaises(SwapFailed):
            await self.manager.execute_swap(TEST_NETWORK.chain_id, "2", TOKEN_A, TOKEN_B)
        self.assertEqual(self.client.transactions, [])

        tx_hash = await self.manager.execute_swap(TEST_NETWORK.chain_id, "1", TOKEN_A, TOKEN_B)
        self.assertEqual(self.client.transactions[-1]["hash"], tx_hash)

    async def test_unapproved_quote_is_refused(self) -> None:
        await self.manager.import_token(TEST_NETWORK.chain_id, TOKEN_A)
        await self.manager.import_token(TEST_NETWORK.chain_id, TOKEN_B)
        self.client.responses[(TOKEN_A.lower(), "allowance")] = 0
        self.client.responses[(TEST_NETWORK.router_address.lower(), "getAmountsOut")] = [1, 1]

        quote = await self.manager.quote_swap(TEST_NETWORK.chain_id, "1", TOKEN_A, TOKEN_B)
        self.assertTrue(quote.needs_approval)
        with self.assertRaises(SwapFailed):
            await self.manager.execute_swap(TEST_NETWORK.chain_id, "1", TOKEN_A, TOKEN_B)

        await self.manager.approve_swap(TEST_NETWORK.chain_id, TOKEN_A)
        await self.manager.execute_swap(TEST_NETWORK.chain_id, "1", TOKEN_A, TOKEN_B)
        self.assertEqual([tx["fn"] for tx in self.client.transactions], ["approve", "swapExactTokensForTokens"])


class OverlappingQuoteTests(ManagerTestCase):
    client_class = SlowQuoteClient

    async def test_older_quote_finishing_last_is_discarded(self) -> None:
        await self.manager.import_account(DEV_KEY)
        await self.manager.add_network(TEST_NETWORK)
        _register_token(self.client, TOKEN_A, "TKA", 18)
        _register_token(self.client, TOKEN_B, "TKB", 6)
        await self.manager.import_token(TEST_NETWORK.chain_id, TOKEN_A)
        await self.manager.import_token(TEST_NETWORK.chain_id, TOKEN_B)
        self.client.responses[(TOKEN_A.lower(), "allowance")] = 10**30
        self.client.responses[(TEST_NETWORK.router_address.lower(), "getAmountsOut")] = (
            lambda amount, path: [amount, amount // 10**12]
        )

        older = asyncio.create_task(
            self.manager.quote_swap(TEST_NETWORK.chain_id, "1", TOKEN_A, TOKEN_B)
        )
        await asyncio.sleep(0)
        newer = await self.manager.quote_swap(TEST_NETWORK.chain_id, "2", TOKEN_A, TOKEN_B)
        self.client.gate.set()

        self.assertIsNone(await older)
        self.assertEqual(newer.amount_in, "2")
        swap = self.manager.swap_for(TEST_NETWORK)
        self.assertIs(swap.current_quote, newer)
        self.assertEqual(swap.current_quote.amount_out, "2")

        tx_hash = await self.manager.execute_swap(TEST_NETWORK.chain_id, "2", TOKEN_A, TOKEN_B)
        self.assertEqual(self.client.transactions[-1]["hash"], tx_hash)


class ConcurrentRefreshTests(ManagerTestCase):
    client_class = GatedChainClient

    async def test_import_during_refresh_is_not_lost(self) -> None:
        await self.manager.import_account(DEV_KEY)
        await self.manager.add_network(TEST_NETWORK)
        _register_token(self.client, TOKEN_A, "TKA", 18)
        self.client.native_balances[DEV_ADDRESS.lower()] = 10**18

        refresh = asyncio.create_task(self.manager.refresh_balances(TEST_NETWORK.chain_id))
        await asyncio.sleep(0)
        await self.manager.import_token(TEST_NETWORK.chain_id, TOKEN_A)
        self.client.gate.set()
        await refresh

        tokens = {t.symbol: t.balance for t in self.manager.tokens_for(TEST_NETWORK.chain_id)}
        self.assertEqual(tokens, {"TST": "1", "TKA": "0"})
        self.assertIn("TKA", [t.symbol for t in open_vault(self.storage.blob, PASSWORD).custom_tokens])


if __name__ == "__main__":
    unittest.main()
