"""
Unlocked wallet session.

Holds the decrypted accounts, tracked tokens and custom networks in
memory for the duration of a session, and reseals the whole vault under
the session password after every change. Writers are serialized by one
asyncio lock; balance refresh reads a snapshot outside the lock and
merges its results back under it.
"""

import asyncio
import hmac
import uuid
from typing import Any, Callable

from loguru import logger

from wallet_core.chain_client import ChainClient
from wallet_core.chains import DEFAULT_TOKENS, PRESET_NETWORKS, is_default_token
from wallet_core.errors import (
    AccountExists,
    AuthError,
    NetworkConflict,
    PasswordTooShort,
    SwapFailed,
    UnknownAccount,
    UnknownNetwork,
    UnknownToken,
    WalletError,
    WalletLocked,
)
from wallet_core.models import Account, Network, SwapQuote, Token, TransactionRecord, VaultBundle
from wallet_core.paths import MIN_PASSWORD_LENGTH
from wallet_core.services.balances import (
    BALANCE_CALL_DELAY_SECONDS,
    TokenRegistry,
    fetch_balances,
    lookup_token,
)
from wallet_core.services.history import HistoryAggregator
from wallet_core.services.swap import SwapOrchestrator
from wallet_core.services.transfers import send
from wallet_core.wallet import accounts as account_keys
from wallet_core.wallet.encryption import open_vault, seal_vault
from wallet_core.wallet.storage import WalletStorage


class WalletManager:
    """
    Account, token and network CRUD plus the engine's chain operations.

    Nothing here is available until ``create_vault`` or ``unlock``; ``lock``
    drops every piece of decrypted state.
    """

    def __init__(
        self,
        storage: Any = None,
        client_factory: Callable[[Network], Any] = ChainClient,
        history: HistoryAggregator | None = None,
        balance_delay: float = BALANCE_CALL_DELAY_SECONDS,
        kdf_params: dict[str, int] | None = None,
    ) -> None:
        self.storage = storage or WalletStorage()
        self.history = history or HistoryAggregator()
        self.balance_delay = balance_delay
        self._client_factory = client_factory
        self._kdf_params = kdf_params or {}
        self._lock = asyncio.Lock()
        self._clients: dict[int, Any] = {}
        self._swaps: dict[int, SwapOrchestrator] = {}
        self._reset_session()

    def _reset_session(self) -> None:
        self._password: str | None = None
        self._accounts: list[Account] = []
        self._tokens = TokenRegistry(DEFAULT_TOKENS)
        self._custom_networks: list[Network] = []
        self.active_account_id: str | None = None
        self._swaps.clear()

    # =========================================================================
    # VAULT LIFECYCLE
    # =========================================================================

    def has_vault(self) -> bool:
        return self.storage.exists()

    @property
    def is_unlocked(self) -> bool:
        return self._password is not None

    def _require_unlocked(self) -> None:
        if self._password is None:
            raise WalletLocked("Wallet is locked")

    def _bundle(self) -> VaultBundle:
        return VaultBundle(
            accounts=list(self._accounts),
            custom_tokens=[t for t in self._tokens.snapshot() if not is_default_token(t)],
            custom_networks=list(self._custom_networks),
        )

    async def _save(self) -> None:
        """Rebuild the bundle and replace the stored blob. Caller holds the lock."""
        blob = await asyncio.to_thread(
            seal_vault, self._bundle(), self._password, **self._kdf_params
        )
        self.storage.save(blob)
        logger.info(
            f"Vault saved ({len(self._accounts)} accounts, "
            f"{len(self._custom_networks)} custom networks)"
        )

    async def create_vault(self, password: str) -> None:
        """Start a new, empty vault protected by password."""
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise PasswordTooShort(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        if self.has_vault():
            raise WalletError("A vault already exists; reset it first")
        async with self._lock:
            self._reset_session()
            self._password = password
            try:
                await self._save()
            except Exception:
                self._reset_session()
                raise
        logger.info("New vault created")

    async def unlock(self, password: str) -> None:
        """
        Decrypt the vault and load its contents.

        Raises:
            AuthError: Wrong password or corrupted vault.
        """
        blob = self.storage.load()
        if blob is None:
            raise WalletError("No vault to unlock")
        bundle = await asyncio.to_thread(open_vault, blob, password)

        async with self._lock:
            self._reset_session()
            preset_ids = {n.chain_id for n in PRESET_NETWORKS}
            for network in bundle.custom_networks:
                if network.chain_id in preset_ids or any(
                    n.chain_id == network.chain_id for n in self._custom_networks
                ):
                    logger.warning(f"Skipping custom network {network.name}: chain id {network.chain_id} in use")
                    continue
                self._custom_networks.append(network)

            # Built-ins first; a custom token duplicating one is dropped
            self._tokens = TokenRegistry([*DEFAULT_TOKENS, *bundle.custom_tokens])
            self._accounts = list(bundle.accounts)
            self.active_account_id = self._accounts[0].id if self._accounts else None
            self._password = password

        logger.info(f"Vault unlocked with {len(self._accounts)} accounts")

    def lock(self) -> None:
        """Discard all decrypted state."""
        self._reset_session()
        logger.info("Vault locked")

    def reset(self) -> None:
        """Delete the stored vault and lock."""
        self.storage.clear()
        self.lock()

    # =========================================================================
    # NETWORKS
    # =========================================================================

    @property
    def networks(self) -> list[Network]:
        return [*PRESET_NETWORKS, *self._custom_networks]

    def get_network(self, chain_id: int) -> Network:
        for network in self.networks:
            if network.chain_id == chain_id:
                return network
        raise UnknownNetwork(f"No network with chain id {chain_id}")

    async def add_network(self, network: Network) -> Network:
        """Add a custom network and track its native asset."""
        self._require_unlocked()
        async with self._lock:
            if any(n.chain_id == network.chain_id for n in self.networks):
                raise NetworkConflict(f"Chain id {network.chain_id} is already configured")
            self._custom_networks.append(network)
            native = Token.native(network)
            if not self._tokens.contains(native.address, native.chain_id):
                self._tokens.add(native)
            await self._save()
        logger.info(f"Added network {network.name} ({network.chain_id})")
        return network

    async def remove_network(self, chain_id: int) -> None:
        """Remove a custom network and every token tracked on it."""
        self._require_unlocked()
        async with self._lock:
            network = next((n for n in self._custom_networks if n.chain_id == chain_id), None)
            if network is None:
                self.get_network(chain_id)
                raise WalletError("Preset networks cannot be removed")
            self._custom_networks.remove(network)
            self._tokens.remove_chain(chain_id)
            self._clients.pop(chain_id, None)
            self._swaps.pop(chain_id, None)
            await self._save()
        logger.info(f"Removed network {network.name} ({chain_id})")

    def client_for(self, network: Network) -> Any:
        client = self._clients.get(network.chain_id)
        if client is None or client.network != network:
            client = self._client_factory(network)
            self._clients[network.chain_id] = client
        return client

    def swap_for(self, network: Network) -> SwapOrchestrator:
        orchestrator = self._swaps.get(network.chain_id)
        if orchestrator is None:
            orchestrator = SwapOrchestrator(self.client_for(network), network)
            self._swaps[network.chain_id] = orchestrator
        return orchestrator

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    @property
    def accounts(self) -> list[Account]:
        self._require_unlocked()
        return list(self._accounts)

    def get_account(self, account_id: str | None = None) -> Account:
        """Account by id, or the active account when id is None."""
        self._require_unlocked()
        account_id = account_id or self.active_account_id
        for account in self._accounts:
            if account.id == account_id:
                return account
        raise UnknownAccount(f"No account {account_id!r}")

    @property
    def active_account(self) -> Account | None:
        if not self.is_unlocked or self.active_account_id is None:
            return None
        return self.get_account(self.active_account_id)

    def set_active_account(self, account_id: str) -> Account:
        account = self.get_account(account_id)
        self.active_account_id = account.id
        return account

    def export_secret(self, account_id: str, password: str) -> dict[str, str | None]:
        """
        Reveal an account's key material after re-entering the vault password.

        Raises:
            AuthError: password does not match the session password.
        """
        account = self.get_account(account_id)
        if not hmac.compare_digest(password.encode(), self._password.encode()):
            logger.warning(f"Rejected key export for {account.name}: wrong password")
            raise AuthError("Incorrect password")
        logger.info(f"Exported key material for {account.name}")
        return {"privateKey": account.private_key, "mnemonic": account.mnemonic}

    async def _add_account(self, keys: account_keys.KeyMaterial, name: str) -> Account:
        async with self._lock:
            if any(a.address == keys.address for a in self._accounts):
                raise AccountExists(f"Account {keys.address} is already in this wallet")
            account = Account(
                id=uuid.uuid4().hex,
                name=name,
                private_key=keys.private_key,
                mnemonic=keys.mnemonic,
            )
            self._accounts.append(account)
            if self.active_account_id is None:
                self.active_account_id = account.id
            await self._save()
        logger.info(f"Added account {account.name} ({account.address})")
        return account

    async def create_account(self, name: str | None = None) -> Account:
        """Generate a new account; its recovery phrase is on ``account.mnemonic``."""
        self._require_unlocked()
        keys = account_keys.generate()
        return await self._add_account(keys, name or f"Wallet {len(self._accounts) + 1}")

    async def import_account(self, secret: str, name: str | None = None) -> Account:
        """
        Import from a recovery phrase (anything with whitespace) or a raw key.

        Raises:
            InvalidPhrase / InvalidKey: Malformed input.
            AccountExists: The address is already held.
        """
        self._require_unlocked()
        if account_keys.is_phrase(secret):
            keys = account_keys.import_from_phrase(secret)
        else:
            keys = account_keys.import_from_key(secret)
        return await self._add_account(keys, name or f"Imported {len(self._accounts) + 1}")

    async def rename_account(self, account_id: str, name: str) -> Account:
        account = self.get_account(account_id)
        async with self._lock:
            account.name = name
            await self._save()
        return account

    async def remove_account(self, account_id: str) -> None:
        account = self.get_account(account_id)
        async with self._lock:
            self._accounts.remove(account)
            if self.active_account_id == account.id:
                self.active_account_id = self._accounts[0].id if self._accounts else None
            await self._save()
        logger.info(f"Removed account {account.name}")

    # =========================================================================
    # TOKENS
    # =========================================================================

    @property
    def tokens(self) -> list[Token]:
        return list(self._tokens.snapshot())

    def tokens_for(self, chain_id: int) -> list[Token]:
        return self._tokens.for_chain(chain_id)

    def get_token(self, chain_id: int, address: str) -> Token:
        token = self._tokens.get(address, chain_id)
        if token is None:
            raise UnknownToken(f"Token {address} is not tracked on chain {chain_id}")
        return token

    async def lookup_token(self, chain_id: int, address: str) -> Token:
        """Preview token metadata without tracking it."""
        network = self.get_network(chain_id)
        return await lookup_token(self.client_for(network), address, network, self._tokens)

    async def import_token(self, chain_id: int, address: str) -> Token:
        """Look up and start tracking a token."""
        self._require_unlocked()
        token = await self.lookup_token(chain_id, address)
        async with self._lock:
            self._tokens.add(token)
            await self._save()
        return token

    async def remove_token(self, chain_id: int, address: str) -> None:
        self._require_unlocked()
        token = self.get_token(chain_id, address)
        if is_default_token(token):
            raise WalletError("Built-in tokens cannot be removed")
        async with self._lock:
            self._tokens.remove(token.address, chain_id)
            await self._save()

    # =========================================================================
    # CHAIN OPERATIONS
    # =========================================================================

    async def refresh_balances(self, chain_id: int, account_id: str | None = None) -> list[Token]:
        """
        Refresh balances on one network for an account.

        Returns:
            Tokens on that network after the merge
        """
        account = self.get_account(account_id)
        network = self.get_network(chain_id)
        snapshot = self._tokens.snapshot()

        updates = await fetch_balances(
            self.client_for(network), account.address, network, snapshot, self.balance_delay
        )

        async with self._lock:
            if not self.is_unlocked:
                return []
            self._tokens.merge_balances(updates)
            if any(not is_default_token(t) and t.key in updates for t in snapshot):
                await self._save()
        return self.tokens_for(chain_id)

    async def quote_swap(
        self, chain_id: int, amount_in: str, token_in: str, token_out: str
    ) -> SwapQuote | None:
        account = self.get_account()
        network = self.get_network(chain_id)
        return await self.swap_for(network).prepare_quote(
            account.address,
            amount_in,
            self.get_token(chain_id, token_in),
            self.get_token(chain_id, token_out),
        )

    async def approve_swap(self, chain_id: int, token_in: str) -> str | None:
        account = self.get_account()
        network = self.get_network(chain_id)
        if not network.router_address:
            raise SwapFailed(f"Swapping is not supported on {network.name}")
        return await self.swap_for(network).approve(
            account, self.get_token(chain_id, token_in), network.router_address
        )

    async def execute_swap(
        self, chain_id: int, amount_in: str, token_in: str, token_out: str
    ) -> str:
        """Execute against the current quote; a stale or missing quote is refused."""
        account = self.get_account()
        network = self.get_network(chain_id)
        tin = self.get_token(chain_id, token_in)
        tout = self.get_token(chain_id, token_out)
        orchestrator = self.swap_for(network)

        quote = orchestrator.current_quote
        if quote is None or not quote.matches(amount_in, tin, tout):
            raise SwapFailed("Quote is missing or stale. Re-quote before swapping.")
        if quote.needs_approval:
            raise SwapFailed(f"{tin.symbol} must be approved before swapping")
        return await orchestrator.execute(
            account, amount_in, quote.amount_out, tin, tout, network.router_address
        )

    async def send(
        self, chain_id: int, token_address: str, to_address: str, amount: str
    ) -> str:
        account = self.get_account()
        network = self.get_network(chain_id)
        token = self.get_token(chain_id, token_address)
        return await send(self.client_for(network), account, token, to_address, amount)

    async def fetch_history(
        self, chain_id: int, account_id: str | None = None
    ) -> list[TransactionRecord]:
        account = self.get_account(account_id)
        return await self.history.fetch(account.address, self.get_network(chain_id))
