"""
Data models for accounts, networks, tokens, swaps and history.

Dict forms use the camelCase keys of the persisted vault bundle:
``{accounts: Account[], customTokens: Token[], customNetworks: Network[]}``.
"""

from dataclasses import dataclass, field, replace
from typing import Any

from eth_account import Account as EthAccount

from wallet_core.paths import NATIVE_TOKEN_ADDRESS

# =============================================================================
# ACCOUNTS & NETWORKS
# =============================================================================


@dataclass
class Account:
    """
    One controlled key identity.

    The address is always re-derived from the private key, so the two can
    never diverge. Key material is excluded from repr.
    """

    id: str
    name: str
    private_key: str = field(repr=False)
    mnemonic: str | None = field(default=None, repr=False)
    address: str = field(init=False)

    def __post_init__(self) -> None:
        self.address = EthAccount.from_key(self.private_key).address

    def to_dict(self) -> dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "privateKey": self.private_key,
        }
        if self.mnemonic:
            data["mnemonic"] = self.mnemonic
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Account":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            private_key=data["privateKey"],
            mnemonic=data.get("mnemonic") or None,
        )

    def public_dict(self) -> dict[str, Any]:
        """Account without key material, safe to hand to outer layers."""
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "hasMnemonic": self.mnemonic is not None,
        }


@dataclass(frozen=True)
class Network:
    """Chain identity. chain_id is unique within the active configuration."""

    name: str
    rpc_url: str
    chain_id: int
    symbol: str
    router_address: str | None = None
    api_base_url: str | None = None
    explorer_url: str | None = None
    native_decimals: int = 18

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "rpcUrl": self.rpc_url,
            "chainId": self.chain_id,
            "symbol": self.symbol,
            "routerAddress": self.router_address,
            "apiBaseUrl": self.api_base_url,
            "explorerUrl": self.explorer_url,
            "nativeDecimals": self.native_decimals,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Network":
        return cls(
            name=data["name"],
            rpc_url=data["rpcUrl"],
            chain_id=int(data["chainId"]),
            symbol=data["symbol"],
            router_address=data.get("routerAddress") or None,
            api_base_url=data.get("apiBaseUrl") or None,
            explorer_url=data.get("explorerUrl") or None,
            native_decimals=int(data.get("nativeDecimals", 18)),
        )


# =============================================================================
# TOKENS
# =============================================================================


@dataclass(frozen=True)
class Token:
    """
    Fungible asset on one network.

    Frozen so that decimals can never change after the metadata fetch; a
    balance update produces a new instance via ``with_balance``.
    """

    address: str
    symbol: str
    name: str
    decimals: int
    chain_id: int
    balance: str = "0"
    is_native: bool = False
    logo_url: str | None = None

    @property
    def key(self) -> tuple[str, int]:
        """Identity within the token set: (lowercased address, chain id)."""
        return (self.address.lower(), self.chain_id)

    def with_balance(self, balance: str) -> "Token":
        return replace(self, balance=balance)

    def to_dict(self) -> dict[str, Any]:
        data = {
            "address": self.address,
            "symbol": self.symbol,
            "name": self.name,
            "decimals": self.decimals,
            "balance": self.balance,
            "chainId": self.chain_id,
        }
        if self.is_native:
            data["isNative"] = True
        if self.logo_url:
            data["logoUrl"] = self.logo_url
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Token":
        return cls(
            address=data["address"],
            symbol=data["symbol"],
            name=data.get("name", data["symbol"]),
            decimals=int(data["decimals"]),
            chain_id=int(data["chainId"]),
            balance=str(data.get("balance", "0")),
            is_native=bool(data.get("isNative", False)),
            logo_url=data.get("logoUrl") or None,
        )

    @classmethod
    def native(cls, network: Network, name: str | None = None) -> "Token":
        """Native-asset token for a network (zero-address sentinel)."""
        return cls(
            address=NATIVE_TOKEN_ADDRESS,
            symbol=network.symbol,
            name=name or network.symbol,
            decimals=network.native_decimals,
            chain_id=network.chain_id,
            is_native=True,
        )


# =============================================================================
# SWAPS & HISTORY
# =============================================================================


@dataclass(frozen=True)
class SwapQuote:
    """Ephemeral quote. Never reuse across a changed amount or token pair."""

    token_in: Token
    token_out: Token
    amount_in: str
    amount_out: str
    allowance_ok: bool = True

    @property
    def needs_approval(self) -> bool:
        return not self.allowance_ok

    def matches(self, amount_in: str, token_in: Token, token_out: Token) -> bool:
        """True if this quote was computed for exactly these inputs."""
        return (
            self.amount_in == amount_in
            and self.token_in.key == token_in.key
            and self.token_out.key == token_out.key
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "tokenIn": self.token_in.to_dict(),
            "tokenOut": self.token_out.to_dict(),
            "amountIn": self.amount_in,
            "amountOut": self.amount_out,
            "needsApproval": self.needs_approval,
        }


@dataclass(frozen=True)
class TransactionRecord:
    """One observed on-chain event affecting an account."""

    hash: str
    sender: str
    recipient: str
    value: str
    timestamp: int
    symbol: str
    decimals: int
    success: bool = True

    @property
    def key(self) -> tuple[str, str]:
        """Dedup key: one hash may carry both a native and a token movement."""
        return (self.hash, self.symbol)

    def to_dict(self) -> dict[str, Any]:
        return {
            "hash": self.hash,
            "from": self.sender,
            "to": self.recipient,
            "value": self.value,
            "timeStamp": self.timestamp,
            "tokenSymbol": self.symbol,
            "tokenDecimal": self.decimals,
            "isError": not self.success,
        }


# =============================================================================
# VAULT BUNDLE
# =============================================================================


@dataclass
class VaultBundle:
    """Serialized secret payload sealed into the vault."""

    accounts: list[Account] = field(default_factory=list)
    custom_tokens: list[Token] = field(default_factory=list)
    custom_networks: list[Network] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "accounts": [a.to_dict() for a in self.accounts],
            "customTokens": [t.to_dict() for t in self.custom_tokens],
            "customNetworks": [n.to_dict() for n in self.custom_networks],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VaultBundle":
        return cls(
            accounts=[Account.from_dict(a) for a in data.get("accounts", [])],
            custom_tokens=[Token.from_dict(t) for t in data.get("customTokens", [])],
            custom_networks=[
                Network.from_dict(n) for n in data.get("customNetworks", [])
            ],
        )
