"""
Chain client adapter: one JSON-RPC endpoint per network.

Read calls (native balance, contract call, code lookup) and write calls
(signed contract call, native transfer, receipt wait) used by every
service in the engine.
"""

from typing import Any

from eth_account import Account as EthAccount
from loguru import logger
from web3 import AsyncWeb3, Web3
from web3.exceptions import TimeExhausted

from wallet_core.errors import TransactionFailed
from wallet_core.models import Network

# =============================================================================
# CONFIGURATION
# =============================================================================
REQUEST_TIMEOUT = 60
RECEIPT_TIMEOUT_SECONDS = 120
NATIVE_TRANSFER_GAS = 21000

MAX_UINT256 = 2**256 - 1

# =============================================================================
# ABIs
# =============================================================================

ERC20_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "name",
        "outputs": [{"name": "", "type": "string"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "symbol",
        "outputs": [{"name": "", "type": "string"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [
            {"name": "_owner", "type": "address"},
            {"name": "_spender", "type": "address"},
        ],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "_spender", "type": "address"},
            {"name": "_value", "type": "uint256"},
        ],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "_to", "type": "address"},
            {"name": "_value", "type": "uint256"},
        ],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function",
    },
]

ROUTER_ABI = [
    {
        "inputs": [],
        "name": "WETH",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "amountIn", "type": "uint256"},
            {"name": "path", "type": "address[]"},
        ],
        "name": "getAmountsOut",
        "outputs": [{"name": "amounts", "type": "uint256[]"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "amountIn", "type": "uint256"},
            {"name": "amountOutMin", "type": "uint256"},
            {"name": "path", "type": "address[]"},
            {"name": "to", "type": "address"},
            {"name": "deadline", "type": "uint256"},
        ],
        "name": "swapExactTokensForTokens",
        "outputs": [{"name": "amounts", "type": "uint256[]"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "amountOutMin", "type": "uint256"},
            {"name": "path", "type": "address[]"},
            {"name": "to", "type": "address"},
            {"name": "deadline", "type": "uint256"},
        ],
        "name": "swapExactETHForTokens",
        "outputs": [{"name": "amounts", "type": "uint256[]"}],
        "stateMutability": "payable",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "amountIn", "type": "uint256"},
            {"name": "amountOutMin", "type": "uint256"},
            {"name": "path", "type": "address[]"},
            {"name": "to", "type": "address"},
            {"name": "deadline", "type": "uint256"},
        ],
        "name": "swapExactTokensForETH",
        "outputs": [{"name": "amounts", "type": "uint256[]"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]


def checksum(address: str) -> str:
    return Web3.to_checksum_address(address)


# =============================================================================
# CHAIN CLIENT
# =============================================================================


class ChainClient:
    """
    Async JSON-RPC adapter for one network.

    Every call is a discrete request; the provider manages its own HTTP
    session. Contract handles are cached per (address, abi).
    """

    def __init__(self, network: Network, w3: AsyncWeb3 | None = None) -> None:
        self.network = network
        self.w3 = w3 or AsyncWeb3(
            AsyncWeb3.AsyncHTTPProvider(
                network.rpc_url, request_kwargs={"timeout": REQUEST_TIMEOUT}
            )
        )
        self._contracts: dict[tuple[str, int], Any] = {}

    def _contract(self, address: str, abi: list[dict]) -> Any:
        cache_key = (address.lower(), id(abi))
        if cache_key not in self._contracts:
            self._contracts[cache_key] = self.w3.eth.contract(
                address=checksum(address), abi=abi
            )
        return self._contracts[cache_key]

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_native_balance(self, address: str) -> int:
        return await self.w3.eth.get_balance(checksum(address))

    async def is_contract(self, address: str) -> bool:
        code = await self.w3.eth.get_code(checksum(address))
        return len(code) > 0

    async def call(self, contract_address: str, abi: list[dict], fn_name: str, *args: Any) -> Any:
        """Read-only contract call."""
        fn = getattr(self._contract(contract_address, abi).functions, fn_name)
        return await fn(*args).call()

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def _sign_and_send(self, tx: dict, private_key: str) -> str:
        signed = EthAccount.sign_transaction(tx, private_key)
        tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        return Web3.to_hex(tx_hash)

    async def _base_tx(self, sender: str, value: int = 0) -> dict:
        return {
            "from": sender,
            "value": value,
            "nonce": await self.w3.eth.get_transaction_count(sender, "pending"),
            "gasPrice": await self.w3.eth.gas_price,
            "chainId": self.network.chain_id,
        }

    async def transact(
        self,
        private_key: str,
        contract_address: str,
        abi: list[dict],
        fn_name: str,
        *args: Any,
        value: int = 0,
        gas: int | None = None,
    ) -> str:
        """
        Sign and broadcast a contract call.

        Returns:
            Transaction hash (0x-prefixed hex)
        """
        sender = EthAccount.from_key(private_key).address
        params = await self._base_tx(sender, value)
        if gas is not None:
            params["gas"] = gas

        fn = getattr(self._contract(contract_address, abi).functions, fn_name)
        tx = await fn(*args).build_transaction(params)
        tx_hash = await self._sign_and_send(tx, private_key)
        logger.info(f"[{self.network.name}] {fn_name} submitted: {tx_hash}")
        return tx_hash

    async def transfer_native(self, private_key: str, to: str, value: int) -> str:
        """Sign and broadcast a plain native-asset transfer."""
        sender = EthAccount.from_key(private_key).address
        tx = await self._base_tx(sender, value)
        tx.update({"to": checksum(to), "gas": NATIVE_TRANSFER_GAS})
        tx_hash = await self._sign_and_send(tx, private_key)
        logger.info(f"[{self.network.name}] native transfer submitted: {tx_hash}")
        return tx_hash

    async def wait_for_receipt(
        self, tx_hash: str, timeout: float = RECEIPT_TIMEOUT_SECONDS
    ) -> dict:
        """
        Block until the transaction is mined.

        Raises:
            TransactionFailed: If it reverted or was not mined within timeout.
        """
        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except TimeExhausted as e:
            raise TransactionFailed(f"Transaction {tx_hash} not mined within {timeout}s") from e
        if receipt["status"] != 1:
            raise TransactionFailed(f"Transaction {tx_hash} reverted")
        return dict(receipt)
