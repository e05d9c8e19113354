"""Plain sends of the native asset or an ERC-20 token."""

from loguru import logger
from web3 import Web3

from wallet_core.chain_client import ERC20_ABI
from wallet_core.errors import NotAnAddress, TransactionFailed
from wallet_core.models import Account, Token
from wallet_core.units import format_address, is_zero, parse_units


async def send(client, account: Account, token: Token, to_address: str, amount: str) -> str:
    """
    Transfer amount of token to to_address and wait for confirmation.

    The wait is not cancellable: once broadcast, the transfer cannot be
    un-sent, so callers that lose interest must still let it finish.

    Returns:
        Transaction hash

    Raises:
        NotAnAddress: Recipient is malformed.
        ValueError: Amount is not a positive decimal.
        TransactionFailed: Submission failed, reverted, or timed out.
    """
    if not Web3.is_address(to_address or ""):
        raise NotAnAddress(f"Not a valid recipient: {to_address!r}")
    if is_zero(amount):
        raise ValueError("Amount must be greater than zero")
    value = parse_units(amount, token.decimals)
    recipient = Web3.to_checksum_address(to_address)

    try:
        if token.is_native:
            tx_hash = await client.transfer_native(account.private_key, recipient, value)
        else:
            tx_hash = await client.transact(
                account.private_key, token.address, ERC20_ABI, "transfer", recipient, value
            )
        await client.wait_for_receipt(tx_hash)
    except Exception as e:
        logger.error(f"Send of {amount} {token.symbol} failed: {e}")
        if isinstance(e, TransactionFailed):
            raise
        raise TransactionFailed("Transaction failed. Check balance & gas.") from e

    logger.info(f"Sent {amount} {token.symbol} to {format_address(recipient)}: {tx_hash}")
    return tx_hash
