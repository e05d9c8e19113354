"""
Vault, account, network and token endpoints.

Endpoints:
- GET/POST /wallet/status, /wallet/vault, /wallet/unlock, /wallet/lock, /wallet/reset
- GET/POST/PATCH/DELETE /wallet/accounts... (POST .../export reveals key material)
- GET/POST/DELETE /wallet/networks...
- GET/POST/DELETE /wallet/networks/{chain_id}/tokens...
"""

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from wallet_api.session import get_manager
from wallet_core.models import Network
from wallet_core.wallet import WalletManager

router = APIRouter()


class PasswordBody(BaseModel):
    password: str


class NewAccountBody(BaseModel):
    name: str | None = None


class ImportAccountBody(BaseModel):
    secret: str
    name: str | None = None


class RenameBody(BaseModel):
    name: str


class NetworkBody(BaseModel):
    name: str
    rpc_url: str
    chain_id: int
    symbol: str
    router_address: str | None = None
    api_base_url: str | None = None
    explorer_url: str | None = None


class TokenBody(BaseModel):
    address: str


# =============================================================================
# VAULT
# =============================================================================


@router.get("/status")
async def get_status(manager: WalletManager = Depends(get_manager)) -> dict[str, Any]:
    return {
        "has_vault": manager.has_vault(),
        "unlocked": manager.is_unlocked,
        "active_account_id": manager.active_account_id,
    }


@router.post("/vault")
async def create_vault(
    body: PasswordBody, manager: WalletManager = Depends(get_manager)
) -> dict[str, Any]:
    await manager.create_vault(body.password)
    return {"ok": True}


@router.post("/unlock")
async def unlock(
    body: PasswordBody, manager: WalletManager = Depends(get_manager)
) -> dict[str, Any]:
    await manager.unlock(body.password)
    return {"ok": True, "accounts": [a.public_dict() for a in manager.accounts]}


@router.post("/lock")
async def lock(manager: WalletManager = Depends(get_manager)) -> dict[str, Any]:
    manager.lock()
    return {"ok": True}


@router.post("/reset")
async def reset(manager: WalletManager = Depends(get_manager)) -> dict[str, Any]:
    manager.reset()
    return {"ok": True}


# =============================================================================
# ACCOUNTS
# =============================================================================


@router.get("/accounts")
async def list_accounts(manager: WalletManager = Depends(get_manager)) -> dict[str, Any]:
    return {
        "accounts": [a.public_dict() for a in manager.accounts],
        "active_account_id": manager.active_account_id,
    }


@router.post("/accounts")
async def create_account(
    body: NewAccountBody, manager: WalletManager = Depends(get_manager)
) -> dict[str, Any]:
    """Create an account. The recovery phrase is returned once, for backup."""
    account = await manager.create_account(body.name)
    return {"account": account.public_dict(), "mnemonic": account.mnemonic}


@router.post("/accounts/import")
async def import_account(
    body: ImportAccountBody, manager: WalletManager = Depends(get_manager)
) -> dict[str, Any]:
    account = await manager.import_account(body.secret, body.name)
    return {"account": account.public_dict()}


@router.patch("/accounts/{account_id}")
async def rename_account(
    account_id: str, body: RenameBody, manager: WalletManager = Depends(get_manager)
) -> dict[str, Any]:
    account = await manager.rename_account(account_id, body.name)
    return {"account": account.public_dict()}


@router.delete("/accounts/{account_id}")
async def remove_account(
    account_id: str, manager: WalletManager = Depends(get_manager)
) -> dict[str, Any]:
    await manager.remove_account(account_id)
    return {"ok": True}


@router.post("/accounts/{account_id}/activate")
async def activate_account(
    account_id: str, manager: WalletManager = Depends(get_manager)
) -> dict[str, Any]:
    account = manager.set_active_account(account_id)
    return {"account": account.public_dict()}


@router.post("/accounts/{account_id}/export")
async def export_account(
    account_id: str, body: PasswordBody, manager: WalletManager = Depends(get_manager)
) -> dict[str, Any]:
    """Reveal the private key (and phrase, if any). Requires the vault password."""
    return manager.export_secret(account_id, body.password)


# =============================================================================
# NETWORKS & TOKENS
# =============================================================================


@router.get("/networks")
async def list_networks(manager: WalletManager = Depends(get_manager)) -> dict[str, Any]:
    return {"networks": [n.to_dict() for n in manager.networks]}


@router.post("/networks")
async def add_network(
    body: NetworkBody, manager: WalletManager = Depends(get_manager)
) -> dict[str, Any]:
    network = await manager.add_network(Network(**body.model_dump()))
    return {"network": network.to_dict()}


@router.delete("/networks/{chain_id}")
async def remove_network(
    chain_id: int, manager: WalletManager = Depends(get_manager)
) -> dict[str, Any]:
    await manager.remove_network(chain_id)
    return {"ok": True}


@router.get("/networks/{chain_id}/tokens")
async def list_tokens(
    chain_id: int, manager: WalletManager = Depends(get_manager)
) -> dict[str, Any]:
    manager.get_network(chain_id)
    return {"tokens": [t.to_dict() for t in manager.tokens_for(chain_id)]}


@router.get("/networks/{chain_id}/tokens/lookup")
async def lookup_token(
    chain_id: int,
    address: str = Query(..., description="Token contract address"),
    manager: WalletManager = Depends(get_manager),
) -> dict[str, Any]:
    token = await manager.lookup_token(chain_id, address)
    return {"token": token.to_dict()}


@router.post("/networks/{chain_id}/tokens")
async def import_token(
    chain_id: int, body: TokenBody, manager: WalletManager = Depends(get_manager)
) -> dict[str, Any]:
    token = await manager.import_token(chain_id, body.address)
    return {"token": token.to_dict()}


@router.delete("/networks/{chain_id}/tokens/{address}")
async def remove_token(
    chain_id: int, address: str, manager: WalletManager = Depends(get_manager)
) -> dict[str, Any]:
    await manager.remove_token(chain_id, address)
    return {"ok": True}
