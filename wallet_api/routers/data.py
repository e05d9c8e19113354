"""Balance and transaction-history endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, Query

from wallet_api.session import get_manager
from wallet_core.units import format_units
from wallet_core.wallet import WalletManager

router = APIRouter()


@router.post("/balances/{chain_id}/refresh")
async def refresh_balances(
    chain_id: int,
    account_id: str | None = Query(None, description="Defaults to the active account"),
    manager: WalletManager = Depends(get_manager),
) -> dict[str, Any]:
    """
    Refresh balances for one network.

    Tokens whose balance call failed keep their previous balance.
    """
    tokens = await manager.refresh_balances(chain_id, account_id)
    return {"count": len(tokens), "tokens": [t.to_dict() for t in tokens]}


@router.get("/history/{chain_id}")
async def get_history(
    chain_id: int,
    account_id: str | None = Query(None, description="Defaults to the active account"),
    manager: WalletManager = Depends(get_manager),
) -> dict[str, Any]:
    """
    Recent native and token transfers, newest first.

    Best effort: an unreachable or rate-limited indexer yields an empty list.
    """
    records = await manager.fetch_history(chain_id, account_id)
    return {
        "count": len(records),
        "transactions": [
            {**r.to_dict(), "amount": format_units(int(r.value), r.decimals)} for r in records
        ],
    }
