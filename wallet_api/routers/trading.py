"""Swap and send endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from wallet_api.session import get_manager
from wallet_core.wallet import WalletManager

router = APIRouter()


class QuoteBody(BaseModel):
    chain_id: int
    amount_in: str
    token_in: str
    token_out: str


class ApproveBody(BaseModel):
    chain_id: int
    token_in: str


class SendBody(BaseModel):
    chain_id: int
    token: str
    to: str
    amount: str


@router.post("/quote")
async def quote(body: QuoteBody, manager: WalletManager = Depends(get_manager)) -> dict[str, Any]:
    """Quote a swap. ``quote`` is null when no quote is available."""
    result = await manager.quote_swap(body.chain_id, body.amount_in, body.token_in, body.token_out)
    return {"quote": result.to_dict() if result else None}


@router.post("/approve")
async def approve(
    body: ApproveBody, manager: WalletManager = Depends(get_manager)
) -> dict[str, Any]:
    tx_hash = await manager.approve_swap(body.chain_id, body.token_in)
    return {"tx_hash": tx_hash}


@router.post("/swap")
async def swap(body: QuoteBody, manager: WalletManager = Depends(get_manager)) -> dict[str, Any]:
    tx_hash = await manager.execute_swap(
        body.chain_id, body.amount_in, body.token_in, body.token_out
    )
    return {"tx_hash": tx_hash}


@router.post("/send")
async def send(body: SendBody, manager: WalletManager = Depends(get_manager)) -> dict[str, Any]:
    try:
        tx_hash = await manager.send(body.chain_id, body.token, body.to, body.amount)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"tx_hash": tx_hash}
