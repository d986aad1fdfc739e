"""Wallet endpoints — settlement balances and the payment audit log."""

from fastapi import APIRouter, Depends, Query

from hivemind.auth.dependencies import get_runtime
from hivemind.runtime import Runtime

router = APIRouter()


@router.get("/wallet/balances")
async def balances(runtime: Runtime = Depends(get_runtime)):
    result = await runtime.gateway.balances()
    return result.to_dict()


@router.get("/wallet/transactions")
async def transactions(
    limit: int = Query(50, ge=1, le=500),
    runtime: Runtime = Depends(get_runtime),
):
    records = runtime.payment_log.recent(limit)
    return {"transactions": [r.to_wire() for r in records], "count": len(records)}
