"""Reputation endpoints — scores, stats and external sync markers."""

from fastapi import APIRouter, Depends, HTTPException

from hivemind.auth.dependencies import get_current_user, get_runtime
from hivemind.runtime import Runtime
from hivemind.services.reputation import SpecialistNotSyncedError

router = APIRouter()


@router.get("/reputation")
async def all_reputation(runtime: Runtime = Depends(get_runtime)):
    return runtime.reputation.all()


@router.get("/reputation/{specialist}")
async def specialist_reputation(specialist: str, runtime: Runtime = Depends(get_runtime)):
    return {"specialist": specialist, **runtime.reputation.stats(specialist).to_wire()}


@router.post("/reputation/{specialist}/sync", dependencies=[Depends(get_current_user)])
async def sync_reputation(specialist: str, runtime: Runtime = Depends(get_runtime)):
    """Record an external sync of the specialist's current score."""
    if specialist not in runtime.registry:
        raise HTTPException(status_code=404, detail=f"Unknown specialist '{specialist}'")
    tx = runtime.reputation.mark_synced(specialist)
    return {
        "success": True,
        "specialist": specialist,
        "successRate": runtime.reputation.success_rate(specialist),
        "txSignature": tx,
    }


@router.get("/reputation/{specialist}/proof")
async def reputation_proof(specialist: str, runtime: Runtime = Depends(get_runtime)):
    try:
        return runtime.reputation.proof(specialist)
    except SpecialistNotSyncedError as e:
        raise HTTPException(status_code=404, detail=str(e))
