"""Vote endpoints — community reputation signals per task response."""

from fastapi import APIRouter, Depends, HTTPException

from hivemind.auth.dependencies import CurrentIdentity, get_current_user, get_runtime
from hivemind.runtime import Runtime
from hivemind.schemas.dispatch import VoteCreate

router = APIRouter()


@router.post("/votes")
async def submit_vote(
    body: VoteCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    runtime: Runtime = Depends(get_runtime),
):
    """Up- or downvote a task's response. The caller is the voter.

    A repeated identical vote is not an error: it comes back with
    success=false and an explanatory message.
    """
    if body.specialist not in runtime.registry:
        raise HTTPException(status_code=400, detail=f"Unknown specialist '{body.specialist}'")
    result = runtime.reputation.submit_vote(
        specialist=body.specialist,
        task_id=body.task_id,
        voter_id=identity.user_id,
        voter_type="human",
        direction=body.vote,
    )
    return result.to_wire()


@router.get("/votes/{task_id}/{voter_id}")
async def get_vote(task_id: str, voter_id: str, runtime: Runtime = Depends(get_runtime)):
    return {"vote": runtime.reputation.get_vote(task_id, voter_id)}
