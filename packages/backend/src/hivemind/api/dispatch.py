"""Dispatch + task query endpoints.

Learn: POST /dispatch answers 202 before any work happens. The caller
gets a task id back and either polls GET /tasks/{id} or subscribes over
the WebSocket. Tasks are only visible to the identity that created them.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from hivemind.auth.dependencies import CurrentIdentity, get_current_user, get_runtime
from hivemind.dispatcher.orchestrator import DispatchRequest, InvalidDispatchError
from hivemind.runtime import Runtime
from hivemind.schemas.dispatch import DispatchCreate, DispatchRead
from hivemind.specialists import UnknownSpecialistError

router = APIRouter()


@router.post("/dispatch", response_model=DispatchRead, status_code=202)
async def dispatch(
    body: DispatchCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    runtime: Runtime = Depends(get_runtime),
):
    """Submit a prompt. Routing happens now; execution is scheduled."""
    request = DispatchRequest(
        prompt=body.prompt,
        user_id=body.user_id or identity.user_id,
        preferred_specialist=body.preferred_specialist,
        dry_run=body.dry_run,
        callback_url=body.callback_url,
        hired_agents=body.hired_agents,
    )
    try:
        response = await runtime.orchestrator.dispatch(request)
    except (InvalidDispatchError, UnknownSpecialistError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return response.to_wire()


@router.get("/tasks/{task_id}")
async def get_task(
    task_id: str,
    identity: CurrentIdentity = Depends(get_current_user),
    runtime: Runtime = Depends(get_runtime),
):
    task = runtime.orchestrator.get_task(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    if task.user_id != identity.user_id:
        raise HTTPException(status_code=403, detail="Access denied: not your task")
    return task.to_wire()


@router.get("/tasks")
async def list_tasks(
    limit: int = Query(10, ge=1),
    identity: CurrentIdentity = Depends(get_current_user),
    runtime: Runtime = Depends(get_runtime),
):
    """The caller's most recent tasks, newest first (at most 50)."""
    tasks = runtime.orchestrator.list_tasks(identity.user_id, limit=min(limit, 50))
    return {"tasks": [t.to_wire() for t in tasks], "count": len(tasks)}
