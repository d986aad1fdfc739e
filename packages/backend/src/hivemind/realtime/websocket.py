"""WebSocket endpoint — task subscriptions and dispatch over one socket.

Learn: Clients connect to /ws (optionally /ws?token=JWT). The handler:
1. Sends `welcome` and, if the token was valid, `authenticated`
2. Accepts `{type: "auth", apiKey}` for API-key clients
3. On `subscribe`, checks ownership and registers with the broadcaster,
   which pushes the current snapshot immediately and every change after
4. On `dispatch`, runs the same dispatch as POST /dispatch
5. Deregisters every subscription when the client goes away

Broadcaster callbacks are synchronous, so they only enqueue. A sender
task drains the per-connection queue onto the socket, which keeps a
slow client from ever stalling the orchestrator.
"""

import asyncio
from typing import Any, Callable, Optional

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from hivemind.auth.dependencies import (
    AuthError,
    CurrentIdentity,
    api_key_identity,
    token_identity,
)
from hivemind.dispatcher.orchestrator import DispatchRequest, InvalidDispatchError
from hivemind.events import types as ev
from hivemind.models import utcnow
from hivemind.runtime import Runtime
from hivemind.specialists import UnknownSpecialistError

logger = structlog.get_logger()
router = APIRouter()


class _Connection:
    """Per-socket state: identity, outbound queue, live subscriptions."""

    def __init__(self, websocket: WebSocket, runtime: Runtime):
        self.websocket = websocket
        self.runtime = runtime
        self.identity: Optional[CurrentIdentity] = None
        self.outbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self.subscriptions: dict[str, Callable[[], None]] = {}

    def send(self, event: dict[str, Any]) -> None:
        self.outbox.put_nowait(event)

    def error(self, message: str) -> None:
        self.send({"type": ev.ERROR, "message": message})

    def close(self) -> None:
        for unsubscribe in self.subscriptions.values():
            unsubscribe()
        self.subscriptions.clear()

    # ─── Message handlers ─────────────────────────────────

    async def handle(self, message: Any) -> None:
        if not isinstance(message, dict):
            self.error("Invalid message")
            return

        kind = message.get("type")
        if kind == ev.AUTH:
            self.authenticate(message.get("apiKey"))
            return

        if self.identity is None:
            self.error("Unauthorized: Please authenticate with an API Key")
            return

        if kind == ev.SUBSCRIBE:
            self.subscribe(message.get("taskId"))
        elif kind == ev.DISPATCH:
            await self.dispatch(message)
        elif kind == ev.PING:
            self.send({"type": ev.PONG, "timestamp": utcnow().isoformat()})
        else:
            self.error("Unknown message type")

    def authenticate(self, api_key: Any) -> None:
        try:
            if not isinstance(api_key, str) or not api_key:
                raise AuthError("Authentication failed")
            self.identity = api_key_identity(api_key, self.runtime.settings)
        except AuthError:
            logger.info("ws.auth_failed")
            self.error("Authentication failed")
            return
        self.send({"type": ev.AUTHENTICATED, "userId": self.identity.user_id})

    def subscribe(self, task_id: Any) -> None:
        if not isinstance(task_id, str) or not task_id:
            self.error("taskId is required")
            return

        task = self.runtime.orchestrator.get_task(task_id)
        if task is None:
            self.error("Task not found")
            return
        if task.user_id != self.identity.user_id:
            self.error("Access denied: not your task")
            return

        # Re-subscribing replaces the previous registration
        previous = self.subscriptions.pop(task_id, None)
        if previous is not None:
            previous()

        self.subscriptions[task_id] = self.runtime.broadcaster.subscribe(
            task_id, self.send
        )
        self.send({"type": ev.SUBSCRIBED, "taskId": task_id})

    async def dispatch(self, message: dict[str, Any]) -> None:
        request = DispatchRequest(
            prompt=message.get("prompt") or "",
            user_id=self.identity.user_id,
            preferred_specialist=message.get("preferredSpecialist"),
            dry_run=bool(message.get("dryRun", False)),
            callback_url=message.get("callbackUrl"),
            hired_agents=message.get("hiredAgents"),
        )
        try:
            response = await self.runtime.orchestrator.dispatch(request)
        except (InvalidDispatchError, UnknownSpecialistError) as e:
            self.error(str(e))
            return
        self.send({"type": ev.DISPATCH_RESULT, **response.to_wire()})


@router.websocket("/ws")
async def task_websocket(websocket: WebSocket):
    """WebSocket endpoint for task updates.

    Learn: Two concurrent tasks run:
    1. Sender — drains the outbound queue to the socket
    2. Client listener — reads and handles client messages

    When either side finishes, both are cancelled and every task
    subscription held by this connection is released.
    """
    runtime: Runtime = websocket.app.state.runtime
    conn = _Connection(websocket, runtime)

    # ── Authentication (optional at connect) ────────────────
    token = websocket.query_params.get("token")
    if token:
        try:
            conn.identity = token_identity(token, runtime.settings)
        except AuthError:
            await websocket.close(code=4001, reason="Invalid or expired token")
            return

    await websocket.accept()
    conn.send(
        {
            "type": ev.WELCOME,
            "message": "Connected to Hivemind. Please authenticate.",
            "timestamp": utcnow().isoformat(),
        }
    )
    if conn.identity is not None:
        conn.send({"type": ev.AUTHENTICATED, "userId": conn.identity.user_id})

    async def sender():
        while True:
            event = await conn.outbox.get()
            await websocket.send_json(event)

    async def client_listener():
        try:
            while True:
                try:
                    message = await websocket.receive_json()
                except ValueError:
                    conn.error("Invalid JSON")
                    continue
                await conn.handle(message)
        except WebSocketDisconnect:
            pass

    send_task = asyncio.create_task(sender())
    client_task = asyncio.create_task(client_listener())

    try:
        done, pending = await asyncio.wait(
            [send_task, client_task],
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in pending:
            task.cancel()
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.warning("ws.connection_error", error=str(task.exception()))
    finally:
        conn.close()
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()
