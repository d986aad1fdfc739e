"""Event type constants for the real-time channel.

Learn: Centralizing event types as constants prevents typos and makes
it easy to discover every message the WebSocket can carry.
"""

from typing import Any

from hivemind.models import Task, utcnow

# ─── Server → client ─────────────────────────────────────

WELCOME = "welcome"
AUTHENTICATED = "authenticated"
SUBSCRIBED = "subscribed"
TASK_UPDATE = "task_update"
DISPATCH_RESULT = "dispatch_result"
PONG = "pong"
ERROR = "error"

# ─── Client → server ─────────────────────────────────────

AUTH = "auth"
SUBSCRIBE = "subscribe"
DISPATCH = "dispatch"
PING = "ping"


def task_update_event(task: Task) -> dict[str, Any]:
    """The `task_update` envelope pushed on every task mutation."""
    return {
        "type": TASK_UPDATE,
        "taskId": task.id,
        "payload": task.to_wire(),
        "timestamp": utcnow().isoformat(),
    }
