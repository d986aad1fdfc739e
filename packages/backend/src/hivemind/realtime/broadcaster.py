"""Event broadcaster — task snapshots → `task_update` events.

Learn: The task store knows nothing about envelopes or transports. The
broadcaster sits on top of it: transports subscribe here with a plain
`send(event_dict)` callable, and every publish goes to the store's
subscribers first (in order) and then, if Redis is up, to the task's
Redis channel. The Redis publish is scheduled, never awaited, so a slow
or dead Redis can't stall a task.
"""

import asyncio
from typing import Any, Callable

import structlog

from hivemind.events.types import task_update_event
from hivemind.models import Task
from hivemind.realtime.pubsub import publish_task_event, redis_available
from hivemind.store.tasks import TaskStore

logger = structlog.get_logger()

EventSink = Callable[[dict[str, Any]], None]


class EventBroadcaster:
    def __init__(self, store: TaskStore, mirror_to_redis: bool = True):
        self.store = store
        self.mirror_to_redis = mirror_to_redis
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, task_id: str, send: EventSink) -> Callable[[], None]:
        """Deliver a task_update for the current snapshot and every later change."""

        def on_update(task: Task) -> None:
            send(task_update_event(task))

        return self.store.subscribe(task_id, on_update)

    def publish(self, task: Task) -> None:
        self.store.publish(task)
        if self.mirror_to_redis and redis_available():
            self._mirror(task)

    def _mirror(self, task: Task) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        job = loop.create_task(self._publish_to_redis(task.id, task_update_event(task)))
        self._pending.add(job)
        job.add_done_callback(self._pending.discard)

    @staticmethod
    async def _publish_to_redis(task_id: str, event: dict[str, Any]) -> None:
        try:
            await publish_task_event(task_id, event)
        except Exception as e:
            logger.warning("realtime.redis_publish_failed", task_id=task_id, error=str(e))
