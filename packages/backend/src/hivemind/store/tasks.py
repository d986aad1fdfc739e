"""Task store — in-memory task map, persisted on every write, with per-task pub/sub.

Learn: Subscribers register a plain callback per task id. publish() calls
them synchronously, in registration order, from the orchestrator's own
coroutine, which is what gives a single task its strict update ordering.
Callbacks must not block; transports (WebSocket, Redis) enqueue and return.
"""

import threading
from collections import defaultdict
from typing import Callable, Optional

import structlog
from pydantic import ValidationError

from hivemind.models import Task
from hivemind.store.repository import Repository

logger = structlog.get_logger()

TaskCallback = Callable[[Task], None]


class TaskStore:
    """Holds task records keyed by id and notifies per-task observers."""

    def __init__(self, repository: Repository):
        self.repository = repository
        self._tasks: dict[str, Task] = {}
        self._subscribers: dict[str, list[TaskCallback]] = defaultdict(list)
        self._lock = threading.RLock()
        self._load()

    def _load(self) -> None:
        snapshot = self.repository.load() or {}
        for task_id, raw in snapshot.items():
            try:
                self._tasks[task_id] = Task.model_validate(raw)
            except ValidationError as e:
                logger.warning("tasks.load_skipped", task_id=task_id, error=str(e))
        if self._tasks:
            logger.info("tasks.loaded", count=len(self._tasks))

    def _persist(self, task_id: str) -> None:
        """Save the full map. A failed save is logged; the in-memory map stays authoritative."""
        snapshot = {tid: t.to_wire() for tid, t in self._tasks.items()}
        try:
            self.repository.save(snapshot)
        except Exception:
            logger.exception(
                "tasks.persist_failed", task_id=task_id, document=self.repository.name
            )

    # ─── Writes ───────────────────────────────────────────

    def create_or_update(self, task: Task) -> None:
        """Write the task to the map and persist the full map."""
        with self._lock:
            self._tasks[task.id] = task
            self._persist(task.id)

    # ─── Reads ────────────────────────────────────────────

    def get(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def list_recent(self, limit: int = 10, user_id: Optional[str] = None) -> list[Task]:
        """Most recently created tasks first, optionally for one requester."""
        tasks = [
            t for t in self._tasks.values() if user_id is None or t.user_id == user_id
        ]
        tasks.sort(key=lambda t: t.created_at, reverse=True)
        return tasks[:limit]

    def __len__(self) -> int:
        return len(self._tasks)

    # ─── Pub/sub ──────────────────────────────────────────

    def subscribe(self, task_id: str, callback: TaskCallback) -> Callable[[], None]:
        """Register a callback for one task and return its deregistration function.

        If the task already exists, the current snapshot is delivered
        immediately so a late subscriber never misses the state it joined at.
        """
        with self._lock:
            self._subscribers[task_id].append(callback)
            current = self._tasks.get(task_id)

        if current is not None:
            self._deliver(callback, current)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(task_id, [])
                if callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._subscribers.pop(task_id, None)

        return unsubscribe

    def subscriber_count(self, task_id: str) -> int:
        return len(self._subscribers.get(task_id, []))

    def publish(self, task: Task) -> None:
        """Invoke every callback registered for the task, in registration order."""
        with self._lock:
            callbacks = list(self._subscribers.get(task.id, []))
        for callback in callbacks:
            self._deliver(callback, task)

    @staticmethod
    def _deliver(callback: TaskCallback, task: Task) -> None:
        try:
            callback(task.model_copy(deep=True))
        except Exception:
            logger.exception("tasks.subscriber_failed", task_id=task.id)
