"""Redis pub/sub — optional mirror of task events for other processes.

Learn: Redis pub/sub is fire-and-forget. If no one is listening, the
message is lost. That's fine for real-time UI updates (a client can
always GET the task to catch up), and it's why the dispatcher works
without Redis at all: every publish here is skipped until init_redis()
succeeds.

Channel naming: hivemind:tasks:{task_id}
"""

import json
from typing import Any, Optional

import redis.asyncio as aioredis

# Global Redis connection pool (initialized in lifespan)
_redis: Optional[aioredis.Redis] = None


def task_channel(task_id: str) -> str:
    return f"hivemind:tasks:{task_id}"


async def init_redis(url: str) -> aioredis.Redis:
    """Initialize the Redis connection pool."""
    global _redis
    client = aioredis.from_url(url, encoding="utf-8", decode_responses=True)
    # Verify connection before publishing it
    await client.ping()
    _redis = client
    return _redis


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    """Get the Redis connection (must be initialized first)."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


def redis_available() -> bool:
    return _redis is not None


async def publish_task_event(task_id: str, event: dict[str, Any]) -> None:
    """Publish one task event to the task's Redis channel."""
    r = get_redis()
    await r.publish(task_channel(task_id), json.dumps(event))
