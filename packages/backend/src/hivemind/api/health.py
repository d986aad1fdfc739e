"""Health check endpoint.

Learn: Simple GET endpoint that reports the server is running, which
storage backend it persists to, and whether the optional Redis mirror
is connected. Redis being down is not unhealthy; it only disables the
mirror and rate limiting.
"""

from fastapi import APIRouter, Depends

from hivemind import __version__
from hivemind.auth.dependencies import get_runtime
from hivemind.realtime.pubsub import redis_available
from hivemind.runtime import Runtime

router = APIRouter()


@router.get("/health")
async def health_check(runtime: Runtime = Depends(get_runtime)):
    """Check server health and dependency connectivity."""
    return {
        "status": "healthy",
        "server": "ok",
        "version": __version__,
        "storage": runtime.settings.storage_backend,
        "redis": "ok" if redis_available() else "unavailable",
        "tasks": len(runtime.tasks),
        "enforcePayments": runtime.settings.enforce_payments,
    }
