"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. The Runtime (every store and service) is built once and kept
on app.state; tests pass their own runtime in. Lifespan manages the
parts that need a running loop (Redis, periodic jobs, HTTP clients).
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hivemind import __version__
from hivemind.api import api_router
from hivemind.config import settings as default_settings
from hivemind.middleware.rate_limit import RateLimitMiddleware
from hivemind.middleware.request_id import RequestIdMiddleware
from hivemind.middleware.security import SecurityHeadersMiddleware
from hivemind.realtime.pubsub import close_redis, init_redis
from hivemind.realtime.websocket import router as ws_router
from hivemind.runtime import Runtime, build_runtime

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at
    shutdown. Scheduled task executions still pending at shutdown are
    cancelled; their tasks stay in whatever state they last persisted.
    """
    runtime: Runtime = app.state.runtime
    settings = runtime.settings
    logger.info(
        "hivemind.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
        storage=settings.storage_backend,
    )

    try:
        await init_redis(settings.redis_url)
        logger.info("hivemind.redis_connected", url=settings.redis_url)
    except Exception as e:
        # Redis is optional: without it there is no mirror and no rate limiting
        logger.warning("hivemind.redis_unavailable", error=str(e))

    runtime.start_background_jobs()

    yield

    logger.info("hivemind.shutdown")
    await runtime.aclose()
    await close_redis()


def create_app(runtime: Optional[Runtime] = None) -> FastAPI:
    """Build and return the FastAPI application."""
    runtime = runtime or build_runtime(default_settings)
    settings = runtime.settings

    app = FastAPI(
        title="Hivemind",
        description="Multi-agent task dispatcher with x402 specialist payments",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.runtime = runtime

    # ── Middleware stack ──────────────────────────────────────
    # Starlette runs middleware in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        dispatch_rpm=settings.rate_limit_dispatch_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["payment-required", "x-payment-required", "X-Request-ID"],
    )

    app.include_router(api_router)
    app.include_router(ws_router)

    return app


def run() -> None:
    """Console entry point: serve the default app with uvicorn."""
    import uvicorn

    uvicorn.run(
        "hivemind.main:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.debug,
    )


# Default app instance (used by uvicorn: hivemind.main:app)
app = create_app()
