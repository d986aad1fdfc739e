"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Auth is applied at the include_router level using FastAPI's
dependencies parameter. This protects all routes in each router
without modifying individual handlers. Health, the specialist catalog
(whose invoke endpoint is gated by payment instead) and the read-only
reputation views are open.
"""

from fastapi import APIRouter, Depends

from hivemind.api.dispatch import router as dispatch_router
from hivemind.api.health import router as health_router
from hivemind.api.reputation import router as reputation_router
from hivemind.api.specialists import router as specialists_router
from hivemind.api.votes import router as votes_router
from hivemind.api.wallet import router as wallet_router
from hivemind.auth.dependencies import get_current_user

# All protected routers require authentication
_auth = [Depends(get_current_user)]

api_router = APIRouter(prefix="/api/v1")

# Open routes (no auth)
api_router.include_router(health_router, tags=["health"])
api_router.include_router(specialists_router, tags=["specialists", "x402"])
api_router.include_router(reputation_router, tags=["reputation"])

# Protected routes (JWT or API key)
api_router.include_router(dispatch_router, tags=["dispatch", "tasks"], dependencies=_auth)
api_router.include_router(votes_router, tags=["votes"], dependencies=_auth)
api_router.include_router(wallet_router, tags=["wallet"], dependencies=_auth)
