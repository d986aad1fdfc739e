"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to extract
and validate the current identity from the request.

Two auth mechanisms:
1. Bearer JWT token (for users)
2. API key in x-api-key header (for agents/CI)

The same helpers back the WebSocket handshake, which can't use
Depends() for its in-band `auth` message.
"""

import hashlib
import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from hivemind.auth.jwt import TokenError, verify_token
from hivemind.config import Settings
from hivemind.runtime import Runtime


class CurrentIdentity:
    """Represents the authenticated identity making the request.

    Learn: user_id is what task ownership is checked against, whether
    it came from a JWT subject or from an API key digest.
    """

    def __init__(self, user_id: str, identity_type: str = "user"):
        self.user_id = user_id
        self.identity_type = identity_type  # "user" or "api_key"

    def __repr__(self) -> str:
        return f"CurrentIdentity(user_id={self.user_id!r}, type={self.identity_type!r})"


class AuthError(Exception):
    """Raised when credentials are present but invalid."""


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def get_settings(runtime: Runtime = Depends(get_runtime)) -> Settings:
    return runtime.settings


def api_key_identity(key: str, settings: Settings) -> CurrentIdentity:
    """Resolve an API key, or raise AuthError."""
    if not any(hmac.compare_digest(key, valid) for valid in settings.api_keys):
        raise AuthError("Invalid API key")
    digest = hashlib.sha256(key.encode()).hexdigest()[:16]
    return CurrentIdentity(user_id=f"key-{digest}", identity_type="api_key")


def token_identity(token: str, settings: Settings) -> CurrentIdentity:
    """Resolve a JWT, or raise AuthError."""
    try:
        payload = verify_token(token, settings)
    except TokenError as e:
        raise AuthError(str(e)) from e
    return CurrentIdentity(user_id=str(payload["sub"]), identity_type="user")


async def get_current_user_optional(
    authorization: Optional[str] = Header(None),
    x_api_key: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> Optional[CurrentIdentity]:
    """Extract current identity (optional — returns None if no auth).

    Learn: This is the "soft" auth dependency. Used for endpoints that
    work both authenticated and unauthenticated. For mandatory auth,
    use get_current_user instead.
    """
    try:
        # Try API key first
        if x_api_key:
            return api_key_identity(x_api_key, settings)

        # Try JWT Bearer token
        if authorization and authorization.startswith("Bearer "):
            return token_identity(authorization[7:], settings)
    except AuthError as e:
        raise HTTPException(
            status_code=401,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )

    return None


async def get_current_user(
    identity: Optional[CurrentIdentity] = Depends(get_current_user_optional),
) -> CurrentIdentity:
    """Extract current identity (required — 401 if no auth).

    Learn: This is the "hard" auth dependency. Used for endpoints
    that require authentication.
    """
    if not identity:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity
