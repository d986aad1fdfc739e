"""JWT access tokens.

Learn: The token's `sub` claim is the user id that owns dispatched
tasks. Tokens carry `iss: hivemind` and `type: access`; anything else
signed with the same secret (e.g. by another service sharing it) is
rejected. There is no refresh flow: mint a new token with
`hivemind token <user-id>`.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt

from hivemind.config import Settings

ISSUER = "hivemind"
TOKEN_TYPE = "access"


class TokenError(Exception):
    """Raised when token creation/verification fails."""


def create_access_token(
    user_id: str,
    settings: Settings,
    expires_minutes: Optional[int] = None,
) -> str:
    if not user_id:
        raise TokenError("user_id is required")
    issued = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or settings.access_token_expire_minutes)
    claims = {
        "sub": user_id,
        "iss": ISSUER,
        "type": TOKEN_TYPE,
        "iat": issued,
        "exp": issued + lifetime,
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str, settings: Settings) -> dict[str, Any]:
    """Decode an access token, or raise TokenError saying why not."""
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=ISSUER,
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")

    if claims.get("type") != TOKEN_TYPE:
        raise TokenError("Not an access token")
    return claims
