"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
- Access token: short-lived (15min), sent as a Bearer token on API calls
- Refresh token: long-lived (7 days), only exchanged for a new pair

Both are signed with the same secret; a "type" claim keeps one from
being used in place of the other. Bad signatures, expiry and garbage
all surface as the same InvalidTokenError.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from comityspace.auth.identity import ACCESS_TOKEN, REFRESH_TOKEN, Identity
from comityspace.config import settings
from comityspace.errors import InvalidTokenError


def _sign(claims: dict, token_type: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        **claims,
        "type": token_type,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_access_token(
    identity: Identity, expires_delta: Optional[timedelta] = None
) -> str:
    """Create a JWT access token carrying identity, role and organization."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)
    return _sign(identity.access_claims(), ACCESS_TOKEN, expires_delta)


def create_refresh_token(
    identity: Identity, expires_delta: Optional[timedelta] = None
) -> str:
    """Create a JWT refresh token carrying only userId and userType."""
    if expires_delta is None:
        expires_delta = timedelta(days=settings.refresh_token_expire_days)
    return _sign(identity.refresh_claims(), REFRESH_TOKEN, expires_delta)


def verify_token(token: str, expected_type: Optional[str] = None) -> dict:
    """Verify and decode a JWT token.

    Returns the payload dict on success. Raises InvalidTokenError on
    any failure; the underlying reason is not passed through.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "iat"]},
        )
    except jwt.PyJWTError:
        raise InvalidTokenError("Invalid or expired token")

    if expected_type and payload.get("type") != expected_type:
        raise InvalidTokenError("Invalid or expired token")
    if "userId" not in payload or "userType" not in payload:
        raise InvalidTokenError("Invalid or expired token")
    return payload
