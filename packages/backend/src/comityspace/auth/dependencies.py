"""FastAPI auth dependencies — the per-request gate.

Learn: These are used as Depends() in routers and route handlers.
FastAPI caches a dependency per request, so stacking them runs each
stage once, in order:

    authenticate_token → require_* (role) → require_same_organization
        → validate_organization_access → handler

Any stage raises a ComityError and the request stops there; main.py
renders it as {error, message, code}.
"""

from dataclasses import dataclass
from typing import Optional

import structlog
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from comityspace.auth.identity import ACCESS_TOKEN, Identity, UserType
from comityspace.db.engine import get_db
from comityspace.errors import (
    AuthenticationError,
    AuthorizationError,
    InvalidTokenError,
    ValidationError,
)
from comityspace.services.auth_service import AuthService

logger = structlog.get_logger()


@dataclass
class AuthContext:
    """Who is calling, and which organization the request is about.

    Learn: user_type comes from the database lookup, not the token, so a
    demoted admin loses admin routes on their very next request.
    """

    identity: Identity
    user_type: UserType
    organization_id: Optional[int]
    requested_organization_id: Optional[int] = None
    target_organization_id: Optional[int] = None

    @property
    def is_super_admin(self) -> bool:
        return self.user_type is UserType.SUPER_ADMIN

    def require_target_organization(self) -> int:
        if self.target_organization_id is None:
            raise ValidationError("Organization context required")
        return self.target_organization_id


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def _resolve_context(token: str, db: AsyncSession) -> AuthContext:
    svc = AuthService(db)
    payload = svc.verify_token(token, expected_type=ACCESS_TOKEN)
    identity = await svc.get_user_by_id(payload["userId"], payload["userType"])
    if identity is None:
        logger.info(
            "auth.user_not_found",
            user_id=payload.get("userId"),
            user_type=payload.get("userType"),
        )
        raise AuthenticationError("User not found", code="USER_NOT_FOUND")
    return AuthContext(
        identity=identity,
        user_type=identity.user_type,
        organization_id=identity.organization_id,
    )


async def authenticate_token(
    request: Request, db: AsyncSession = Depends(get_db)
) -> AuthContext:
    """Mandatory gate: valid access token + identity still present."""
    token = _bearer_token(request)
    if token is None:
        raise InvalidTokenError("No token provided", code="NO_TOKEN")

    ctx = await _resolve_context(token, db)
    request.state.auth = ctx
    structlog.contextvars.bind_contextvars(
        user_id=ctx.identity.id, user_type=ctx.user_type.value
    )
    return ctx


async def optional_auth(
    request: Request, db: AsyncSession = Depends(get_db)
) -> Optional[AuthContext]:
    """Like authenticate_token, but a missing or bad token just means anonymous."""
    token = _bearer_token(request)
    if token is None:
        return None
    try:
        ctx = await _resolve_context(token, db)
    except (InvalidTokenError, AuthenticationError):
        return None
    request.state.auth = ctx
    return ctx


def require_user_types(*allowed: UserType, message: str):
    """Dependency factory: 403 unless the caller's type is in `allowed`."""

    async def _check(ctx: AuthContext = Depends(authenticate_token)) -> AuthContext:
        if ctx.user_type not in allowed:
            raise AuthorizationError(message)
        return ctx

    return _check


require_super_admin = require_user_types(
    UserType.SUPER_ADMIN, message="Super admin access required"
)
require_nonprofit_admin = require_user_types(
    UserType.NONPROFIT_ADMIN, UserType.SUPER_ADMIN, message="Admin access required"
)
require_volunteer = require_user_types(
    UserType.VOLUNTEER,
    UserType.NONPROFIT_ADMIN,
    UserType.SUPER_ADMIN,
    message="User access required",
)


def _requested_organization(request: Request) -> Optional[int]:
    raw = request.path_params.get("org_id") or request.query_params.get("orgId")
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError("Organization id must be an integer")


async def require_same_organization(
    request: Request, ctx: AuthContext = Depends(authenticate_token)
) -> AuthContext:
    """Pick the organization this request operates on.

    Super admins may point at any organization with ?orgId= (or an
    org_id path parameter); everyone else is pinned to their own.
    """
    requested = _requested_organization(request)
    ctx.requested_organization_id = requested
    if ctx.is_super_admin:
        ctx.target_organization_id = requested or ctx.organization_id
    else:
        ctx.target_organization_id = ctx.organization_id
    return ctx


async def validate_organization_access(
    ctx: AuthContext = Depends(require_same_organization),
) -> AuthContext:
    """Second check on the resolved organization. Super admins always pass."""
    if ctx.is_super_admin:
        return ctx

    if ctx.target_organization_id is None:
        raise ValidationError("Organization context required")

    if (
        ctx.target_organization_id != ctx.organization_id
        or (
            ctx.requested_organization_id is not None
            and ctx.requested_organization_id != ctx.organization_id
        )
    ):
        logger.warning(
            "auth.cross_organization_denied",
            organization_id=ctx.organization_id,
            requested_organization_id=ctx.requested_organization_id,
        )
        raise AuthorizationError("Access denied to this organization")
    return ctx
