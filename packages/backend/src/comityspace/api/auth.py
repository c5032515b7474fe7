"""Auth API — login, token refresh, identity, and organization password.

Learn: Routes for the authentication surface:
- POST /auth/login → email/password → {userType, user, tokens}
- POST /auth/refresh → refresh token → new token pair
- GET /auth/me → current identity (re-read from the database)
- GET /auth/check-email/:email → is this email whitelisted, and where
  (signed-in callers may also see every organization it belongs to)
- POST /auth/change-org-password → rotate the shared password (admins)
- GET /auth/organizations → active organizations (super admin)
- POST /auth/update-profile → edit own profile (organization members)
- POST /auth/logout → acknowledgement only; tokens are stateless
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from comityspace.auth.dependencies import (
    AuthContext,
    authenticate_token,
    optional_auth,
    require_nonprofit_admin,
    require_super_admin,
    require_volunteer,
)
from comityspace.auth.resolvers import normalize_email
from comityspace.db.engine import get_db
from comityspace.errors import ValidationError
from comityspace.schemas.auth import (
    ChangeOrgPasswordRequest,
    CheckEmailResponse,
    LoginRequest,
    LoginResponse,
    MeResponse,
    OrganizationListResponse,
    OrganizationSummary,
    ProfileRead,
    ProfileResponse,
    ProfileUpdate,
    RefreshRequest,
    RefreshResponse,
    TokensRead,
    UserRead,
    WhitelistMembership,
)
from comityspace.schemas.common import MessageResponse
from comityspace.services.auth_service import AuthService
from comityspace.services.user_service import UserService

router = APIRouter(prefix="/auth")


def _svc(db: AsyncSession = Depends(get_db)) -> AuthService:
    return AuthService(db)


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, svc: AuthService = Depends(_svc)):
    """Universal login for super admins, organization admins, and volunteers."""
    result = await svc.login(body.email, body.password)
    return LoginResponse(
        message=result.message,
        user_type=result.identity.user_type.value,
        user=UserRead.from_identity(result.identity),
        tokens=TokensRead.from_pair(result.tokens),
    )


# ─── Refresh ────────────────────────────────────────────


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(body: RefreshRequest, svc: AuthService = Depends(_svc)):
    """Exchange a refresh token for a new pair built from current state."""
    identity, pair = await svc.refresh_access_token(body.refresh_token)
    return RefreshResponse(
        user=UserRead.from_identity(identity),
        tokens=TokensRead.from_pair(pair),
    )


# ─── Current user ───────────────────────────────────────


@router.get("/me", response_model=MeResponse)
async def get_me(ctx: AuthContext = Depends(authenticate_token)):
    return MeResponse(
        user=UserRead.from_identity(ctx.identity),
        user_type=ctx.user_type.value,
        organization_id=ctx.organization_id,
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(ctx: AuthContext = Depends(authenticate_token)):
    """Nothing to revoke server-side; the client discards its tokens."""
    return MessageResponse(message="Logged out successfully")


# ─── Whitelist lookup ───────────────────────────────────


@router.get("/check-email/{email}", response_model=CheckEmailResponse)
async def check_email(
    email: str,
    svc: AuthService = Depends(_svc),
    ctx: Optional[AuthContext] = Depends(optional_auth),
):
    """Public: whitelist status only. Says nothing about passwords.

    Super admins, and members asking about their own email, also get
    every organization the email is whitelisted in.
    """
    check = await svc.is_email_whitelisted(email)
    if not check.allowed:
        return CheckEmailResponse(allowed=False, message=check.message)

    response = CheckEmailResponse(
        allowed=True,
        message=check.message,
        organization=check.organization_name,
        role=check.role,
        user_type=check.user_type.value,
    )
    if ctx is not None and (
        ctx.is_super_admin or ctx.identity.email == normalize_email(email)
    ):
        response.memberships = [
            WhitelistMembership(
                organization_id=org.id, organization_name=org.name, role=entry.role
            )
            for entry, org in await svc.whitelist_memberships(email)
        ]
    return response


# ─── Organizations ──────────────────────────────────────


@router.get(
    "/organizations",
    response_model=OrganizationListResponse,
    dependencies=[Depends(require_super_admin)],
)
async def list_organizations(svc: AuthService = Depends(_svc)):
    rows = await svc.list_organizations()
    return OrganizationListResponse(
        organizations=[
            OrganizationSummary(
                id=org.id,
                name=org.name,
                description=org.description,
                is_active=org.is_active,
                created_at=org.created_at,
                user_count=count,
            )
            for org, count in rows
        ]
    )


@router.post("/change-org-password", response_model=MessageResponse)
async def change_org_password(
    body: ChangeOrgPasswordRequest,
    ctx: AuthContext = Depends(require_nonprofit_admin),
    svc: AuthService = Depends(_svc),
):
    """Rotate the shared password. Admins change their own organization;
    super admins name one with organizationId.
    """
    if ctx.is_super_admin:
        organization_id = body.organization_id
    else:
        organization_id = ctx.organization_id
    if organization_id is None:
        raise ValidationError("Organization ID is required")

    await svc.update_organization_password(
        organization_id, body.new_password, changed_by=ctx.identity.id
    )
    return MessageResponse(message="Organization password updated successfully")


# ─── Profile ────────────────────────────────────────────


@router.post("/update-profile", response_model=ProfileResponse)
async def update_profile(
    body: ProfileUpdate,
    ctx: AuthContext = Depends(require_volunteer),
    db: AsyncSession = Depends(get_db),
):
    if ctx.is_super_admin:
        raise ValidationError(
            "Super admins cannot update profiles through this endpoint"
        )
    user = await UserService(db).update_profile(
        ctx.identity.id, **body.model_dump()
    )
    return ProfileResponse(user=ProfileRead.model_validate(user))
