"""Auth service — login, token lifecycle, and identity refresh.

Learn: Service layer separates business logic from HTTP routing.
The request gate (auth/dependencies.py), the auth routes, and the CLI
all go through this class, so the rules live in one place:

- login() is a chain of credential resolvers with a single catch at
  the end. Whatever went wrong inside, the caller only ever sees
  AuthenticationError("Invalid email or password"), and every failure
  costs the same number of bcrypt comparisons.
- get_user_by_id() re-reads the database on every request. Tokens prove
  WHO you are; the database decides what you can do right now.
- refresh_access_token() fails closed: any miss invalidates the attempt.
"""

from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from comityspace.auth import jwt as tokens
from comityspace.auth.identity import (
    REFRESH_TOKEN,
    Identity,
    TokenPair,
    UserType,
)
from comityspace.auth.password import hash_password
from comityspace.auth.resolvers import (
    CredentialRejected,
    CredentialResolver,
    LoginAttempt,
    default_resolvers,
    normalize_email,
)
from comityspace.db.models import Organization, SuperAdmin, User, WhitelistedEmail
from comityspace.errors import (
    AuthenticationError,
    InvalidTokenError,
    NotFoundError,
)

logger = structlog.get_logger()

GENERIC_LOGIN_FAILURE = "Invalid email or password"


@dataclass
class LoginResult:
    identity: Identity
    tokens: TokenPair

    @property
    def message(self) -> str:
        if self.identity.user_type is UserType.SUPER_ADMIN:
            return "Super admin login successful"
        if self.identity.user_type is UserType.NONPROFIT_ADMIN:
            return "Admin login successful"
        return "Volunteer login successful"


@dataclass
class WhitelistCheck:
    allowed: bool
    message: str
    organization_id: Optional[int] = None
    organization_name: Optional[str] = None
    role: Optional[str] = None

    @property
    def user_type(self) -> Optional[UserType]:
        return UserType.from_whitelist_role(self.role) if self.role else None


class AuthService:
    """Business logic for authentication."""

    def __init__(
        self,
        db: AsyncSession,
        resolvers: Optional[list[CredentialResolver]] = None,
    ):
        self.db = db
        self.resolvers = resolvers if resolvers is not None else default_resolvers(db)
        self.comparison_budget = sum(r.max_comparisons for r in self.resolvers)

    # ─── Login ──────────────────────────────────────────

    async def login(self, email: str, password: str) -> LoginResult:
        attempt = LoginAttempt(email, password)
        identity = None
        resolver = None
        try:
            for resolver in self.resolvers:
                identity = await resolver.resolve(attempt)
                if identity is not None:
                    break
            else:
                raise CredentialRejected("email not recognised by any scheme")
        except CredentialRejected as e:
            # Same cost whichever scheme owned the email, or none did
            attempt.pad_to(self.comparison_budget)
            logger.info(
                "auth.login_failed",
                resolver=resolver.name if resolver else None,
                reason=e.reason,
            )
            raise AuthenticationError(GENERIC_LOGIN_FAILURE)

        logger.info(
            "auth.login_succeeded",
            user_id=identity.id,
            user_type=identity.user_type.value,
            organization_id=identity.organization_id,
        )
        return LoginResult(identity=identity, tokens=self.generate_tokens(identity))

    # ─── Tokens ─────────────────────────────────────────

    def generate_tokens(self, identity: Identity) -> TokenPair:
        return TokenPair(
            access_token=tokens.create_access_token(identity),
            refresh_token=tokens.create_refresh_token(identity),
        )

    def verify_token(self, token: str, expected_type: Optional[str] = None) -> dict:
        """Signature + expiry only; never touches the database."""
        return tokens.verify_token(token, expected_type)

    async def refresh_access_token(self, refresh_token: str) -> tuple[Identity, TokenPair]:
        """Exchange a refresh token for a fresh pair built from current state."""
        try:
            payload = self.verify_token(refresh_token, expected_type=REFRESH_TOKEN)
            identity = await self.get_user_by_id(payload["userId"], payload["userType"])
        except InvalidTokenError:
            raise InvalidTokenError("Invalid refresh token")
        if identity is None:
            logger.info("auth.refresh_rejected", user_id=payload.get("userId"))
            raise InvalidTokenError("Invalid refresh token")
        return identity, self.generate_tokens(identity)

    # ─── Identity ───────────────────────────────────────

    async def get_user_by_id(self, user_id, user_type) -> Optional[Identity]:
        """Current identity for a token subject, or None if it no longer exists.

        For organization users this also requires the organization to be
        active and the whitelist entry to still be active; role and user
        type are taken from the whitelist entry.
        """
        try:
            user_id = int(user_id)
            user_type = UserType(user_type)
        except (TypeError, ValueError):
            return None

        if user_type is UserType.SUPER_ADMIN:
            return await self._get_super_admin(user_id)
        return await self._get_org_user(user_id)

    async def _get_super_admin(self, admin_id: int) -> Optional[Identity]:
        result = await self.db.execute(
            select(SuperAdmin).where(
                SuperAdmin.id == admin_id, SuperAdmin.is_active.is_(True)
            )
        )
        admin = result.scalars().first()
        if admin is None:
            return None
        return Identity(
            id=admin.id,
            email=admin.email,
            user_type=UserType.SUPER_ADMIN,
            role=UserType.SUPER_ADMIN.value,
            first_name=admin.first_name,
            last_name=admin.last_name,
            last_login=admin.last_login,
        )

    async def _get_org_user(self, user_id: int) -> Optional[Identity]:
        result = await self.db.execute(
            select(User, Organization, WhitelistedEmail)
            .join(Organization, User.organization_id == Organization.id)
            .join(
                WhitelistedEmail,
                (WhitelistedEmail.organization_id == User.organization_id)
                & (WhitelistedEmail.email == User.email),
            )
            .where(
                User.id == user_id,
                Organization.is_active.is_(True),
                WhitelistedEmail.is_active.is_(True),
            )
        )
        row = result.first()
        if row is None:
            return None
        user, org, entry = row
        return Identity(
            id=user.id,
            email=user.email,
            user_type=UserType.from_whitelist_role(entry.role),
            role=entry.role,
            organization_id=org.id,
            organization_name=org.name,
            first_name=user.first_name,
            last_name=user.last_name,
            phone=user.phone,
            address=user.address,
            birth_date=user.birth_date,
            profile_completed=user.profile_completed,
            login_count=user.login_count,
            last_login=user.last_login,
        )

    # ─── Whitelist & organizations ──────────────────────

    async def whitelist_memberships(
        self, email: str
    ) -> list[tuple[WhitelistedEmail, Organization]]:
        """Active entries for the email in active organizations, oldest first."""
        result = await self.db.execute(
            select(WhitelistedEmail, Organization)
            .join(Organization, WhitelistedEmail.organization_id == Organization.id)
            .where(
                WhitelistedEmail.email == normalize_email(email),
                WhitelistedEmail.is_active.is_(True),
                Organization.is_active.is_(True),
            )
            .order_by(WhitelistedEmail.id)
        )
        return [(row[0], row[1]) for row in result.all()]

    async def is_email_whitelisted(self, email: str) -> WhitelistCheck:
        memberships = await self.whitelist_memberships(email)
        if not memberships:
            return WhitelistCheck(
                allowed=False,
                message="Email not found in any organization whitelist",
            )
        entry, org = memberships[0]
        return WhitelistCheck(
            allowed=True,
            message="Email is whitelisted",
            organization_id=org.id,
            organization_name=org.name,
            role=entry.role,
        )

    async def list_organizations(self) -> list[tuple[Organization, int]]:
        """Active organizations with their active whitelist size, by name."""
        member_count = (
            select(func.count(WhitelistedEmail.id))
            .where(
                WhitelistedEmail.organization_id == Organization.id,
                WhitelistedEmail.is_active.is_(True),
            )
            .correlate(Organization)
            .scalar_subquery()
        )
        result = await self.db.execute(
            select(Organization, member_count.label("user_count"))
            .where(Organization.is_active.is_(True))
            .order_by(Organization.name)
        )
        return [(row[0], row[1]) for row in result.all()]

    async def update_organization_password(
        self, organization_id: int, new_password: str, changed_by: Optional[int] = None
    ) -> Organization:
        """Rotate an organization's shared password.

        Tokens already issued stay valid until they expire; only future
        logins need the new password.
        """
        org = await self.db.get(Organization, organization_id)
        if org is None:
            raise NotFoundError("Organization not found")
        org.shared_password_hash = hash_password(new_password)
        await self.db.commit()
        logger.info(
            "auth.org_password_rotated",
            organization_id=organization_id,
            changed_by=changed_by,
        )
        return org
