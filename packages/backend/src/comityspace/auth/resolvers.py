"""Credential resolvers — the two login schemes as an ordered chain.

Learn: AuthService.login walks a list of resolvers. Each one answers
three ways:

- returns an Identity → login succeeded, stop
- returns None → this email is not known to my scheme, try the next one
- raises CredentialRejected → the email is mine but the credential is
  wrong, stop without trying anything else

CredentialRejected never leaves AuthService: the chain boundary turns
it (and an exhausted chain) into one generic AuthenticationError, so
the client cannot tell which scheme or which check failed.

Every hash comparison goes through LoginAttempt.verify so the boundary
knows how many were made. A failed attempt is topped up with dummy
comparisons to the chain's budget (the sum of each resolver's
max_comparisons), so unknown emails, super-admin emails and member
emails all cost the same when the password is wrong.
"""

from datetime import datetime, timezone
from typing import Optional, Protocol

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from comityspace.auth.identity import Identity, UserType
from comityspace.auth.password import (
    burn_verification,
    hash_password,
    needs_rehash,
    verify_password,
)
from comityspace.config import settings
from comityspace.db.models import Organization, SuperAdmin, User, WhitelistedEmail

logger = structlog.get_logger()


class CredentialRejected(Exception):
    """Internal: the resolver owns this email but refuses the credential."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


def normalize_email(email: str) -> str:
    return email.strip().lower()


class LoginAttempt:
    """One login's credentials plus a count of bcrypt comparisons spent."""

    def __init__(self, email: str, password: str):
        self.email = normalize_email(email)
        self.password = password
        self.comparisons = 0

    def verify(self, password_hash: str) -> bool:
        self.comparisons += 1
        return verify_password(self.password, password_hash)

    def pad_to(self, budget: int) -> None:
        while self.comparisons < budget:
            self.comparisons += 1
            burn_verification(self.password)


class CredentialResolver(Protocol):
    name: str
    # Upper bound on LoginAttempt.verify calls this resolver makes
    max_comparisons: int

    async def resolve(self, attempt: LoginAttempt) -> Optional[Identity]:
        ...


class SuperAdminResolver:
    """Individual-password login for platform operators."""

    name = "super_admin"
    max_comparisons = 1

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve(self, attempt: LoginAttempt) -> Optional[Identity]:
        result = await self.db.execute(
            select(SuperAdmin).where(
                func.lower(SuperAdmin.email) == attempt.email,
                SuperAdmin.is_active.is_(True),
            )
        )
        admin = result.scalars().first()
        if admin is None:
            return None

        if not attempt.verify(admin.password_hash):
            raise CredentialRejected("super admin password mismatch")

        if needs_rehash(admin.password_hash):
            admin.password_hash = hash_password(attempt.password)
        admin.last_login = datetime.now(timezone.utc)
        await self.db.commit()

        return Identity(
            id=admin.id,
            email=admin.email,
            user_type=UserType.SUPER_ADMIN,
            role=UserType.SUPER_ADMIN.value,
            first_name=admin.first_name,
            last_name=admin.last_name,
            last_login=admin.last_login,
        )


class OrganizationResolver:
    """Shared-password login for whitelisted organization members.

    Only the first `login_max_organizations` active entries (by whitelist
    id) are tried, which keeps the comparison count bounded.
    """

    name = "organization"

    def __init__(self, db: AsyncSession):
        self.db = db
        self.max_comparisons = settings.login_max_organizations

    async def _active_entries(
        self, email: str
    ) -> list[tuple[WhitelistedEmail, Organization]]:
        result = await self.db.execute(
            select(WhitelistedEmail, Organization)
            .join(Organization, WhitelistedEmail.organization_id == Organization.id)
            .where(
                WhitelistedEmail.email == email,
                WhitelistedEmail.is_active.is_(True),
                Organization.is_active.is_(True),
            )
            .order_by(WhitelistedEmail.id)
            .limit(self.max_comparisons + 1)
        )
        rows = [(row[0], row[1]) for row in result.all()]
        if len(rows) > self.max_comparisons:
            logger.warning(
                "auth.login_organizations_truncated",
                limit=self.max_comparisons,
                whitelist_ids=[entry.id for entry, _ in rows],
            )
            rows = rows[: self.max_comparisons]
        return rows

    async def resolve(self, attempt: LoginAttempt) -> Optional[Identity]:
        entries = await self._active_entries(attempt.email)
        if not entries:
            return None

        # An email may be whitelisted in several organizations; the shared
        # password decides which one this login is for.
        for entry, org in entries:
            if attempt.verify(org.shared_password_hash):
                break
        else:
            raise CredentialRejected("organization password mismatch")

        if needs_rehash(org.shared_password_hash):
            org.shared_password_hash = hash_password(attempt.password)

        user = await self._record_login(entry)
        await self.db.commit()

        return Identity(
            id=user.id,
            email=user.email,
            user_type=UserType.from_whitelist_role(entry.role),
            role=user.role,
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

    async def _find_user(self, entry: WhitelistedEmail) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(
                User.email == entry.email,
                User.organization_id == entry.organization_id,
            )
        )
        return result.scalars().first()

    async def _create_user(self, entry: WhitelistedEmail, now: datetime) -> Optional[User]:
        """Insert the missing users row; None if a concurrent login beat us to it."""
        notes = entry.parsed_notes
        user = User(
            email=entry.email,
            organization_id=entry.organization_id,
            role=entry.role,
            first_name=notes.first_name,
            last_name=notes.last_name,
            login_count=1,
            last_login=now,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(user)
        except IntegrityError:
            logger.info(
                "auth.user_record_create_raced",
                organization_id=entry.organization_id,
                whitelist_id=entry.id,
            )
            return None
        logger.warning(
            "auth.user_record_created_on_login",
            organization_id=entry.organization_id,
            whitelist_id=entry.id,
        )
        return user

    async def _record_login(self, entry: WhitelistedEmail) -> User:
        """Bump login counters, creating the users row if it is missing."""
        now = datetime.now(timezone.utc)
        user = await self._find_user(entry)

        if user is None:
            if not settings.allow_lazy_user_creation:
                raise CredentialRejected("no user record provisioned")
            created = await self._create_user(entry, now)
            if created is not None:
                return created
            user = await self._find_user(entry)
            if user is None:
                raise CredentialRejected("users row vanished after insert conflict")

        user.login_count = (user.login_count or 0) + 1
        user.last_login = now
        if user.role != entry.role:
            # whitelist is the source of truth for role
            user.role = entry.role
        await self.db.flush()
        return user


def default_resolvers(db: AsyncSession) -> list[CredentialResolver]:
    """Super-admin first: an operator email never falls through to an org."""
    return [SuperAdminResolver(db), OrganizationResolver(db)]
