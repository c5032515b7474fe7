"""Whitelist service — who may log into an organization, and as what.

Learn: The whitelist entry is the source of truth for role and
organization scope; the users row mirrors it. Every write that touches
both tables happens in one session transaction (flush, flush, commit),
so a failure can never leave the role set in one table and not the other.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from comityspace.auth.resolvers import normalize_email
from comityspace.db.models import (
    WHITELIST_ROLES,
    Organization,
    User,
    WhitelistedEmail,
    WhitelistNotes,
)
from comityspace.errors import ConflictError, NotFoundError, ValidationError

logger = structlog.get_logger()


def split_name(name: str) -> tuple[str, str]:
    """'Ada King Lovelace' → ('Ada', 'King Lovelace')."""
    parts = name.strip().split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def _check_role(role: str) -> None:
    if role not in WHITELIST_ROLES:
        raise ValidationError(
            'Role must be either "volunteer" or "nonprofit_admin"'
        )


class WhitelistService:
    """Business logic for organization membership."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_entry(
        self, organization_id: int, email: str
    ) -> Optional[WhitelistedEmail]:
        result = await self.db.execute(
            select(WhitelistedEmail).where(
                WhitelistedEmail.organization_id == organization_id,
                WhitelistedEmail.email == normalize_email(email),
            )
        )
        return result.scalars().first()

    async def _get_user(self, organization_id: int, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(
                User.organization_id == organization_id,
                User.email == normalize_email(email),
            )
        )
        return result.scalars().first()

    async def list_entries(
        self, organization_id: Optional[int] = None
    ) -> list[tuple[WhitelistedEmail, Organization]]:
        q = (
            select(WhitelistedEmail, Organization)
            .join(Organization, WhitelistedEmail.organization_id == Organization.id)
            .order_by(WhitelistedEmail.created_at.desc(), WhitelistedEmail.id.desc())
        )
        if organization_id is not None:
            q = q.where(WhitelistedEmail.organization_id == organization_id)
        result = await self.db.execute(q)
        return [(row[0], row[1]) for row in result.all()]

    async def add_member(
        self,
        organization_id: int,
        email: str,
        name: str,
        role: str = "volunteer",
        admin_notes: str = "",
        added_by: Optional[int] = None,
    ) -> tuple[WhitelistedEmail, User]:
        """Whitelist an email and create (or refresh) its users row.

        The users row exists straight away so the member can be assigned
        work before their first login.
        """
        _check_role(role)
        email = normalize_email(email)
        if "@" not in email:
            raise ValidationError("Valid email address is required")
        if not name.strip():
            raise ValidationError("Volunteer name is required")

        org = await self.db.get(Organization, organization_id)
        if org is None:
            raise NotFoundError("Organization not found")
        if await self.get_entry(organization_id, email):
            raise ConflictError("This email is already whitelisted for this organization")

        first_name, last_name = split_name(name)
        notes = WhitelistNotes(
            first_name=first_name,
            last_name=last_name,
            volunteer_name=name.strip(),
            admin_notes=admin_notes or "",
            added_date=datetime.now(timezone.utc),
        )
        entry = WhitelistedEmail(
            organization_id=organization_id,
            email=email,
            role=role,
            added_by=added_by,
            notes=notes.to_column(),
        )
        self.db.add(entry)
        await self.db.flush()

        user = await self._get_user(organization_id, email)
        if user is None:
            user = User(
                email=email,
                organization_id=organization_id,
                role=role,
                first_name=first_name,
                last_name=last_name,
                login_count=0,
                profile_completed=False,
            )
            self.db.add(user)
        else:
            user.first_name = first_name
            user.last_name = last_name
            user.role = role
        await self.db.flush()
        await self.db.commit()

        logger.info(
            "whitelist.member_added",
            organization_id=organization_id,
            whitelist_id=entry.id,
            user_id=user.id,
            role=role,
        )
        return entry, user

    async def update_member(
        self,
        organization_id: int,
        email: str,
        name: Optional[str] = None,
        role: Optional[str] = None,
        admin_notes: Optional[str] = None,
    ) -> WhitelistedEmail:
        entry = await self.get_entry(organization_id, email)
        if entry is None:
            raise NotFoundError("Volunteer not found in whitelist")
        if role is not None:
            _check_role(role)

        notes = entry.parsed_notes
        user = await self._get_user(organization_id, email)

        if name is not None and name.strip():
            first_name, last_name = split_name(name)
            notes.volunteer_name = name.strip()
            notes.first_name = first_name
            notes.last_name = last_name
            if user is not None:
                user.first_name = first_name
                user.last_name = last_name
        if admin_notes is not None:
            notes.admin_notes = admin_notes
        entry.notes = notes.to_column()

        if role is not None:
            entry.role = role
            if user is not None:
                user.role = role

        await self.db.flush()
        await self.db.commit()
        logger.info(
            "whitelist.member_updated",
            organization_id=organization_id,
            whitelist_id=entry.id,
            role=entry.role,
        )
        return entry

    async def set_role(self, organization_id: int, email: str, role: str) -> WhitelistedEmail:
        """Change a member's role in the whitelist and the mirrored users row."""
        return await self.update_member(organization_id, email, role=role)

    async def remove_member(self, organization_id: int, email: str) -> None:
        """Drop the whitelist entry. The users row stays for history; without
        an entry it can no longer log in or pass the request gate.
        """
        entry = await self.get_entry(organization_id, email)
        if entry is None:
            raise NotFoundError("Volunteer not found in whitelist")
        entry_id = entry.id
        await self.db.delete(entry)
        await self.db.commit()
        logger.info(
            "whitelist.member_removed",
            organization_id=organization_id,
            whitelist_id=entry_id,
        )
