"""Organization service — tenant lifecycle for super admins."""

from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from comityspace.auth.password import hash_password
from comityspace.auth.resolvers import normalize_email
from comityspace.db.models import (
    ROLE_NONPROFIT_ADMIN,
    Organization,
    User,
    WhitelistedEmail,
    WhitelistNotes,
)
from comityspace.errors import ConflictError, NotFoundError, ValidationError

logger = structlog.get_logger()

MIN_PASSWORD_LENGTH = 8

_UPDATABLE_FIELDS = ("name", "description", "website", "phone", "address")


class OrganizationService:
    """Business logic for organization management."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, organization_id: int) -> Organization:
        org = await self.db.get(Organization, organization_id)
        if org is None:
            raise NotFoundError("Organization not found")
        return org

    async def list_organizations(self) -> list[tuple[Organization, int, int]]:
        """Every organization (active or not) with whitelist and user counts."""
        whitelist_count = (
            select(func.count(WhitelistedEmail.id))
            .where(WhitelistedEmail.organization_id == Organization.id)
            .correlate(Organization)
            .scalar_subquery()
        )
        user_count = (
            select(func.count(User.id))
            .where(User.organization_id == Organization.id)
            .correlate(Organization)
            .scalar_subquery()
        )
        result = await self.db.execute(
            select(
                Organization,
                whitelist_count.label("whitelist_count"),
                user_count.label("user_count"),
            ).order_by(Organization.created_at.desc(), Organization.id.desc())
        )
        return [(row[0], row[1], row[2]) for row in result.all()]

    async def _name_taken(self, name: str, exclude_id: Optional[int] = None) -> bool:
        q = select(Organization.id).where(func.lower(Organization.name) == name.lower())
        if exclude_id is not None:
            q = q.where(Organization.id != exclude_id)
        result = await self.db.execute(q)
        return result.first() is not None

    async def create(
        self,
        name: str,
        password: str,
        description: Optional[str] = None,
        website: Optional[str] = None,
        phone: Optional[str] = None,
        address: Optional[str] = None,
        admin_email: Optional[str] = None,
        admin_notes: Optional[str] = None,
        created_by: Optional[int] = None,
    ) -> Organization:
        """Create an organization, optionally whitelisting its first admin.

        Both rows are committed together or not at all.
        """
        name = name.strip()
        if not name:
            raise ValidationError("Organization name is required")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError("Password must be at least 8 characters long")
        if await self._name_taken(name):
            raise ConflictError("An organization with this name already exists")

        org = Organization(
            name=name,
            shared_password_hash=hash_password(password),
            description=description,
            website=website,
            phone=phone,
            address=address,
            created_by=created_by,
        )
        self.db.add(org)
        await self.db.flush()

        if admin_email:
            notes = WhitelistNotes(
                admin_notes=admin_notes
                or "Initial admin added during organization creation"
            )
            self.db.add(
                WhitelistedEmail(
                    organization_id=org.id,
                    email=normalize_email(admin_email),
                    role=ROLE_NONPROFIT_ADMIN,
                    added_by=created_by,
                    notes=notes.to_column(),
                )
            )
            await self.db.flush()

        await self.db.commit()
        logger.info(
            "organization.created",
            organization_id=org.id,
            with_admin=bool(admin_email),
            created_by=created_by,
        )
        return org

    async def update(self, organization_id: int, **fields) -> Organization:
        org = await self.get(organization_id)
        changes = {
            k: v for k, v in fields.items() if k in _UPDATABLE_FIELDS and v is not None
        }
        if not changes:
            raise ValidationError("No fields to update")
        if "name" in changes and await self._name_taken(changes["name"], organization_id):
            raise ConflictError("An organization with this name already exists")

        for key, value in changes.items():
            setattr(org, key, value)
        await self.db.commit()
        return org

    async def set_status(self, organization_id: int, is_active: bool) -> Organization:
        """Activate or deactivate. Members of an inactive organization fail
        the request gate on their next call.
        """
        org = await self.get(organization_id)
        org.is_active = is_active
        await self.db.commit()
        logger.info(
            "organization.status_changed",
            organization_id=organization_id,
            is_active=is_active,
        )
        return org
