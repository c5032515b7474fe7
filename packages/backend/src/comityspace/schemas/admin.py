"""Pydantic schemas for organization membership (admin + super-admin)."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from comityspace.db.models import WhitelistedEmail
from comityspace.schemas.common import CamelModel


class VolunteerCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=255)
    role: str = "volunteer"
    notes: Optional[str] = None


class VolunteerUpdate(CamelModel):
    name: Optional[str] = Field(None, max_length=200)
    role: Optional[str] = None
    notes: Optional[str] = None


class RoleUpdate(CamelModel):
    role: str
    organization_id: int


class NotesRead(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    volunteer_name: Optional[str] = None
    admin_notes: str = ""
    added_date: Optional[datetime] = None


class WhitelistEntryRead(CamelModel):
    id: int
    organization_id: int
    organization_name: Optional[str] = None
    email: str
    role: str
    is_active: bool
    notes: NotesRead
    added_by: Optional[int] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_entry(
        cls, entry: WhitelistedEmail, organization_name: Optional[str] = None
    ) -> "WhitelistEntryRead":
        return cls(
            id=entry.id,
            organization_id=entry.organization_id,
            organization_name=organization_name,
            email=entry.email,
            role=entry.role,
            is_active=entry.is_active,
            notes=NotesRead.model_validate(entry.parsed_notes.model_dump()),
            added_by=entry.added_by,
            created_at=entry.created_at,
        )


class MemberUserRead(CamelModel):
    id: int
    email: str
    role: str
    organization_id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class VolunteerCreated(CamelModel):
    success: bool = True
    message: str
    volunteer: WhitelistEntryRead
    user: MemberUserRead


class VolunteerResponse(CamelModel):
    success: bool = True
    message: str
    volunteer: WhitelistEntryRead


class WhitelistListResponse(CamelModel):
    success: bool = True
    volunteers: list[WhitelistEntryRead]
