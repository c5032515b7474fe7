"""Pydantic schemas for super-admin organization management."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from comityspace.schemas.common import CamelModel


class OrganizationCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=8)
    description: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    nonprofit_admin_email: Optional[str] = None
    nonprofit_admin_notes: Optional[str] = None


class OrganizationUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class OrganizationStatusUpdate(CamelModel):
    is_active: bool


class OrganizationRead(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    is_active: bool
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    whitelist_count: Optional[int] = None
    user_count: Optional[int] = None


class OrganizationResponse(CamelModel):
    success: bool = True
    message: str
    organization: OrganizationRead


class OrganizationsResponse(CamelModel):
    success: bool = True
    organizations: list[OrganizationRead]
