"""Pydantic schemas for the /api/auth routes."""

from datetime import date, datetime
from typing import Optional

from pydantic import Field, model_validator

from comityspace.auth.identity import Identity, TokenPair
from comityspace.schemas.common import CamelModel

MIN_PASSWORD_LENGTH = 8


# ─── Requests ───────────────────────────────────────────

class LoginRequest(CamelModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RefreshRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1)


class ChangeOrgPasswordRequest(CamelModel):
    new_password: str
    confirm_password: str
    organization_id: Optional[int] = None  # super admins only

    @model_validator(mode="after")
    def passwords_agree(self):
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords do not match")
        if len(self.new_password) < MIN_PASSWORD_LENGTH:
            raise ValueError("Password must be at least 8 characters long")
        return self


class ProfileUpdate(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    birth_date: Optional[date] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None


# ─── Responses ──────────────────────────────────────────

class TokensRead(CamelModel):
    access_token: str
    refresh_token: str

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokensRead":
        return cls(access_token=pair.access_token, refresh_token=pair.refresh_token)


class UserRead(CamelModel):
    """Public view of an Identity."""

    id: int
    email: str
    role: str
    user_type: str
    organization_id: Optional[int] = None
    organization_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    birth_date: Optional[date] = None
    profile_completed: Optional[bool] = None
    login_count: Optional[int] = None
    last_login: Optional[datetime] = None

    @classmethod
    def from_identity(cls, identity: Identity) -> "UserRead":
        return cls(
            id=identity.id,
            email=identity.email,
            role=identity.role,
            user_type=identity.user_type.value,
            organization_id=identity.organization_id,
            organization_name=identity.organization_name,
            first_name=identity.first_name,
            last_name=identity.last_name,
            phone=identity.phone,
            address=identity.address,
            birth_date=identity.birth_date,
            profile_completed=identity.profile_completed,
            login_count=identity.login_count,
            last_login=identity.last_login,
        )


class LoginResponse(CamelModel):
    success: bool = True
    message: str
    user_type: str
    user: UserRead
    tokens: TokensRead


class RefreshResponse(CamelModel):
    success: bool = True
    message: str = "Token refreshed successfully"
    user: UserRead
    tokens: TokensRead


class MeResponse(CamelModel):
    success: bool = True
    user: UserRead
    user_type: str
    organization_id: Optional[int] = None


class WhitelistMembership(CamelModel):
    organization_id: int
    organization_name: str
    role: str


class CheckEmailResponse(CamelModel):
    success: bool = True
    allowed: bool
    message: str
    organization: Optional[str] = None
    role: Optional[str] = None
    user_type: Optional[str] = None
    # Every active organization for the email; signed-in callers only
    memberships: Optional[list[WhitelistMembership]] = None


class OrganizationSummary(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    user_count: int = 0


class OrganizationListResponse(CamelModel):
    success: bool = True
    organizations: list[OrganizationSummary]


class ProfileRead(CamelModel):
    id: int
    email: str
    role: str
    organization_id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    birth_date: Optional[date] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    profile_completed: bool


class ProfileResponse(CamelModel):
    success: bool = True
    message: str = "Profile updated successfully"
    user: ProfileRead
