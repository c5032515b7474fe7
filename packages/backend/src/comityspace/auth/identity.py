"""Identity and token data model.

Learn: Identity is what a successful login resolves to and what the
request gate re-reads on every call. Only a subset of it goes into the
access token; the refresh token carries just (user_id, user_type) so
role and organization are always re-resolved from the database when a
new access token is minted.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional

from comityspace.db.models import ROLE_NONPROFIT_ADMIN


class UserType(str, Enum):
    SUPER_ADMIN = "super_admin"
    NONPROFIT_ADMIN = "nonprofit_admin"
    VOLUNTEER = "volunteer"

    @classmethod
    def from_whitelist_role(cls, role: str) -> "UserType":
        """nonprofit_admin stays admin; any other whitelist role is a volunteer."""
        if role == ROLE_NONPROFIT_ADMIN:
            return cls.NONPROFIT_ADMIN
        return cls.VOLUNTEER


ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


@dataclass
class Identity:
    """An authenticated principal of exactly one UserType."""

    id: int
    email: str
    user_type: UserType
    role: str
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

    @property
    def is_super_admin(self) -> bool:
        return self.user_type is UserType.SUPER_ADMIN

    def access_claims(self) -> dict:
        return {
            "userId": self.id,
            "email": self.email,
            "userType": self.user_type.value,
            "role": self.role,
            "organizationId": self.organization_id,
            "organizationName": self.organization_name,
        }

    def refresh_claims(self) -> dict:
        return {"userId": self.id, "userType": self.user_type.value}


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
