"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: four tables carry the whole tenancy model.

- super_admins: platform operators, each with an individual password.
- organizations: tenants, each with ONE shared password for all members.
- whitelisted_emails: who may log into which organization, and as what role.
  This table is the source of truth for role and organization scope.
- users: per-(email, organization) profile rows, created when an admin
  adds a volunteer or lazily on first login. Their role mirrors the
  whitelist entry and is re-synced from it, never the other way round.

Integer primary keys keep token payloads small and match the existing
data; notes are JSON (JSONB on PostgreSQL) behind a typed model.
"""

from datetime import date, datetime, timezone
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# Whitelist roles. Super-admin is not a whitelist role.
ROLE_VOLUNTEER = "volunteer"
ROLE_NONPROFIT_ADMIN = "nonprofit_admin"
WHITELIST_ROLES = (ROLE_VOLUNTEER, ROLE_NONPROFIT_ADMIN)

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WhitelistNotes(BaseModel):
    """Typed view of whitelisted_emails.notes.

    Older rows hold a bare string; from_column() folds that into admin_notes.
    """

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    volunteer_name: Optional[str] = None
    admin_notes: str = ""
    added_date: Optional[datetime] = None

    @classmethod
    def from_column(cls, raw) -> "WhitelistNotes":
        if raw is None:
            return cls()
        if isinstance(raw, str):
            return cls(admin_notes=raw)
        return cls.model_validate(raw)

    def to_column(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


# ══════════════════════════════════════════════════════════════
# Credentials
# ══════════════════════════════════════════════════════════════


class SuperAdmin(Base):
    """Platform operator. Provisioned out-of-band (CLI), never via whitelist."""

    __tablename__ = "super_admins"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    first_name: Mapped[Optional[str]] = mapped_column(String(100))
    last_name: Mapped[Optional[str]] = mapped_column(String(100))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )


class Organization(Base):
    """Tenant root. One shared password authenticates every member."""

    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    shared_password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    website: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    address: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    whitelist: Mapped[list["WhitelistedEmail"]] = relationship(
        back_populates="organization"
    )


class WhitelistedEmail(Base):
    """Allow-list row: email → role within one organization."""

    __tablename__ = "whitelisted_emails"
    __table_args__ = (
        UniqueConstraint(
            "organization_id", "email", name="uq_whitelisted_emails_org_email"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    role: Mapped[str] = mapped_column(
        String(50), nullable=False, default=ROLE_VOLUNTEER
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    notes: Mapped[Optional[dict]] = mapped_column(JSONType)
    added_by: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    organization: Mapped["Organization"] = relationship(back_populates="whitelist")

    @property
    def parsed_notes(self) -> WhitelistNotes:
        return WhitelistNotes.from_column(self.notes)


# ══════════════════════════════════════════════════════════════
# Profiles
# ══════════════════════════════════════════════════════════════


class User(Base):
    """Per-organization profile keyed by (email, organization_id)."""

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("email", "organization_id", name="uq_users_email_org"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    organization_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(
        String(50), nullable=False, default=ROLE_VOLUNTEER
    )
    first_name: Mapped[Optional[str]] = mapped_column(String(100))
    last_name: Mapped[Optional[str]] = mapped_column(String(100))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    address: Mapped[Optional[str]] = mapped_column(Text)
    birth_date: Mapped[Optional[date]] = mapped_column(Date)
    emergency_contact_name: Mapped[Optional[str]] = mapped_column(String(200))
    emergency_contact_phone: Mapped[Optional[str]] = mapped_column(String(50))
    profile_completed: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    login_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    organization: Mapped["Organization"] = relationship()
