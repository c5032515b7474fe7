"""Test fixtures — a fresh in-memory database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Settings are read once at import time, so the environment is
   pointed at SQLite and a cheap bcrypt cost BEFORE comityspace loads.
2. Each test gets its own in-memory sqlite+aiosqlite engine. StaticPool
   keeps one connection alive so create_all and the session see the
   same database. Dropping the engine throws the data away.
3. The app's get_db is overridden to hand every request that one
   session, so tests can seed rows directly and then call the API.
"""

import os
from dataclasses import dataclass
from typing import Optional

os.environ["COMITY_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["COMITY_ENVIRONMENT"] = "test"
os.environ["COMITY_BCRYPT_ROUNDS"] = "4"
os.environ["COMITY_JWT_SECRET"] = "test-secret-not-for-production"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from comityspace.auth.password import hash_password  # noqa: E402
from comityspace.db.engine import get_db  # noqa: E402
from comityspace.db.models import (  # noqa: E402
    Base,
    Organization,
    SuperAdmin,
    User,
    WhitelistedEmail,
    WhitelistNotes,
)
from comityspace.main import app  # noqa: E402


@pytest_asyncio.fixture()
async def db_session():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session = AsyncSession(bind=engine, expire_on_commit=False)
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()


@pytest_asyncio.fixture()
async def client(db_session):
    """HTTP client running the real auth pipeline against db_session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ─── Seed data ──────────────────────────────────────────


@dataclass
class Tenant:
    org: Organization
    password: str

    @property
    def id(self) -> int:
        return self.org.id


@dataclass
class Account:
    """Someone who can log in, and the password that gets them in."""

    id: int
    email: str
    password: str
    organization_id: Optional[int] = None


async def _create_tenant(db, name, password):
    org = Organization(name=name, shared_password_hash=hash_password(password))
    db.add(org)
    await db.commit()
    return Tenant(org=org, password=password)


@pytest_asyncio.fixture()
async def super_admin(db_session):
    admin = SuperAdmin(
        email="ops@comityspace.org",
        password_hash=hash_password("operator-pass-1"),
        first_name="Ola",
        last_name="Operator",
    )
    db_session.add(admin)
    await db_session.commit()
    return Account(id=admin.id, email=admin.email, password="operator-pass-1")


@pytest_asyncio.fixture()
async def tenant(db_session):
    return await _create_tenant(db_session, "Harbor Food Bank", "harbor-shared-1")


@pytest_asyncio.fixture()
async def other_tenant(db_session):
    return await _create_tenant(db_session, "Ridge Trail Crew", "ridge-shared-22")


@pytest.fixture()
def add_member(db_session):
    """add_member(tenant, email, role=..., name=..., with_user=True) → Account.

    Writes the whitelist entry (and, unless with_user=False, the users
    row) straight to the database, the way an admin would have.
    """

    async def _add(tenant, email, role="volunteer", name="Sam Lee", with_user=True):
        first, _, last = name.partition(" ")
        db_session.add(
            WhitelistedEmail(
                organization_id=tenant.id,
                email=email,
                role=role,
                notes=WhitelistNotes(
                    first_name=first, last_name=last, volunteer_name=name
                ).to_column(),
            )
        )
        user = None
        if with_user:
            user = User(
                email=email,
                organization_id=tenant.id,
                role=role,
                first_name=first,
                last_name=last,
            )
            db_session.add(user)
        await db_session.commit()
        return Account(
            id=user.id if user else 0,
            email=email,
            password=tenant.password,
            organization_id=tenant.id,
        )

    return _add


@pytest_asyncio.fixture()
async def org_admin(tenant, add_member):
    return await add_member(tenant, "lead@harbor.org", role="nonprofit_admin", name="Lee Harbor")


@pytest_asyncio.fixture()
async def volunteer(tenant, add_member):
    return await add_member(tenant, "sam@example.org")


@pytest.fixture()
def login(client):
    """login(account) → response JSON; asserts success."""

    async def _login(account):
        r = await client.post(
            "/api/auth/login",
            json={"email": account.email, "password": account.password},
        )
        assert r.status_code == 200, r.text
        return r.json()

    return _login


@pytest.fixture()
def auth_headers(login):
    """auth_headers(account) → Authorization header from a fresh login."""

    async def _headers(account):
        body = await login(account)
        return {"Authorization": f"Bearer {body['tokens']['accessToken']}"}

    return _headers
