"""Request gate tests — token checks, role gates, organization scoping.

Learn: Each stage of the gate has its own failure code:
NO_TOKEN → INVALID_TOKEN → USER_NOT_FOUND → FORBIDDEN. These tests
walk them in order through real routes, then pin down the
cross-organization rule: admins never reach another tenant's data,
whatever the request claims.
"""

from datetime import timedelta

import pytest
from fastapi import Depends, FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from comityspace.auth.dependencies import AuthContext, optional_auth
from comityspace.auth.identity import Identity, UserType
from comityspace.auth.jwt import create_access_token, create_refresh_token
from comityspace.db.engine import get_db
from comityspace.db.models import Organization, WhitelistedEmail


# ═══════════════════════════════════════════════════════════
# authenticate_token
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_missing_token(client):
    r = await client.get("/api/auth/me")
    assert r.status_code == 401
    body = r.json()
    assert body["code"] == "NO_TOKEN"
    assert body["message"] == "No token provided"
    assert r.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_non_bearer_scheme_counts_as_missing(client):
    r = await client.get("/api/auth/me", headers={"Authorization": "Basic abc"})
    assert r.status_code == 401
    assert r.json()["code"] == "NO_TOKEN"


@pytest.mark.asyncio
async def test_garbage_token(client):
    r = await client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})
    assert r.status_code == 401
    assert r.json()["code"] == "INVALID_TOKEN"


@pytest.mark.asyncio
async def test_expired_token(client, super_admin):
    identity = Identity(
        id=super_admin.id,
        email=super_admin.email,
        user_type=UserType.SUPER_ADMIN,
        role="super_admin",
    )
    token = create_access_token(identity, expires_delta=timedelta(seconds=-5))
    r = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert r.json()["code"] == "INVALID_TOKEN"


@pytest.mark.asyncio
async def test_refresh_token_rejected_as_bearer(client, login, volunteer):
    body = await login(volunteer)
    r = await client.get(
        "/api/auth/me",
        headers={"Authorization": f"Bearer {body['tokens']['refreshToken']}"},
    )
    assert r.status_code == 401
    assert r.json()["code"] == "INVALID_TOKEN"


@pytest.mark.asyncio
async def test_valid_token_for_vanished_user(client):
    ghost = Identity(id=999, email="ghost@example.org", user_type=UserType.VOLUNTEER, role="volunteer")
    token = create_access_token(ghost)
    r = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert r.json()["code"] == "USER_NOT_FOUND"


@pytest.mark.asyncio
async def test_deactivated_org_revokes_live_token(client, db_session, auth_headers, tenant, volunteer):
    headers = await auth_headers(volunteer)
    assert (await client.get("/api/auth/me", headers=headers)).status_code == 200

    org = await db_session.get(Organization, tenant.id)
    org.is_active = False
    await db_session.commit()

    r = await client.get("/api/auth/me", headers=headers)
    assert r.status_code == 401
    assert r.json()["code"] == "USER_NOT_FOUND"


@pytest.mark.asyncio
async def test_removed_whitelist_entry_revokes_live_token(client, db_session, auth_headers, volunteer):
    headers = await auth_headers(volunteer)

    result = await db_session.execute(
        select(WhitelistedEmail).where(WhitelistedEmail.email == volunteer.email)
    )
    await db_session.delete(result.scalars().one())
    await db_session.commit()

    r = await client.get("/api/auth/me", headers=headers)
    assert r.status_code == 401
    assert r.json()["code"] == "USER_NOT_FOUND"


@pytest.mark.asyncio
async def test_demotion_takes_effect_on_next_request(client, db_session, auth_headers, org_admin):
    """The token still says nonprofit_admin; the database says volunteer."""
    headers = await auth_headers(org_admin)
    assert (await client.get("/api/admin/volunteers", headers=headers)).status_code == 200

    result = await db_session.execute(
        select(WhitelistedEmail).where(WhitelistedEmail.email == org_admin.email)
    )
    result.scalars().one().role = "volunteer"
    await db_session.commit()

    r = await client.get("/api/admin/volunteers", headers=headers)
    assert r.status_code == 403
    assert r.json()["message"] == "Admin access required"


# ═══════════════════════════════════════════════════════════
# Role gates
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_volunteer_blocked_from_admin_routes(client, auth_headers, volunteer):
    r = await client.get("/api/admin/volunteers", headers=await auth_headers(volunteer))
    assert r.status_code == 403
    assert r.json()["code"] == "FORBIDDEN"


@pytest.mark.asyncio
async def test_admin_blocked_from_super_admin_routes(client, auth_headers, org_admin):
    r = await client.get(
        "/api/super-admin/organizations", headers=await auth_headers(org_admin)
    )
    assert r.status_code == 403
    assert r.json()["message"] == "Super admin access required"


@pytest.mark.asyncio
async def test_super_admin_passes_admin_gate(client, auth_headers, super_admin, tenant):
    r = await client.get(
        f"/api/admin/volunteers?orgId={tenant.id}", headers=await auth_headers(super_admin)
    )
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_every_role_passes_volunteer_gate(client, auth_headers, volunteer, org_admin):
    for account in (volunteer, org_admin):
        r = await client.post(
            "/api/auth/update-profile",
            json={"firstName": "Pat", "lastName": "Doe"},
            headers=await auth_headers(account),
        )
        assert r.status_code == 200, r.text


# ═══════════════════════════════════════════════════════════
# Organization scoping
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_admin_cannot_request_other_org(client, auth_headers, org_admin, other_tenant):
    r = await client.get(
        f"/api/admin/volunteers?orgId={other_tenant.id}",
        headers=await auth_headers(org_admin),
    )
    assert r.status_code == 403
    assert r.json()["message"] == "Access denied to this organization"


@pytest.mark.asyncio
async def test_admin_may_name_own_org(client, auth_headers, org_admin, tenant):
    r = await client.get(
        f"/api/admin/volunteers?orgId={tenant.id}", headers=await auth_headers(org_admin)
    )
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_admin_writes_are_pinned_to_own_org(
    client, db_session, auth_headers, org_admin, tenant, other_tenant
):
    """A body claiming another organization is ignored; no row lands there."""
    r = await client.post(
        "/api/admin/volunteers",
        json={"name": "Pat Doe", "email": "pat@example.org", "organizationId": other_tenant.id},
        headers=await auth_headers(org_admin),
    )
    assert r.status_code == 201
    assert r.json()["volunteer"]["organizationId"] == tenant.id

    result = await db_session.execute(
        select(WhitelistedEmail).where(WhitelistedEmail.organization_id == other_tenant.id)
    )
    assert result.scalars().all() == []


@pytest.mark.asyncio
async def test_non_integer_org_id(client, auth_headers, org_admin):
    r = await client.get(
        "/api/admin/volunteers?orgId=abc", headers=await auth_headers(org_admin)
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_super_admin_needs_org_context(client, auth_headers, super_admin):
    r = await client.get("/api/admin/volunteers", headers=await auth_headers(super_admin))
    assert r.status_code == 400
    assert r.json()["message"] == "Organization context required"


# ═══════════════════════════════════════════════════════════
# optional_auth
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_optional_auth(db_session, super_admin):
    probe = FastAPI()

    @probe.get("/whoami")
    async def whoami(ctx: AuthContext = Depends(optional_auth)):
        return {"userType": ctx.user_type.value if ctx else None}

    async def override_get_db():
        yield db_session

    probe.dependency_overrides[get_db] = override_get_db
    identity = Identity(
        id=super_admin.id, email=super_admin.email,
        user_type=UserType.SUPER_ADMIN, role="super_admin",
    )

    async with AsyncClient(transport=ASGITransport(app=probe), base_url="http://test") as ac:
        anonymous = await ac.get("/whoami")
        bad = await ac.get("/whoami", headers={"Authorization": "Bearer nope"})
        wrong_type = await ac.get(
            "/whoami",
            headers={"Authorization": f"Bearer {create_refresh_token(identity)}"},
        )
        good = await ac.get(
            "/whoami",
            headers={"Authorization": f"Bearer {create_access_token(identity)}"},
        )

    assert anonymous.json() == {"userType": None}
    assert bad.json() == {"userType": None}
    assert wrong_type.json() == {"userType": None}
    assert good.json() == {"userType": "super_admin"}
