"""Super-admin API — organizations and cross-tenant membership.

Every route here is behind require_super_admin (see api/__init__.py).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from comityspace.auth.dependencies import AuthContext, require_super_admin
from comityspace.db.engine import get_db
from comityspace.schemas.admin import (
    RoleUpdate,
    VolunteerResponse,
    WhitelistEntryRead,
    WhitelistListResponse,
)
from comityspace.schemas.organization import (
    OrganizationCreate,
    OrganizationRead,
    OrganizationResponse,
    OrganizationsResponse,
    OrganizationStatusUpdate,
    OrganizationUpdate,
)
from comityspace.services.organization_service import OrganizationService
from comityspace.services.whitelist_service import WhitelistService

router = APIRouter(prefix="/super-admin")


def _orgs(db: AsyncSession = Depends(get_db)) -> OrganizationService:
    return OrganizationService(db)


def _whitelist(db: AsyncSession = Depends(get_db)) -> WhitelistService:
    return WhitelistService(db)


# ─── Organizations ──────────────────────────────────────


@router.get("/organizations", response_model=OrganizationsResponse)
async def list_organizations(svc: OrganizationService = Depends(_orgs)):
    rows = await svc.list_organizations()
    organizations = []
    for org, whitelist_count, user_count in rows:
        item = OrganizationRead.model_validate(org)
        item.whitelist_count = whitelist_count
        item.user_count = user_count
        organizations.append(item)
    return OrganizationsResponse(organizations=organizations)


@router.post("/organizations", response_model=OrganizationResponse, status_code=201)
async def create_organization(
    body: OrganizationCreate,
    ctx: AuthContext = Depends(require_super_admin),
    svc: OrganizationService = Depends(_orgs),
):
    org = await svc.create(
        name=body.name,
        password=body.password,
        description=body.description,
        website=body.website,
        phone=body.phone,
        address=body.address,
        admin_email=body.nonprofit_admin_email,
        admin_notes=body.nonprofit_admin_notes,
        created_by=ctx.identity.id,
    )
    message = (
        "Organization created successfully with nonprofit admin added"
        if body.nonprofit_admin_email
        else "Organization created successfully"
    )
    return OrganizationResponse(
        message=message, organization=OrganizationRead.model_validate(org)
    )


@router.put("/organizations/{org_id}", response_model=OrganizationResponse)
async def update_organization(
    org_id: int,
    body: OrganizationUpdate,
    svc: OrganizationService = Depends(_orgs),
):
    org = await svc.update(org_id, **body.model_dump())
    return OrganizationResponse(
        message="Organization updated successfully",
        organization=OrganizationRead.model_validate(org),
    )


@router.put("/organizations/{org_id}/status", response_model=OrganizationResponse)
async def set_organization_status(
    org_id: int,
    body: OrganizationStatusUpdate,
    svc: OrganizationService = Depends(_orgs),
):
    org = await svc.set_status(org_id, body.is_active)
    state = "activated" if body.is_active else "deactivated"
    return OrganizationResponse(
        message=f"Organization {state} successfully",
        organization=OrganizationRead.model_validate(org),
    )


# ─── Users ──────────────────────────────────────────────


@router.get("/users", response_model=WhitelistListResponse)
async def list_users(
    organization_id: Optional[int] = Query(None, alias="organizationId"),
    svc: WhitelistService = Depends(_whitelist),
):
    """Whitelist entries across organizations, optionally for one."""
    rows = await svc.list_entries(organization_id)
    return WhitelistListResponse(
        volunteers=[WhitelistEntryRead.from_entry(e, org.name) for e, org in rows]
    )


@router.put("/users/{email}/role", response_model=VolunteerResponse)
async def update_user_role(
    email: str,
    body: RoleUpdate,
    svc: WhitelistService = Depends(_whitelist),
):
    entry = await svc.set_role(body.organization_id, email, body.role)
    return VolunteerResponse(
        message="User role updated successfully",
        volunteer=WhitelistEntryRead.from_entry(entry),
    )
