"""Organization admin API — volunteer whitelist management.

Learn: The whole router sits behind require_nonprofit_admin (see
api/__init__.py). Each handler then asks for validate_organization_access,
which pins admins to their own organization and lets super admins pick
one with ?orgId=. Handlers never read an organization id from the body.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from comityspace.auth.dependencies import AuthContext, validate_organization_access
from comityspace.db.engine import get_db
from comityspace.schemas.admin import (
    MemberUserRead,
    VolunteerCreate,
    VolunteerCreated,
    VolunteerResponse,
    VolunteerUpdate,
    WhitelistEntryRead,
    WhitelistListResponse,
)
from comityspace.schemas.common import MessageResponse
from comityspace.services.whitelist_service import WhitelistService

router = APIRouter(prefix="/admin")


def _svc(db: AsyncSession = Depends(get_db)) -> WhitelistService:
    return WhitelistService(db)


@router.get("/volunteers", response_model=WhitelistListResponse)
async def list_volunteers(
    ctx: AuthContext = Depends(validate_organization_access),
    svc: WhitelistService = Depends(_svc),
):
    rows = await svc.list_entries(ctx.require_target_organization())
    return WhitelistListResponse(
        volunteers=[WhitelistEntryRead.from_entry(e, org.name) for e, org in rows]
    )


@router.post("/volunteers", response_model=VolunteerCreated, status_code=201)
async def add_volunteer(
    body: VolunteerCreate,
    ctx: AuthContext = Depends(validate_organization_access),
    svc: WhitelistService = Depends(_svc),
):
    """Whitelist a volunteer and create their user record in one go."""
    entry, user = await svc.add_member(
        organization_id=ctx.require_target_organization(),
        email=body.email,
        name=body.name,
        role=body.role,
        admin_notes=body.notes or "",
        added_by=ctx.identity.id,
    )
    return VolunteerCreated(
        message=f"{body.name.strip()} has been added to the volunteer whitelist",
        volunteer=WhitelistEntryRead.from_entry(entry),
        user=MemberUserRead.model_validate(user),
    )


@router.put("/volunteers/{email}", response_model=VolunteerResponse)
async def update_volunteer(
    email: str,
    body: VolunteerUpdate,
    ctx: AuthContext = Depends(validate_organization_access),
    svc: WhitelistService = Depends(_svc),
):
    entry = await svc.update_member(
        organization_id=ctx.require_target_organization(),
        email=email,
        name=body.name,
        role=body.role,
        admin_notes=body.notes,
    )
    return VolunteerResponse(
        message="Volunteer updated successfully",
        volunteer=WhitelistEntryRead.from_entry(entry),
    )


@router.delete("/volunteers/{email}", response_model=MessageResponse)
async def remove_volunteer(
    email: str,
    ctx: AuthContext = Depends(validate_organization_access),
    svc: WhitelistService = Depends(_svc),
):
    await svc.remove_member(ctx.require_target_organization(), email)
    return MessageResponse(message=f"Removed {email} from whitelist")
