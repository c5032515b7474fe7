"""API route aggregation.

All routers registered here get mounted in main.py under /api.

Learn: Role gates are applied at the include_router level with the
dependencies parameter, so every handler in the admin and super-admin
routers is covered without repeating the check. The auth router is
open and gates its protected routes one by one.
"""

from fastapi import APIRouter, Depends

from comityspace.api.admin import router as admin_router
from comityspace.api.auth import router as auth_router
from comityspace.api.super_admin import router as super_admin_router
from comityspace.auth.dependencies import require_nonprofit_admin, require_super_admin

api_router = APIRouter(prefix="/api")

api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(
    admin_router, tags=["admin"], dependencies=[Depends(require_nonprofit_admin)]
)
api_router.include_router(
    super_admin_router,
    tags=["super-admin"],
    dependencies=[Depends(require_super_admin)],
)
