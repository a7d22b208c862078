"""Admin routers, mounted under ``/api/admin`` and guarded by ``require_admin``."""

from fastapi import APIRouter

from . import analytics, bookings, payments, settings, spaces, users

router = APIRouter(prefix="/admin")
for module in (spaces, users, bookings, payments, analytics, settings):
    router.include_router(module.router)

__all__ = ["router"]
