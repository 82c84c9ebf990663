from fastapi import APIRouter

from admissions.modules.admins.router import router as admins_router
from admissions.modules.auth import router as auth_router
from admissions.modules.registrations import admin_router as admin_registrations_router
from admissions.modules.registrations import router as registrations_router

api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["Authentication"])

api_router.include_router(registrations_router, prefix="/registration", tags=["Registration"])

api_router.include_router(
    admin_registrations_router,
    prefix="/admin",
    tags=["Admin - Registrations"],
)

api_router.include_router(admins_router, prefix="/admin/admins", tags=["Admin - Accounts"])
