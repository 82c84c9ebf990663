"""Admin schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from admissions.modules.admins.models import AdminRole, Permission


class AdminResponse(BaseModel):
    """Public view of an admin account (never includes the password hash)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    email: str
    full_name: str
    role: AdminRole
    permissions: list[str]
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime


class AdminCreate(BaseModel):
    """Request body for POST /admin/admins."""

    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    full_name: str = Field(..., min_length=1, max_length=200)
    role: AdminRole = AdminRole.REVIEWER
    permissions: list[Permission] | None = None


class AdminListResponse(BaseModel):
    admins: list[AdminResponse]
    total: int
