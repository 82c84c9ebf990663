"""
Admin Models

Reviewer and operator accounts for the admissions back office.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.dialects.postgresql import ENUM, JSON
from sqlalchemy.orm import Mapped, mapped_column

from admissions.modules.shared import BaseModel


class AdminRole(str, Enum):
    """Roles an admin account can hold."""

    ADMIN = "admin"
    REVIEWER = "reviewer"
    SUPER_ADMIN = "super_admin"


class Permission(str, Enum):
    """Capability tokens, granted independently of role."""

    VIEW_REGISTRATIONS = "view_registrations"
    EDIT_REGISTRATIONS = "edit_registrations"
    APPROVE_REGISTRATIONS = "approve_registrations"
    MANAGE_ADMINS = "manage_admins"
    VIEW_REPORTS = "view_reports"


# Applied when an admin is created without an explicit permission list
DEFAULT_ROLE_PERMISSIONS: dict[AdminRole, list[Permission]] = {
    AdminRole.SUPER_ADMIN: list(Permission),
    AdminRole.ADMIN: [
        Permission.VIEW_REGISTRATIONS,
        Permission.EDIT_REGISTRATIONS,
        Permission.APPROVE_REGISTRATIONS,
        Permission.VIEW_REPORTS,
    ],
    AdminRole.REVIEWER: [Permission.VIEW_REGISTRATIONS],
}


class Admin(BaseModel):
    """
    Back-office account.

    `permissions` is stored as a JSON list of Permission values. Role and
    permissions are separate axes: an endpoint may check either or both.
    """

    __tablename__ = "admins"

    username: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)

    role: Mapped[AdminRole] = mapped_column(
        ENUM(
            AdminRole,
            name="admin_role",
            create_type=True,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=AdminRole.REVIEWER,
    )
    permissions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Admin(id={self.id}, username={self.username}, role={self.role.value})>"
