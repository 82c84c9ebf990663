"""create admissions tables

Revision ID: a7c1e2d3f4b5
Revises:
Create Date: 2026-10-19 09:00:00.000000

This migration:
1. Creates the admin_role and registration_status enum types
2. Creates the admins table
3. Creates the registrations table with its optimistic-lock version column
4. Creates the registration_counters table used for number allocation
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a7c1e2d3f4b5"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ADMIN_ROLES = ("admin", "reviewer", "super_admin")
REGISTRATION_STATUSES = (
    "Draft",
    "Submitted",
    "Under Review",
    "Approved",
    "Rejected",
    "Waitlisted",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create admins, registrations and registration_counters."""
    admin_role_enum = postgresql.ENUM(*ADMIN_ROLES, name="admin_role", create_type=False)
    admin_role_enum.create(op.get_bind(), checkfirst=True)

    status_enum = postgresql.ENUM(
        *REGISTRATION_STATUSES, name="registration_status", create_type=False
    )
    status_enum.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "admins",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column("username", sa.String(length=50), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("role", admin_role_enum, nullable=False),
        sa.Column("permissions", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_admins_username"), "admins", ["username"], unique=True)
    op.create_index(op.f("ix_admins_email"), "admins", ["email"], unique=True)

    op.create_table(
        "registrations",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("registration_number", sa.String(length=32), nullable=False),
        # Data sections
        sa.Column("personal_data", sa.JSON(), nullable=False),
        sa.Column("parent_data", sa.JSON(), nullable=True),
        sa.Column("academic_data", sa.JSON(), nullable=True),
        sa.Column("applicant_email", sa.String(length=255), nullable=False),
        sa.Column("applicant_phone", sa.String(length=30), nullable=False),
        sa.Column("documents", sa.JSON(), nullable=False),
        # Status tracking
        sa.Column("status", status_enum, nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        # Delivery bookkeeping
        sa.Column("email_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sms_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_notification_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("registration_number"),
        sa.UniqueConstraint("applicant_email"),
        sa.ForeignKeyConstraint(["reviewed_by"], ["admins.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_registrations_status", "registrations", ["status"])
    op.create_index("ix_registrations_created_at", "registrations", ["created_at"])

    op.create_table(
        "registration_counters",
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("last_value", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("year"),
    )


def downgrade() -> None:
    """Drop all admissions tables and enum types."""
    op.drop_table("registration_counters")

    op.drop_index("ix_registrations_created_at", table_name="registrations")
    op.drop_index("ix_registrations_status", table_name="registrations")
    op.drop_table("registrations")

    op.drop_index(op.f("ix_admins_email"), table_name="admins")
    op.drop_index(op.f("ix_admins_username"), table_name="admins")
    op.drop_table("admins")

    postgresql.ENUM(name="registration_status").drop(op.get_bind(), checkfirst=True)
    postgresql.ENUM(name="admin_role").drop(op.get_bind(), checkfirst=True)
