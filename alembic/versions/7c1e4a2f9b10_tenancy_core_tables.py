"""tenancy core tables (companies, profiles, memberships, employees, invites, inbox, audit)

Revision ID: 7c1e4a2f9b10
Revises:
Create Date: 2026-10-19 09:00:00
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "7c1e4a2f9b10"
down_revision = None
branch_labels = None
depends_on = None


def _insp():
    bind = op.get_bind()
    return sa.inspect(bind)


def _has_table(name: str) -> bool:
    return name in _insp().get_table_names()


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    ]


def upgrade():
    if not _has_table("companies"):
        op.create_table(
            "companies",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("owner_id", sa.String(length=64), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=True),
            sa.Column("industry", sa.String(length=120), nullable=True),
            sa.Column("team_size", sa.String(length=30), nullable=True),
            sa.Column("logo_url", sa.String(length=500), nullable=True),
            *_timestamps(),
        )
        op.create_index("ix_companies_name", "companies", ["name"])
        op.create_index("ix_companies_owner_id", "companies", ["owner_id"])

    if not _has_table("user_profiles"):
        op.create_table(
            "user_profiles",
            sa.Column("user_id", sa.String(length=64), primary_key=True),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("full_name", sa.String(length=255), nullable=True),
            sa.Column("last_active_company_id", sa.Integer, nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["last_active_company_id"], ["companies.id"], ondelete="SET NULL"),
        )
        op.create_index("ix_user_profiles_email", "user_profiles", ["email"], unique=True)

    if not _has_table("memberships"):
        op.create_table(
            "memberships",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("user_id", sa.String(length=64), nullable=False),
            sa.Column("company_id", sa.Integer, nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="member"),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
            *_timestamps(),
            sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
            sa.UniqueConstraint("user_id", "company_id", name="uq_memberships_user_company"),
            sa.CheckConstraint("role IN ('owner','admin','member')", name="ck_memberships_role"),
            sa.CheckConstraint("status IN ('active','removed')", name="ck_memberships_status"),
        )
        op.create_index("ix_memberships_user_id", "memberships", ["user_id"])
        op.create_index("ix_memberships_company_id", "memberships", ["company_id"])

    if not _has_table("employees"):
        op.create_table(
            "employees",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("company_id", sa.Integer, nullable=False),
            sa.Column("user_id", sa.String(length=64), nullable=True),
            sa.Column("full_name", sa.String(length=255), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=True),
            sa.Column("phone", sa.String(length=50), nullable=True),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="member"),
            sa.Column("invitation_status", sa.String(length=20), nullable=True),
            sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("1")),
            *_timestamps(),
            sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
        )
        op.create_index("ix_employees_company_id", "employees", ["company_id"])
        op.create_index("ix_employees_user_id", "employees", ["user_id"])
        op.create_index("ix_employees_email", "employees", ["email"])

    if not _has_table("invites"):
        op.create_table(
            "invites",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("company_id", sa.Integer, nullable=False),
            sa.Column("employee_id", sa.Integer, nullable=False),
            sa.Column("email", sa.String(length=255), nullable=True),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="member"),
            sa.Column("token_hash", sa.String(length=64), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("expires_at", sa.DateTime, nullable=False),
            sa.Column("created_by", sa.String(length=64), nullable=True),
            sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.Column("accepted_at", sa.DateTime, nullable=True),
            sa.Column("accepted_by", sa.String(length=64), nullable=True),
            sa.Column("revoked_at", sa.DateTime, nullable=True),
            sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
            sa.CheckConstraint(
                "status IN ('pending','accepted','revoked','expired')", name="ck_invites_status"
            ),
        )
        op.create_index("ix_invites_id", "invites", ["id"])
        op.create_index("ix_invites_company_id", "invites", ["company_id"])
        op.create_index("ix_invites_employee_id", "invites", ["employee_id"])
        op.create_index("ix_invites_email", "invites", ["email"])
        op.create_index("ix_invites_token_hash", "invites", ["token_hash"], unique=True)
        # at most one pending invite per employee
        op.create_index(
            "uq_invites_pending_employee",
            "invites",
            ["employee_id"],
            unique=True,
            sqlite_where=sa.text("status = 'pending'"),
            postgresql_where=sa.text("status = 'pending'"),
        )

    if not _has_table("user_notifications"):
        op.create_table(
            "user_notifications",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("user_id", sa.String(length=64), nullable=False),
            sa.Column("type", sa.String(length=40), nullable=False, server_default="company_invite"),
            sa.Column("entity_id", sa.Integer, nullable=False),
            sa.Column("company_id", sa.Integer, nullable=False),
            sa.Column("read_at", sa.DateTime, nullable=True),
            sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
        )
        op.create_index("ix_user_notifications_user_id", "user_notifications", ["user_id"])
        op.create_index("ix_user_notifications_entity_id", "user_notifications", ["entity_id"])

    if not _has_table("audit_logs"):
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("company_id", sa.Integer, nullable=True),
            sa.Column("user_id", sa.String(length=64), nullable=True),
            sa.Column("action", sa.String(length=60), nullable=False),
            sa.Column("entity_type", sa.String(length=40), nullable=True),
            sa.Column("entity_id", sa.Integer, nullable=True),
            sa.Column("meta", sa.Text, nullable=True),
            sa.Column("ip_address", sa.String(length=64), nullable=True),
            sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        )
        op.create_index("ix_audit_logs_company_id", "audit_logs", ["company_id"])
        op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])


def downgrade():
    for table in (
        "audit_logs",
        "user_notifications",
        "invites",
        "employees",
        "memberships",
        "user_profiles",
        "companies",
    ):
        if _has_table(table):
            op.drop_table(table)
