"""init

Revision ID: 0001_init
Revises: 
Create Date: 2026-10-17 09:00:00.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "admin_users",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("country_code", sa.String(length=8), nullable=True),
        sa.Column("capabilities_json", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_admin_users_email", "admin_users", ["email"], unique=True)
    op.create_index("ix_admin_users_role_country", "admin_users", ["role", "country_code"])

    op.create_table(
        "activation_overrides",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=False),
        sa.Column("country_code", sa.String(length=8), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("updated_by", sa.String(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("entity_name", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        # The upsert conflicts on this constraint; it is what prevents duplicate rows per key.
        sa.UniqueConstraint("entity_type", "entity_id", "country_code", name="uq_activation_overrides_key"),
    )
    op.create_index(
        "ix_activation_overrides_type_country",
        "activation_overrides",
        ["entity_type", "country_code"],
    )

    op.create_table(
        "content_pages",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("scope", sa.String(length=32), nullable=False),
        sa.Column("owner_country", sa.String(length=8), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("requires_approval", sa.Boolean(), nullable=False),
        sa.Column("revision", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("metadata_json", postgresql.JSONB(), nullable=True),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("updated_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('draft', 'pending', 'approved', 'published', 'rejected')",
            name="ck_content_pages_status",
        ),
        sa.CheckConstraint(
            "(scope = 'centralized' AND owner_country IS NULL) "
            "OR (scope = 'country_specific' AND owner_country IS NOT NULL AND owner_country <> 'GLOBAL')",
            name="ck_content_pages_owner_country",
        ),
    )
    op.create_index("ix_content_pages_slug", "content_pages", ["slug"], unique=True)
    op.create_index("ix_content_pages_scope_country", "content_pages", ["scope", "owner_country"])
    op.create_index("ix_content_pages_status", "content_pages", ["status"])


def downgrade() -> None:
    op.drop_index("ix_content_pages_status", table_name="content_pages")
    op.drop_index("ix_content_pages_scope_country", table_name="content_pages")
    op.drop_index("ix_content_pages_slug", table_name="content_pages")
    op.drop_table("content_pages")
    op.drop_index("ix_activation_overrides_type_country", table_name="activation_overrides")
    op.drop_table("activation_overrides")
    op.drop_index("ix_admin_users_role_country", table_name="admin_users")
    op.drop_index("ix_admin_users_email", table_name="admin_users")
    op.drop_table("admin_users")
