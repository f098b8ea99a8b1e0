from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# Use JSONB on Postgres while keeping sqlite usable for local runs and tests.
JsonType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


class AdminUser(Base):
    __tablename__ = "admin_users"
    __table_args__ = (
        Index("ix_admin_users_role_country", "role", "country_code"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    # Emails are stored lowercased so uniqueness is case-insensitive.
    email: Mapped[str] = mapped_column(String, unique=True, index=True)
    display_name: Mapped[str] = mapped_column(String)
    role: Mapped[str] = mapped_column(String)
    # Null for super admins; required for country admins.
    country_code: Mapped[str | None] = mapped_column(String(8), nullable=True)
    capabilities_json: Mapped[list[str]] = mapped_column(JsonType, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class ActivationOverride(Base):
    __tablename__ = "activation_overrides"
    __table_args__ = (
        UniqueConstraint("entity_type", "entity_id", "country_code", name="uq_activation_overrides_key"),
        Index("ix_activation_overrides_type_country", "entity_type", "country_code"),
    )

    # Sparse exceptions to the default-active rule; absence of a row means active.
    id: Mapped[str] = mapped_column(String, primary_key=True)
    entity_type: Mapped[str] = mapped_column(String(64))
    entity_id: Mapped[str] = mapped_column(String)
    country_code: Mapped[str] = mapped_column(String(8))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False)
    updated_by: Mapped[str] = mapped_column(String)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    # Display snapshot only; the catalog store owns the authoritative name.
    entity_name: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class ContentPage(Base):
    __tablename__ = "content_pages"
    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'pending', 'approved', 'published', 'rejected')",
            name="ck_content_pages_status",
        ),
        # Centralized pages have no owner; country pages name one concrete country.
        CheckConstraint(
            "(scope = 'centralized' AND owner_country IS NULL) "
            "OR (scope = 'country_specific' AND owner_country IS NOT NULL AND owner_country <> 'GLOBAL')",
            name="ck_content_pages_owner_country",
        ),
        Index("ix_content_pages_scope_country", "scope", "owner_country"),
        Index("ix_content_pages_status", "status"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    slug: Mapped[str] = mapped_column(String, unique=True, index=True)
    title: Mapped[str] = mapped_column(String)
    content: Mapped[str] = mapped_column(Text, default="")
    scope: Mapped[str] = mapped_column(String(32))
    # Null when the page is centralized.
    owner_country: Mapped[str | None] = mapped_column(String(8), nullable=True)
    status: Mapped[str] = mapped_column(String(16))
    requires_approval: Mapped[bool] = mapped_column(Boolean, nullable=False)
    # Incremented whenever an edit starts a new draft cycle.
    revision: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
