"""Statutory rule set persistence models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, CheckConstraint, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from statutory_payroll.models.base import Base, TimestampMixin


class StatutoryRuleSetRecord(Base, TimestampMixin):
    """One immutable rule set version (append-only).

    Calculation parameters live in payload_json with Decimal values stored
    as strings so fractional band bounds survive a round trip exactly.
    """

    __tablename__ = "statutory_rule_set"

    organization_id: Mapped[str] = mapped_column(String, primary_key=True)
    version: Mapped[int] = mapped_column(Integer, primary_key=True)
    effective_from: Mapped[datetime] = mapped_column(nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payload_json: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    logic_hash: Mapped[str] = mapped_column(String, nullable=False)
    notes: Mapped[str | None] = mapped_column(String, nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String, nullable=True)
    updated_by_label: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint("version > 0", name="statutory_rule_set_version_check"),
        Index(
            "statutory_rule_set_one_active",
            "organization_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )


class StatutoryRulePointer(Base):
    """Current-version pointer per organization, moved by compare-and-set."""

    __tablename__ = "statutory_rule_pointer"

    organization_id: Mapped[str] = mapped_column(String, primary_key=True)
    current_version: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)
