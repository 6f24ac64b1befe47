from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ghgi.db.base import Base


class SchemaStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    DEPRECATED = "deprecated"


class FormSchemaVersion(Base):
    """Snapshot of a form's field list for one (form type, year).

    Version numbers are allocated per (form type, year) starting at 1 and are
    never reused. At most one row per (form type, year) has status=active.
    """

    __tablename__ = "form_schema_versions"
    __table_args__ = (
        UniqueConstraint("form_type_id", "year", "version", name="uq_form_schema_version"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    form_type_id: Mapped[int] = mapped_column(
        ForeignKey("form_types.id", ondelete="CASCADE"), index=True
    )

    # inventory year
    year: Mapped[int] = mapped_column(Integer, index=True)
    version: Mapped[int] = mapped_column(Integer)

    # {"fields": [...], ...} stored as JSON text
    schema_json: Mapped[str] = mapped_column(Text, default="{}")
    # UI hints: sections, ordering
    ui_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    # draft | active | deprecated
    status: Mapped[str] = mapped_column(String(20), default=SchemaStatus.DRAFT.value, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    form_type = relationship("FormType", back_populates="schema_versions")
