from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ghgi.db.base import Base


class FormType(Base):
    """A kind of data-collection form, e.g. stationary combustion (residential).

    Schema versions and field mappings hang off a form type per inventory year.
    """

    __tablename__ = "form_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # slug, e.g. stat-comb-residential
    key: Mapped[str] = mapped_column(String(120), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255))
    # grouping tag, e.g. stationary_combustion
    sector_key: Mapped[str] = mapped_column(String(120), index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    schema_versions = relationship(
        "FormSchemaVersion",
        back_populates="form_type",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    mappings = relationship(
        "FormMapping",
        back_populates="form_type",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
