from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ghgi.db.base import Base


class FormMapping(Base):
    """field_key -> activity input key of the emissions engine, one row per (form type, year)."""

    __tablename__ = "form_mappings"
    __table_args__ = (
        UniqueConstraint("form_type_id", "year", name="uq_form_mapping_year"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    form_type_id: Mapped[int] = mapped_column(
        ForeignKey("form_types.id", ondelete="CASCADE"), index=True
    )
    year: Mapped[int] = mapped_column(Integer, index=True)
    mapping_json: Mapped[str] = mapped_column(Text, default="{}")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    form_type = relationship("FormType", back_populates="mappings")
