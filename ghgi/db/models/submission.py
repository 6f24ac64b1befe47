from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ghgi.db.base import Base


class Submission(Base):
    __tablename__ = "submissions"
    __table_args__ = (
        Index("ix_submissions_form_type_year", "form_type_id", "year"),
        Index("ix_submissions_status_created", "status", "created_at"),
        Index("ix_submissions_source_created", "source", "created_at"),
        Index("ix_submissions_prov_city", "prov_name", "city_name"),
        Index("ix_submissions_prov_city_brgy", "prov_name", "city_name", "brgy_name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # Form + schema
    form_type_id: Mapped[int] = mapped_column(ForeignKey("form_types.id", ondelete="CASCADE"))
    # Pinned lazily on first answer write when not chosen at creation.
    schema_version_id: Mapped[int | None] = mapped_column(
        ForeignKey("form_schema_versions.id", ondelete="SET NULL"), nullable=True, index=True
    )
    year: Mapped[int] = mapped_column(Integer)

    # admin | mobile
    source: Mapped[str] = mapped_column(String(20), default="admin")
    # draft | submitted | reviewed | rejected (see core/workflow.py)
    status: Mapped[str] = mapped_column(String(20), default="draft")

    # Location (dropdown-derived names, used for filtering only)
    reg_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    prov_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    city_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    brgy_name: Mapped[str | None] = mapped_column(String(120), nullable=True)

    created_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    form_type = relationship("FormType")
    schema_version = relationship("FormSchemaVersion")
    created_by = relationship("User")
    answers = relationship(
        "SubmissionAnswer",
        back_populates="submission",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


LOCATION_FIELDS = ("reg_name", "prov_name", "city_name", "brgy_name")
