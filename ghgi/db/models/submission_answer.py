from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ghgi.db.base import Base


class SubmissionAnswer(Base):
    """One field value of a submission.

    Exactly one value slot is populated (or none for a cleared answer). For
    select fields the chosen option is kept in option_key/option_label and
    mirrored into value_text. form_type_id/year duplicate the submission's so
    analytics can filter without a join.
    """

    __tablename__ = "submission_answers"
    __table_args__ = (
        UniqueConstraint("submission_id", "field_key", name="uq_submission_answers_field"),
        Index("ix_submission_answers_type_year_field", "form_type_id", "year", "field_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    submission_id: Mapped[int] = mapped_column(
        ForeignKey("submissions.id", ondelete="CASCADE"), index=True
    )
    form_type_id: Mapped[int] = mapped_column(Integer)
    year: Mapped[int] = mapped_column(Integer)

    field_key: Mapped[str] = mapped_column(String(190), index=True)

    value_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    value_number: Mapped[Decimal | None] = mapped_column(Numeric(18, 6), nullable=True)
    value_bool: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    value_json: Mapped[object | None] = mapped_column(JSON(none_as_null=True), nullable=True)

    option_key: Mapped[str | None] = mapped_column(String(190), nullable=True)
    option_label: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # copied from the schema field at write time
    label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    submission = relationship("Submission", back_populates="answers")
