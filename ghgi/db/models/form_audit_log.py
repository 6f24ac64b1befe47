from __future__ import annotations

from datetime import datetime

from sqlalchemy import Integer, ForeignKey, String, Text, DateTime, text
from sqlalchemy.orm import Mapped, mapped_column

from ghgi.db.base import Base


class FormAuditLog(Base):
    """Who changed which form definition or submission, with before/after snapshots."""

    __tablename__ = "form_audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # NULL for system actions (seeding, migrations)
    actor_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # create/update/delete/activate/...
    action: Mapped[str] = mapped_column(String(50), index=True)

    # form_type/form_schema_version/form_mapping/submission
    entity: Mapped[str] = mapped_column(String(80), index=True)
    entity_id: Mapped[int] = mapped_column(Integer, index=True)

    before_json: Mapped[str] = mapped_column(Text, default="")
    after_json: Mapped[str] = mapped_column(Text, default="")
    comment: Mapped[str] = mapped_column(Text, default="")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        index=True,
    )
