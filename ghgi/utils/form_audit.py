from __future__ import annotations

import json
from typing import Any

from sqlalchemy.orm import Session

from ghgi.db.models.form_audit_log import FormAuditLog


def _dump(v: Any) -> str:
    if v is None:
        return ""
    return json.dumps(v, ensure_ascii=False, default=str)


def add_form_audit_log(
    db: Session,
    *,
    actor_id: int | None,
    action: str,
    entity: str,
    entity_id: int,
    before: Any = None,
    after: Any = None,
    comment: str = "",
):
    """Add an audit record to the current transaction (committed with the change it describes)."""
    db.add(
        FormAuditLog(
            actor_id=int(actor_id) if actor_id is not None else None,
            action=(action or "").strip().lower(),
            entity=(entity or "").strip().lower(),
            entity_id=int(entity_id),
            before_json=_dump(before),
            after_json=_dump(after),
            comment=(comment or "").strip(),
        )
    )
