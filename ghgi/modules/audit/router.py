from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ghgi.auth.deps import get_current_user
from ghgi.core.rbac import is_admin, require
from ghgi.db.models.form_audit_log import FormAuditLog
from ghgi.db.models.user import User
from ghgi.db.session import get_db
from ghgi.utils.api import ok
from ghgi.utils.schema import parse_json_text

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("")
def audit_log(
    entity: str | None = Query(None),
    entity_id: int | None = Query(None),
    action: str | None = Query(None),
    limit: int = Query(200, ge=10, le=1000),
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    require(is_admin(user))

    # actor is NULL for system actions
    q = db.query(FormAuditLog, User).outerjoin(User, User.id == FormAuditLog.actor_id)
    if entity:
        q = q.filter(FormAuditLog.entity == entity.strip().lower())
    if entity_id is not None:
        q = q.filter(FormAuditLog.entity_id == entity_id)
    if action:
        q = q.filter(FormAuditLog.action == action.strip().lower())

    rows = q.order_by(FormAuditLog.created_at.desc(), FormAuditLog.id.desc()).limit(int(limit)).all()
    items = [
        {
            "id": log.id,
            "actor_id": log.actor_id,
            "actor": actor.full_name if actor is not None else None,
            "action": log.action,
            "entity": log.entity,
            "entity_id": log.entity_id,
            "before": parse_json_text(log.before_json, None),
            "after": parse_json_text(log.after_json, None),
            "comment": log.comment,
            "created_at": log.created_at,
        }
        for log, actor in rows
    ]
    return ok(items)
