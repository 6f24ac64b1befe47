from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ghgi.core.security import SESSION_COOKIE, verify_session
from ghgi.db.models.user import User
from ghgi.db.session import get_db


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Resolve the signed `sid` cookie to an active user.

    A cookie signed for a different role than the user now holds is treated as
    stale, so a demoted admin has to log in again.
    """
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    payload = verify_session(token)
    if not payload or "user_id" not in payload:
        raise HTTPException(status_code=401, detail="Invalid session")
    user = db.get(User, payload["user_id"])
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if payload.get("role") not in (None, user.role.value):
        raise HTTPException(status_code=401, detail="Session expired")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account disabled")
    return user
