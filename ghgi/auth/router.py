from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ghgi.auth.deps import get_current_user
from ghgi.core.config import settings
from ghgi.core.security import SESSION_COOKIE, verify_password, sign_session
from ghgi.db.models.user import User
from ghgi.db.session import get_db

router = APIRouter(tags=["auth"])


class LoginIn(BaseModel):
    username: str
    password: str


def _user_out(user: User) -> dict:
    return {
        "id": user.id,
        "full_name": user.full_name,
        "username": user.username,
        "role": user.role.value,
        "role_label": user.role_label,
    }


@router.post("/login")
def login(body: LoginIn, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.username == body.username.strip()).first()
    if not user or not verify_password(body.password, user.password_hash):
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Invalid username or password.", "errors": None},
        )

    if not user.is_active:
        return JSONResponse(
            status_code=403,
            content={"success": False, "message": "This account is disabled.", "errors": None},
        )

    sid = sign_session(user.id, user.role.value)
    resp = JSONResponse({"success": True, "message": "OK", "data": _user_out(user)})
    resp.set_cookie(
        SESSION_COOKIE,
        sid,
        httponly=True,
        samesite=settings.COOKIE_SAMESITE,
        secure=settings.COOKIE_SECURE,
        max_age=settings.SESSION_MAX_AGE_SECONDS,
    )
    return resp


@router.post("/logout")
def logout():
    resp = JSONResponse({"success": True, "message": "Logged out", "data": None})
    resp.delete_cookie(SESSION_COOKIE)
    return resp


@router.get("/me")
def me(user=Depends(get_current_user)):
    return {"success": True, "message": "OK", "data": _user_out(user)}
