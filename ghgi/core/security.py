from __future__ import annotations

from passlib.context import CryptContext
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired

from ghgi.core.config import settings

SESSION_COOKIE = "sid"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Signed cookie carrying {"user_id": ..., "role": ...}; no server-side session store.
serializer = URLSafeTimedSerializer(settings.SECRET_KEY, salt="ghgi_sid")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def sign_session(user_id: int, role: str) -> str:
    return serializer.dumps({"user_id": int(user_id), "role": role})


def verify_session(token: str, max_age_seconds: int | None = None) -> dict | None:
    try:
        payload = serializer.loads(token, max_age=max_age_seconds or settings.SESSION_MAX_AGE_SECONDS)
    except (BadSignature, SignatureExpired):
        return None
    return payload if isinstance(payload, dict) else None
