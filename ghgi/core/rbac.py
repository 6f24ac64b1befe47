from __future__ import annotations

from fastapi import HTTPException

from ghgi.db.models.user import User, Role


def require(condition: bool, msg: str = "Forbidden", status_code: int = 403) -> None:
    """Small helper used across routers.

    Defaults to 403 (permission denied). Domain validation goes through
    ghgi.core.errors instead.
    """
    if not condition:
        raise HTTPException(status_code=status_code, detail=msg)


def is_admin(user: User) -> bool:
    return user.role == Role.ADMIN


def is_enumerator(user: User) -> bool:
    return user.role == Role.ENUMERATOR


def can_manage_forms(user: User) -> bool:
    # Only admins author form types, schemas and mappings.
    return is_admin(user)


def can_view_forms(user: User) -> bool:
    # Enumerators need the active schema to render data entry.
    return is_admin(user) or is_enumerator(user)


def can_submit_data(user: User) -> bool:
    return is_admin(user) or is_enumerator(user)


def can_review(user: User) -> bool:
    return is_admin(user)


def can_delete_submission(user: User) -> bool:
    return is_admin(user)


def can_view_analytics(user: User) -> bool:
    return is_admin(user)
