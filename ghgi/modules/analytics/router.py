from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ghgi.auth.deps import get_current_user
from ghgi.core.config import settings
from ghgi.core.rbac import can_view_analytics, require
from ghgi.db.session import get_db
from ghgi.modules.analytics import service
from ghgi.utils.api import ok

router = APIRouter(prefix="/forms", tags=["analytics"])


@router.get("/{form_type_id}/summary")
def form_summary(
    form_type_id: int,
    year: int | None = Query(None),
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    require(can_view_analytics(user))
    return ok(service.summary_for_form(db, form_type_id, year or settings.DEFAULT_YEAR))


@router.get("/{form_type_id}/questions/{field_key}/summary")
def question_summary(
    form_type_id: int,
    field_key: str,
    year: int | None = Query(None),
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    require(can_view_analytics(user))
    return ok(service.summary_for_field(db, form_type_id, year or settings.DEFAULT_YEAR, field_key))


@router.get("/{form_type_id}/individual")
def individual(
    form_type_id: int,
    year: int | None = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(20),
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    require(can_view_analytics(user))
    return ok(service.individual_index(db, form_type_id, year or settings.DEFAULT_YEAR, page=page, per_page=per_page))
