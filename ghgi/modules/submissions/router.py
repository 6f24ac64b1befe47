from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ghgi.auth.deps import get_current_user
from ghgi.core.rbac import can_delete_submission, can_review, can_submit_data, is_admin, require
from ghgi.db.models.submission import LOCATION_FIELDS, Submission
from ghgi.db.models.user import User
from ghgi.db.session import get_db
from ghgi.modules.submissions import service
from ghgi.utils.api import ok

router = APIRouter(prefix="/submissions", tags=["submissions"])


class LocationIn(BaseModel):
    reg_name: str | None = None
    prov_name: str | None = None
    city_name: str | None = None
    brgy_name: str | None = None


class SubmissionIn(LocationIn):
    form_type_id: int
    year: int
    source: str = "admin"
    schema_version_id: int | None = None


class SubmissionPatch(LocationIn):
    year: int | None = None
    form_type_id: int | None = None
    source: str | None = None
    # reviewed | rejected
    status: str | None = None


class AnswersIn(LocationIn):
    answers: dict[str, Any]
    mode: str = "draft"


class SubmitIn(LocationIn):
    answers: dict[str, Any] | None = None


def _location(body: BaseModel) -> dict | None:
    """Only the location tags the client actually sent."""
    sent = body.model_dump(exclude_unset=True)
    loc = {k: sent[k] for k in LOCATION_FIELDS if k in sent}
    return loc or None


def _check_access(db: Session, user: User, submission_id: int) -> None:
    """Enumerators only touch their own submissions; a missing id is left to the service."""
    if is_admin(user):
        return
    s = db.get(Submission, submission_id)
    if s is not None:
        require(s.created_by_id == user.id, "You can only access your own submissions.", 403)


@router.get("")
def list_submissions(
    form_type_id: int | None = Query(None),
    year: int | None = Query(None),
    status: str | None = Query(None),
    source: str | None = Query(None),
    reg_name: str | None = Query(None),
    prov_name: str | None = Query(None),
    city_name: str | None = Query(None),
    brgy_name: str | None = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(20),
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    require(can_submit_data(user))
    location = {"reg_name": reg_name, "prov_name": prov_name, "city_name": city_name, "brgy_name": brgy_name}
    result = service.list_submissions(
        db,
        form_type_id=form_type_id,
        year=year,
        status=status,
        source=source,
        location={k: v for k, v in location.items() if v},
        page=page,
        per_page=per_page,
        creator_id=None if is_admin(user) else user.id,
    )
    return ok(result)


@router.post("")
def create_submission(body: SubmissionIn, db: Session = Depends(get_db), user=Depends(get_current_user)):
    require(can_submit_data(user))
    s = service.create_submission(
        db,
        body.form_type_id,
        body.year,
        source=body.source,
        creator_id=user.id,
        schema_version_id=body.schema_version_id,
        location=_location(body),
    )
    return ok(service.submission_out(s), "Submission created.", status_code=201)


@router.get("/{submission_id}")
def get_submission(submission_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    require(can_submit_data(user))
    _check_access(db, user, submission_id)
    return ok(service.get_submission(db, submission_id))


@router.patch("/{submission_id}")
def patch_submission(
    submission_id: int, body: SubmissionPatch, db: Session = Depends(get_db), user=Depends(get_current_user)
):
    require(can_submit_data(user))
    _check_access(db, user, submission_id)

    sent = body.model_dump(exclude_unset=True)
    location = _location(body)
    s = None
    if location or any(k in sent for k in ("year", "form_type_id", "source")):
        s = service.update_submission_meta(
            db,
            submission_id,
            year=body.year,
            form_type_id=body.form_type_id,
            location=location,
            source=body.source,
        )
    if body.status is not None:
        require(can_review(user), "Only administrators can review submissions.", 403)
        s = service.review_submission(db, submission_id, body.status, actor_id=user.id)
    if s is None:
        return ok(service.get_submission(db, submission_id), "Nothing to update.")
    return ok(service.submission_out(s), "Submission updated.")


@router.delete("/{submission_id}")
def delete_submission(submission_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    require(can_delete_submission(user))
    service.delete_submission(db, submission_id, actor_id=user.id)
    return ok(None, "Submission deleted.")


@router.patch("/{submission_id}/answers")
def save_answers(
    submission_id: int, body: AnswersIn, db: Session = Depends(get_db), user=Depends(get_current_user)
):
    require(can_submit_data(user))
    _check_access(db, user, submission_id)
    s = service.save_draft_answers(db, submission_id, body.answers, mode=body.mode, location=_location(body))
    msg = "Submitted." if body.mode == "submit" else "Draft saved."
    return ok(service.submission_out(s), msg)


@router.post("/{submission_id}/submit")
def submit_submission(
    submission_id: int,
    body: SubmitIn | None = None,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    require(can_submit_data(user))
    _check_access(db, user, submission_id)
    body = body or SubmitIn()
    s = service.submit(db, submission_id, answers=body.answers, location=_location(body))
    return ok(service.submission_out(s), "Submitted.")
