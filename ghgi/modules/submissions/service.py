"""Submission Lifecycle: create, answer, submit, review and list submissions.

Status rules come from ghgi.core.workflow; answer storage from
ghgi.modules.submissions.answers. A submission's schema version is pinned
at creation when one exists, otherwise on the first answer write.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session

from ghgi.core.config import settings
from ghgi.core.errors import Conflict, InvalidArgument, NotFound
from ghgi.core.workflow import (
    REVIEW_ACTIONS,
    SubmissionStatus,
    allowed_actions,
    can_edit_answers,
    get_transition,
    parse_status,
)
from ghgi.db.models.form_schema_version import FormSchemaVersion
from ghgi.db.models.form_type import FormType
from ghgi.db.models.submission import LOCATION_FIELDS, Submission
from ghgi.db.models.submission_answer import SubmissionAnswer
from ghgi.db.session import atomic
from ghgi.modules.forms.service import (
    SchemaPolicy,
    get_field_mapping,
    get_form_type,
    get_schema_version,
    resolve_effective_schema,
    version_fields,
)
from ghgi.modules.submissions.answers import (
    answer_out,
    answers_human,
    classify_answers,
    delete_answer_rows,
    get_answers,
    write_answers,
)
from ghgi.utils.form_audit import add_form_audit_log
from ghgi.utils.pagination import clamp_per_page, paginate
from ghgi.utils.schema import field_meta_map, parse_json_text, validate_year
from ghgi.utils.summary_cache import invalidate_summary

logger = logging.getLogger("ghgi.submissions")

SOURCE_MAX = 20
LOCATION_MAX = 120
SAVE_MODES = ("draft", "submit")

# Tags checked by submit() when SUBMIT_REQUIRES_LOCATION is on.
REQUIRED_LOCATION = ("prov_name", "city_name", "brgy_name")


def submission_out(s: Submission) -> dict:
    return {
        "id": s.id,
        "form_type_id": s.form_type_id,
        "schema_version_id": s.schema_version_id,
        "year": s.year,
        "source": s.source,
        "status": s.status,
        "reg_name": s.reg_name,
        "prov_name": s.prov_name,
        "city_name": s.city_name,
        "brgy_name": s.brgy_name,
        "created_by_id": s.created_by_id,
        "submitted_at": s.submitted_at,
        "created_at": s.created_at,
        "updated_at": s.updated_at,
    }


# ---- validation ----


def _clean_source(source) -> str:
    if not isinstance(source, str) or not source.strip():
        raise InvalidArgument("Source is required.", {"source": "is required"})
    source = source.strip().lower()
    if len(source) > SOURCE_MAX:
        raise InvalidArgument("Source is too long.", {"source": f"may not exceed {SOURCE_MAX} characters"})
    return source


def _clean_location(location) -> dict[str, str | None]:
    if location is None:
        return {}
    if not isinstance(location, dict):
        raise InvalidArgument("Location must be an object.", {"location": "must be an object"})

    out: dict[str, str | None] = {}
    errors: dict[str, str] = {}
    for k, v in location.items():
        if k not in LOCATION_FIELDS:
            errors[str(k)] = "is not a location field"
            continue
        if v is None:
            out[k] = None
            continue
        if not isinstance(v, str):
            errors[k] = "must be a string"
            continue
        v = v.strip()
        if len(v) > LOCATION_MAX:
            errors[k] = f"may not exceed {LOCATION_MAX} characters"
            continue
        out[k] = v or None
    if errors:
        raise InvalidArgument("Location is invalid.", errors)
    return out


def _apply_location(s: Submission, location: dict[str, str | None]) -> None:
    for k, v in location.items():
        setattr(s, k, v)


# ---- lookups ----


def _get(db: Session, submission_id: int) -> Submission:
    s = db.get(Submission, submission_id)
    if s is None:
        raise NotFound(f"Submission {submission_id} not found.")
    return s


def _ensure_editable(s: Submission) -> None:
    if not can_edit_answers(s.status):
        raise Conflict(
            f"Submission is {s.status}; answers can no longer be changed.",
            {"status": s.status},
        )


def _pin_schema(db: Session, s: Submission) -> FormSchemaVersion:
    """The submission's schema version, pinning the effective one if none is set."""
    if s.schema_version_id is not None:
        v = db.get(FormSchemaVersion, s.schema_version_id)
        if v is not None and v.form_type_id == s.form_type_id and v.year == s.year:
            return v

    v = resolve_effective_schema(db, s.form_type_id, s.year, SchemaPolicy.PREFER_ACTIVE)
    if v is None:
        raise InvalidArgument(
            f"No schema is defined for this form for year {s.year}.",
            {"schema": "no schema version for form type and year"},
        )
    s.schema_version_id = v.id
    logger.info("submission %s pinned to schema version %s", s.id, v.id)
    return v


def _save_answers(db: Session, s: Submission, answers: dict) -> int:
    _ensure_editable(s)
    v = _pin_schema(db, s)
    meta = field_meta_map(version_fields(v))
    values = classify_answers(answers, meta)
    return write_answers(db, s.id, s.form_type_id, s.year, values, meta)


# ---- operations ----


def create_submission(
    db: Session,
    form_type_id: int,
    year: int,
    source: str = "admin",
    creator_id: int | None = None,
    schema_version_id: int | None = None,
    location: dict | None = None,
) -> Submission:
    year = validate_year(year)
    source = _clean_source(source)
    loc = _clean_location(location)

    with atomic(db):
        get_form_type(db, form_type_id)
        if schema_version_id is not None:
            v = get_schema_version(db, schema_version_id)
            if v.form_type_id != form_type_id or v.year != year:
                raise InvalidArgument(
                    "Schema version does not belong to this form and year.",
                    {"schema_version_id": "does not match form type and year"},
                )
        else:
            v = resolve_effective_schema(db, form_type_id, year, SchemaPolicy.PREFER_ACTIVE)

        s = Submission(
            form_type_id=form_type_id,
            schema_version_id=v.id if v is not None else None,
            year=year,
            source=source,
            status=SubmissionStatus.DRAFT.value,
            created_by_id=creator_id,
        )
        _apply_location(s, loc)
        db.add(s)
        db.flush()

    logger.info(
        "submission created id=%s form_type=%s year=%s schema=%s", s.id, form_type_id, year, s.schema_version_id
    )
    return s


def update_submission_meta(
    db: Session,
    submission_id: int,
    year: int | None = None,
    form_type_id: int | None = None,
    location: dict | None = None,
    source: str | None = None,
) -> Submission:
    """Change year, form type, location or source in any state.

    Moving to another form type or year re-resolves the pinned schema and
    rewrites the denormalized columns on the existing answers.
    """
    if year is not None:
        year = validate_year(year)
    if source is not None:
        source = _clean_source(source)
    loc = _clean_location(location)

    with atomic(db):
        s = _get(db, submission_id)
        old = (s.form_type_id, s.year)
        if form_type_id is not None and form_type_id != s.form_type_id:
            get_form_type(db, form_type_id)
            s.form_type_id = form_type_id
        if year is not None:
            s.year = year
        if source is not None:
            s.source = source
        _apply_location(s, loc)

        moved = (s.form_type_id, s.year) != old
        if moved:
            v = resolve_effective_schema(db, s.form_type_id, s.year, SchemaPolicy.PREFER_ACTIVE)
            s.schema_version_id = v.id if v is not None else None
            db.query(SubmissionAnswer).filter(SubmissionAnswer.submission_id == s.id).update(
                {SubmissionAnswer.form_type_id: s.form_type_id, SubmissionAnswer.year: s.year},
                synchronize_session="fetch",
            )
        db.flush()

    if moved:
        invalidate_summary(*old)
        invalidate_summary(s.form_type_id, s.year)
        logger.info("submission %s moved from %s to %s", s.id, old, (s.form_type_id, s.year))
    return s


def save_draft_answers(
    db: Session,
    submission_id: int,
    answers: dict,
    mode: str = "draft",
    location: dict | None = None,
) -> Submission:
    """Save answers (and location tags) without leaving the current status.

    mode="submit" saves and submits in one step.
    """
    if mode not in SAVE_MODES:
        raise InvalidArgument("Invalid save mode.", {"mode": f"must be one of {', '.join(SAVE_MODES)}"})
    if mode == "submit":
        return submit(db, submission_id, answers=answers, location=location)

    loc = _clean_location(location)
    with atomic(db):
        s = _get(db, submission_id)
        n = _save_answers(db, s, answers)
        _apply_location(s, loc)
        db.flush()

    invalidate_summary(s.form_type_id, s.year)
    logger.info("submission %s saved %s answers", s.id, n)
    return s


def submit(
    db: Session,
    submission_id: int,
    answers: dict | None = None,
    now: datetime | None = None,
    location: dict | None = None,
) -> Submission:
    """draft/submitted -> submitted, stamping submitted_at; optionally saving answers first."""
    loc = _clean_location(location)
    with atomic(db):
        s = _get(db, submission_id)
        try:
            t = get_transition(s.status, "submit")
        except KeyError:
            raise Conflict(f"A {s.status} submission cannot be submitted.", {"status": s.status}) from None

        if answers:
            _save_answers(db, s, answers)
        _apply_location(s, loc)

        if settings.SUBMIT_REQUIRES_LOCATION:
            missing = [k for k in REQUIRED_LOCATION if not getattr(s, k)]
            if missing:
                raise InvalidArgument("Location is required before submitting.", {"missing": missing})

        s.status = t.to_status.value
        if t.stamps_submitted_at:
            s.submitted_at = now or datetime.now(timezone.utc)
        db.flush()

    invalidate_summary(s.form_type_id, s.year)
    logger.info("submission %s submitted", s.id)
    return s


def review_submission(db: Session, submission_id: int, status: str, actor_id: int | None = None) -> Submission:
    """submitted -> reviewed | rejected."""
    try:
        target = parse_status(status)
    except ValueError:
        target = None
    action = REVIEW_ACTIONS.get(target) if target is not None else None
    if action is None:
        raise InvalidArgument("Invalid review status.", {"status": "must be reviewed or rejected"})

    with atomic(db):
        s = _get(db, submission_id)
        before = s.status
        try:
            t = get_transition(s.status, action)
        except KeyError:
            raise Conflict(f"A {s.status} submission cannot be {target.value}.", {"status": s.status}) from None
        s.status = t.to_status.value
        db.flush()
        add_form_audit_log(
            db, actor_id=actor_id, action=action, entity="submission", entity_id=s.id,
            before={"status": before}, after={"status": s.status},
        )

    invalidate_summary(s.form_type_id, s.year)
    logger.info("submission %s %s -> %s", s.id, before, s.status)
    return s


def get_submission(db: Session, submission_id: int) -> dict:
    s = _get(db, submission_id)
    rows = get_answers(db, s.id)
    ft = db.get(FormType, s.form_type_id)
    m = get_field_mapping(db, s.form_type_id, s.year)

    out = submission_out(s)
    out["form_type_name"] = ft.name if ft is not None else None
    out["allowed_actions"] = list(allowed_actions(s.status))
    out["answers"] = [answer_out(a) for a in rows]
    out["answers_human"] = answers_human(rows)
    out["mapping_json"] = parse_json_text(m.mapping_json, {}) if m is not None else None
    return out


def list_submissions(
    db: Session,
    form_type_id: int | None = None,
    year: int | None = None,
    status: str | None = None,
    source: str | None = None,
    location: dict | None = None,
    page: int = 1,
    per_page: int = 20,
    creator_id: int | None = None,
) -> dict:
    """Filtered submissions, newest first, with answer count and form type name."""
    q = db.query(Submission)
    if creator_id is not None:
        q = q.filter(Submission.created_by_id == creator_id)
    if form_type_id:
        q = q.filter(Submission.form_type_id == form_type_id)
    if year:
        q = q.filter(Submission.year == int(year))
    if status:
        try:
            q = q.filter(Submission.status == parse_status(status).value)
        except ValueError:
            raise InvalidArgument("Invalid status filter.", {"status": "unknown status"}) from None
    if source:
        q = q.filter(Submission.source == source.strip().lower())
    for k, v in _clean_location(location).items():
        if v:
            q = q.filter(getattr(Submission, k) == v)

    per_page = clamp_per_page(per_page, lo=1, hi=100)
    result = paginate(q.order_by(Submission.id.desc()), page, per_page)

    subs: list[Submission] = result["items"]
    ids = [s.id for s in subs]
    counts: dict[int, int] = {}
    names: dict[int, str] = {}
    if ids:
        counts = dict(
            db.query(SubmissionAnswer.submission_id, func.count(SubmissionAnswer.id))
            .filter(SubmissionAnswer.submission_id.in_(ids))
            .group_by(SubmissionAnswer.submission_id)
            .all()
        )
        type_ids = {s.form_type_id for s in subs}
        names = dict(db.query(FormType.id, FormType.name).filter(FormType.id.in_(type_ids)).all())

    items = []
    for s in subs:
        row = submission_out(s)
        row["answers_count"] = int(counts.get(s.id, 0))
        row["form_type_name"] = names.get(s.form_type_id)
        items.append(row)
    result["items"] = items
    return result


def delete_submission(db: Session, submission_id: int, actor_id: int | None = None) -> None:
    with atomic(db):
        s = _get(db, submission_id)
        key = (s.form_type_id, s.year)
        n = delete_answer_rows(db, s.id)
        add_form_audit_log(
            db, actor_id=actor_id, action="delete", entity="submission", entity_id=s.id,
            before=submission_out(s), comment=f"{n} answers",
        )
        db.expunge(s)
        db.query(Submission).filter(Submission.id == submission_id).delete(synchronize_session=False)

    invalidate_summary(*key)
    logger.info("submission deleted id=%s answers=%s", submission_id, n)
