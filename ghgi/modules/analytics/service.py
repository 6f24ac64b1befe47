"""Aggregation Engine: read-only summaries over submission answers.

Everything is scoped to (form type, year). Field lists come from the newest
schema version by id, whatever its status, so analytics keep working while
a new version is still in draft.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ghgi.core.errors import NotFound
from ghgi.core.workflow import COUNTED_STATUSES
from ghgi.db.models.submission import Submission
from ghgi.db.models.submission_answer import SubmissionAnswer as A
from ghgi.modules.forms.service import SchemaPolicy, resolve_effective_schema, version_fields
from ghgi.modules.submissions.service import submission_out
from ghgi.utils.pagination import clamp_per_page, paginate
from ghgi.utils.schema import field_meta_map, label_from_key
from ghgi.utils.summary_cache import get_cached_summary, set_cached_summary

logger = logging.getLogger("ghgi.analytics")

FORM_OPTION_LIMIT = 20
FORM_SAMPLE_LIMIT = 20
FIELD_SAMPLE_LIMIT = 200

AVG_QUANT = Decimal("0.000001")


def _scope(q, form_type_id: int, year: int):
    return q.filter(A.form_type_id == form_type_id, A.year == int(year))


def _answered():
    return or_(
        A.value_text.isnot(None),
        A.value_number.isnot(None),
        A.value_bool.isnot(None),
        A.value_json.isnot(None),
        A.option_key.isnot(None),
    )


def _dec(v) -> Decimal | None:
    if v is None:
        return None
    if isinstance(v, Decimal):
        return v
    return Decimal(str(v))


def _response_counts(db: Session, form_type_id: int, year: int) -> dict[str, int]:
    rows = (
        _scope(db.query(A.field_key, func.count(func.distinct(A.submission_id))), form_type_id, year)
        .filter(_answered())
        .group_by(A.field_key)
        .all()
    )
    return {k: int(c) for k, c in rows}


def _option_counts(db: Session, form_type_id: int, year: int, field_key: str, limit: int | None) -> list[dict]:
    k = func.coalesce(A.option_label, A.option_key)
    c = func.count(A.id)
    q = (
        _scope(db.query(k, c), form_type_id, year)
        .filter(A.field_key == field_key, A.option_label.isnot(None))
        .group_by(k)
        .order_by(c.desc(), k.asc())
    )
    if limit:
        q = q.limit(limit)
    return [{"k": key, "c": int(n)} for key, n in q.all()]


def _samples(db: Session, form_type_id: int, year: int, field_key: str, limit: int) -> list[str]:
    rows = (
        _scope(db.query(A.value_text), form_type_id, year)
        .filter(A.field_key == field_key, A.value_text.isnot(None))
        .order_by(A.id.desc())
        .limit(limit)
        .all()
    )
    return [v for (v,) in rows]


def _number_stats(db: Session, form_type_id: int, year: int, field_key: str) -> dict:
    lo, hi, total, n = (
        _scope(
            db.query(func.min(A.value_number), func.max(A.value_number), func.sum(A.value_number), func.count(A.value_number)),
            form_type_id,
            year,
        )
        .filter(A.field_key == field_key, A.value_number.isnot(None))
        .one()
    )
    n = int(n or 0)
    if n == 0:
        return {"min": None, "max": None, "avg": None, "sum": None, "n": 0}
    total = _dec(total)
    return {
        "min": _dec(lo),
        "max": _dec(hi),
        "avg": (total / n).quantize(AVG_QUANT),
        "sum": total,
        "n": n,
    }


def total_submissions(db: Session, form_type_id: int, year: int) -> int:
    return (
        db.query(func.count(Submission.id))
        .filter(
            Submission.form_type_id == form_type_id,
            Submission.year == int(year),
            Submission.status.in_([s.value for s in COUNTED_STATUSES]),
        )
        .scalar()
        or 0
    )


def summary_for_form(db: Session, form_type_id: int, year: int) -> dict:
    """Per-field response counts, top options and recent text samples for (form type, year)."""
    cached = get_cached_summary(form_type_id, year)
    if cached is not None:
        return cached

    v = resolve_effective_schema(db, form_type_id, year, SchemaPolicy.PREFER_NEWEST)
    if v is None:
        raise NotFound(f"No schema for form type {form_type_id} and year {year}.")

    meta = field_meta_map(version_fields(v))
    counts = _response_counts(db, form_type_id, year)

    fields = []
    for key, m in meta.items():
        fields.append(
            {
                "field_key": key,
                "label": m.get("label") or label_from_key(key),
                "type": m.get("type"),
                "response_count": counts.get(key, 0),
                "option_counts": _option_counts(db, form_type_id, year, key, FORM_OPTION_LIMIT),
                "samples": _samples(db, form_type_id, year, key, FORM_SAMPLE_LIMIT),
            }
        )

    summary = {
        "form_type_id": form_type_id,
        "year": int(year),
        "schema_version_id": v.id,
        "total_submissions": int(total_submissions(db, form_type_id, year)),
        "fields": fields,
    }
    set_cached_summary(form_type_id, year, summary)
    return summary


def summary_for_field(db: Session, form_type_id: int, year: int, field_key: str) -> dict:
    """Single-field drill-down; returns zeros and empty lists when nothing matches."""
    v = resolve_effective_schema(db, form_type_id, year, SchemaPolicy.PREFER_NEWEST)
    meta = field_meta_map(version_fields(v)).get(field_key, {}) if v is not None else {}

    response_count = (
        _scope(db.query(func.count(func.distinct(A.submission_id))), form_type_id, year)
        .filter(A.field_key == field_key, _answered())
        .scalar()
    )
    return {
        "form_type_id": form_type_id,
        "year": int(year),
        "field_key": field_key,
        "label": meta.get("label") or label_from_key(field_key),
        "type": meta.get("type"),
        "response_count": int(response_count or 0),
        "option_counts": _option_counts(db, form_type_id, year, field_key, None),
        "samples": _samples(db, form_type_id, year, field_key, FIELD_SAMPLE_LIMIT),
        "number_stats": _number_stats(db, form_type_id, year, field_key),
    }


def individual_index(db: Session, form_type_id: int, year: int, page: int = 1, per_page: int = 20) -> dict:
    per_page = clamp_per_page(per_page, lo=5, hi=100)
    q = (
        db.query(Submission)
        .filter(Submission.form_type_id == form_type_id, Submission.year == int(year))
        .order_by(Submission.id.desc())
    )
    result = paginate(q, page, per_page)
    result["items"] = [submission_out(s) for s in result["items"]]
    return result
