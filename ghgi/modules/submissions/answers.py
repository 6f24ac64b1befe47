"""Answer Store: typed upsert and retrieval of per-submission field answers.

In code an answer is an AnswerValue (one of the small dataclasses below).
Only at the storage boundary is it spread over the wide submission_answers
row: value_text / value_number / value_bool / value_json, or
option_key + option_label for a chosen select option.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Union

from sqlalchemy.orm import Session

from ghgi.core.errors import InvalidArgument, NotFound
from ghgi.db.models.submission import Submission
from ghgi.db.models.submission_answer import SubmissionAnswer
from ghgi.db.session import atomic
from ghgi.utils.summary_cache import invalidate_summary

logger = logging.getLogger("ghgi.submissions")

# NUMERIC(18, 6)
NUMBER_QUANT = Decimal("0.000001")
NUMBER_LIMIT = Decimal(10) ** 12


@dataclass(frozen=True, slots=True)
class EmptyValue:
    """Cleared answer: the row stays, every slot is NULL."""


@dataclass(frozen=True, slots=True)
class TextValue:
    value: str


@dataclass(frozen=True, slots=True)
class NumberValue:
    value: Decimal


@dataclass(frozen=True, slots=True)
class BoolValue:
    value: bool


@dataclass(frozen=True, slots=True)
class JsonValue:
    value: Any


@dataclass(frozen=True, slots=True)
class OptionValue:
    key: str
    label: str


AnswerValue = Union[EmptyValue, TextValue, NumberValue, BoolValue, JsonValue, OptionValue]


# ---- classification ----


def _to_decimal(raw) -> Decimal:
    if isinstance(raw, bool):
        raise InvalidArgument("must be a number")
    try:
        if isinstance(raw, float):
            d = Decimal(repr(raw))
        elif isinstance(raw, (int, Decimal)):
            d = Decimal(raw)
        elif isinstance(raw, str):
            d = Decimal(raw.strip())
        else:
            raise InvalidArgument("must be a number")
    except InvalidOperation:
        raise InvalidArgument("must be a number") from None
    if not d.is_finite():
        raise InvalidArgument("must be a finite number")
    try:
        d = d.quantize(NUMBER_QUANT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidArgument("is out of range") from None
    # checked after rounding: 999999999999.9999996 rounds up to the limit
    if abs(d) >= NUMBER_LIMIT:
        raise InvalidArgument("is out of range")
    return d


def _to_iso_date(raw) -> str:
    if isinstance(raw, datetime):
        return raw.date().isoformat()
    if isinstance(raw, date):
        return raw.isoformat()
    if isinstance(raw, str):
        try:
            return datetime.strptime(raw.strip(), "%Y-%m-%d").date().isoformat()
        except ValueError:
            pass
    raise InvalidArgument("must be a date in YYYY-MM-DD format")


def classify_answer(raw, meta: dict) -> AnswerValue:
    """Route a raw request value into its AnswerValue by the field's declared type.

    Raises InvalidArgument when the value cannot be coerced to the type.
    """
    ftype = str(meta.get("type") or "text").lower()

    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return EmptyValue()

    if ftype == "number":
        return NumberValue(_to_decimal(raw))

    if ftype == "date":
        return TextValue(_to_iso_date(raw))

    if isinstance(raw, bool):
        return BoolValue(raw)

    if isinstance(raw, (dict, list)):
        return JsonValue(raw)

    if isinstance(raw, (int, float, Decimal)):
        raw = str(raw)
    if not isinstance(raw, str):
        raise InvalidArgument("has an unsupported value type")

    if ftype == "select":
        options = meta.get("options") or []
        if raw in options:
            return OptionValue(key=raw, label=raw)
    return TextValue(raw)


def apply_value(row: SubmissionAnswer, value: AnswerValue) -> None:
    """Write `value` into the row's slots, clearing whatever was there before."""
    row.value_text = None
    row.value_number = None
    row.value_bool = None
    row.value_json = None
    row.option_key = None
    row.option_label = None

    if isinstance(value, TextValue):
        row.value_text = value.value
    elif isinstance(value, NumberValue):
        row.value_number = value.value
    elif isinstance(value, BoolValue):
        row.value_bool = value.value
    elif isinstance(value, JsonValue):
        row.value_json = value.value
    elif isinstance(value, OptionValue):
        row.option_key = value.key
        row.option_label = value.label
        # the label doubles as text so samples and exports show it
        row.value_text = value.label


def read_value(row: SubmissionAnswer) -> AnswerValue:
    if row.option_key is not None:
        return OptionValue(key=row.option_key, label=row.option_label or row.option_key)
    if row.value_number is not None:
        return NumberValue(Decimal(row.value_number))
    if row.value_bool is not None:
        return BoolValue(bool(row.value_bool))
    if row.value_json is not None:
        return JsonValue(row.value_json)
    if row.value_text is not None:
        return TextValue(row.value_text)
    return EmptyValue()


# ---- serialization ----


def answer_out(a: SubmissionAnswer) -> dict:
    return {
        "id": a.id,
        "submission_id": a.submission_id,
        "form_type_id": a.form_type_id,
        "year": a.year,
        "field_key": a.field_key,
        "value_text": a.value_text,
        "value_number": a.value_number,
        "value_bool": a.value_bool,
        "value_json": a.value_json,
        "option_key": a.option_key,
        "option_label": a.option_label,
        "label": a.label,
        "type": a.type,
    }


def _display(value: AnswerValue):
    if isinstance(value, OptionValue):
        return value.label
    if isinstance(value, TextValue):
        return value.value if value.value.strip() else None
    if isinstance(value, BoolValue):
        return "Yes" if value.value else "No"
    if isinstance(value, (NumberValue, JsonValue)):
        return value.value
    return None


def answers_human(rows: list[SubmissionAnswer]) -> list[dict]:
    """Display projection of each row's tagged value; booleans read Yes/No."""
    return [
        {
            "field_key": a.field_key,
            "label": a.label or None,
            "type": a.type or None,
            "value": _display(read_value(a)),
            "option_key": a.option_key or None,
            "option_label": a.option_label or None,
        }
        for a in rows
    ]


# ---- store ----


def _get_submission(db: Session, submission_id: int) -> Submission:
    sub = db.get(Submission, submission_id)
    if sub is None:
        raise NotFound(f"Submission {submission_id} not found.")
    return sub


def classify_answers(answers: dict, field_meta: dict[str, dict]) -> dict[str, AnswerValue]:
    """Classify every answer up front; nothing is written if any key fails."""
    if not isinstance(answers, dict):
        raise InvalidArgument("Answers must be an object keyed by field key.", {"answers": "must be an object"})

    errors: dict[str, str] = {}
    out: dict[str, AnswerValue] = {}
    for key, raw in answers.items():
        key = str(key)
        meta = field_meta.get(key)
        if meta is None:
            errors[key] = "is not a field of this form"
            continue
        try:
            out[key] = classify_answer(raw, meta)
        except InvalidArgument as e:
            errors[key] = f"{meta.get('label') or key} {e.message}"
    if errors:
        raise InvalidArgument("Some answers are invalid.", errors)
    return out


def write_answers(
    db: Session,
    submission_id: int,
    form_type_id: int,
    year: int,
    values: dict[str, AnswerValue],
    field_meta: dict[str, dict],
) -> int:
    """Upsert classified values inside the caller's transaction (no commit)."""
    if not values:
        return 0
    existing = {
        a.field_key: a
        for a in db.query(SubmissionAnswer)
        .filter(
            SubmissionAnswer.submission_id == submission_id,
            SubmissionAnswer.field_key.in_(list(values)),
        )
        .all()
    }
    for key, value in values.items():
        row = existing.get(key)
        if row is None:
            row = SubmissionAnswer(submission_id=submission_id, field_key=key)
            db.add(row)
        meta = field_meta.get(key) or {}
        row.form_type_id = form_type_id
        row.year = year
        row.label = meta.get("label")
        row.type = meta.get("type")
        apply_value(row, value)
    db.flush()
    return len(values)


def upsert_answers(
    db: Session,
    submission_id: int,
    form_type_id: int,
    year: int,
    answers: dict,
    field_meta: dict[str, dict],
) -> int:
    """Store `answers` for a submission, all or nothing.

    Re-answering a field overwrites its row; keys missing from `field_meta`
    reject the whole call. Returns the number of rows written.
    """
    values = classify_answers(answers, field_meta)
    with atomic(db):
        _get_submission(db, submission_id)
        n = write_answers(db, submission_id, form_type_id, year, values, field_meta)
    invalidate_summary(form_type_id, year)
    return n


def get_answers(db: Session, submission_id: int) -> list[SubmissionAnswer]:
    _get_submission(db, submission_id)
    return (
        db.query(SubmissionAnswer)
        .filter(SubmissionAnswer.submission_id == submission_id)
        .order_by(SubmissionAnswer.field_key.asc())
        .all()
    )


def delete_answer_rows(db: Session, submission_id: int) -> int:
    """Bulk delete inside the caller's transaction (no commit)."""
    return (
        db.query(SubmissionAnswer)
        .filter(SubmissionAnswer.submission_id == submission_id)
        .delete(synchronize_session="fetch")
    )


def delete_answers(db: Session, submission_id: int) -> int:
    with atomic(db):
        sub = _get_submission(db, submission_id)
        n = delete_answer_rows(db, submission_id)
    invalidate_summary(sub.form_type_id, sub.year)
    logger.info("deleted %s answers of submission %s", n, submission_id)
    return n
