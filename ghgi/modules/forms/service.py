"""Schema Store: form types, schema versions and field mappings.

Every write here is one transaction. Creating or activating a schema version
locks the parent form type row first, so version allocation (max + 1) and
the "one active version per (form type, year)" rule are serialized per form
type.
"""

from __future__ import annotations

import enum
import logging
from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ghgi.core.errors import Conflict, InvalidArgument, NotFound
from ghgi.db.models.form_mapping import FormMapping
from ghgi.db.models.form_schema_version import FormSchemaVersion, SchemaStatus
from ghgi.db.models.form_type import FormType
from ghgi.db.models.submission import Submission
from ghgi.db.models.submission_answer import SubmissionAnswer
from ghgi.db.session import atomic
from ghgi.utils.form_audit import add_form_audit_log
from ghgi.utils.schema import (
    FORM_KEY_RE,
    dump_json,
    parse_json_text,
    schema_fields,
    validate_schema_fields,
    validate_year,
)
from ghgi.utils.summary_cache import invalidate_summary

logger = logging.getLogger("ghgi.forms")

FORM_KEY_MAX = 120
FORM_NAME_MAX = 255
SECTOR_KEY_MAX = 120

VERSION_ALLOC_ATTEMPTS = 3

UPDATABLE_FIELDS = ("key", "name", "sector_key", "description", "is_active")


class SchemaPolicy(str, enum.Enum):
    # active version if there is one, else the newest
    PREFER_ACTIVE = "prefer_active"
    # newest by id regardless of status
    PREFER_NEWEST = "prefer_newest"


# ---- serialization ----


def form_type_out(f: FormType) -> dict:
    return {
        "id": f.id,
        "key": f.key,
        "name": f.name,
        "sector_key": f.sector_key,
        "description": f.description,
        "is_active": bool(f.is_active),
    }


def schema_version_out(v: FormSchemaVersion) -> dict:
    schema = parse_json_text(v.schema_json, {})
    return {
        "id": v.id,
        "form_type_id": v.form_type_id,
        "year": v.year,
        "version": v.version,
        "schema_json": schema,
        "ui_json": parse_json_text(v.ui_json, None),
        "status": v.status,
        "created_at": v.created_at,
    }


def mapping_out(m: FormMapping) -> dict:
    return {
        "id": m.id,
        "form_type_id": m.form_type_id,
        "year": m.year,
        "mapping_json": parse_json_text(m.mapping_json, {}),
        "created_at": m.created_at,
    }


def version_fields(v: FormSchemaVersion) -> list[dict]:
    return schema_fields(parse_json_text(v.schema_json, {}))


# ---- validation ----


def _clean_key(key) -> str:
    if not isinstance(key, str) or not key.strip():
        raise InvalidArgument("Form key is required.", {"key": "is required"})
    key = key.strip()
    if len(key) > FORM_KEY_MAX:
        raise InvalidArgument("Form key is too long.", {"key": f"may not exceed {FORM_KEY_MAX} characters"})
    if not FORM_KEY_RE.match(key):
        raise InvalidArgument(
            "Form key format is invalid.",
            {"key": "may only contain lowercase letters, digits, '-', '_' and '.'"},
        )
    return key


def _clean_text(value, field: str, max_len: int) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgument(f"{field} is required.", {field: "is required"})
    value = value.strip()
    if len(value) > max_len:
        raise InvalidArgument(f"{field} is too long.", {field: f"may not exceed {max_len} characters"})
    return value


def _ensure_key_free(db: Session, key: str, exclude_id: int | None = None) -> None:
    q = db.query(FormType.id).filter(FormType.key == key)
    if exclude_id is not None:
        q = q.filter(FormType.id != exclude_id)
    if q.first() is not None:
        raise Conflict("A form with this key already exists.", {"key": "A form with this key already exists."})


# ---- form types ----


def get_form_type(db: Session, form_type_id: int) -> FormType:
    f = db.get(FormType, form_type_id)
    if f is None:
        raise NotFound(f"Form type {form_type_id} not found.")
    return f


def _lock_form_type(db: Session, form_type_id: int) -> FormType:
    f = db.query(FormType).filter(FormType.id == form_type_id).with_for_update().first()
    if f is None:
        raise NotFound(f"Form type {form_type_id} not found.")
    return f


def create_form_type(
    db: Session,
    key: str,
    name: str,
    sector_key: str,
    description: str | None = None,
    is_active: bool = True,
    actor_id: int | None = None,
) -> FormType:
    key = _clean_key(key)
    name = _clean_text(name, "name", FORM_NAME_MAX)
    sector_key = _clean_text(sector_key, "sector_key", SECTOR_KEY_MAX)

    try:
        with atomic(db):
            _ensure_key_free(db, key)
            f = FormType(
                key=key,
                name=name,
                sector_key=sector_key,
                description=description,
                is_active=bool(is_active),
            )
            db.add(f)
            db.flush()
            add_form_audit_log(
                db, actor_id=actor_id, action="create", entity="form_type", entity_id=f.id,
                after=form_type_out(f),
            )
    except IntegrityError:
        # lost a race against a concurrent insert of the same key
        raise Conflict("A form with this key already exists.", {"key": "A form with this key already exists."}) from None

    logger.info("form type created id=%s key=%s", f.id, f.key)
    return f


def update_form_type(db: Session, form_type_id: int, fields: dict[str, Any], actor_id: int | None = None) -> FormType:
    unknown = set(fields) - set(UPDATABLE_FIELDS)
    if unknown:
        raise InvalidArgument("Unknown form type fields.", {k: "is not updatable" for k in sorted(unknown)})

    changes: dict[str, Any] = {}
    if "key" in fields:
        changes["key"] = _clean_key(fields["key"])
    if "name" in fields:
        changes["name"] = _clean_text(fields["name"], "name", FORM_NAME_MAX)
    if "sector_key" in fields:
        changes["sector_key"] = _clean_text(fields["sector_key"], "sector_key", SECTOR_KEY_MAX)
    if "description" in fields:
        changes["description"] = fields["description"]
    if "is_active" in fields:
        if not isinstance(fields["is_active"], bool):
            raise InvalidArgument("is_active must be a boolean.", {"is_active": "must be a boolean"})
        changes["is_active"] = fields["is_active"]

    try:
        with atomic(db):
            f = get_form_type(db, form_type_id)
            if "key" in changes and changes["key"] != f.key:
                _ensure_key_free(db, changes["key"], exclude_id=f.id)
            before = form_type_out(f)
            for k, v in changes.items():
                setattr(f, k, v)
            db.flush()
            add_form_audit_log(
                db, actor_id=actor_id, action="update", entity="form_type", entity_id=f.id,
                before=before, after=form_type_out(f),
            )
    except IntegrityError:
        raise Conflict("A form with this key already exists.", {"key": "A form with this key already exists."}) from None
    return f


def _active_filter(active):
    """None/"all" -> no filter, True/"active" -> active only, False/"inactive" -> inactive only."""
    if active is None or active == "all" or active == "":
        return None
    if active is True or active == "active":
        return True
    if active is False or active == "inactive":
        return False
    raise InvalidArgument("active must be one of all, active, inactive.", {"active": "invalid filter"})


def list_form_types(
    db: Session,
    sector_key: str | None = None,
    active=None,
    year: int | None = None,
) -> list[dict]:
    """Form types with nested schema versions and mappings.

    Nested rows are limited to `year` when it is positive; versions are ordered
    (year desc, version desc) and mappings (year desc, id desc).
    """
    q = db.query(FormType)
    if sector_key:
        q = q.filter(FormType.sector_key == sector_key.strip())
    only = _active_filter(active)
    if only is not None:
        q = q.filter(FormType.is_active == only)
    types = q.order_by(FormType.sector_key.asc(), FormType.name.asc()).all()
    if not types:
        return []

    ids = [f.id for f in types]
    year = int(year or 0)

    vq = db.query(FormSchemaVersion).filter(FormSchemaVersion.form_type_id.in_(ids))
    mq = db.query(FormMapping).filter(FormMapping.form_type_id.in_(ids))
    if year > 0:
        vq = vq.filter(FormSchemaVersion.year == year)
        mq = mq.filter(FormMapping.year == year)
    versions = vq.order_by(FormSchemaVersion.year.desc(), FormSchemaVersion.version.desc()).all()
    mappings = mq.order_by(FormMapping.year.desc(), FormMapping.id.desc()).all()

    versions_by_type: dict[int, list[dict]] = {}
    for v in versions:
        versions_by_type.setdefault(v.form_type_id, []).append(schema_version_out(v))
    mappings_by_type: dict[int, list[dict]] = {}
    for m in mappings:
        mappings_by_type.setdefault(m.form_type_id, []).append(mapping_out(m))

    out = []
    for f in types:
        item = form_type_out(f)
        item["schema_versions"] = versions_by_type.get(f.id, [])
        item["mappings"] = mappings_by_type.get(f.id, [])
        out.append(item)
    return out


def delete_form_type(db: Session, form_type_id: int, actor_id: int | None = None) -> None:
    """Delete a form type and everything recorded against it.

    Cascades: answers -> submissions -> mappings -> schema versions -> form type.
    """
    with atomic(db):
        f = get_form_type(db, form_type_id)
        years = {y for (y,) in db.query(Submission.year).filter(Submission.form_type_id == f.id).distinct()}
        years.update(
            y for (y,) in db.query(FormSchemaVersion.year).filter(FormSchemaVersion.form_type_id == f.id).distinct()
        )
        sub_ids = db.query(Submission.id).filter(Submission.form_type_id == f.id)

        n_answers = (
            db.query(SubmissionAnswer)
            .filter(SubmissionAnswer.submission_id.in_(sub_ids.scalar_subquery()))
            .delete(synchronize_session=False)
        )
        n_subs = db.query(Submission).filter(Submission.form_type_id == f.id).delete(synchronize_session=False)
        db.query(FormMapping).filter(FormMapping.form_type_id == f.id).delete(synchronize_session=False)
        db.query(FormSchemaVersion).filter(FormSchemaVersion.form_type_id == f.id).delete(synchronize_session=False)

        add_form_audit_log(
            db, actor_id=actor_id, action="delete", entity="form_type", entity_id=f.id,
            before=form_type_out(f), comment=f"cascade: {n_subs} submissions, {n_answers} answers",
        )
        db.expunge(f)
        db.query(FormType).filter(FormType.id == form_type_id).delete(synchronize_session=False)

    for y in sorted(years):
        invalidate_summary(form_type_id, y)
    logger.info("form type deleted id=%s submissions=%s answers=%s", form_type_id, n_subs, n_answers)


# ---- schema versions ----


def _demote_active_siblings(db: Session, v: FormSchemaVersion) -> int:
    return (
        db.query(FormSchemaVersion)
        .filter(
            FormSchemaVersion.form_type_id == v.form_type_id,
            FormSchemaVersion.year == v.year,
            FormSchemaVersion.id != v.id,
            FormSchemaVersion.status == SchemaStatus.ACTIVE.value,
        )
        .update({FormSchemaVersion.status: SchemaStatus.DEPRECATED.value}, synchronize_session="fetch")
    )


def _parse_schema_status(status, allowed: tuple[SchemaStatus, ...]) -> SchemaStatus:
    try:
        s = SchemaStatus(str(status or "").strip().lower())
    except ValueError:
        s = None
    if s not in allowed:
        raise InvalidArgument(
            "Invalid schema status.",
            {"status": f"must be one of {', '.join(a.value for a in allowed)}"},
        )
    return s


def create_schema_version(
    db: Session,
    form_type_id: int,
    year: int,
    fields: list[dict],
    ui_hints: dict | None = None,
    status: str = "draft",
    extra: dict | None = None,
    actor_id: int | None = None,
) -> FormSchemaVersion:
    """Store a new schema version with the next version number for (form type, year).

    `extra` holds additional top-level schema keys (title, kind, ...) stored
    next to "fields".
    """
    year = validate_year(year)
    validate_schema_fields(fields)
    st = _parse_schema_status(status, (SchemaStatus.DRAFT, SchemaStatus.ACTIVE))
    if ui_hints is not None and not isinstance(ui_hints, dict):
        raise InvalidArgument("ui_json must be an object.", {"ui_json": "must be an object"})
    if extra is not None and not isinstance(extra, dict):
        raise InvalidArgument("Schema extras must be an object.")

    schema = {k: v for k, v in (extra or {}).items() if k != "fields"}
    schema["fields"] = fields

    for attempt in range(1, VERSION_ALLOC_ATTEMPTS + 1):
        try:
            with atomic(db):
                _lock_form_type(db, form_type_id)
                latest = (
                    db.query(func.max(FormSchemaVersion.version))
                    .filter(FormSchemaVersion.form_type_id == form_type_id, FormSchemaVersion.year == year)
                    .scalar()
                )
                v = FormSchemaVersion(
                    form_type_id=form_type_id,
                    year=year,
                    version=int(latest or 0) + 1,
                    schema_json=dump_json(schema),
                    ui_json=dump_json(ui_hints) if ui_hints is not None else None,
                    status=st.value,
                )
                db.add(v)
                db.flush()
                demoted = _demote_active_siblings(db, v) if st == SchemaStatus.ACTIVE else 0
                add_form_audit_log(
                    db, actor_id=actor_id, action="create", entity="form_schema_version", entity_id=v.id,
                    after={"form_type_id": form_type_id, "year": year, "version": v.version, "status": v.status},
                )
        except IntegrityError:
            # (form_type_id, year, version) taken by a concurrent writer
            logger.warning(
                "schema version collision form_type=%s year=%s attempt=%s", form_type_id, year, attempt
            )
            continue
        invalidate_summary(form_type_id, year)
        logger.info(
            "schema version created id=%s form_type=%s year=%s version=%s status=%s demoted=%s",
            v.id, form_type_id, year, v.version, v.status, demoted,
        )
        return v

    raise Conflict(
        "Could not allocate a schema version number, please retry.",
        {"version": "concurrent schema creation"},
    )


def get_schema_version(db: Session, schema_version_id: int) -> FormSchemaVersion:
    v = db.get(FormSchemaVersion, schema_version_id)
    if v is None:
        raise NotFound(f"Schema version {schema_version_id} not found.")
    return v


def set_schema_version_status(
    db: Session, schema_version_id: int, status: str, actor_id: int | None = None
) -> FormSchemaVersion:
    st = _parse_schema_status(status, tuple(SchemaStatus))
    with atomic(db):
        v = get_schema_version(db, schema_version_id)
        _lock_form_type(db, v.form_type_id)
        before = v.status
        v.status = st.value
        db.flush()
        demoted = _demote_active_siblings(db, v) if st == SchemaStatus.ACTIVE else 0
        add_form_audit_log(
            db, actor_id=actor_id, action="status", entity="form_schema_version", entity_id=v.id,
            before={"status": before}, after={"status": v.status},
        )
    invalidate_summary(v.form_type_id, v.year)
    logger.info("schema version %s status %s -> %s (demoted=%s)", v.id, before, v.status, demoted)
    return v


def resolve_effective_schema(
    db: Session, form_type_id: int, year: int, policy: SchemaPolicy = SchemaPolicy.PREFER_ACTIVE
) -> FormSchemaVersion | None:
    """The schema version that applies to (form type, year) under `policy`, or None."""
    base = db.query(FormSchemaVersion).filter(
        FormSchemaVersion.form_type_id == form_type_id,
        FormSchemaVersion.year == int(year),
    )
    if policy == SchemaPolicy.PREFER_ACTIVE:
        active = (
            base.filter(FormSchemaVersion.status == SchemaStatus.ACTIVE.value)
            .order_by(FormSchemaVersion.id.desc())
            .first()
        )
        if active is not None:
            return active
    return base.order_by(FormSchemaVersion.id.desc()).first()


# ---- field mappings ----


def _validate_mapping(mapping) -> dict:
    if not isinstance(mapping, dict):
        raise InvalidArgument("Mapping must be an object.", {"mapping_json": "must be an object"})
    bad = {
        str(k): "target must be a string or null"
        for k, v in mapping.items()
        if not isinstance(k, str) or (v is not None and not isinstance(v, str))
    }
    if bad:
        raise InvalidArgument("Mapping is invalid.", bad)
    return mapping


def save_field_mapping(
    db: Session, form_type_id: int, year: int, mapping: dict, actor_id: int | None = None
) -> FormMapping:
    """Upsert the (form type, year) mapping, replacing the whole object."""
    year = validate_year(year)
    mapping = _validate_mapping(mapping)

    with atomic(db):
        _lock_form_type(db, form_type_id)
        m = (
            db.query(FormMapping)
            .filter(FormMapping.form_type_id == form_type_id, FormMapping.year == year)
            .first()
        )
        before = parse_json_text(m.mapping_json, {}) if m is not None else None
        if m is None:
            m = FormMapping(form_type_id=form_type_id, year=year)
            db.add(m)
        m.mapping_json = dump_json(mapping)
        db.flush()
        add_form_audit_log(
            db, actor_id=actor_id, action="upsert", entity="form_mapping", entity_id=m.id,
            before=before, after=mapping,
        )
    return m


def get_field_mapping(db: Session, form_type_id: int, year: int) -> FormMapping | None:
    return (
        db.query(FormMapping)
        .filter(FormMapping.form_type_id == form_type_id, FormMapping.year == int(year))
        .order_by(FormMapping.id.desc())
        .first()
    )
