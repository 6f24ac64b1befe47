from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ghgi.auth.deps import get_current_user
from ghgi.core.config import settings
from ghgi.core.errors import InvalidArgument, NotFound
from ghgi.core.rbac import can_manage_forms, can_view_forms, require
from ghgi.db.session import get_db
from ghgi.modules.forms import service
from ghgi.utils.api import ok
from ghgi.utils.schema import build_section_layout, parse_json_text

router = APIRouter(prefix="/forms", tags=["forms"])


class FormTypeIn(BaseModel):
    key: str
    name: str
    sector_key: str
    description: str | None = None
    is_active: bool = True


class FormTypePatch(BaseModel):
    key: str | None = None
    name: str | None = None
    sector_key: str | None = None
    description: str | None = None
    is_active: bool | None = None


class SchemaVersionIn(BaseModel):
    year: int
    # {"fields": [...], ...extra top-level keys}
    schema_json: dict[str, Any]
    ui_json: dict[str, Any] | None = None
    status: str = "draft"


class SchemaStatusIn(BaseModel):
    status: str


class MappingIn(BaseModel):
    year: int
    mapping_json: dict[str, Any]


@router.get("")
def list_forms(
    sector: str | None = Query(None),
    active: str | None = Query(None),
    year: int | None = Query(None),
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    require(can_view_forms(user))
    return ok(service.list_form_types(db, sector_key=sector, active=active, year=year))


@router.post("")
def create_form(body: FormTypeIn, db: Session = Depends(get_db), user=Depends(get_current_user)):
    require(can_manage_forms(user))
    f = service.create_form_type(
        db,
        key=body.key,
        name=body.name,
        sector_key=body.sector_key,
        description=body.description,
        is_active=body.is_active,
        actor_id=user.id,
    )
    return ok(service.form_type_out(f), "Form created.", status_code=201)


@router.patch("/schemas/{schema_id}")
def patch_schema_status(
    schema_id: int, body: SchemaStatusIn, db: Session = Depends(get_db), user=Depends(get_current_user)
):
    require(can_manage_forms(user))
    v = service.set_schema_version_status(db, schema_id, body.status, actor_id=user.id)
    return ok(service.schema_version_out(v), "Schema status updated.")


@router.patch("/{form_type_id}")
def update_form(
    form_type_id: int, body: FormTypePatch, db: Session = Depends(get_db), user=Depends(get_current_user)
):
    require(can_manage_forms(user))
    f = service.update_form_type(db, form_type_id, body.model_dump(exclude_unset=True), actor_id=user.id)
    return ok(service.form_type_out(f), "Form updated.")


@router.delete("/{form_type_id}")
def delete_form(form_type_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    require(can_manage_forms(user))
    service.delete_form_type(db, form_type_id, actor_id=user.id)
    return ok(None, "Form deleted.")


@router.post("/{form_type_id}/schemas")
def create_schema(
    form_type_id: int, body: SchemaVersionIn, db: Session = Depends(get_db), user=Depends(get_current_user)
):
    require(can_manage_forms(user))
    extra = {k: v for k, v in body.schema_json.items() if k != "fields"}
    v = service.create_schema_version(
        db,
        form_type_id,
        body.year,
        body.schema_json.get("fields"),
        ui_hints=body.ui_json,
        status=body.status,
        extra=extra,
        actor_id=user.id,
    )
    return ok(service.schema_version_out(v), "Schema version created.", status_code=201)


@router.post("/{form_type_id}/mapping")
def save_mapping(form_type_id: int, body: MappingIn, db: Session = Depends(get_db), user=Depends(get_current_user)):
    require(can_manage_forms(user))
    m = service.save_field_mapping(db, form_type_id, body.year, body.mapping_json, actor_id=user.id)
    return ok(service.mapping_out(m), "Mapping saved.")


@router.get("/{form_type_id}/schema")
def effective_schema(
    form_type_id: int,
    year: int | None = Query(None),
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    """Schema used for data entry: the active version, else the newest, plus its section layout."""
    require(can_view_forms(user))
    year = year or settings.DEFAULT_YEAR
    f = service.get_form_type(db, form_type_id)
    if not f.is_active:
        raise InvalidArgument("This form is not active.", {"form_type_id": "inactive"})
    v = service.resolve_effective_schema(db, form_type_id, year, service.SchemaPolicy.PREFER_ACTIVE)
    if v is None:
        raise NotFound(f"No schema for form {f.key} and year {year}.")

    fields = service.version_fields(v)
    out = service.schema_version_out(v)
    out["form_type"] = service.form_type_out(f)
    out["fields"] = fields
    out["sections"] = build_section_layout(fields, parse_json_text(v.ui_json, None))
    return ok(out)
