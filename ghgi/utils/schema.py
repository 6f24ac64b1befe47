from __future__ import annotations

import json
import re

from ghgi.core.errors import InvalidArgument

FIELD_TYPES = ("text", "number", "date", "select")

FORM_KEY_RE = re.compile(r"^[a-z0-9\-_.]+$")
FIELD_KEY_RE = re.compile(r"^[a-z0-9\-_.]+$")
FIELD_KEY_MAX = 190

YEAR_MIN = 2000
YEAR_MAX = 2100


def parse_json_text(text: str | None, default):
    """json.loads for stored JSON columns; unreadable content yields `default`."""
    if not text:
        return default
    try:
        return json.loads(text)
    except ValueError:
        return default


def dump_json(value) -> str:
    return json.dumps(value, ensure_ascii=False)


def validate_year(year) -> int:
    if isinstance(year, bool):
        raise InvalidArgument("Year must be an integer.", {"year": "must be an integer"})
    try:
        y = int(year)
    except (TypeError, ValueError):
        raise InvalidArgument("Year must be an integer.", {"year": "must be an integer"}) from None
    if isinstance(year, float) and year != y:
        raise InvalidArgument("Year must be an integer.", {"year": "must be an integer"})
    if y < YEAR_MIN or y > YEAR_MAX:
        raise InvalidArgument(
            f"Year must be between {YEAR_MIN} and {YEAR_MAX}.",
            {"year": f"must be between {YEAR_MIN} and {YEAR_MAX}"},
        )
    return y


def label_from_key(key: str) -> str:
    """district_or-barangay -> District Or Barangay"""
    s = str(key or "").replace("-", " ").replace("_", " ")
    s = re.sub(r"\s+", " ", s).strip()
    return " ".join(w[:1].upper() + w[1:] for w in s.split(" ")) if s else ""


def field_type(field: dict) -> str:
    return str(field.get("type") or "text").lower()


def validate_schema_fields(fields) -> list[dict]:
    """Check a schema field list and return it unchanged.

    Each field: {"key", "label", "type", "required", "options"?}. Extra keys
    (placeholder, help, min, ...) are kept as-is so the list round-trips.
    """
    if not isinstance(fields, list) or not fields:
        raise InvalidArgument("Schema must contain at least one field.", {"fields": "must be a non-empty list"})

    errors: dict[str, str] = {}
    seen: set[str] = set()
    for i, f in enumerate(fields):
        where = f"fields.{i}"
        if not isinstance(f, dict):
            errors[where] = "must be an object"
            continue

        key = f.get("key")
        if not isinstance(key, str) or not key.strip():
            errors[f"{where}.key"] = "is required"
        elif len(key) > FIELD_KEY_MAX or not FIELD_KEY_RE.match(key):
            errors[f"{where}.key"] = "may only contain a-z, 0-9, '-', '_' and '.'"
        elif key in seen:
            errors[f"{where}.key"] = f"duplicate key {key!r}"
        else:
            seen.add(key)

        label = f.get("label")
        if not isinstance(label, str) or not label.strip():
            errors[f"{where}.label"] = "is required"

        ftype = f.get("type", "text")
        if not isinstance(ftype, str) or ftype.lower() not in FIELD_TYPES:
            errors[f"{where}.type"] = f"must be one of {', '.join(FIELD_TYPES)}"

        if "required" in f and not isinstance(f["required"], bool):
            errors[f"{where}.required"] = "must be a boolean"

        options = f.get("options")
        if options is not None:
            if not isinstance(options, list) or any(not isinstance(o, str) or not o for o in options):
                errors[f"{where}.options"] = "must be a list of non-empty strings"
            elif len(set(options)) != len(options):
                errors[f"{where}.options"] = "must not repeat"
        if isinstance(ftype, str) and ftype.lower() == "select" and not options:
            errors.setdefault(f"{where}.options", "select fields need at least one option")

    if errors:
        raise InvalidArgument("Schema fields are invalid.", errors)
    return fields


def schema_fields(schema: dict) -> list[dict]:
    fields = schema.get("fields") if isinstance(schema, dict) else None
    if not isinstance(fields, list):
        return []
    return [f for f in fields if isinstance(f, dict) and f.get("key")]


def field_meta_map(fields: list[dict]) -> dict[str, dict]:
    """key -> {"label", "type", "required", "options"} for answer typing."""
    out: dict[str, dict] = {}
    for f in fields:
        if not isinstance(f, dict) or not f.get("key"):
            continue
        key = str(f["key"])
        out[key] = {
            "label": str(f.get("label") or label_from_key(key)),
            "type": field_type(f),
            "required": bool(f.get("required")),
            "options": [str(o) for o in (f.get("options") or [])],
        }
    return out


def build_section_layout(fields: list[dict], ui_hints: dict | None) -> list[dict]:
    """Return normalized sections for rendering a schema.

    Output: list of {"key", "label", "field_keys"}.
    Rules:
      - Uses ui_hints.sections when given; unknown and repeated keys are dropped.
      - Fields not placed in any section are appended, in schema order, to a
        trailing "other" section (or a single "fields" section when there are
        no sections at all).
    """
    keys = [str(f["key"]) for f in fields if isinstance(f, dict) and f.get("key")]
    known = set(keys)
    placed: set[str] = set()
    sections: list[dict] = []

    raw = ui_hints.get("sections") if isinstance(ui_hints, dict) else None
    if isinstance(raw, list):
        for i, s in enumerate(raw):
            if not isinstance(s, dict):
                continue
            names = s.get("field_keys") or []
            if not isinstance(names, list):
                names = []
            field_keys = []
            for n in names:
                n = str(n)
                if n in known and n not in placed:
                    placed.add(n)
                    field_keys.append(n)
            skey = str(s.get("key") or f"section_{i + 1}")
            sections.append({"key": skey, "label": str(s.get("label") or label_from_key(skey)), "field_keys": field_keys})

    rest = [k for k in keys if k not in placed]
    if rest:
        if sections:
            sections.append({"key": "other", "label": "Other", "field_keys": rest})
        else:
            sections.append({"key": "fields", "label": "Fields", "field_keys": rest})
    return sections
