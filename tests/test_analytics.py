from __future__ import annotations

from decimal import Decimal

import pytest

from conftest import YEAR
from ghgi.core.errors import NotFound
from ghgi.db.models.form_schema_version import FormSchemaVersion
from ghgi.modules.analytics import service as analytics
from ghgi.modules.forms import service as forms
from ghgi.modules.submissions import service as subs
from ghgi.utils import summary_cache
from ghgi.utils.schema import label_from_key


def _submitted(db, form_type_id, answers, year=YEAR):
    s = subs.create_submission(db, form_type_id, year)
    subs.submit(db, s.id, answers=answers)
    return s


def test_fuel_type_option_counts(db, form_type, schema):
    for fuel in ("LPG", "LPG", "Diesel"):
        _submitted(db, form_type.id, {"fuel_type": fuel})

    out = analytics.summary_for_field(db, form_type.id, YEAR, "fuel_type")
    assert out["response_count"] == 3
    assert out["option_counts"] == [{"k": "LPG", "c": 2}, {"k": "Diesel", "c": 1}]
    assert out["label"] == "Fuel Type"


def test_numeric_stats(db, form_type, schema):
    for v in ("10.5", 20.25, "30.0"):
        _submitted(db, form_type.id, {"annual_total_consumption": v})

    stats = analytics.summary_for_field(db, form_type.id, YEAR, "annual_total_consumption")["number_stats"]
    assert stats == {
        "min": Decimal("10.5"),
        "max": Decimal("30.0"),
        "avg": Decimal("20.25"),
        "sum": Decimal("60.75"),
        "n": 3,
    }


def test_field_summary_without_rows(db, form_type):
    out = analytics.summary_for_field(db, form_type.id, YEAR, "no_such_field")
    assert out["response_count"] == 0
    assert out["option_counts"] == []
    assert out["samples"] == []
    assert out["number_stats"] == {"min": None, "max": None, "avg": None, "sum": None, "n": 0}
    assert out["label"] == "No Such Field"


def test_form_summary(db, form_type, schema):
    _submitted(db, form_type.id, {"fuel_type": "LPG", "annual_total_consumption": 3, "data_source_identifier": "S-1"})
    _submitted(db, form_type.id, {"fuel_type": "Diesel", "data_source_identifier": "S-2"})
    draft = subs.create_submission(db, form_type.id, YEAR)
    subs.save_draft_answers(db, draft.id, {"fuel_type": "LPG", "data_source_identifier": ""})

    out = analytics.summary_for_form(db, form_type.id, YEAR)
    assert out["total_submissions"] == 2
    assert out["schema_version_id"] == schema.id

    by_key = {f["field_key"]: f for f in out["fields"]}
    assert list(by_key) == ["fuel_type", "annual_total_consumption", "data_source_identifier", "date_transcribed"]
    # drafts count as responses; only totals are limited to received data
    assert by_key["fuel_type"]["response_count"] == 3
    assert by_key["fuel_type"]["option_counts"] == [{"k": "LPG", "c": 2}, {"k": "Diesel", "c": 1}]
    assert by_key["annual_total_consumption"]["response_count"] == 1
    assert by_key["annual_total_consumption"]["samples"] == []
    # blank answers are stored but not counted
    assert by_key["data_source_identifier"]["response_count"] == 2
    assert by_key["data_source_identifier"]["samples"] == ["S-2", "S-1"]
    assert by_key["date_transcribed"]["response_count"] == 0


def test_form_summary_uses_newest_schema(db, form_type, schema, fields):
    fields.append({"key": "fuel_supplier", "label": "Fuel Supplier", "type": "text"})
    # newest by id wins even while still a draft
    newer = forms.create_schema_version(db, form_type.id, YEAR, fields)

    out = analytics.summary_for_form(db, form_type.id, YEAR)
    assert out["schema_version_id"] == newer.id
    assert out["fields"][-1]["field_key"] == "fuel_supplier"


def test_form_summary_without_schema(db, form_type):
    with pytest.raises(NotFound):
        analytics.summary_for_form(db, form_type.id, YEAR)


def test_form_summary_caps_option_list(db, form_type):
    options = [f"Fuel {i:02d}" for i in range(25)]
    forms.create_schema_version(
        db, form_type.id, YEAR, [{"key": "fuel", "label": "Fuel", "type": "select", "options": options}], status="active"
    )
    for i, opt in enumerate(options):
        # the first option is chosen twice so it leads the list
        _submitted(db, form_type.id, {"fuel": opt})
        if i == 0:
            _submitted(db, form_type.id, {"fuel": opt})

    (field,) = analytics.summary_for_form(db, form_type.id, YEAR)["fields"]
    assert len(field["option_counts"]) == 20
    assert field["option_counts"][0] == {"k": "Fuel 00", "c": 2}
    assert field["option_counts"][1] == {"k": "Fuel 01", "c": 1}
    assert len(field["samples"]) == 20

    full = analytics.summary_for_field(db, form_type.id, YEAR, "fuel")
    assert len(full["option_counts"]) == 25
    assert len(full["samples"]) == 26


def test_individual_index(db, form_type, schema):
    ids = [subs.create_submission(db, form_type.id, YEAR).id for _ in range(7)]
    subs.create_submission(db, form_type.id, 2024)

    page = analytics.individual_index(db, form_type.id, YEAR, page=1, per_page=1)
    assert page["per_page"] == 5
    assert page["total"] == 7
    assert page["last_page"] == 2
    assert [r["id"] for r in page["items"]] == ids[::-1][:5]

    page = analytics.individual_index(db, form_type.id, YEAR, page=2, per_page=1)
    assert [r["id"] for r in page["items"]] == ids[::-1][5:]

    assert analytics.individual_index(db, form_type.id, YEAR, per_page=1000)["per_page"] == 100


@pytest.mark.parametrize(
    "key, label",
    [
        ("fuel_type", "Fuel Type"),
        ("district_or-barangay", "District Or Barangay"),
        ("  annual__total  consumption ", "Annual Total Consumption"),
        ("qc_reference", "Qc Reference"),
        ("", ""),
    ],
)
def test_label_from_key(key, label):
    assert label_from_key(key) == label


class DictRedis:
    """Just enough of the redis client for the summary cache."""

    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value

    def delete(self, key):
        self.store.pop(key, None)


@pytest.fixture()
def cache(monkeypatch):
    fake = DictRedis()
    monkeypatch.setattr(summary_cache, "get_redis", lambda: fake)
    return fake


def test_summary_is_served_from_cache(db, form_type, schema, cache):
    first = analytics.summary_for_form(db, form_type.id, YEAR)
    assert list(cache.store) == [f"form_summary:{form_type.id}:{YEAR}"]

    # a direct row change bypasses invalidation, so the cached copy is returned
    db.query(FormSchemaVersion).filter(FormSchemaVersion.id == schema.id).update({"schema_json": "{}"})
    db.commit()
    assert analytics.summary_for_form(db, form_type.id, YEAR)["fields"] == first["fields"]


def test_answer_writes_refresh_cached_summary(db, form_type, schema, cache):
    assert analytics.summary_for_form(db, form_type.id, YEAR)["total_submissions"] == 0
    _submitted(db, form_type.id, {"fuel_type": "LPG"})
    assert analytics.summary_for_form(db, form_type.id, YEAR)["total_submissions"] == 1


def test_new_schema_version_refreshes_cached_summary(db, form_type, schema, fields, cache):
    assert analytics.summary_for_form(db, form_type.id, YEAR)["schema_version_id"] == schema.id

    fields.append({"key": "fuel_supplier", "label": "Fuel Supplier", "type": "text"})
    v2 = forms.create_schema_version(db, form_type.id, YEAR, fields, status="active")
    second = analytics.summary_for_form(db, form_type.id, YEAR)
    assert second["schema_version_id"] == v2.id
    assert second["fields"][-1]["field_key"] == "fuel_supplier"

    forms.set_schema_version_status(db, v2.id, "deprecated")
    assert cache.store == {}


def test_deleted_form_type_is_not_served_from_cache(db, form_type, schema, cache):
    analytics.summary_for_form(db, form_type.id, YEAR)
    form_id = form_type.id

    forms.delete_form_type(db, form_id)
    assert cache.store == {}
    with pytest.raises(NotFound):
        analytics.summary_for_form(db, form_id, YEAR)
