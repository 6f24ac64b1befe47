from __future__ import annotations

from decimal import Decimal

import pytest

from conftest import YEAR
from ghgi.core.errors import InvalidArgument, NotFound
from ghgi.db.models.submission_answer import SubmissionAnswer
from ghgi.modules.forms.service import version_fields
from ghgi.modules.submissions import answers as store
from ghgi.modules.submissions import service as subs
from ghgi.modules.submissions.answers import (
    BoolValue,
    EmptyValue,
    JsonValue,
    NumberValue,
    OptionValue,
    TextValue,
    classify_answer,
)
from ghgi.utils.schema import field_meta_map

TEXT = {"label": "Notes", "type": "text"}
NUMBER = {"label": "Amount", "type": "number"}
DATE = {"label": "Date", "type": "date"}
SELECT = {"label": "Fuel", "type": "select", "options": ["LPG", "Diesel"]}


@pytest.fixture()
def meta(schema):
    return field_meta_map(version_fields(schema))


@pytest.fixture()
def submission(db, form_type, schema):
    return subs.create_submission(db, form_type.id, YEAR)


def _rows(db, submission_id):
    return db.query(SubmissionAnswer).filter(SubmissionAnswer.submission_id == submission_id).all()


@pytest.mark.parametrize(
    "raw, meta, expected",
    [
        ("12.5", NUMBER, NumberValue(Decimal("12.500000"))),
        (7, NUMBER, NumberValue(Decimal("7.000000"))),
        (0.1, NUMBER, NumberValue(Decimal("0.100000"))),
        ("1.23456789", NUMBER, NumberValue(Decimal("1.234568"))),
        ("999999999999.9999994", NUMBER, NumberValue(Decimal("999999999999.999999"))),
        ("LPG", SELECT, OptionValue(key="LPG", label="LPG")),
        ("Coal", SELECT, TextValue("Coal")),
        ("hello", TEXT, TextValue("hello")),
        (42, TEXT, TextValue("42")),
        (True, TEXT, BoolValue(True)),
        (False, SELECT, BoolValue(False)),
        ({"a": 1}, TEXT, JsonValue({"a": 1})),
        (["x", "y"], SELECT, JsonValue(["x", "y"])),
        ("2023-05-01", DATE, TextValue("2023-05-01")),
        (None, NUMBER, EmptyValue()),
        ("   ", TEXT, EmptyValue()),
        ("", SELECT, EmptyValue()),
    ],
)
def test_classify_answer(raw, meta, expected):
    assert classify_answer(raw, meta) == expected


@pytest.mark.parametrize(
    "raw, meta",
    [
        ("abc", NUMBER),
        (True, NUMBER),
        ("NaN", NUMBER),
        ("Infinity", NUMBER),
        (10**12, NUMBER),
        ("999999999999.9999996", NUMBER),
        ("-999999999999.9999996", NUMBER),
        ("1e30", NUMBER),
        ({"a": 1}, NUMBER),
        ("05/01/2023", DATE),
        ("2023-02-30", DATE),
        (20230501, DATE),
    ],
)
def test_classify_answer_rejects(raw, meta):
    with pytest.raises(InvalidArgument):
        classify_answer(raw, meta)


def test_upsert_routes_values_to_slots(db, submission, meta):
    n = store.upsert_answers(
        db,
        submission.id,
        submission.form_type_id,
        YEAR,
        {
            "fuel_type": "LPG",
            "annual_total_consumption": "10.5",
            "data_source_identifier": "Survey 12",
            "date_transcribed": "2023-06-30",
        },
        meta,
    )
    assert n == 4

    rows = {a.field_key: a for a in _rows(db, submission.id)}
    fuel = rows["fuel_type"]
    assert (fuel.option_key, fuel.option_label, fuel.value_text) == ("LPG", "LPG", "LPG")
    assert (fuel.label, fuel.type) == ("Fuel Type", "select")
    assert rows["annual_total_consumption"].value_number == Decimal("10.5")
    assert rows["annual_total_consumption"].value_text is None
    assert rows["data_source_identifier"].value_text == "Survey 12"
    assert rows["date_transcribed"].value_text == "2023-06-30"
    assert all(a.form_type_id == submission.form_type_id and a.year == YEAR for a in rows.values())


def test_upsert_same_key_keeps_one_row(db, submission, meta):
    args = (db, submission.id, submission.form_type_id, YEAR)
    store.upsert_answers(*args, {"fuel_type": "LPG"}, meta)
    store.upsert_answers(*args, {"fuel_type": "Something else"}, meta)

    (row,) = _rows(db, submission.id)
    assert row.value_text == "Something else"
    # option slots of the previous value are cleared
    assert row.option_key is None
    assert row.option_label is None


def test_blank_answer_keeps_row_with_null_slots(db, submission, meta):
    args = (db, submission.id, submission.form_type_id, YEAR)
    store.upsert_answers(*args, {"annual_total_consumption": 3}, meta)
    store.upsert_answers(*args, {"annual_total_consumption": ""}, meta)

    (row,) = _rows(db, submission.id)
    assert store.read_value(row) == EmptyValue()


def test_unknown_key_rejects_whole_call(db, submission, meta):
    with pytest.raises(InvalidArgument) as exc:
        store.upsert_answers(
            db, submission.id, submission.form_type_id, YEAR, {"fuel_type": "LPG", "colour": "red"}, meta
        )
    assert "colour" in exc.value.errors
    assert _rows(db, submission.id) == []


def test_bad_value_rejects_whole_call(db, submission, meta):
    with pytest.raises(InvalidArgument) as exc:
        store.upsert_answers(
            db,
            submission.id,
            submission.form_type_id,
            YEAR,
            {"fuel_type": "LPG", "annual_total_consumption": "lots"},
            meta,
        )
    assert list(exc.value.errors) == ["annual_total_consumption"]
    assert _rows(db, submission.id) == []


def test_upsert_unknown_submission(db, form_type, meta):
    with pytest.raises(NotFound):
        store.upsert_answers(db, 999, form_type.id, YEAR, {"fuel_type": "LPG"}, meta)


def test_answers_must_be_a_mapping(db, submission, meta):
    with pytest.raises(InvalidArgument):
        store.upsert_answers(db, submission.id, submission.form_type_id, YEAR, ["LPG"], meta)


def test_get_answers_ordered_and_human(db, submission, meta):
    store.upsert_answers(
        db,
        submission.id,
        submission.form_type_id,
        YEAR,
        {"fuel_type": "Diesel", "annual_total_consumption": 2, "data_source_identifier": "  "},
        meta,
    )
    rows = store.get_answers(db, submission.id)
    assert [a.field_key for a in rows] == ["annual_total_consumption", "data_source_identifier", "fuel_type"]

    human = {h["field_key"]: h for h in store.answers_human(rows)}
    assert human["fuel_type"]["value"] == "Diesel"
    assert human["fuel_type"]["option_key"] == "Diesel"
    assert human["annual_total_consumption"]["value"] == Decimal("2")
    assert human["data_source_identifier"]["value"] is None


def test_answers_human_bool_and_json(db, submission):
    meta = {"flag": {"label": "Flag", "type": "text"}, "extra": {"label": "Extra", "type": "text"}}
    store.upsert_answers(
        db, submission.id, submission.form_type_id, YEAR, {"flag": False, "extra": {"k": [1, 2]}}, meta
    )
    human = {h["field_key"]: h["value"] for h in store.answers_human(store.get_answers(db, submission.id))}
    assert human == {"flag": "No", "extra": {"k": [1, 2]}}


def test_delete_answers(db, submission, meta):
    store.upsert_answers(
        db, submission.id, submission.form_type_id, YEAR, {"fuel_type": "LPG", "annual_total_consumption": 1}, meta
    )
    assert store.delete_answers(db, submission.id) == 2
    assert store.get_answers(db, submission.id) == []
    with pytest.raises(NotFound):
        store.delete_answers(db, 999)
