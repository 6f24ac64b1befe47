from __future__ import annotations

from conftest import YEAR
from ghgi.auth.deps import get_current_user
from ghgi.core.security import SESSION_COOKIE, sign_session
from ghgi.modules.forms import service as forms
from ghgi.modules.submissions import service as subs

API = "/api/admin"


def _create_form(client, key="stat-comb-residential"):
    return client.post(
        f"{API}/forms",
        json={"key": key, "name": "Stat Comb-Residential Data", "sector_key": "stationary_combustion"},
    )


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert "X-Process-Time-ms" in r.headers
    assert r.headers["X-Content-Type-Options"] == "nosniff"


def test_create_form_envelope(client):
    r = _create_form(client)
    assert r.status_code == 201
    body = r.json()
    assert body["success"] is True
    assert body["data"]["key"] == "stat-comb-residential"


def test_duplicate_form_key_is_409(client):
    _create_form(client)
    r = _create_form(client)
    assert r.status_code == 409
    assert r.json() == {
        "success": False,
        "message": "A form with this key already exists.",
        "errors": {"key": "A form with this key already exists."},
    }


def test_invalid_input_is_422(client):
    r = _create_form(client, key="Not A Slug")
    assert r.status_code == 422
    assert r.json()["success"] is False
    assert "key" in r.json()["errors"]


def test_missing_form_is_404(client):
    r = client.patch(f"{API}/forms/999", json={"name": "x"})
    assert r.status_code == 404
    assert r.json()["success"] is False


def test_enumerator_cannot_manage_forms(client, act_as, enumerator):
    act_as(enumerator)
    r = _create_form(client)
    assert r.status_code == 403
    assert r.json()["success"] is False


def test_schema_lifecycle_over_http(client, fields):
    form_id = _create_form(client).json()["data"]["id"]

    r = client.post(
        f"{API}/forms/{form_id}/schemas",
        json={"year": YEAR, "schema_json": {"title": "Residential", "fields": fields}},
    )
    assert r.status_code == 201
    v1 = r.json()["data"]
    assert (v1["version"], v1["status"]) == (1, "draft")
    assert v1["schema_json"]["fields"] == fields

    r = client.post(f"{API}/forms/{form_id}/schemas", json={"year": 1999, "schema_json": {"fields": fields}})
    assert r.status_code == 422

    r = client.post(f"{API}/forms/{form_id}/schemas", json={"year": YEAR, "schema_json": {"fields": []}})
    assert r.status_code == 422

    r = client.patch(f"{API}/forms/schemas/{v1['id']}", json={"status": "active"})
    assert r.json()["data"]["status"] == "active"

    r = client.get(f"{API}/forms", params={"year": YEAR})
    (item,) = r.json()["data"]
    assert item["schema_versions"][0]["schema_json"]["fields"] == fields

    r = client.post(f"{API}/forms/{form_id}/mapping", json={"year": YEAR, "mapping_json": {"fuel_type": "fuel"}})
    assert r.json()["data"]["mapping_json"] == {"fuel_type": "fuel"}


def test_effective_schema_with_sections(client, db, form_type, fields):
    ui = {"sections": [{"key": "activity_data", "label": "Activity Data", "field_keys": ["fuel_type"]}]}
    forms.create_schema_version(db, form_type.id, YEAR, fields, ui_hints=ui, status="active")
    forms.create_schema_version(db, form_type.id, YEAR, fields)

    r = client.get(f"{API}/forms/{form_type.id}/schema", params={"year": YEAR})
    data = r.json()["data"]
    assert (data["version"], data["status"]) == (1, "active")
    assert data["sections"] == [
        {"key": "activity_data", "label": "Activity Data", "field_keys": ["fuel_type"]},
        {
            "key": "other",
            "label": "Other",
            "field_keys": ["annual_total_consumption", "data_source_identifier", "date_transcribed"],
        },
    ]

    assert client.get(f"{API}/forms/{form_type.id}/schema", params={"year": 2030}).status_code == 404


def test_submission_flow_over_http(client, act_as, enumerator, form_type, schema):
    act_as(enumerator)
    r = client.post(
        f"{API}/submissions",
        json={"form_type_id": form_type.id, "year": YEAR, "source": "mobile", "prov_name": "Laguna"},
    )
    assert r.status_code == 201
    sid = r.json()["data"]["id"]
    assert r.json()["data"]["schema_version_id"] == schema.id

    r = client.patch(
        f"{API}/submissions/{sid}/answers",
        json={"answers": {"fuel_type": "LPG", "annual_total_consumption": "10.5"}, "mode": "draft"},
    )
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "draft"

    r = client.patch(f"{API}/submissions/{sid}/answers", json={"answers": {"colour": "red"}})
    assert r.status_code == 422
    assert "colour" in r.json()["errors"]

    r = client.post(f"{API}/submissions/{sid}/submit")
    assert r.json()["data"]["status"] == "submitted"
    r = client.post(f"{API}/submissions/{sid}/submit", json={"answers": {"fuel_type": "Diesel"}})
    assert r.status_code == 200

    detail = client.get(f"{API}/submissions/{sid}").json()["data"]
    assert detail["prov_name"] == "Laguna"
    assert {h["field_key"]: h["value"] for h in detail["answers_human"]}["fuel_type"] == "Diesel"

    # reviewing is admin-only
    assert client.patch(f"{API}/submissions/{sid}", json={"status": "reviewed"}).status_code == 403


def test_review_and_locking_over_http(client, db, form_type, schema):
    s = subs.create_submission(db, form_type.id, YEAR)
    subs.submit(db, s.id, answers={"fuel_type": "LPG"})

    r = client.patch(f"{API}/submissions/{s.id}", json={"status": "reviewed"})
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "reviewed"

    r = client.patch(f"{API}/submissions/{s.id}/answers", json={"answers": {"fuel_type": "Diesel"}})
    assert r.status_code == 409
    assert client.post(f"{API}/submissions/{s.id}/submit").status_code == 409


def test_enumerator_sees_only_own_submissions(client, act_as, db, admin, enumerator, form_type, schema):
    theirs = subs.create_submission(db, form_type.id, YEAR, creator_id=admin.id)
    mine = subs.create_submission(db, form_type.id, YEAR, creator_id=enumerator.id)

    act_as(enumerator)
    r = client.get(f"{API}/submissions")
    assert [row["id"] for row in r.json()["data"]["items"]] == [mine.id]
    assert client.get(f"{API}/submissions/{theirs.id}").status_code == 403
    assert client.delete(f"{API}/submissions/{mine.id}").status_code == 403


def test_delete_submission_over_http(client, db, form_type, schema):
    s = subs.create_submission(db, form_type.id, YEAR)
    sid = s.id
    assert client.delete(f"{API}/submissions/{sid}").status_code == 200
    assert client.get(f"{API}/submissions/{sid}").status_code == 404


def test_analytics_over_http(client, db, form_type, schema):
    for fuel in ("LPG", "LPG", "Diesel"):
        s = subs.create_submission(db, form_type.id, YEAR)
        subs.submit(db, s.id, answers={"fuel_type": fuel, "annual_total_consumption": 2})

    r = client.get(f"{API}/forms/{form_type.id}/summary", params={"year": YEAR})
    assert r.status_code == 200
    assert r.json()["data"]["total_submissions"] == 3

    r = client.get(f"{API}/forms/{form_type.id}/questions/annual_total_consumption/summary", params={"year": YEAR})
    stats = r.json()["data"]["number_stats"]
    assert stats["n"] == 3
    assert float(stats["sum"]) == 6.0

    r = client.get(f"{API}/forms/{form_type.id}/individual", params={"year": YEAR, "per_page": 2})
    assert r.json()["data"]["per_page"] == 5

    assert client.get(f"{API}/forms/{form_type.id}/summary", params={"year": 2030}).status_code == 404


def test_delete_form_over_http(client, db, form_type, schema):
    s = subs.create_submission(db, form_type.id, YEAR)
    subs.save_draft_answers(db, s.id, {"fuel_type": "LPG"})
    form_id = form_type.id

    assert client.delete(f"{API}/forms/{form_id}").status_code == 200
    assert client.get(f"{API}/forms").json()["data"] == []
    assert client.delete(f"{API}/forms/{form_id}").status_code == 404


def test_audit_listing(client, form_type):
    r = client.get(f"{API}/audit", params={"entity": "form_type", "entity_id": form_type.id})
    assert r.status_code == 200
    (row,) = r.json()["data"]
    assert (row["action"], row["actor"]) == ("create", None)
    assert row["after"]["key"] == "stat-comb-residential"


def test_login_rejects_bad_credentials(client):
    r = client.post("/login", json={"username": "admin", "password": "wrong"})
    assert r.status_code == 400
    assert r.json()["success"] is False


def test_session_cookie_must_match_current_role(client, admin):
    from ghgi.main import app

    app.dependency_overrides.pop(get_current_user)

    assert client.get("/me").status_code == 401

    client.cookies.set(SESSION_COOKIE, sign_session(admin.id, "ENUMERATOR"))
    assert client.get("/me").status_code == 401

    client.cookies.set(SESSION_COOKIE, sign_session(admin.id, admin.role.value))
    r = client.get("/me")
    assert r.status_code == 200
    assert r.json()["data"]["role_label"] == "Administrator"
