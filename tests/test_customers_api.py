import logging

import pytest
from sqlalchemy.exc import OperationalError

from app.crm import create_app
from app.crm.db import session_scope
from app.crm.models import Base, CustomerUpdate
from app.crm.modules.customers import service
from app.crm.modules.customers.models import Customer


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _new(client, **payload):
    return client.post("/customer/new", json=payload)


def test_create_then_duplicate_primary_phone(client, app):
    r = _new(client, first_name="Ann", phone_no_primary="+91 98765-43210")
    assert r.status_code == 201
    assert r.json == {"message": "Record added successfully", "C_unique_id": "MC_1"}

    with session_scope(app) as s:
        c = s.query(Customer).one()
        assert c.phone_no_primary == "+91 98765-43210"
        assert c.phone_primary_key == "9876543210"

    r = _new(client, first_name="Bob", phone_no_primary="9876543210")
    assert r.status_code == 409
    assert r.json["message"] == "Phone number or email already in use"
    assert r.json["errors"] == ["The phone number in the Primary field is already in use!! (MC_1)"]
    assert r.json["conflicts"][0]["C_unique_id"] == "MC_1"

    with session_scope(app) as s:
        assert s.query(Customer).count() == 1


def test_create_with_phone_in_path(client):
    r = client.post("/customer/new/9998887776", json={"first_name": "Cy"})
    assert r.status_code == 201

    r = client.get("/customers/phone/+91-99988-87776")
    assert r.status_code == 200
    assert r.json["first_name"] == "Cy"
    assert r.json["phone_no_primary"] == "9998887776"


def test_body_phone_wins_over_path_phone(client):
    r = client.post("/customer/new/1111111111", json={"phone_no_primary": "2222222222"})
    assert r.status_code == 201
    assert client.get("/customers/phone/2222222222").status_code == 200
    assert client.get("/customers/phone/1111111111").status_code == 404


def test_create_without_primary_phone(client):
    r = _new(client, first_name="Ann")
    assert r.status_code == 400
    assert r.json["errors"] == ["Primary phone number is required."]


def test_create_without_json_body(client):
    r = client.post("/customer/new", data="not json", content_type="text/plain")
    assert r.status_code == 400


def test_view_and_list(client):
    _new(client, first_name="Ann", phone_no_primary="1111111111", date_of_birth="1990-05-17")
    _new(client, first_name="Bob", phone_no_primary="2222222222")

    r = client.get("/customers/view/MC_1")
    assert r.status_code == 200
    assert r.json["first_name"] == "Ann"
    assert r.json["date_of_birth"] == "1990-05-17"
    assert r.json["gender"] == "male"
    assert "phone_primary_key" not in r.json

    assert client.get("/customers/view/MC_404").status_code == 404

    r = client.get("/customers")
    assert r.status_code == 200
    assert {c["C_unique_id"] for c in r.json} == {"MC_1", "MC_2"}


def test_search(client):
    _new(client, first_name="Ann", phone_no_primary="1111111111", company_name="Acme")
    _new(client, first_name="Bob", phone_no_primary="2222222222")

    r = client.get("/customers/search", query_string={"query": "Acme"})
    assert r.status_code == 200
    assert [c["first_name"] for c in r.json] == ["Ann"]

    r = client.get("/customers/search")
    assert len(r.json) == 2


def test_update(client, app):
    _new(client, first_name="Ann", phone_no_primary="1111111111", comment="first call")
    _new(client, first_name="Bob", phone_no_primary="2222222222")

    with session_scope(app) as s:
        ann_id = s.query(Customer.id).filter(Customer.C_unique_id == "MC_1").scalar()

    r = client.put(f"/customers/{ann_id}", json={"first_name": "Anne", "phone_no_primary": "1111111111"})
    assert r.status_code == 200
    assert r.json == {"message": "Customer updated successfully!"}

    r = client.get("/customers/view/MC_1")
    assert r.json["first_name"] == "Anne"
    assert r.json["comment"] is None

    r = client.put(f"/customers/{ann_id}", json={"phone_no_primary": "+91 22222 22222"})
    assert r.status_code == 409
    assert "MC_2" in r.json["errors"][0]

    assert client.put("/customers/999", json={"phone_no_primary": "3333333333"}).status_code == 404
    assert client.put("/customers/abc", json={"phone_no_primary": "3333333333"}).status_code == 400


def test_invalid_gender_is_rejected(client):
    r = _new(client, phone_no_primary="1111111111", gender="robot")
    assert r.status_code == 400


def test_change_history(client, app):
    _new(client, first_name="Ann", phone_no_primary="1111111111")
    with session_scope(app) as s:
        c = s.query(Customer).one()
        cid, uid = c.id, c.C_unique_id

    r = client.get(f"/customers/log-change/{cid}")
    assert r.status_code == 200
    assert r.json["changeHistory"] == []

    r = client.post(
        "/customers/log-change",
        json={
            "customerId": cid,
            "C_unique_id": uid,
            "changes": [{"field": "first_name", "old_value": "An", "new_value": "Ann"}],
        },
    )
    assert r.status_code == 200
    assert r.json["message"] == "Change history recorded successfully!"
    entry = r.json["changeHistory"][0]
    assert entry["field"] == "first_name"
    assert entry["old_value"] == "An"
    assert entry["new_value"] == "Ann"
    assert entry["C_unique_id"] == uid
    assert entry["changed_at"]

    r = client.get(f"/customers/log-change/{cid}")
    assert r.json["message"] == "Change history retrieved successfully!"
    assert len(r.json["changeHistory"]) == 1

    r = client.post("/customers/log-change", json={"customerId": cid, "C_unique_id": uid, "changes": []})
    assert r.status_code == 400
    assert r.json["message"] == "Invalid request data"

    assert client.get("/customers/log-change/999").status_code == 404
    assert client.get("/customers/log-change/abc").status_code == 400


def test_delete_customer_and_history(client, app):
    _new(client, first_name="Ann", phone_no_primary="1111111111")
    with session_scope(app) as s:
        c = s.query(Customer).one()
        cid, uid = c.id, c.C_unique_id
    client.post(
        "/customers/log-change",
        json={"customerId": cid, "C_unique_id": uid, "changes": [{"field": "comment", "new_value": "x"}]},
    )

    r = client.delete(f"/customer/{cid}")
    assert r.status_code == 200
    assert r.json == {"message": "Customer and associated updates deleted successfully!"}

    with session_scope(app) as s:
        assert s.query(Customer).count() == 0
        assert s.query(CustomerUpdate).count() == 0

    r = client.delete(f"/customer/{cid}")
    assert r.status_code == 404
    assert r.json["message"] == "Customer not found"

    r = client.delete("/customer/abc")
    assert r.status_code == 400
    assert r.json["message"] == "Valid Customer ID is required"


def test_responses_carry_request_id(client):
    r = client.get("/customers")
    assert r.headers.get("X-Request-ID")


def test_unknown_route_is_json(client):
    r = client.get("/nope")
    assert r.status_code == 404
    assert "message" in r.json


def test_database_failure_is_generic_500_and_logged(client, monkeypatch, caplog):
    real_find = service.find_conflicts
    calls = []

    def flaky_find(s, **kwargs):
        calls.append(1)
        if len(calls) == 1:
            raise OperationalError("SELECT secret FROM customers", {}, Exception("db password leaked"))
        return real_find(s, **kwargs)

    monkeypatch.setattr(service, "find_conflicts", flaky_find)

    with caplog.at_level(logging.ERROR, logger="app.crm"):
        r = _new(client, first_name="Ann", phone_no_primary="1111111111")

    assert r.status_code == 500
    assert r.json == {"message": "Error adding new record"}
    body = r.get_data(as_text=True)
    assert "secret" not in body
    assert "leaked" not in body

    logged = [rec for rec in caplog.records if rec.getMessage() == "Error adding new record"]
    assert logged and logged[0].exc_info is not None
    assert isinstance(logged[0].exc_info[1], OperationalError)

    r = _new(client, first_name="Ann", phone_no_primary="1111111111")
    assert r.status_code == 201
    assert r.json["C_unique_id"] == "MC_1"


def test_list_field_in_body_is_rejected(client):
    r = _new(client, phone_no_primary=5551234567, first_name=["x"])
    assert r.status_code == 400
    assert r.json["errors"] == ["first_name must be a text value"]
