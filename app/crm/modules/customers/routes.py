from __future__ import annotations

from typing import Any

from flask import Blueprint, current_app, g, jsonify, request

from app.crm.db import db_session
from app.crm.errors import CustomerError, NotFoundError
from app.crm.models import CustomerUpdate
from app.crm.modules.customers.models import Customer
from app.crm.modules.customers.service import (
    create_customer,
    delete_customer,
    fetch_history,
    find_customer_by_phone,
    list_recent,
    search_customers,
    submit_history,
    update_customer,
    view_customer,
)

bp = Blueprint("customers", __name__)


def customer_to_dict(c: Customer) -> dict[str, Any]:
    return {
        "id": c.id,
        "C_unique_id": c.C_unique_id,
        "first_name": c.first_name,
        "middle_name": c.middle_name,
        "last_name": c.last_name,
        "gender": c.gender,
        "phone_no_primary": c.phone_no_primary,
        "whatsapp_num": c.whatsapp_num,
        "phone_no_secondary": c.phone_no_secondary,
        "email_id": c.email_id,
        "address": c.address,
        "country": c.country,
        "company_name": c.company_name,
        "contact_type": c.contact_type,
        "source": c.source,
        "disposition": c.disposition,
        "agent_name": c.agent_name,
        "comment": c.comment,
        "date_of_birth": c.date_of_birth.isoformat() if c.date_of_birth else None,
        "last_updated": c.last_updated.isoformat() if c.last_updated else None,
    }


def change_to_dict(u: CustomerUpdate) -> dict[str, Any]:
    return {
        "id": u.id,
        "customer_id": u.customer_id,
        "C_unique_id": u.C_unique_id,
        "field": u.field,
        "old_value": u.old_value,
        "new_value": u.new_value,
        "changed_at": u.changed_at.isoformat() if u.changed_at else None,
    }


def _payload() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


@bp.errorhandler(CustomerError)
def _customer_error(e: CustomerError):
    db_session().rollback()
    if e.status_code >= 500:
        current_app.logger.error("%s (request_id=%s)", e.message, getattr(g, "request_id", None))
    return jsonify(e.to_dict()), e.status_code


@bp.get("/customers")
def customers_list():
    s = db_session()
    return jsonify([customer_to_dict(c) for c in list_recent(s)])


@bp.get("/customers/search")
def customers_search():
    s = db_session()
    q = request.args.get("query", "")
    return jsonify([customer_to_dict(c) for c in search_customers(s, q)])


@bp.get("/customers/phone/<phone>")
def customers_by_phone(phone: str):
    s = db_session()
    c = find_customer_by_phone(s, phone)
    if c is None:
        raise NotFoundError("Customer not found")
    return jsonify(customer_to_dict(c))


@bp.get("/customers/view/<unique_id>")
def customers_view(unique_id: str):
    s = db_session()
    return jsonify(customer_to_dict(view_customer(s, unique_id)))


@bp.put("/customers/<customer_id>")
def customers_update(customer_id: str):
    s = db_session()
    update_customer(s, customer_id, _payload())
    s.commit()
    return jsonify({"message": "Customer updated successfully!"})


@bp.post("/customers/log-change")
def customers_history_post():
    s = db_session()
    history = submit_history(s, _payload())
    s.commit()
    return jsonify({
        "message": "Change history recorded successfully!",
        "changeHistory": [change_to_dict(u) for u in history],
    })


@bp.get("/customers/log-change/<customer_id>")
def customers_history_get(customer_id: str):
    s = db_session()
    history = fetch_history(s, customer_id)
    return jsonify({
        "message": "Change history retrieved successfully!",
        "changeHistory": [change_to_dict(u) for u in history],
    })


@bp.post("/customer/new")
@bp.post("/customer/new/<phone_no_primary>")
def customers_new(phone_no_primary: str | None = None):
    s = db_session()
    payload = _payload()
    # The path number only fills in for a body without one.
    if phone_no_primary and not payload.get("phone_no_primary"):
        payload["phone_no_primary"] = phone_no_primary
    c = create_customer(s, payload)
    s.commit()
    return jsonify({"message": "Record added successfully", "C_unique_id": c.C_unique_id}), 201


@bp.delete("/customer/<customer_id>")
def customers_delete(customer_id: str):
    s = db_session()
    delete_customer(s, customer_id)
    s.commit()
    return jsonify({"message": "Customer and associated updates deleted successfully!"})
