"""
CUSTOMER LIFECYCLE
==================

Operation        | Storage effect                          | Failure outcomes
-----------------|-----------------------------------------|---------------------------------
create_customer  | INSERT customers (new C_unique_id)      | ValidationError, ConflictError
update_customer  | UPDATE every mutable field              | ValidationError, ConflictError, NotFoundError
submit_history   | INSERT customer_updates, then read back | ValidationError, NotFoundError
fetch_history    | read only                               | ValidationError, NotFoundError
delete_customer  | DELETE customer_updates + customers     | ValidationError, NotFoundError

Every operation runs on the caller's session and never commits; the caller commits
(or rolls back) once, so conflict detection and the write land in one transaction.
Database failures surface as StorageError with a generic message; the cause is logged.

INVARIANTS:
- Normalized primary phone, normalized WhatsApp number and raw email are each unique
  across customers (the customer being updated never conflicts with itself).
- C_unique_id is MC_<n>, assigned once at creation, one past the newest customer's suffix.
- Updates are full replacements: omitted fields become NULL.
- Change history is append-only and removed only together with its customer.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.crm import audit
from app.crm.constants import (
    CONFLICT_MESSAGE,
    CONTACT_FIELDS,
    EMAIL_IN_USE,
    FIELD_MAX_LENGTHS,
    PRIMARY_PHONE_IN_USE,
    PRIMARY_PHONE_REQUIRED,
    SEARCH_FIELDS,
    UNIQUE_ID_ATTEMPTS,
    WHATSAPP_IN_USE,
)
from app.crm.errors import ConflictError, NotFoundError, StorageError, ValidationError
from app.crm.models import CustomerUpdate
from app.crm.modules.customers.models import Customer
from app.crm.modules.customers.utils import (
    clean_email,
    clean_text,
    coerce_gender,
    next_unique_id,
    parse_date_of_birth,
    phone_key,
)

logger = logging.getLogger(__name__)


@contextmanager
def _storage_errors(message: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError:
        logger.exception(message)
        raise StorageError(message)


# ============================================================================
# Conflict detection
# ============================================================================

@dataclass(frozen=True)
class Conflict:
    """One colliding field on one existing customer."""
    field: str
    unique_id: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "C_unique_id": self.unique_id, "message": self.message}


def find_conflicts(
    s: Session,
    *,
    primary_key: str | None,
    whatsapp_key: str | None,
    email: str | None,
    exclude_id: int | None = None,
) -> list[Conflict]:
    """
    Customers colliding with the candidate contact values.

    Phones are compared by normalized key (same field only: primary against primary,
    WhatsApp against WhatsApp); email is compared exactly. Empty candidates never match.
    A single row can contribute up to three conflicts.
    """
    conds = []
    if primary_key:
        conds.append(Customer.phone_primary_key == primary_key)
    if whatsapp_key:
        conds.append(Customer.whatsapp_key == whatsapp_key)
    if email:
        conds.append(Customer.email_id == email)
    if not conds:
        return []

    query = s.query(Customer).filter(or_(*conds))
    if exclude_id is not None:
        query = query.filter(Customer.id != exclude_id)

    conflicts: list[Conflict] = []
    for c in query.order_by(Customer.id.asc()).all():
        if primary_key and c.phone_primary_key == primary_key:
            conflicts.append(
                Conflict("phone_no_primary", c.C_unique_id, PRIMARY_PHONE_IN_USE.format(unique_id=c.C_unique_id))
            )
        if whatsapp_key and c.whatsapp_key == whatsapp_key:
            conflicts.append(
                Conflict("whatsapp_num", c.C_unique_id, WHATSAPP_IN_USE.format(unique_id=c.C_unique_id))
            )
        if email and c.email_id == email:
            conflicts.append(Conflict("email_id", c.C_unique_id, EMAIL_IN_USE.format(unique_id=c.C_unique_id)))
    return conflicts


def _conflict_error(conflicts: list[Conflict], validation_errors: list[str] | None = None) -> ConflictError:
    return ConflictError(
        CONFLICT_MESSAGE,
        errors=[*(validation_errors or []), *(c.message for c in conflicts)],
        conflicts=[c.to_dict() for c in conflicts],
    )


def _conflicts_for(s: Session, fields: dict[str, Any], exclude_id: int | None = None) -> list[Conflict]:
    return find_conflicts(
        s,
        primary_key=phone_key(fields["phone_no_primary"]),
        whatsapp_key=phone_key(fields["whatsapp_num"]),
        email=fields["email_id"],
        exclude_id=exclude_id,
    )


# ============================================================================
# Payload handling
# ============================================================================

def _contact_fields(payload: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """
    Every mutable field from the payload (absent -> None) plus any validation messages.
    """
    errs: list[str] = []
    fields: dict[str, Any] = {}
    for name in CONTACT_FIELDS:
        if name in ("gender", "date_of_birth"):
            continue
        clean = clean_email if name == "email_id" else clean_text
        try:
            value = clean(payload.get(name))
        except ValueError as e:
            errs.append(f"{name} {e}")
            value = None
        limit = FIELD_MAX_LENGTHS.get(name)
        if value is not None and limit is not None and len(value) > limit:
            errs.append(f"{name} must be at most {limit} characters")
            value = None
        fields[name] = value
    try:
        fields["gender"] = coerce_gender(payload.get("gender"))
    except ValueError as e:
        errs.append(str(e))
    try:
        fields["date_of_birth"] = parse_date_of_birth(payload.get("date_of_birth"))
    except ValueError as e:
        errs.append(str(e))
    return fields, errs


def parse_customer_id(raw: Any) -> int | None:
    """Positive integer id from a path or body value; None when it is not one."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw > 0 else None
    s = str(raw or "").strip()
    if not s.isdigit():
        return None
    n = int(s)
    return n if n > 0 else None


def _require_customer_id(raw: Any, message: str) -> int:
    cid = parse_customer_id(raw)
    if cid is None:
        raise ValidationError(message)
    return cid


def _is_scalar(v: Any) -> bool:
    return v is None or isinstance(v, (str, int, float, bool))


def _is_change(change: Any) -> bool:
    if not isinstance(change, dict):
        return False
    field = change.get("field")
    if not isinstance(field, str) or not field.strip():
        return False
    return _is_scalar(change.get("old_value")) and _is_scalar(change.get("new_value"))


# ============================================================================
# Record store
# ============================================================================

def get_customer_by_id(s: Session, customer_id: int) -> Customer | None:
    return s.get(Customer, customer_id)


def get_customer_by_unique_id(s: Session, unique_id: str) -> Customer | None:
    return s.query(Customer).filter(Customer.C_unique_id == unique_id).one_or_none()


def find_customer_by_phone(s: Session, phone: str | None) -> Customer | None:
    key = phone_key(phone)
    if not key:
        return None
    return s.query(Customer).filter(Customer.phone_primary_key == key).one_or_none()


def list_recent(s: Session) -> list[Customer]:
    return s.query(Customer).order_by(Customer.last_updated.desc(), Customer.id.desc()).all()


def search_customers(s: Session, query: str | None) -> list[Customer]:
    """
    Substring match over the searchable text fields; an empty query matches every row.
    LIKE wildcards in the query are matched literally.
    """
    q = query or ""
    conds = [getattr(Customer, name).contains(q, autoescape=True) for name in SEARCH_FIELDS]
    return (
        s.query(Customer)
        .filter(or_(*conds))
        .order_by(Customer.last_updated.desc(), Customer.id.desc())
        .all()
    )


def assign_unique_id(s: Session) -> str:
    latest = s.query(Customer.C_unique_id).order_by(Customer.id.desc()).limit(1).scalar()
    return next_unique_id(latest)


def insert_customer(s: Session, fields: dict[str, Any], unique_id: str) -> Customer:
    c = Customer(
        C_unique_id=unique_id,
        phone_primary_key=phone_key(fields["phone_no_primary"]),
        whatsapp_key=phone_key(fields["whatsapp_num"]),
        last_updated=datetime.utcnow(),
        **fields,
    )
    s.add(c)
    s.flush()
    return c


def update_customer_fields(s: Session, customer_id: int, fields: dict[str, Any]) -> bool:
    c = get_customer_by_id(s, customer_id)
    if c is None:
        return False
    for name, value in fields.items():
        setattr(c, name, value)
    c.phone_primary_key = phone_key(fields["phone_no_primary"])
    c.whatsapp_key = phone_key(fields["whatsapp_num"])
    c.last_updated = datetime.utcnow()
    s.flush()
    return True


def delete_customer_row(s: Session, customer_id: int) -> bool:
    deleted = s.query(Customer).filter(Customer.id == customer_id).delete(synchronize_session="fetch")
    return deleted > 0


# ============================================================================
# Lifecycle operations
# ============================================================================

def create_customer(s: Session, payload: dict[str, Any]) -> Customer:
    fields, errs = _contact_fields(payload)
    if not (fields["phone_no_primary"] or "").strip():
        errs.insert(0, PRIMARY_PHONE_REQUIRED)

    with _storage_errors("Error adding new record"):
        conflicts = _conflicts_for(s, fields)
        if conflicts:
            logger.warning("Create rejected: %d conflict(s)", len(conflicts))
            raise _conflict_error(conflicts, errs)
        if errs:
            raise ValidationError("Invalid customer data", errors=errs)

        for attempt in range(1, UNIQUE_ID_ATTEMPTS + 1):
            try:
                unique_id = assign_unique_id(s)
            except ValueError:
                logger.exception("Cannot derive next C_unique_id")
                raise StorageError("Error adding new record")
            try:
                with s.begin_nested():
                    c = insert_customer(s, fields, unique_id)
            except IntegrityError:
                # Either a contact value or the identifier was taken concurrently.
                conflicts = _conflicts_for(s, fields)
                if conflicts:
                    raise _conflict_error(conflicts)
                logger.warning("C_unique_id %s taken (attempt %d/%d); retrying", unique_id, attempt, UNIQUE_ID_ATTEMPTS)
                continue
            logger.info("Created customer %s (id=%s)", c.C_unique_id, c.id)
            return c

    logger.error("Gave up assigning C_unique_id after %d attempts", UNIQUE_ID_ATTEMPTS)
    raise StorageError("Error adding new record")


def update_customer(s: Session, customer_id: Any, payload: dict[str, Any]) -> Customer:
    cid = _require_customer_id(customer_id, "Valid Customer ID is required")
    fields, errs = _contact_fields(payload)

    with _storage_errors("Failed to update customer"):
        conflicts = _conflicts_for(s, fields, exclude_id=cid)
        if conflicts:
            logger.warning("Update of customer %s rejected: %d conflict(s)", cid, len(conflicts))
            raise _conflict_error(conflicts, errs)
        if errs:
            raise ValidationError("Invalid customer data", errors=errs)

        try:
            with s.begin_nested():
                found = update_customer_fields(s, cid, fields)
        except IntegrityError:
            conflicts = _conflicts_for(s, fields, exclude_id=cid)
            if conflicts:
                raise _conflict_error(conflicts)
            raise
        if not found:
            raise NotFoundError("Customer not found")

        c = get_customer_by_id(s, cid)
        logger.info("Updated customer %s (id=%s)", c.C_unique_id, cid)
        return c


def view_customer(s: Session, unique_id: str) -> Customer:
    with _storage_errors("Failed to fetch customer details"):
        c = get_customer_by_unique_id(s, unique_id)
    if c is None:
        raise NotFoundError("Customer not found")
    return c


def submit_history(s: Session, payload: dict[str, Any]) -> list[CustomerUpdate]:
    """
    Append the submitted {field, old_value, new_value} changes for one customer and
    return that customer's full history, newest first.
    """
    cid = parse_customer_id(payload.get("customerId"))
    unique_id = payload.get("C_unique_id")
    changes = payload.get("changes")
    if (
        cid is None
        or not isinstance(unique_id, str)
        or not unique_id.strip()
        or not isinstance(changes, list)
        or not changes
        or not all(_is_change(ch) for ch in changes)
    ):
        raise ValidationError("Invalid request data")

    with _storage_errors("Failed to log change history"):
        c = get_customer_by_id(s, cid)
        if c is None:
            raise NotFoundError("Customer not found")
        if c.C_unique_id != unique_id:
            raise ValidationError("C_unique_id does not match customer")
        audit.append_changes(s, customer_id=cid, unique_id=unique_id, changes=changes)
        return audit.list_changes(s, cid)


def fetch_history(s: Session, customer_id: Any) -> list[CustomerUpdate]:
    """
    History of an existing customer, newest first. A customer without history yields
    an empty list; an unknown customer is NotFoundError.
    """
    cid = _require_customer_id(customer_id, "Valid Customer ID is required")
    with _storage_errors("Failed to fetch change history"):
        if get_customer_by_id(s, cid) is None:
            raise NotFoundError("Customer not found")
        return audit.list_changes(s, cid)


def delete_customer(s: Session, customer_id: Any) -> None:
    """
    Remove the customer's history and then the customer row. Both deletes run in the
    caller's transaction, so a failure part-way leaves nothing behind once rolled back.
    """
    cid = _require_customer_id(customer_id, "Valid Customer ID is required")
    with _storage_errors("Failed to delete customer and updates"):
        if get_customer_by_id(s, cid) is None:
            raise NotFoundError("Customer not found")
        removed = audit.delete_changes(s, cid)
        delete_customer_row(s, cid)
        s.flush()
    logger.info("Deleted customer id=%s with %d history entries", cid, removed)
