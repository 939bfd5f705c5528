from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from app.crm.models import CustomerUpdate

logger = logging.getLogger(__name__)


def _value(v: Any) -> str | None:
    if v is None or v == "":
        return None
    return str(v)


def append_changes(
    s: Session,
    *,
    customer_id: int,
    unique_id: str,
    changes: Iterable[Mapping[str, Any]],
) -> list[CustomerUpdate]:
    """
    Append-only change log helper.
    One row per {field, old_value, new_value}; changed_at is stamped here, never taken from the caller.
    """
    rows: list[CustomerUpdate] = []
    for change in changes:
        row = CustomerUpdate(
            customer_id=customer_id,
            C_unique_id=unique_id,
            field=str(change["field"]),
            old_value=_value(change.get("old_value")),
            new_value=_value(change.get("new_value")),
            changed_at=datetime.utcnow(),
        )
        s.add(row)
        rows.append(row)
    s.flush()
    logger.info("Recorded %d change(s) for customer %s (%s)", len(rows), customer_id, unique_id)
    return rows


def list_changes(s: Session, customer_id: int) -> list[CustomerUpdate]:
    # Same-instant rows fall back to id order, newest insert first.
    return (
        s.query(CustomerUpdate)
        .filter(CustomerUpdate.customer_id == customer_id)
        .order_by(CustomerUpdate.changed_at.desc(), CustomerUpdate.id.desc())
        .all()
    )


def delete_changes(s: Session, customer_id: int) -> int:
    return (
        s.query(CustomerUpdate)
        .filter(CustomerUpdate.customer_id == customer_id)
        .delete(synchronize_session=False)
    )
