#!/usr/bin/env python
"""
Contact conflict report / comparison-key backfill.

Rows loaded outside the API (legacy imports, manual SQL) can share a phone number or
email and can be missing the normalized comparison keys that conflict detection uses.

Usage:
    # List customers sharing a normalized primary phone, WhatsApp number or email
    python scripts/find_contact_conflicts.py --list

    # Fill phone_primary_key / whatsapp_key from the raw phone columns.
    # A key already held by an older customer is left NULL and reported.
    python scripts/find_contact_conflicts.py --backfill-keys

Environment:
    DATABASE_URL: database connection string
"""
from __future__ import annotations

import argparse
import sys
from collections import defaultdict
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.crm.modules.customers.models import Customer
from app.crm.modules.customers.utils import normalize_phone, phone_key
from scripts._db_utils import script_session


def collect_groups(customers: list[Customer]) -> dict[str, dict[str, list[str]]]:
    """
    Colliding groups per field: {"phone_no_primary": {"9876543210": ["MC_1", "MC_7"]}, ...}.
    Only values shared by two or more customers are returned.
    """
    groups: dict[str, dict[str, list[str]]] = {
        "phone_no_primary": defaultdict(list),
        "whatsapp_num": defaultdict(list),
        "email_id": defaultdict(list),
    }
    for c in customers:
        primary = normalize_phone(c.phone_no_primary)
        if primary:
            groups["phone_no_primary"][primary].append(c.C_unique_id)
        whatsapp = normalize_phone(c.whatsapp_num)
        if whatsapp:
            groups["whatsapp_num"][whatsapp].append(c.C_unique_id)
        if c.email_id:
            groups["email_id"][c.email_id].append(c.C_unique_id)
    return {
        field: {value: ids for value, ids in by_value.items() if len(ids) > 1}
        for field, by_value in groups.items()
    }


def list_conflicts() -> int:
    with script_session() as s:
        customers = s.query(Customer).order_by(Customer.id.asc()).all()
        groups = collect_groups(customers)

    total = sum(len(v) for v in groups.values())
    if not total:
        print("No conflicting contact values found.")
        return 0

    print(f"Found {total} shared contact value(s):")
    for field, by_value in groups.items():
        if not by_value:
            continue
        print(f"\n=== {field} ===")
        for value, ids in sorted(by_value.items()):
            print(f"  {value}: {', '.join(ids)}")
    return total


def backfill_keys() -> None:
    updated = 0
    skipped: list[str] = []
    with script_session() as s:
        customers = s.query(Customer).order_by(Customer.id.asc()).all()
        # Clear first so the unique keys can be reassigned in id order.
        for c in customers:
            c.phone_primary_key = None
            c.whatsapp_key = None
        s.flush()

        claimed: dict[str, set[str]] = {"phone_primary_key": set(), "whatsapp_key": set()}
        for c in customers:
            for attr, raw in (("phone_primary_key", c.phone_no_primary), ("whatsapp_key", c.whatsapp_num)):
                key = phone_key(raw)
                if key is None:
                    continue
                if key in claimed[attr]:
                    skipped.append(f"{c.C_unique_id}.{attr}={key}")
                    continue
                claimed[attr].add(key)
                setattr(c, attr, key)
                updated += 1

    print(f"Backfilled {updated} comparison key(s).")
    if skipped:
        print("Left NULL (value already held by an older customer):")
        for item in skipped:
            print(f"  {item}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Report or repair contact conflicts between customers")
    parser.add_argument("--list", action="store_true", help="List shared phone numbers and emails")
    parser.add_argument("--backfill-keys", action="store_true", help="Recompute normalized phone keys")
    args = parser.parse_args()

    if args.backfill_keys:
        backfill_keys()
    elif args.list:
        list_conflicts()
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
