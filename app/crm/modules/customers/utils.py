from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any

from app.crm.constants import DEFAULT_GENDER, PHONE_KEY_DIGITS, UNIQUE_ID_PREFIX, VALID_GENDERS


def normalize_phone(number: str | None) -> str:
    """
    Canonical comparison key for a phone number.

    Strips every non-digit character and keeps the last 10 digits, so that
    "+91 98765-43210", "098765 43210" and "9876543210" compare equal.

    Examples:
        >>> normalize_phone("+91 98765-43210")
        '9876543210'
        >>> normalize_phone("12-34")
        '1234'
        >>> normalize_phone(None)
        ''

    The key is for comparison only; the raw string is what gets stored in the
    phone columns.
    """
    if not number:
        return ""
    digits = re.sub(r"\D", "", str(number))
    return digits[-PHONE_KEY_DIGITS:]


def phone_key(number: str | None) -> str | None:
    """Comparison key as stored in the key columns (None when there are no digits)."""
    return normalize_phone(number) or None


def next_unique_id(latest: str | None) -> str:
    """
    C_unique_id that follows `latest` (the id of the most recently created customer).

        >>> next_unique_id("MC_115")
        'MC_116'
        >>> next_unique_id(None)
        'MC_1'
    """
    if not latest:
        return f"{UNIQUE_ID_PREFIX}_1"
    _, sep, suffix = latest.partition("_")
    if not sep:
        raise ValueError(f"Malformed C_unique_id: {latest!r}")
    try:
        n = int(suffix)
    except ValueError:
        raise ValueError(f"Malformed C_unique_id: {latest!r}")
    return f"{UNIQUE_ID_PREFIX}_{n + 1}"


def coerce_gender(value: Any) -> str:
    """
    Missing/blank gender falls back to "male"; anything else must be one of
    male|female|other (case-insensitive) or ValueError is raised.
    """
    v = str(value or "").strip().lower()
    if not v:
        return DEFAULT_GENDER
    if v not in VALID_GENDERS:
        raise ValueError(f"Gender must be one of: {', '.join(sorted(VALID_GENDERS))}.")
    return v


def parse_date_of_birth(value: Any) -> date | None:
    """Accept YYYY-MM-DD or a full ISO datetime; keep the calendar date only."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        if len(s) == 10:
            return date.fromisoformat(s)
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        raise ValueError("Date of birth must be a date (YYYY-MM-DD).")
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.date()


def clean_text(value: Any) -> str | None:
    """Optional text field: None stays None, scalars are stringified, lists/objects are rejected."""
    if value is None:
        return None
    if isinstance(value, (list, dict)):
        raise ValueError("must be a text value")
    return str(value)


def clean_email(value: Any) -> str | None:
    # Email is compared exactly; only blank becomes NULL.
    s = clean_text(value)
    if s is None:
        return None
    return s if s.strip() else None
