"""
Unit tests for customer value helpers.

Tests cover:
- Phone comparison keys (last 10 digits)
- C_unique_id sequencing
- Gender coercion
- Date of birth parsing
"""

from datetime import date, datetime

import pytest
from app.crm.modules.customers.utils import (
    clean_email,
    clean_text,
    coerce_gender,
    next_unique_id,
    normalize_phone,
    parse_date_of_birth,
    phone_key,
)


class TestNormalizePhone:
    """Tests for normalize_phone()"""

    def test_strips_separators_and_country_code(self):
        assert normalize_phone("+91 98765-43210") == "9876543210"
        assert normalize_phone("(987) 654-3210") == "9876543210"
        assert normalize_phone("0091.9876.543.210") == "9876543210"

    def test_plain_ten_digits_unchanged(self):
        assert normalize_phone("9876543210") == "9876543210"

    def test_short_numbers_keep_all_digits(self):
        assert normalize_phone("12-34") == "1234"
        assert normalize_phone("x") == ""

    def test_empty_or_absent(self):
        assert normalize_phone("") == ""
        assert normalize_phone(None) == ""

    def test_output_is_last_ten_digits_only(self):
        for raw in ("+1 (555) 010-9999 ext 12", "abc123def", "44 20 7946 0958", "---"):
            out = normalize_phone(raw)
            digits = "".join(ch for ch in raw if ch.isdigit())
            assert len(out) <= 10
            assert out.isdigit() or out == ""
            assert out == digits[-10:]

    def test_phone_key_uses_none_for_empty(self):
        assert phone_key("") is None
        assert phone_key(None) is None
        assert phone_key("n/a") is None
        assert phone_key("+91 98765-43210") == "9876543210"


class TestNextUniqueId:
    """Tests for next_unique_id()"""

    def test_first_customer(self):
        assert next_unique_id(None) == "MC_1"
        assert next_unique_id("") == "MC_1"

    def test_increments_suffix(self):
        assert next_unique_id("MC_1") == "MC_2"
        assert next_unique_id("MC_115") == "MC_116"
        assert next_unique_id("MC_999") == "MC_1000"

    def test_malformed_suffix(self):
        with pytest.raises(ValueError):
            next_unique_id("MC115")
        with pytest.raises(ValueError):
            next_unique_id("MC_abc")


class TestCoerceGender:
    """Tests for coerce_gender()"""

    def test_valid_values(self):
        assert coerce_gender("male") == "male"
        assert coerce_gender("female") == "female"
        assert coerce_gender("other") == "other"

    def test_case_and_whitespace(self):
        assert coerce_gender(" Female ") == "female"

    def test_missing_defaults_to_male(self):
        assert coerce_gender(None) == "male"
        assert coerce_gender("") == "male"
        assert coerce_gender("   ") == "male"

    def test_unknown_value_rejected(self):
        with pytest.raises(ValueError):
            coerce_gender("unknown")


class TestParseDateOfBirth:
    """Tests for parse_date_of_birth()"""

    def test_iso_date(self):
        assert parse_date_of_birth("1990-05-17") == date(1990, 5, 17)

    def test_iso_datetime_keeps_utc_date(self):
        assert parse_date_of_birth("1990-05-17T10:30:00") == date(1990, 5, 17)
        assert parse_date_of_birth("1990-05-17T23:30:00-02:00") == date(1990, 5, 18)
        assert parse_date_of_birth("1990-05-17T10:30:00Z") == date(1990, 5, 17)

    def test_date_objects(self):
        assert parse_date_of_birth(date(2000, 1, 1)) == date(2000, 1, 1)
        assert parse_date_of_birth(datetime(2000, 1, 1, 12, 0)) == date(2000, 1, 1)

    def test_absent(self):
        assert parse_date_of_birth(None) is None
        assert parse_date_of_birth("") is None

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_date_of_birth("17/05/1990")


def test_clean_email_only_blanks_become_null():
    assert clean_email(None) is None
    assert clean_email("  ") is None
    assert clean_email("Ann@Example.com") == "Ann@Example.com"


def test_clean_text_rejects_lists_and_objects():
    assert clean_text(None) is None
    assert clean_text(42) == "42"
    assert clean_text("") == ""
    with pytest.raises(ValueError):
        clean_text(["x"])
    with pytest.raises(ValueError):
        clean_email({"a": "b"})


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
