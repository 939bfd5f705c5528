"""
Central constants for the CRM application.
"""
from __future__ import annotations

# Public customer identifier: MC_<n>
UNIQUE_ID_PREFIX = "MC"

# Attempts at read-increment-insert before giving up on a racing C_unique_id
UNIQUE_ID_ATTEMPTS = 3

# Digits kept by the phone comparison key
PHONE_KEY_DIGITS = 10

VALID_GENDERS = frozenset({"male", "female", "other"})
DEFAULT_GENDER = "male"

# Every mutable contact field; update replaces all of them
CONTACT_FIELDS = (
    "first_name",
    "middle_name",
    "last_name",
    "gender",
    "phone_no_primary",
    "whatsapp_num",
    "phone_no_secondary",
    "email_id",
    "address",
    "country",
    "company_name",
    "contact_type",
    "source",
    "disposition",
    "agent_name",
    "comment",
    "date_of_birth",
)

# Raw values longer than their column are rejected before they reach the database
FIELD_MAX_LENGTHS = {
    "phone_no_primary": 64,
    "whatsapp_num": 64,
    "phone_no_secondary": 64,
    "email_id": 320,
}

# Fields matched by free-text search
SEARCH_FIELDS = (
    "first_name",
    "middle_name",
    "last_name",
    "gender",
    "phone_no_primary",
    "whatsapp_num",
    "phone_no_secondary",
    "email_id",
    "C_unique_id",
    "agent_name",
    "address",
    "country",
    "contact_type",
    "company_name",
    "disposition",
)

PRIMARY_PHONE_REQUIRED = "Primary phone number is required."
PRIMARY_PHONE_IN_USE = "The phone number in the Primary field is already in use!! ({unique_id})"
WHATSAPP_IN_USE = "The phone number in the Whatsapp field is already in use!! ({unique_id})"
EMAIL_IN_USE = "The email address is already in use!! ({unique_id})"
CONFLICT_MESSAGE = "Phone number or email already in use"
