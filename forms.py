from __future__ import annotations

import re
from typing import Any

from errors import ValidationError
from logic import GENDERS, PROVINCES, ROOM_TYPES, SPECIALIZATIONS, _to_decimal

ARABIC_NAME_RE = re.compile(r"^[\u0600-\u06FF\s]+$")
NATIONAL_ID_RE = re.compile(r"^[0-9]{10}$")
REPEATED_DIGIT_RE = re.compile(r"^(\d)\1{9}$")
PHONE_RE = re.compile(r"^05[0-9]{8}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
GPA_FORMAT_RE = re.compile(r"^\d+(\.\d{1,2})?$")

UNIVERSITY_EMAIL_DOMAIN = "@nu.edu.sa"
MIN_NAME_LENGTH = 10
HIGH_GPA_SPECIALIZATIONS = {"طب وجراحة", "صيدلة", "هندسة حاسب"}
HIGH_GPA_MINIMUM = 4.0

FORM_FIELDS = (
    "full_name",
    "national_id",
    "phone",
    "email",
    "gender",
    "province",
    "gpa",
    "specialization",
    "room_type",
)


def validate_full_name(value: str) -> str | None:
    if not value or len(value.strip()) < MIN_NAME_LENGTH:
        return f"Full name must be at least {MIN_NAME_LENGTH} characters."
    if not ARABIC_NAME_RE.match(value):
        return "Full name must be written in Arabic letters."
    return None


def validate_national_id(value: str) -> str | None:
    if not NATIONAL_ID_RE.match(value or ""):
        return "National ID must be exactly 10 digits."
    if REPEATED_DIGIT_RE.match(value):
        return "National ID is not valid."
    return None


def validate_phone(value: str) -> str | None:
    if not PHONE_RE.match(value or ""):
        return "Phone number must start with 05 and have 10 digits."
    return None


def validate_email(value: str) -> str | None:
    if not EMAIL_RE.match(value or ""):
        return "Email address is not valid."
    return None


def validate_gpa(value: str) -> str | None:
    if value is None or not str(value).strip():
        return "GPA is required."
    raw = str(value).strip()
    try:
        gpa = float(raw)
    except ValueError:
        return "GPA must be a number."
    if gpa < 0 or gpa > 5:
        return "GPA must be between 0 and 5."
    if not GPA_FORMAT_RE.match(raw):
        return "GPA must have at most two decimals (for example 4.50)."
    return None


def _validate_choice(value: str, options: list[str], label: str) -> str | None:
    if not value:
        return f"Please choose a {label}."
    if value not in options:
        return f"Unknown {label}: {value}"
    return None


def email_notice(value: str) -> str | None:
    if value and "@" in value and UNIVERSITY_EMAIL_DOMAIN not in value:
        return f"A university address ({UNIVERSITY_EMAIL_DOMAIN}) is preferred."
    return None


def format_phone_number(value: str) -> str:
    digits = re.sub(r"\D", "", value or "")[:10]
    if digits and not digits.startswith("05"):
        digits = "05" + digits[2:]
    return digits


def clean_form(raw: dict[str, Any]) -> dict[str, Any]:
    cleaned = {name: "" if raw.get(name) is None else str(raw.get(name)).strip() for name in FORM_FIELDS}
    if not cleaned["room_type"]:
        cleaned["room_type"] = "standard"
    return cleaned


def validate_registration(
    raw: dict[str, Any],
    existing_national_ids: set[str] | None = None,
) -> tuple[dict[str, Any], dict[str, str]]:
    """Validate a raw registration form.

    Returns the cleaned application (GPA as a float when it parses) and a
    mapping of field name to error message; an empty mapping means valid.
    """
    cleaned = clean_form(raw)
    errors: dict[str, str] = {}

    checks = {
        "full_name": validate_full_name(cleaned["full_name"]),
        "national_id": validate_national_id(cleaned["national_id"]),
        "phone": validate_phone(cleaned["phone"]),
        "email": validate_email(cleaned["email"]),
        "gpa": validate_gpa(cleaned["gpa"]),
        "gender": _validate_choice(cleaned["gender"], GENDERS, "gender"),
        "province": _validate_choice(cleaned["province"], PROVINCES, "province"),
        "specialization": _validate_choice(cleaned["specialization"], SPECIALIZATIONS, "specialization"),
        "room_type": _validate_choice(cleaned["room_type"], ROOM_TYPES, "room type"),
    }
    errors.update({name: message for name, message in checks.items() if message})

    if "gpa" not in errors:
        cleaned["gpa"] = float(_to_decimal(cleaned["gpa"]))
        if cleaned["specialization"] in HIGH_GPA_SPECIALIZATIONS and cleaned["gpa"] < HIGH_GPA_MINIMUM:
            errors["specialization"] = (
                f"{cleaned['specialization']} requires a GPA of at least {HIGH_GPA_MINIMUM:.2f}."
            )

    if existing_national_ids and cleaned["national_id"] in existing_national_ids:
        errors.setdefault("national_id", "This student is already registered.")

    return cleaned, errors


def require_valid(raw: dict[str, Any], existing_national_ids: set[str] | None = None) -> dict[str, Any]:
    cleaned, errors = validate_registration(raw, existing_national_ids)
    if errors:
        raise ValidationError("The registration form has errors.", errors)
    return cleaned
