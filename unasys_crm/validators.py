"""
Payload validation helpers used before any write.

This module provides:
- Required-field, email, phone and enumeration checks
- Date parsing (ISO or DD/MM/YYYY) and conversion to ISO dates
- Normalization of optional text fields (empty string -> None)

Every validator returns a new, normalized payload and never mutates its input.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Dict, Iterable

from .exceptions import (
    DateParseError,
    InvalidAmountError,
    InvalidEmailError,
    InvalidPhoneError,
    InvalidStatusError,
    MissingFieldError,
    ValidationError,
)
from .models import (
    CLIENT_STATUSES,
    CLIENT_TYPES,
    NOTIFICATION_TYPES,
    PROPOSAL_STATUSES,
    TASK_PRIORITIES,
    TASK_STATUSES,
)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Supported date formats for parsing user input
DATE_FORMATS = [
    "%Y-%m-%d",               # 2025-06-01
    "%Y-%m-%dT%H:%M:%S",      # 2025-06-01T10:00:00
    "%Y-%m-%d %H:%M",         # 2025-06-01 10:00
    "%d/%m/%Y",               # 01/06/2025
    "%d/%m/%Y %H:%M",         # 01/06/2025 10:00
    "%d-%m-%Y",               # 01-06-2025
]

ACCEPTED_DATE_HINTS = ["YYYY-MM-DD", "DD/MM/YYYY", "DD-MM-YYYY"]

CLIENT_TEXT_FIELDS = [
    "email", "phone", "document", "address", "city",
    "state", "zip_code", "category", "notes",
]
PROPOSAL_TEXT_FIELDS = ["description", "notes"]
TASK_TEXT_FIELDS = ["description", "assigned_to", "client_id", "proposal_id"]

# Columns the caller may never set directly
PROTECTED_FIELDS = ["id", "company_id", "created_by", "created_at", "updated_at"]


# ============================================================
# DATES
# ============================================================


def parse_date(value: Any) -> date:
    """
    Parse a date given as a date, datetime or string.

    Raises:
        DateParseError: If the value matches no supported format.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise DateParseError(str(value), ACCEPTED_DATE_HINTS)

    text = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise DateParseError(text, ACCEPTED_DATE_HINTS)


def format_date_to_iso(value: Any) -> str:
    """Convert any supported date input to ``YYYY-MM-DD``."""
    return parse_date(value).isoformat()


# ============================================================
# GENERIC CHECKS
# ============================================================


def _ensure_keys(payload: Dict[str, Any], required_keys: list[str], entity: str) -> None:
    for key in required_keys:
        value = payload.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise MissingFieldError(key, entity)


def _blank_to_none(payload: Dict[str, Any], fields: Iterable[str]) -> None:
    for key in fields:
        if key not in payload:
            continue
        value = payload[key]
        # JSON input may carry numbers for text columns (phone, zip_code)
        if isinstance(value, int) and not isinstance(value, bool):
            value = str(value)
        if isinstance(value, str):
            payload[key] = value.strip() or None


def _check_choice(payload: Dict[str, Any], field: str, choices: list[str]) -> None:
    if field in payload and payload[field] is not None:
        value = str(payload[field]).strip().lower()
        if value not in choices:
            raise InvalidStatusError(str(payload[field]), choices, field=field)
        payload[field] = value


def _check_amount(payload: Dict[str, Any], field: str, *, allow_zero: bool = True) -> None:
    if field not in payload or payload[field] is None:
        return
    try:
        value = float(payload[field])
    except (TypeError, ValueError):
        raise InvalidAmountError(field, "doit être un nombre")
    if value < 0 or (value == 0 and not allow_zero):
        raise InvalidAmountError(field)
    payload[field] = value


def _check_date(payload: Dict[str, Any], field: str) -> None:
    if field in payload and payload[field] is not None:
        try:
            payload[field] = format_date_to_iso(payload[field])
        except DateParseError as e:
            raise ValidationError(str(e.message), field=field)


def validate_email(email: Any) -> None:
    if email is None or email == "":
        return
    if not isinstance(email, str) or not EMAIL_RE.match(email):
        raise InvalidEmailError(str(email))


def validate_phone(phone: Any, field_name: str = "phone") -> None:
    """Basic phone check: digits, optional leading +, common separators."""
    if phone is None or phone == "":
        return
    if not isinstance(phone, str):
        raise InvalidPhoneError(str(phone), field_name)
    cleaned = re.sub(r"[\s.\-()]", "", phone)
    if not re.match(r"^\+?\d{6,15}$", cleaned):
        raise InvalidPhoneError(phone, field_name)


def _strip_protected(payload: Dict[str, Any]) -> None:
    for key in PROTECTED_FIELDS:
        payload.pop(key, None)


# ============================================================
# ENTITY VALIDATORS
# ============================================================


def validate_client_payload(data: Dict[str, Any], is_update: bool = False) -> Dict[str, Any]:
    """
    Validate and normalize a client create or update payload.

    Raises:
        ValidationError: If validation fails.
    """
    payload = dict(data)
    _strip_protected(payload)

    if not is_update:
        _ensure_keys(payload, ["name"], entity="client")
        payload.setdefault("type", "individual")
        payload.setdefault("status", "active")

    if "name" in payload:
        name = str(payload["name"] or "").strip()
        if len(name) < 2:
            raise ValidationError("Le nom doit contenir au moins 2 caractères", field="name")
        payload["name"] = name

    _blank_to_none(payload, CLIENT_TEXT_FIELDS)
    _check_choice(payload, "type", CLIENT_TYPES)
    _check_choice(payload, "status", CLIENT_STATUSES)
    validate_email(payload.get("email"))
    validate_phone(payload.get("phone"))
    return payload


def validate_proposal_items(items: Any) -> list[Dict[str, Any]]:
    """Validate proposal lines (description, quantity > 0, unit_price >= 0)."""
    if not isinstance(items, list):
        raise ValidationError("Les lignes doivent être une liste", field="items")

    cleaned = []
    for index, raw in enumerate(items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"Ligne {index} invalide", field="items")
        item = dict(raw)
        if not str(item.get("description") or "").strip():
            raise MissingFieldError("description", f"la ligne {index}")
        item.setdefault("quantity", 1)
        item.setdefault("unit_price", 0)
        _check_amount(item, "quantity", allow_zero=False)
        _check_amount(item, "unit_price")
        cleaned.append(item)
    return cleaned


def validate_proposal_payload(data: Dict[str, Any], is_update: bool = False) -> Dict[str, Any]:
    """
    Validate and normalize a proposal create or update payload.

    Raises:
        ValidationError: If validation fails.
    """
    payload = dict(data)
    _strip_protected(payload)
    payload.pop("total_amount", None)  # Always computed from the items

    if not is_update:
        _ensure_keys(payload, ["client_id", "title"], entity="proposition")
        payload.setdefault("status", "draft")
        payload.setdefault("items", [])

    if "items" in payload:
        payload["items"] = validate_proposal_items(payload["items"])

    _blank_to_none(payload, PROPOSAL_TEXT_FIELDS)
    _check_choice(payload, "status", PROPOSAL_STATUSES)
    _check_amount(payload, "discount")
    _check_date(payload, "valid_until")
    return payload


def validate_task_payload(data: Dict[str, Any], is_update: bool = False) -> Dict[str, Any]:
    """
    Validate and normalize a task create or update payload.

    Raises:
        ValidationError: If validation fails.
    """
    payload = dict(data)
    _strip_protected(payload)

    if not is_update:
        _ensure_keys(payload, ["title"], entity="tâche")
        payload.setdefault("status", "todo")
        payload.setdefault("priority", "medium")

    _blank_to_none(payload, TASK_TEXT_FIELDS)
    _check_choice(payload, "status", TASK_STATUSES)
    _check_choice(payload, "priority", TASK_PRIORITIES)
    _check_date(payload, "due_date")
    return payload


def validate_message_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a notification message before sending it."""
    payload = dict(data)
    _strip_protected(payload)
    _ensure_keys(payload, ["user_id", "title", "message"], entity="message")
    payload.setdefault("type", "info")
    _check_choice(payload, "type", NOTIFICATION_TYPES)
    if payload.get("data") is not None and not isinstance(payload["data"], dict):
        raise ValidationError("Les données doivent être un objet JSON", field="data")
    return payload
