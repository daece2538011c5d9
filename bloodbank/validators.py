"""Normalisation of user input shared by the ledger, lifecycle and registry."""
from datetime import date, datetime

from bloodbank.errors import ValidationError

BLOOD_GROUPS = ["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]


def normalize_bg(bg):
    bg = (bg or "").strip().upper()
    if bg not in BLOOD_GROUPS:
        raise ValidationError("Invalid blood group. Allowed: " + ", ".join(BLOOD_GROUPS))
    return bg


def parse_units(value, field="units"):
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a positive integer")
    try:
        units = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a positive integer")
    if isinstance(value, float) and value != units:
        raise ValidationError(f"{field} must be a positive integer")
    if units <= 0:
        raise ValidationError(f"{field} must be positive")
    return units


def parse_id(value, field="id"):
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")


def parse_date(value, field="date"):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        # accepts plain dates and the date part of ISO timestamps
        return datetime.strptime(str(value or "")[:10], "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"{field} must be YYYY-MM-DD")


def require_text(value, field):
    text = (value or "").strip() if isinstance(value, str) else ""
    if not text:
        raise ValidationError(f"{field} is required")
    return text
