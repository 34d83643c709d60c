"""
Field-level validation for incoming payloads.

Every validator returns a list of FieldIssue (empty when the payload is
fine) instead of raising, so callers can report every failing field at
once and the rules can be unit tested without the HTTP layer.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from schemas import CATEGORIES, ORDER_STATUSES, PAYMENT_METHODS, QUALITY_GRADES, SELF_SERVICE_ROLES, UNITS, Location

PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")
PHONE_PATTERN = re.compile(r"^(\+251|0)?[97]\d{8}$")

PRODUCT_FIELDS = (
    "name", "description", "category", "price", "unit", "minimum_order", "available_quantity",
    "images", "location", "harvest_date", "expiry_date", "quality_grade", "certifications",
)
PRODUCT_REQUIRED = ("name", "description", "category", "price", "unit", "available_quantity")


class FieldIssue(BaseModel):
    field: str
    message: str

    def to_dict(self):
        return self.model_dump()


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def is_valid_email(email: str) -> bool:
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def _check_length(issues, field, value, low, high, message):
    text = (value or "").strip() if isinstance(value, str) or value is None else None
    if text is None or not (low <= len(text) <= high):
        issues.append(FieldIssue(field=field, message=message))


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_integer(value) -> bool:
    if isinstance(value, bool):
        return False
    return isinstance(value, int) or (isinstance(value, float) and value.is_integer())


def parse_date(value) -> Optional[datetime]:
    """Accept datetimes or ISO-8601 strings; returns None for anything else."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def validate_registration(payload) -> List[FieldIssue]:
    issues: List[FieldIssue] = []
    _check_length(issues, "name", payload.name, 2, 50, "Name must be between 2 and 50 characters")
    if not is_valid_email(normalize_email(payload.email)):
        issues.append(FieldIssue(field="email", message="Please provide a valid email"))
    password = payload.password or ""
    if len(password) < 6:
        issues.append(FieldIssue(field="password", message="Password must be at least 6 characters long"))
    elif not PASSWORD_PATTERN.match(password):
        issues.append(FieldIssue(
            field="password",
            message="Password must contain at least one uppercase letter, one lowercase letter, and one number",
        ))
    if payload.role is not None and payload.role not in SELF_SERVICE_ROLES:
        issues.append(FieldIssue(field="role", message="Role must be either customer or wholesaler"))
    if payload.phone and not PHONE_PATTERN.match(payload.phone):
        issues.append(FieldIssue(field="phone", message="Please provide a valid phone number"))
    return issues


def validate_login(payload) -> List[FieldIssue]:
    issues = []
    if not is_valid_email(normalize_email(payload.email)):
        issues.append(FieldIssue(field="email", message="Please provide a valid email"))
    if not payload.password:
        issues.append(FieldIssue(field="password", message="Password is required"))
    return issues


def validate_profile_update(payload) -> List[FieldIssue]:
    issues = []
    if payload.name is not None:
        _check_length(issues, "name", payload.name, 2, 50, "Name must be between 2 and 50 characters")
    if payload.phone is not None and not PHONE_PATTERN.match(payload.phone):
        issues.append(FieldIssue(field="phone", message="Please provide a valid phone number"))
    return issues


def validate_product(data: Dict[str, Any], partial: bool = False) -> List[FieldIssue]:
    """
    Check a product payload.

    With partial=True only the supplied fields are checked (updates).
    The owning wholesaler can never be supplied: it is taken from the
    caller on create and is immutable afterwards.
    """
    issues: List[FieldIssue] = []

    def supplied(field):
        return field in data or (not partial and field in PRODUCT_REQUIRED)

    if "wholesaler" in data:
        issues.append(FieldIssue(field="wholesaler", message="Product owner cannot be set or changed"))
    unknown = sorted(set(data) - set(PRODUCT_FIELDS) - {"wholesaler", "is_active"})
    for field in unknown:
        issues.append(FieldIssue(field=field, message="Unknown field"))

    if supplied("name"):
        _check_length(issues, "name", data.get("name"), 2, 100,
                      "Product name must be between 2 and 100 characters")
    if supplied("description"):
        _check_length(issues, "description", data.get("description"), 10, 1000,
                      "Description must be between 10 and 1000 characters")
    if supplied("category") and data.get("category") not in CATEGORIES:
        issues.append(FieldIssue(field="category", message="Invalid category"))
    if supplied("price"):
        price = data.get("price")
        if not _is_number(price) or price < 0:
            issues.append(FieldIssue(field="price", message="Price must be a positive number"))
    if supplied("unit") and data.get("unit") not in UNITS:
        issues.append(FieldIssue(field="unit", message="Invalid unit"))
    if "minimum_order" in data:
        minimum = data.get("minimum_order")
        if not _is_integer(minimum) or minimum < 1:
            issues.append(FieldIssue(field="minimum_order", message="Minimum order must be at least 1"))
    if supplied("available_quantity"):
        qty = data.get("available_quantity")
        if not _is_integer(qty) or qty < 0:
            issues.append(FieldIssue(field="available_quantity",
                                     message="Available quantity must be a positive number"))
    if "quality_grade" in data and data.get("quality_grade") not in QUALITY_GRADES:
        issues.append(FieldIssue(field="quality_grade", message="Invalid quality grade"))
    for field in ("images", "certifications"):
        if field in data:
            value = data.get(field)
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                issues.append(FieldIssue(field=field, message=f"{field} must be a list of strings"))
    if "is_active" in data and not isinstance(data.get("is_active"), bool):
        issues.append(FieldIssue(field="is_active", message="is_active must be a boolean"))
    if data.get("location") is not None:
        try:
            Location.model_validate(data["location"])
        except SchemaError as exc:
            for err in exc.errors():
                path = ".".join(["location", *(str(p) for p in err["loc"])])
                issues.append(FieldIssue(field=path, message=err["msg"]))

    dates = {}
    for field in ("harvest_date", "expiry_date"):
        if data.get(field) is not None:
            dates[field] = parse_date(data[field])
            if dates[field] is None:
                issues.append(FieldIssue(field=field, message="Must be an ISO-8601 date"))
    if dates.get("harvest_date") and dates.get("expiry_date") and dates["expiry_date"] <= dates["harvest_date"]:
        issues.append(FieldIssue(field="expiry_date", message="Expiry date must be after harvest date"))
    return issues


def validate_order_status(status: Optional[str]) -> List[FieldIssue]:
    if status not in ORDER_STATUSES:
        return [FieldIssue(field="status", message="Status must be one of " + ", ".join(ORDER_STATUSES))]
    return []


def validate_payment_method(method: Optional[str]) -> List[FieldIssue]:
    if method is not None and method not in PAYMENT_METHODS:
        return [FieldIssue(field="payment_method", message="Payment method must be one of " + ", ".join(PAYMENT_METHODS))]
    return []
