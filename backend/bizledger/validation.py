from __future__ import annotations
from datetime import date, datetime
from bizledger.time_utils import parse_iso_date, parse_iso_datetime
from bizledger.money_utils import to_decimal

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Largest amount a Numeric(12, 2) column can hold
MAX_AMOUNT = to_decimal("9999999999.99")


class DomainError(Exception):
    """Base for errors that map to a client-facing HTTP status."""
    status_code = 400


class ValidationError(DomainError, ValueError):
    """400-level input problem (missing field, amount out of bounds, bad dates)."""
    status_code = 400


class NotFoundError(DomainError, LookupError):
    """404-level: referenced parent/employee/material id is absent."""
    status_code = 404


class ConflictError(DomainError, ValueError):
    """409-level business rule conflict (e.g., duplicate document number)."""
    status_code = 409


class InvalidStateError(ConflictError):
    """409-level: requested status transition is not allowed."""


class RemoteError(DomainError, RuntimeError):
    """503-level: the underlying storage call failed."""
    status_code = 503


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - non_negative_fields: numeric fields that must be >= 0
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    non_negative_fields: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            if 'e' in stripped.lower() or '.' in stripped:
                raise ValidationError(f"{col.key} must be a plain integer")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        raise ValidationError(f"{col.key} must be an integer")

    # Amounts and quantities
    if isinstance(coltype, Numeric):
        try:
            dec = to_decimal(value)
        except ValueError:
            raise ValidationError(f"{col.key} must be a number")
        if abs(dec) > MAX_AMOUNT:
            raise ValidationError(f"{col.key} is out of range")
        return dec

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in {"true", "false", "1", "0"}:
            return value.strip().lower() in {"true", "1"}
        raise ValidationError(f"{col.key} must be a boolean")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    # Calendar dates
    if isinstance(coltype, Date):
        if isinstance(value, (date, str)):
            try:
                d = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            if d is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            return d
        raise ValidationError(f"{col.key} must be a date")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}
    non_negative = policy.non_negative_fields or set()

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        if k in non_negative and val is not None and val < 0:
            raise ValidationError(f"{k} must be >= 0")

        patch[k] = val

    return patch


def require_fields(payload: dict, fields: list[str] | tuple[str, ...]) -> None:
    """Raise ValidationError naming every field that is missing or blank."""
    missing = [
        f for f in fields
        if payload.get(f) is None or (isinstance(payload.get(f), str) and not payload.get(f).strip())
    ]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def require_date_order(start: date | None, end: date | None, *, label: str = "End date") -> None:
    if start and end and end < start:
        raise ValidationError(f"{label} must be on or after the start date")
