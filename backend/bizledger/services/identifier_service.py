# Overview: Allocation of human-readable document codes (PREFIX-YYYY-NNN).

from __future__ import annotations

import re
from typing import Callable, Iterable

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import IdentifierSequence
from ..validation import ValidationError


EXPENSE_PREFIX = "EXP"
INVOICE_PREFIX = "INV"
LEAVE_PREFIX = "LV"
REQUEST_PREFIX = "REQ"
ORDER_PREFIX = "MO"

IDENTIFIER_PATTERN = re.compile(r"^([A-Z]+)-(\d{4})-(\d{3,})$", re.IGNORECASE)


def parse_identifier(value: str | None) -> tuple[str, int, int] | None:
    """Split 'EXP-2024-007' into ('EXP', 2024, 7); None if it doesn't match."""
    if not value:
        return None
    match = IDENTIFIER_PATTERN.match(str(value).strip())
    if not match:
        return None
    return match.group(1).upper(), int(match.group(2)), int(match.group(3))


def max_sequence(prefix: str, year: int, existing: Iterable[str | None]) -> int:
    """Highest NNN among identifiers for prefix/year (0 when there are none)."""
    prefix = prefix.upper()
    highest = 0
    for value in existing:
        parsed = parse_identifier(value)
        if parsed and parsed[0] == prefix and parsed[1] == year:
            highest = max(highest, parsed[2])
    return highest


def format_identifier(prefix: str, year: int, number: int, min_digits: int = 3) -> str:
    return f"{prefix.upper()}-{year}-{number:0{min_digits}d}"


def next_identifier(prefix: str, year: int, existing: Iterable[str | None], min_digits: int = 3) -> str:
    """
    Next code after the highest existing one for the same prefix and year.

    Identifiers of other years or prefixes (and malformed ones) are ignored:
    next_identifier("EXP", 2025, ["EXP-2024-009"]) == "EXP-2025-001".
    """
    if not prefix:
        raise ValidationError("prefix is required")
    return format_identifier(prefix, year, max_sequence(prefix, year, existing) + 1, min_digits)


def allocate_identifier(
    prefix: str,
    year: int,
    existing_scan: Callable[[], Iterable[str | None]],
    *,
    min_digits: int = 3,
) -> str:
    """
    Atomically allocate the next identifier for prefix/year.

    The counter row is bumped with a single UPDATE so two writers can never
    receive the same number. The first allocation for a prefix/year seeds the
    counter from the identifiers already stored (existing_scan), which keeps
    numbering continuous for data created before the counter existed.

    Runs inside the caller's transaction; the caller commits.
    """
    if not prefix:
        raise ValidationError("prefix is required")
    prefix = prefix.upper()

    stmt = (
        update(IdentifierSequence)
        .where(IdentifierSequence.prefix == prefix, IdentifierSequence.year == year)
        .values(next_number=IdentifierSequence.next_number + 1)
    )

    def _bump() -> int | None:
        result = db.session.execute(stmt)
        if not result.rowcount:
            return None
        current = (
            db.session.query(IdentifierSequence.next_number)
            .filter_by(prefix=prefix, year=year)
            .scalar()
        )
        return current - 1

    number = _bump()
    if number is None:
        number = max_sequence(prefix, year, existing_scan()) + 1
        try:
            with db.session.begin_nested():
                db.session.add(IdentifierSequence(prefix=prefix, year=year, next_number=number + 1))
        except IntegrityError:
            # Another writer seeded the counter first; take the next slot from it.
            number = _bump()
            if number is None:
                raise
        else:
            current_app.logger.info("Seeded identifier sequence %s-%s at %s", prefix, year, number)

    return format_identifier(prefix, year, number, min_digits)
