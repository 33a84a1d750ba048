"""Input validation for complaint operations.

All validators are pure and never raise. They return ``Ok`` with normalized
values or ``Err`` with status 400.

Numeric identifiers accept a decimal literal with optional sign, surrounding
whitespace and fractional part. Fractions are truncated toward zero, so
``"12.5"`` becomes ``12``. Exponents, hex literals, ``Infinity`` and digit
separators are rejected.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from complaints_core.domain_enums import ComplaintStatus

from services.complaint_service.constants import (
    COMMENT_MAX_LENGTH,
    COMMENT_MIN_LENGTH,
    DESCRIPTION_MAX_LENGTH,
    DESCRIPTION_MIN_LENGTH,
)
from services.complaint_service.results import Err, Ok, Result, bad_request

_DECIMAL_LITERAL = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)$")


@dataclass(frozen=True)
class ComplaintInput:
    entity_id: int
    description: str


@dataclass(frozen=True)
class CommentInput:
    complaint_id: int
    text: str


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def parse_numeric_id(value: Any) -> int | None:
    """Parse an identifier as an integer, or return None if it is not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        return int(value)
    if not isinstance(value, str):
        return None
    candidate = value.strip()
    if not _DECIMAL_LITERAL.match(candidate):
        return None
    return int(Decimal(candidate))


def _validate_text(
    raw: Any, field_label: str, min_length: int, max_length: int
) -> Result[str]:
    if not isinstance(raw, str):
        return bad_request(f"{field_label} must be text")
    if len(raw) > max_length:
        return bad_request(f"{field_label} must not exceed {max_length} characters")
    trimmed = raw.strip()
    if len(trimmed) < min_length:
        return bad_request(f"{field_label} must be at least {min_length} characters long")
    return Ok(trimmed)


def validate_complaint_input(entity_raw: Any, description_raw: Any) -> Result[ComplaintInput]:
    """Validate the fields of a new complaint."""
    if _is_missing(entity_raw) or _is_missing(description_raw):
        return bad_request("Entity and description are required")

    entity_id = parse_numeric_id(entity_raw)
    if entity_id is None:
        return bad_request("Entity must be a valid number")

    description = _validate_text(
        description_raw, "Description", DESCRIPTION_MIN_LENGTH, DESCRIPTION_MAX_LENGTH
    )
    if isinstance(description, Err):
        return description

    return Ok(ComplaintInput(entity_id=entity_id, description=description.value))


def validate_status(value: Any) -> Result[ComplaintStatus]:
    """Validate a status value. Matching is exact and case-sensitive."""
    if _is_missing(value):
        return bad_request("Status is required")
    if isinstance(value, str) and value in ComplaintStatus.values():
        return Ok(ComplaintStatus(value))
    allowed = ", ".join(ComplaintStatus.values())
    return bad_request(f"Invalid status. Allowed values: {allowed}")


def validate_complaint_id(value: Any) -> Result[int]:
    if _is_missing(value):
        return bad_request("Complaint ID is required")
    complaint_id = parse_numeric_id(value)
    if complaint_id is None:
        return bad_request("Complaint ID must be a valid number")
    return Ok(complaint_id)


def validate_comment_input(complaint_id_raw: Any, text_raw: Any) -> Result[CommentInput]:
    """Validate an anonymous comment. The result carries no author information."""
    if _is_missing(complaint_id_raw) or _is_missing(text_raw):
        return bad_request("Complaint ID and comment text are required")

    complaint_id = parse_numeric_id(complaint_id_raw)
    if complaint_id is None:
        return bad_request("Complaint ID must be a valid number")

    text = _validate_text(text_raw, "Comment", COMMENT_MIN_LENGTH, COMMENT_MAX_LENGTH)
    if isinstance(text, Err):
        return text

    return Ok(CommentInput(complaint_id=complaint_id, text=text.value))
