"""Tagged result values returned by validators and the lifecycle service.

Expected failures (bad input, missing rows, inactive sessions) are returned as
:class:`Err` values instead of being raised. Callers branch with
``isinstance(result, Err)``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from complaints_core.error_enums import ComplaintErrorCode

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    status_code: int
    message: str
    error_code: str = ComplaintErrorCode.VALIDATION_ERROR.value
    redirect_to_login: bool = False


Result = Union[Ok[T], Err]


def bad_request(message: str) -> Err:
    return Err(400, message, ComplaintErrorCode.VALIDATION_ERROR.value)


def not_found(message: str) -> Err:
    return Err(404, message, ComplaintErrorCode.COMPLAINT_NOT_FOUND.value)


def session_inactive(message: str = "Session inactive. Please log in again.") -> Err:
    return Err(401, message, ComplaintErrorCode.SESSION_INACTIVE.value, redirect_to_login=True)


def internal_error(message: str) -> Err:
    return Err(500, message, ComplaintErrorCode.STORAGE_ERROR.value)
