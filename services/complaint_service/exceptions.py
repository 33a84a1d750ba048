"""Custom exception classes for the Complaint Service."""

from __future__ import annotations

from complaints_core.error_enums import ComplaintErrorCode


class ComplaintServiceError(Exception):
    """Base exception for Complaint Service errors."""

    def __init__(self, message: str, error_code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class DependencyError(ComplaintServiceError):
    """Raised when a collaborator (database, auth service) fails."""


class StorageError(DependencyError):
    """Raised when a repository operation fails at the driver level."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(
            f"Storage operation '{operation}' failed: {message}",
            ComplaintErrorCode.STORAGE_ERROR.value,
        )
        self.operation = operation


class AuthServiceUnavailableError(DependencyError):
    """Raised when the authentication service cannot answer a session check."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message, ComplaintErrorCode.AUTH_SERVICE_UNAVAILABLE.value)
        self.status_code = status_code


class SideEffectError(ComplaintServiceError):
    """Raised by publishers. Only ever observed inside detached tasks."""


class EventBusUnavailableError(SideEffectError):
    """Raised when a message could not be handed to the event bus."""

    def __init__(self, topic: str, message: str) -> None:
        super().__init__(
            f"Could not publish to '{topic}': {message}",
            ComplaintErrorCode.EVENT_BUS_UNAVAILABLE.value,
        )
        self.topic = topic
