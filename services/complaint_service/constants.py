"""Constants shared across the Complaint Service."""

from __future__ import annotations

DESCRIPTION_MIN_LENGTH = 10
DESCRIPTION_MAX_LENGTH = 1000
COMMENT_MIN_LENGTH = 10
COMMENT_MAX_LENGTH = 500

SYSTEM_ACTOR = "system"
UNKNOWN_ENTITY_NAME = "Unknown entity"
GENERIC_ERROR_MESSAGE = "An internal error occurred while processing the request"

EMAIL_ID_CREATED_PREFIX = "email-complaint"
EMAIL_ID_UPDATED_PREFIX = "email-update"


def complaint_created_subject(complaint_id: int) -> str:
    return f"Complaint Notification #{complaint_id}"


def complaint_updated_subject(complaint_id: int) -> str:
    return f"Complaint Update #{complaint_id}"


def complaint_created_title(complaint_id: int, entity_name: str | None) -> str:
    return f"Complaint #{complaint_id} - {entity_name or UNKNOWN_ENTITY_NAME}"


def complaint_updated_title(complaint_id: int) -> str:
    return f"Complaint #{complaint_id} Updated"


COMPLAINT_CREATED_ACTION = "New complaint filed"


def complaint_updated_action(status: str) -> str:
    return f"Complaint updated to: {status}"
