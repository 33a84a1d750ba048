"""
complaints_core.event_enums - Enums and helpers for complaint events.
"""

from __future__ import annotations

from enum import Enum


class ComplaintEvent(str, Enum):
    """Event type identifiers carried in message headers and email metadata."""

    COMPLAINT_STATUS_CHANGED = "complaint.status.changed"
    COMPLAINT_CREATED = "complaint.created"
    COMPLAINT_UPDATED = "complaint.updated"


class ComplaintTopic(str, Enum):
    """Default Kafka topic names. Services may override them through settings."""

    EMAIL_NOTIFICATIONS = "email-notifications"
    EMAIL_DLQ = "email-dlq"
    COMPLAINT_STATUS_EVENTS = "complaint-status-events"


def status_event_key(complaint_id: int, timestamp_ms: int) -> str:
    """Build the message key used for status change events."""
    return f"complaint-{complaint_id}-{timestamp_ms}"
