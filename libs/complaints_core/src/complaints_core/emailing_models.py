"""Email notification contract for the mail-sending service.

The complaint service never sends email itself. It publishes
:class:`ComplaintEmailNotificationV1` to the email notifications topic and the
external mail-sending service delivers it. Field names are serialized in
camelCase because that is the shape the mail-sending service consumes.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .event_enums import ComplaintEvent


class EmailPriority(str, Enum):
    NORMAL = "normal"
    HIGH = "high"


class ComplaintEmailMetadata(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    event_type: ComplaintEvent
    source: str = "complaints-service"


class ComplaintEmailNotificationV1(BaseModel):
    """Email request describing a complaint that was filed or updated.

    **Producer service**: Complaint Service.

    **Consumer service**: external mail-sending service.

    ``id`` doubles as an idempotency key for the consumer:
    ``email-complaint-{id}-{epoch_ms}`` for new complaints and
    ``email-update-{id}-{epoch_ms}`` for status updates.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(description="Unique email identifier.")
    to: list[str] = Field(min_length=1, description="Primary recipients.")
    cc: list[str] = Field(default_factory=list, description="Carbon copy recipients.")
    subject: str
    title: str
    html: str | None = Field(default=None, description="Rendered HTML body.")
    complaint_id: int
    description: str | None = None
    status: str
    previous_status: str | None = Field(
        default=None, description="Status before an update, unset for new complaints."
    )
    entity_name: str | None = None
    created_at: datetime | None = None
    action: str
    priority: EmailPriority = EmailPriority.NORMAL
    correlation_id: str | None = None
    metadata: ComplaintEmailMetadata
