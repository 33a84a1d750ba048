"""Complaint lifecycle event contracts.

:class:`ComplaintStatusChangedV1` is published to the complaint status events
topic whenever a complaint is created (``previous_status`` is ``None``) or its
status is changed by a staff member. The payload is bare JSON; event type,
correlation id and routing attributes travel in the Kafka message headers.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from ..domain_enums import ComplaintStatus


class ComplaintStatusChangedV1(BaseModel):
    """Status transition of a single complaint.

    **Producer service**: Complaint Service.

    **Consumers**: Complaint Service status history projector, audit pipelines.
    """

    id_complaint: int = Field(description="Identifier of the complaint that changed.")
    previous_status: ComplaintStatus | None = Field(
        default=None,
        description="Status before the change. None when the complaint was just created.",
    )
    new_status: ComplaintStatus = Field(description="Status after the change.")
    changed_by: str = Field(
        default="system",
        description="Username of the staff member, or 'system' for automatic transitions.",
    )
    change_description: str | None = Field(
        default=None, description="Human readable summary of the transition."
    )
    event_timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the transition happened (UTC).",
    )
