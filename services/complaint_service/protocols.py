"""Protocol definitions for Complaint Service dependency injection.

This module defines the behavioral contracts resolved by the DI container and
the read models that cross them. Read models use the field names of the JSON
API so routes can serialize them directly.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from complaints_core.domain_enums import ComplaintStatus
from complaints_core.events.complaint_events import ComplaintStatusChangedV1
from pydantic import BaseModel

from services.complaint_service.results import Result


class PublicEntityRecord(BaseModel):
    id_public_entity: int
    name: str


class ComplaintRecord(BaseModel):
    """Active complaint joined with the name of its public entity."""

    id_complaint: int
    id_public_entity: int
    public_entity: str | None
    description: str
    complaint_status: ComplaintStatus
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CommentRecord(BaseModel):
    id_comment: int
    id_complaint: int
    comment_text: str
    created_at: datetime | None = None


class EntityComplaintStat(BaseModel):
    public_entity: str
    total_complaints: int


class StatusComplaintStat(BaseModel):
    complaint_status: ComplaintStatus
    total: int


class StatusHistoryRecord(BaseModel):
    id_history: int
    id_complaint: int
    previous_status: str | None
    new_status: str
    changed_by: str
    change_description: str | None
    event_timestamp: datetime


class ComplaintCreated(BaseModel):
    id_complaint: int


class CommentCreated(BaseModel):
    id_comment: int


class ComplaintDetails(BaseModel):
    complaint: ComplaintRecord
    comments: list[CommentRecord]


class ComplaintStats(BaseModel):
    entity_stats: list[EntityComplaintStat]
    status_stats: list[StatusComplaintStat]


class ComplaintRepositoryProtocol(Protocol):
    """Protocol for complaint persistence. Driver failures surface as StorageError."""

    async def create_complaint(self, entity_id: int, description: str) -> int: ...

    async def find_active_complaints(self) -> list[ComplaintRecord]: ...

    async def find_complaint_by_id(self, complaint_id: int) -> ComplaintRecord | None:
        """Return the complaint if it exists and is active."""
        ...

    async def soft_delete_complaint(self, complaint_id: int) -> bool:
        """Mark an active complaint inactive. Returns whether a row was affected."""
        ...

    async def update_complaint_status(self, complaint_id: int, status: ComplaintStatus) -> bool:
        """Set the status of an active complaint and refresh updated_at."""
        ...

    async def stats_by_entity(self) -> list[EntityComplaintStat]: ...

    async def stats_by_status(self) -> list[StatusComplaintStat]: ...

    async def entity_exists(self, entity_id: int) -> bool: ...

    async def find_all_entities(self) -> list[PublicEntityRecord]: ...

    async def seed_entities(self, names: list[str]) -> int:
        """Insert public entities when none exist yet. Returns the number inserted."""
        ...

    async def create_comment(self, complaint_id: int, text: str) -> int: ...

    async def find_comments_by_complaint(self, complaint_id: int) -> list[CommentRecord]: ...

    async def is_soft_deleted(self, complaint_id: int) -> bool:
        """Whether the row still exists with active=false."""
        ...

    async def record_status_change(
        self, event: ComplaintStatusChangedV1, event_key: str
    ) -> bool:
        """Store a status change once. Returns False if event_key was already stored."""
        ...

    async def find_status_history(self, complaint_id: int) -> list[StatusHistoryRecord]: ...


class AuthClientProtocol(Protocol):
    """Protocol for the external authentication service."""

    async def is_session_active(self, username: str, correlation_id: str) -> bool:
        """Return whether the user has an active session.

        Raises:
            AuthServiceUnavailableError: If the auth service could not answer.
        """
        ...


class StatusEventPublisherProtocol(Protocol):
    async def publish_status_changed(
        self, event: ComplaintStatusChangedV1, correlation_id: str
    ) -> None: ...


class EmailNotificationPublisherProtocol(Protocol):
    async def publish_complaint_created(
        self, complaint: ComplaintRecord, correlation_id: str
    ) -> None: ...

    async def publish_complaint_updated(
        self,
        complaint: ComplaintRecord,
        new_status: ComplaintStatus,
        correlation_id: str,
    ) -> None:
        """Publish an update email.

        ``complaint`` is the record read before the change, so its status is the
        previous one.
        """
        ...


class EmailTemplateRendererProtocol(Protocol):
    def render(self, template_id: str, variables: dict[str, Any]) -> str:
        """Render an HTML email body."""
        ...


class ComplaintLifecycleServiceProtocol(Protocol):
    """Use cases of the complaint lifecycle. Every method returns a Result and never raises."""

    async def create_complaint(
        self, entity_raw: Any, description_raw: Any, correlation_id: str
    ) -> Result[ComplaintCreated]: ...

    async def list_complaints(self, correlation_id: str) -> Result[list[ComplaintRecord]]: ...

    async def list_entities(self, correlation_id: str) -> Result[list[PublicEntityRecord]]: ...

    async def update_status(
        self,
        complaint_id_raw: Any,
        new_status_raw: Any,
        acting_user: Any,
        correlation_id: str,
    ) -> Result[str]: ...

    async def delete_complaint(
        self, complaint_id_raw: Any, acting_user: Any, correlation_id: str
    ) -> Result[str]: ...

    async def add_comment(
        self, complaint_id_raw: Any, text_raw: Any, correlation_id: str
    ) -> Result[CommentCreated]: ...

    async def get_comments(
        self, complaint_id_raw: Any, correlation_id: str
    ) -> Result[list[CommentRecord]]: ...

    async def get_complaint_details(
        self, complaint_id_raw: Any, correlation_id: str
    ) -> Result[ComplaintDetails]: ...

    async def get_stats(self, correlation_id: str) -> Result[ComplaintStats]: ...

    async def get_status_history(
        self, complaint_id_raw: Any, correlation_id: str
    ) -> Result[list[StatusHistoryRecord]]: ...
