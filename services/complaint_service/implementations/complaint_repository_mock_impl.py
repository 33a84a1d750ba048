from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from itertools import count

from complaints_core.domain_enums import ComplaintStatus
from complaints_core.events.complaint_events import ComplaintStatusChangedV1

from services.complaint_service.protocols import (
    CommentRecord,
    ComplaintRecord,
    ComplaintRepositoryProtocol,
    EntityComplaintStat,
    PublicEntityRecord,
    StatusComplaintStat,
    StatusHistoryRecord,
)


@dataclass
class _StoredComplaint:
    id: int
    entity_id: int
    description: str
    status: ComplaintStatus = ComplaintStatus.OPEN
    active: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class _StoredComment:
    id: int
    complaint_id: int
    text: str
    active: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class MockComplaintRepositoryImpl(ComplaintRepositoryProtocol):
    """In-memory repository for local development without a database."""

    def __init__(self, entities: dict[int, str] | None = None) -> None:
        self.entities: dict[int, str] = dict(entities or {})
        self.complaints: dict[int, _StoredComplaint] = {}
        self.comments: dict[int, _StoredComment] = {}
        self.history: dict[str, StatusHistoryRecord] = {}
        self._complaint_ids = count(1)
        self._comment_ids = count(1)
        self._history_ids = count(1)

    def _record(self, complaint: _StoredComplaint) -> ComplaintRecord:
        return ComplaintRecord(
            id_complaint=complaint.id,
            id_public_entity=complaint.entity_id,
            public_entity=self.entities.get(complaint.entity_id),
            description=complaint.description,
            complaint_status=complaint.status,
            created_at=complaint.created_at,
            updated_at=complaint.updated_at,
        )

    def _active(self, complaint_id: int) -> _StoredComplaint | None:
        complaint = self.complaints.get(complaint_id)
        return complaint if complaint and complaint.active else None

    async def create_complaint(self, entity_id: int, description: str) -> int:
        complaint_id = next(self._complaint_ids)
        self.complaints[complaint_id] = _StoredComplaint(
            id=complaint_id, entity_id=entity_id, description=description
        )
        return complaint_id

    async def find_active_complaints(self) -> list[ComplaintRecord]:
        active = [c for c in self.complaints.values() if c.active]
        active.sort(key=lambda c: (c.created_at, c.id), reverse=True)
        return [self._record(c) for c in active]

    async def find_complaint_by_id(self, complaint_id: int) -> ComplaintRecord | None:
        complaint = self._active(complaint_id)
        return self._record(complaint) if complaint else None

    async def soft_delete_complaint(self, complaint_id: int) -> bool:
        complaint = self._active(complaint_id)
        if complaint is None:
            return False
        complaint.active = False
        complaint.updated_at = datetime.now(UTC)
        return True

    async def update_complaint_status(self, complaint_id: int, status: ComplaintStatus) -> bool:
        complaint = self._active(complaint_id)
        if complaint is None:
            return False
        complaint.status = status
        complaint.updated_at = datetime.now(UTC)
        return True

    async def stats_by_entity(self) -> list[EntityComplaintStat]:
        totals: dict[int, int] = {}
        for complaint in self.complaints.values():
            if complaint.active and complaint.entity_id in self.entities:
                totals[complaint.entity_id] = totals.get(complaint.entity_id, 0) + 1
        stats = [
            EntityComplaintStat(public_entity=self.entities[entity_id], total_complaints=total)
            for entity_id, total in totals.items()
        ]
        return sorted(stats, key=lambda s: (-s.total_complaints, s.public_entity))

    async def stats_by_status(self) -> list[StatusComplaintStat]:
        totals: dict[ComplaintStatus, int] = {}
        for complaint in self.complaints.values():
            if complaint.active:
                totals[complaint.status] = totals.get(complaint.status, 0) + 1
        stats = [StatusComplaintStat(complaint_status=s, total=t) for s, t in totals.items()]
        return sorted(stats, key=lambda s: -s.total)

    async def entity_exists(self, entity_id: int) -> bool:
        return entity_id in self.entities

    async def find_all_entities(self) -> list[PublicEntityRecord]:
        return [
            PublicEntityRecord(id_public_entity=entity_id, name=name)
            for entity_id, name in sorted(self.entities.items(), key=lambda item: item[1])
        ]

    async def seed_entities(self, names: list[str]) -> int:
        if self.entities or not names:
            return 0
        self.entities = {index: name for index, name in enumerate(names, start=1)}
        return len(names)

    async def create_comment(self, complaint_id: int, text: str) -> int:
        comment_id = next(self._comment_ids)
        self.comments[comment_id] = _StoredComment(
            id=comment_id, complaint_id=complaint_id, text=text
        )
        return comment_id

    async def find_comments_by_complaint(self, complaint_id: int) -> list[CommentRecord]:
        comments = [
            c for c in self.comments.values() if c.complaint_id == complaint_id and c.active
        ]
        comments.sort(key=lambda c: (c.created_at, c.id), reverse=True)
        return [
            CommentRecord(
                id_comment=c.id,
                id_complaint=c.complaint_id,
                comment_text=c.text,
                created_at=c.created_at,
            )
            for c in comments
        ]

    async def is_soft_deleted(self, complaint_id: int) -> bool:
        complaint = self.complaints.get(complaint_id)
        return complaint is not None and not complaint.active

    async def record_status_change(
        self, event: ComplaintStatusChangedV1, event_key: str
    ) -> bool:
        if event_key in self.history:
            return False
        self.history[event_key] = StatusHistoryRecord(
            id_history=next(self._history_ids),
            id_complaint=event.id_complaint,
            previous_status=event.previous_status.value if event.previous_status else None,
            new_status=event.new_status.value,
            changed_by=event.changed_by,
            change_description=event.change_description,
            event_timestamp=event.event_timestamp,
        )
        return True

    async def find_status_history(self, complaint_id: int) -> list[StatusHistoryRecord]:
        records = [r for r in self.history.values() if r.id_complaint == complaint_id]
        return sorted(records, key=lambda r: (r.event_timestamp, r.id_history))
