from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncGenerator

from complaints_core.domain_enums import ComplaintStatus
from complaints_core.events.complaint_events import ComplaintStatusChangedV1
from complaints_service_libs.logging_utils import create_service_logger
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from services.complaint_service.exceptions import StorageError
from services.complaint_service.models_db import (
    AnonymousComment,
    Complaint,
    ComplaintStatusHistory,
    PublicEntity,
)
from services.complaint_service.protocols import (
    CommentRecord,
    ComplaintRecord,
    ComplaintRepositoryProtocol,
    EntityComplaintStat,
    PublicEntityRecord,
    StatusComplaintStat,
    StatusHistoryRecord,
)

if TYPE_CHECKING:
    from services.complaint_service.metrics import ComplaintMetrics

logger = create_service_logger("complaint_service.repository")

# Range of the Integer primary and foreign key columns (PostgreSQL int4)
INTEGER_COLUMN_MIN = -(2**31)
INTEGER_COLUMN_MAX = 2**31 - 1


def _fits_integer_column(value: int) -> bool:
    return INTEGER_COLUMN_MIN <= value <= INTEGER_COLUMN_MAX


def _to_complaint_record(complaint: Complaint, entity_name: str | None) -> ComplaintRecord:
    return ComplaintRecord(
        id_complaint=complaint.id,
        id_public_entity=complaint.entity_id,
        public_entity=entity_name,
        description=complaint.description,
        complaint_status=complaint.status,
        created_at=complaint.created_at,
        updated_at=complaint.updated_at,
    )


class PostgreSQLComplaintRepositoryImpl(ComplaintRepositoryProtocol):
    """SQLAlchemy async implementation of ComplaintRepositoryProtocol.

    Runs against PostgreSQL (asyncpg) in production and SQLite (aiosqlite) in
    tests. Every driver failure is translated into StorageError.
    """

    def __init__(self, engine: AsyncEngine, metrics: ComplaintMetrics | None = None) -> None:
        self.engine = engine
        self.metrics = metrics
        self.async_session_maker = async_sessionmaker(engine, expire_on_commit=False)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a transactional session context."""
        session = self.async_session_maker()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    @asynccontextmanager
    async def _operation(self, operation: str) -> AsyncGenerator[AsyncSession, None]:
        start_time = time.time()
        success = True
        try:
            async with self.session() as session:
                yield session
        except SQLAlchemyError as e:
            success = False
            logger.error(f"Database error during {operation}: {e}", operation=operation)
            raise StorageError(operation, str(e)) from e
        finally:
            if self.metrics:
                self.metrics.record_database_operation(
                    operation, time.time() - start_time, success
                )

    async def create_complaint(self, entity_id: int, description: str) -> int:
        async with self._operation("create_complaint") as session:
            complaint = Complaint(
                entity_id=entity_id,
                description=description,
                status=ComplaintStatus.OPEN,
                active=True,
            )
            session.add(complaint)
            await session.flush()
            return complaint.id

    async def find_active_complaints(self) -> list[ComplaintRecord]:
        async with self._operation("find_active_complaints") as session:
            stmt = (
                select(Complaint, PublicEntity.name)
                .outerjoin(PublicEntity, Complaint.entity_id == PublicEntity.id)
                .where(Complaint.active.is_(True))
                .order_by(Complaint.created_at.desc(), Complaint.id.desc())
            )
            result = await session.execute(stmt)
            return [_to_complaint_record(row[0], row[1]) for row in result.all()]

    async def find_complaint_by_id(self, complaint_id: int) -> ComplaintRecord | None:
        if not _fits_integer_column(complaint_id):
            return None
        async with self._operation("find_complaint_by_id") as session:
            stmt = (
                select(Complaint, PublicEntity.name)
                .outerjoin(PublicEntity, Complaint.entity_id == PublicEntity.id)
                .where(Complaint.id == complaint_id, Complaint.active.is_(True))
            )
            row = (await session.execute(stmt)).first()
            if row is None:
                return None
            return _to_complaint_record(row[0], row[1])

    async def soft_delete_complaint(self, complaint_id: int) -> bool:
        if not _fits_integer_column(complaint_id):
            return False
        async with self._operation("soft_delete_complaint") as session:
            stmt = (
                update(Complaint)
                .where(Complaint.id == complaint_id, Complaint.active.is_(True))
                .values(active=False, updated_at=func.now())
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def update_complaint_status(self, complaint_id: int, status: ComplaintStatus) -> bool:
        if not _fits_integer_column(complaint_id):
            return False
        async with self._operation("update_complaint_status") as session:
            stmt = (
                update(Complaint)
                .where(Complaint.id == complaint_id, Complaint.active.is_(True))
                .values(status=status, updated_at=func.now())
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def stats_by_entity(self) -> list[EntityComplaintStat]:
        async with self._operation("stats_by_entity") as session:
            total = func.count(Complaint.id).label("total_complaints")
            stmt = (
                select(PublicEntity.name, total)
                .join(Complaint, Complaint.entity_id == PublicEntity.id)
                .where(Complaint.active.is_(True))
                .group_by(PublicEntity.id, PublicEntity.name)
                .order_by(total.desc(), PublicEntity.name)
            )
            result = await session.execute(stmt)
            return [
                EntityComplaintStat(public_entity=name, total_complaints=count)
                for name, count in result.all()
            ]

    async def stats_by_status(self) -> list[StatusComplaintStat]:
        async with self._operation("stats_by_status") as session:
            total = func.count(Complaint.id).label("total")
            stmt = (
                select(Complaint.status, total)
                .where(Complaint.active.is_(True))
                .group_by(Complaint.status)
                .order_by(total.desc())
            )
            result = await session.execute(stmt)
            return [
                StatusComplaintStat(complaint_status=status, total=count)
                for status, count in result.all()
            ]

    async def entity_exists(self, entity_id: int) -> bool:
        if not _fits_integer_column(entity_id):
            return False
        async with self._operation("entity_exists") as session:
            stmt = select(PublicEntity.id).where(PublicEntity.id == entity_id)
            return (await session.execute(stmt)).scalar_one_or_none() is not None

    async def find_all_entities(self) -> list[PublicEntityRecord]:
        async with self._operation("find_all_entities") as session:
            stmt = select(PublicEntity).order_by(PublicEntity.name)
            entities = (await session.execute(stmt)).scalars().all()
            return [PublicEntityRecord(id_public_entity=e.id, name=e.name) for e in entities]

    async def seed_entities(self, names: list[str]) -> int:
        if not names:
            return 0
        async with self._operation("seed_entities") as session:
            existing = (await session.execute(select(func.count(PublicEntity.id)))).scalar_one()
            if existing:
                return 0
            session.add_all([PublicEntity(name=name) for name in names])
            return len(names)

    async def create_comment(self, complaint_id: int, text: str) -> int:
        async with self._operation("create_comment") as session:
            comment = AnonymousComment(complaint_id=complaint_id, text=text, active=True)
            session.add(comment)
            await session.flush()
            return comment.id

    async def find_comments_by_complaint(self, complaint_id: int) -> list[CommentRecord]:
        if not _fits_integer_column(complaint_id):
            return []
        async with self._operation("find_comments_by_complaint") as session:
            stmt = (
                select(AnonymousComment)
                .where(
                    AnonymousComment.complaint_id == complaint_id,
                    AnonymousComment.active.is_(True),
                )
                .order_by(AnonymousComment.created_at.desc(), AnonymousComment.id.desc())
            )
            comments = (await session.execute(stmt)).scalars().all()
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
        if not _fits_integer_column(complaint_id):
            return False
        async with self._operation("is_soft_deleted") as session:
            stmt = select(Complaint.active).where(Complaint.id == complaint_id)
            active = (await session.execute(stmt)).scalar_one_or_none()
            return active is False

    async def record_status_change(
        self, event: ComplaintStatusChangedV1, event_key: str
    ) -> bool:
        try:
            async with self._operation("record_status_change") as session:
                stmt = select(ComplaintStatusHistory.id).where(
                    ComplaintStatusHistory.event_key == event_key
                )
                if (await session.execute(stmt)).scalar_one_or_none() is not None:
                    return False
                session.add(
                    ComplaintStatusHistory(
                        complaint_id=event.id_complaint,
                        previous_status=event.previous_status.value
                        if event.previous_status
                        else None,
                        new_status=event.new_status.value,
                        changed_by=event.changed_by,
                        change_description=event.change_description,
                        event_timestamp=event.event_timestamp,
                        event_key=event_key,
                    )
                )
                return True
        except StorageError as e:
            # Concurrent insert of the same key lost the race on the unique constraint
            if isinstance(e.__cause__, IntegrityError):
                return False
            raise

    async def find_status_history(self, complaint_id: int) -> list[StatusHistoryRecord]:
        if not _fits_integer_column(complaint_id):
            return []
        async with self._operation("find_status_history") as session:
            stmt = (
                select(ComplaintStatusHistory)
                .where(ComplaintStatusHistory.complaint_id == complaint_id)
                .order_by(ComplaintStatusHistory.event_timestamp, ComplaintStatusHistory.id)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [
                StatusHistoryRecord(
                    id_history=row.id,
                    id_complaint=row.complaint_id,
                    previous_status=row.previous_status,
                    new_status=row.new_status,
                    changed_by=row.changed_by,
                    change_description=row.change_description,
                    event_timestamp=row.event_timestamp,
                )
                for row in rows
            ]
