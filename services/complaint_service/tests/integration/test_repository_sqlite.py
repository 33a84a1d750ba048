"""
Integration tests for the SQLAlchemy complaint repository.

Runs the real repository against a file-backed SQLite database through aiosqlite.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import AsyncIterator
from unittest.mock import AsyncMock

import pytest
from complaints_core.domain_enums import ComplaintStatus
from complaints_core.error_enums import ComplaintErrorCode
from complaints_core.events.complaint_events import ComplaintStatusChangedV1
from complaints_service_libs.background_tasks import DetachedTaskRunner
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from services.complaint_service.exceptions import StorageError
from services.complaint_service.implementations.complaint_repository_postgres_impl import (
    PostgreSQLComplaintRepositoryImpl,
)
from services.complaint_service.implementations.complaint_service_impl import (
    ComplaintLifecycleServiceImpl,
)
from services.complaint_service.models_db import Base
from services.complaint_service.protocols import (
    AuthClientProtocol,
    EmailNotificationPublisherProtocol,
    StatusEventPublisherProtocol,
)
from services.complaint_service.results import Err

DESCRIPTION = "Street lights on Elm Road are broken"
OUT_OF_RANGE_ID = "99999999999999999999"


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'complaints.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def repository(engine: AsyncEngine) -> PostgreSQLComplaintRepositoryImpl:
    repo = PostgreSQLComplaintRepositoryImpl(engine)
    await repo.seed_entities(["Water Board", "City Hall"])
    return repo


@pytest.mark.integration
class TestComplaintRepository:
    async def test_seed_only_fills_empty_table(
        self, repository: PostgreSQLComplaintRepositoryImpl
    ) -> None:
        assert await repository.seed_entities(["Another Entity"]) == 0

        entities = await repository.find_all_entities()
        assert [e.name for e in entities] == ["City Hall", "Water Board"]

    async def test_entity_exists(self, repository: PostgreSQLComplaintRepositoryImpl) -> None:
        entity_id = (await repository.find_all_entities())[0].id_public_entity

        assert await repository.entity_exists(entity_id) is True
        assert await repository.entity_exists(9999) is False

    async def test_created_complaint_is_open_and_active(
        self, repository: PostgreSQLComplaintRepositoryImpl
    ) -> None:
        city_hall = (await repository.find_all_entities())[0]

        complaint_id = await repository.create_complaint(city_hall.id_public_entity, DESCRIPTION)
        record = await repository.find_complaint_by_id(complaint_id)

        assert record is not None
        assert record.complaint_status is ComplaintStatus.OPEN
        assert record.public_entity == "City Hall"
        assert record.description == DESCRIPTION
        assert record.created_at is not None

    async def test_active_listing_is_newest_first(
        self, repository: PostgreSQLComplaintRepositoryImpl
    ) -> None:
        first = await repository.create_complaint(1, DESCRIPTION)
        second = await repository.create_complaint(2, DESCRIPTION)
        third = await repository.create_complaint(1, DESCRIPTION)

        listed = await repository.find_active_complaints()

        assert [c.id_complaint for c in listed] == [third, second, first]

    async def test_soft_delete_hides_but_keeps_row(
        self, repository: PostgreSQLComplaintRepositoryImpl
    ) -> None:
        complaint_id = await repository.create_complaint(1, DESCRIPTION)

        assert await repository.soft_delete_complaint(complaint_id) is True
        assert await repository.find_complaint_by_id(complaint_id) is None
        assert await repository.find_active_complaints() == []
        assert await repository.is_soft_deleted(complaint_id) is True

        assert await repository.soft_delete_complaint(complaint_id) is False
        assert await repository.update_complaint_status(
            complaint_id, ComplaintStatus.CLOSED
        ) is False

    async def test_update_status(self, repository: PostgreSQLComplaintRepositoryImpl) -> None:
        complaint_id = await repository.create_complaint(1, DESCRIPTION)

        assert await repository.update_complaint_status(
            complaint_id, ComplaintStatus.IN_REVIEW
        ) is True
        record = await repository.find_complaint_by_id(complaint_id)

        assert record is not None
        assert record.complaint_status is ComplaintStatus.IN_REVIEW
        assert await repository.update_complaint_status(4242, ComplaintStatus.CLOSED) is False

    async def test_stats_cover_active_complaints_only(
        self, repository: PostgreSQLComplaintRepositoryImpl
    ) -> None:
        entities = {e.name: e.id_public_entity for e in await repository.find_all_entities()}
        await repository.create_complaint(entities["Water Board"], DESCRIPTION)
        await repository.create_complaint(entities["Water Board"], DESCRIPTION)
        closed = await repository.create_complaint(entities["City Hall"], DESCRIPTION)
        deleted = await repository.create_complaint(entities["City Hall"], DESCRIPTION)
        await repository.update_complaint_status(closed, ComplaintStatus.CLOSED)
        await repository.soft_delete_complaint(deleted)

        by_entity = await repository.stats_by_entity()
        by_status = await repository.stats_by_status()

        assert [(s.public_entity, s.total_complaints) for s in by_entity] == [
            ("Water Board", 2),
            ("City Hall", 1),
        ]
        assert {s.complaint_status: s.total for s in by_status} == {
            ComplaintStatus.OPEN: 2,
            ComplaintStatus.CLOSED: 1,
        }

    async def test_comments(self, repository: PostgreSQLComplaintRepositoryImpl) -> None:
        complaint_id = await repository.create_complaint(1, DESCRIPTION)
        first = await repository.create_comment(complaint_id, "I noticed this too last week")
        second = await repository.create_comment(complaint_id, "Still broken this morning")

        comments = await repository.find_comments_by_complaint(complaint_id)

        assert [c.id_comment for c in comments] == [second, first]
        assert comments[0].comment_text == "Still broken this morning"
        assert await repository.find_comments_by_complaint(4242) == []

    async def test_repeated_reads_are_identical(
        self, repository: PostgreSQLComplaintRepositoryImpl
    ) -> None:
        await repository.create_complaint(1, DESCRIPTION)

        assert await repository.find_active_complaints() == await repository.find_active_complaints()
        assert await repository.stats_by_status() == await repository.stats_by_status()

    async def test_status_history_is_deduplicated_and_ordered(
        self, repository: PostgreSQLComplaintRepositoryImpl
    ) -> None:
        filed_at = datetime(2024, 5, 1, 9, 0, tzinfo=UTC)
        created = ComplaintStatusChangedV1(
            id_complaint=1,
            new_status=ComplaintStatus.OPEN,
            change_description="Complaint filed",
            event_timestamp=filed_at,
        )
        reviewed = ComplaintStatusChangedV1(
            id_complaint=1,
            previous_status=ComplaintStatus.OPEN,
            new_status=ComplaintStatus.IN_REVIEW,
            changed_by="staff.user",
            event_timestamp=filed_at + timedelta(hours=2),
        )

        assert await repository.record_status_change(reviewed, "complaint-1-2") is True
        assert await repository.record_status_change(created, "complaint-1-1") is True
        assert await repository.record_status_change(created, "complaint-1-1") is False

        history = await repository.find_status_history(1)

        assert [(h.previous_status, h.new_status) for h in history] == [
            (None, "open"),
            ("open", "in_review"),
        ]
        assert history[1].changed_by == "staff.user"

    async def test_driver_failure_becomes_storage_error(self, engine: AsyncEngine) -> None:
        repository = PostgreSQLComplaintRepositoryImpl(engine)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

        with pytest.raises(StorageError) as exc_info:
            await repository.find_active_complaints()

        assert exc_info.value.operation == "find_active_complaints"

    async def test_ids_beyond_integer_column_match_nothing(
        self, repository: PostgreSQLComplaintRepositoryImpl
    ) -> None:
        huge = int(OUT_OF_RANGE_ID)

        assert await repository.find_complaint_by_id(huge) is None
        assert await repository.entity_exists(huge) is False
        assert await repository.entity_exists(-huge) is False
        assert await repository.update_complaint_status(huge, ComplaintStatus.CLOSED) is False
        assert await repository.soft_delete_complaint(huge) is False
        assert await repository.is_soft_deleted(huge) is False
        assert await repository.find_comments_by_complaint(huge) == []
        assert await repository.find_status_history(huge) == []


@pytest.mark.integration
class TestLifecycleServiceOverSqlite:
    @pytest.fixture
    def service(
        self, repository: PostgreSQLComplaintRepositoryImpl
    ) -> ComplaintLifecycleServiceImpl:
        auth_client = AsyncMock(spec=AuthClientProtocol)
        auth_client.is_session_active.return_value = True
        return ComplaintLifecycleServiceImpl(
            repo=repository,
            auth_client=auth_client,
            status_publisher=AsyncMock(spec=StatusEventPublisherProtocol),
            email_publisher=AsyncMock(spec=EmailNotificationPublisherProtocol),
            task_runner=DetachedTaskRunner(),
        )

    async def test_out_of_range_entity_does_not_exist(
        self, service: ComplaintLifecycleServiceImpl, correlation_id: str
    ) -> None:
        result = await service.create_complaint(OUT_OF_RANGE_ID, DESCRIPTION, correlation_id)

        assert isinstance(result, Err)
        assert result.status_code == 400
        assert result.error_code == ComplaintErrorCode.ENTITY_NOT_FOUND.value

    async def test_out_of_range_complaint_is_not_found(
        self, service: ComplaintLifecycleServiceImpl, correlation_id: str
    ) -> None:
        outcomes = [
            await service.get_complaint_details(OUT_OF_RANGE_ID, correlation_id),
            await service.get_comments(OUT_OF_RANGE_ID, correlation_id),
            await service.get_status_history(OUT_OF_RANGE_ID, correlation_id),
            await service.add_comment(OUT_OF_RANGE_ID, "Same problem on my street", correlation_id),
            await service.update_status(OUT_OF_RANGE_ID, "closed", "staff.user", correlation_id),
            await service.delete_complaint(OUT_OF_RANGE_ID, "staff.user", correlation_id),
        ]

        assert [o.status_code for o in outcomes if isinstance(o, Err)] == [404] * 6
