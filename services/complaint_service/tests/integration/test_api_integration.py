"""
HTTP integration tests for the Complaint Service.

The real app factory is used with the in-memory repository. The auth client and
the publishers are replaced through a Dishka provider so no network is touched.
"""

from __future__ import annotations

from typing import AsyncIterator
from unittest.mock import AsyncMock

import pytest
from aiokafka.errors import UnrecognizedBrokerVersion
from complaints_core.domain_enums import ComplaintStatus
from complaints_service_libs.background_tasks import DetachedTaskRunner
from complaints_service_libs.kafka_client import BusState, KafkaPublisherProtocol
from dishka import Provider, Scope, provide
from quart.typing import TestClientProtocol as QuartTestClient

from services.complaint_service.app import create_app
from services.complaint_service.config import Settings
from services.complaint_service.implementations.complaint_repository_mock_impl import (
    MockComplaintRepositoryImpl,
)
from services.complaint_service.protocols import (
    AuthClientProtocol,
    ComplaintRepositoryProtocol,
    EmailNotificationPublisherProtocol,
    StatusEventPublisherProtocol,
)

DESCRIPTION = "Potholes on the river road damage cars daily"


class _TestProvider(Provider):
    scope = Scope.APP

    def __init__(
        self,
        repository: ComplaintRepositoryProtocol,
        auth_client: AuthClientProtocol,
        status_publisher: StatusEventPublisherProtocol,
        email_publisher: EmailNotificationPublisherProtocol,
    ) -> None:
        super().__init__()
        self._repository = repository
        self._auth_client = auth_client
        self._status_publisher = status_publisher
        self._email_publisher = email_publisher

    @provide
    def provide_repository(self) -> ComplaintRepositoryProtocol:
        return self._repository

    @provide
    def provide_auth_client(self) -> AuthClientProtocol:
        return self._auth_client

    @provide
    def provide_status_publisher(self) -> StatusEventPublisherProtocol:
        return self._status_publisher

    @provide
    def provide_email_publisher(self) -> EmailNotificationPublisherProtocol:
        return self._email_publisher


@pytest.mark.integration
class TestComplaintApi:
    @pytest.fixture
    def repository(self) -> MockComplaintRepositoryImpl:
        return MockComplaintRepositoryImpl(entities={1: "City Hall", 2: "Water Board"})

    @pytest.fixture
    def auth_client(self) -> AsyncMock:
        client = AsyncMock(spec=AuthClientProtocol)
        client.is_session_active.return_value = True
        return client

    @pytest.fixture
    def status_publisher(self) -> AsyncMock:
        return AsyncMock(spec=StatusEventPublisherProtocol)

    @pytest.fixture
    def email_publisher(self) -> AsyncMock:
        return AsyncMock(spec=EmailNotificationPublisherProtocol)

    @pytest.fixture
    async def app(
        self,
        repository: MockComplaintRepositoryImpl,
        auth_client: AsyncMock,
        status_publisher: AsyncMock,
        email_publisher: AsyncMock,
    ) -> AsyncIterator[object]:
        settings = Settings(
            DATABASE_URL="sqlite+aiosqlite:///:memory:",
            USE_MOCK_REPOSITORY=True,
            KAFKA_ENABLED=False,
            PUBLIC_ENTITY_SEED=[],
        )
        app = create_app(
            settings,
            _TestProvider(repository, auth_client, status_publisher, email_publisher),
        )
        async with app.test_app() as test_app:
            yield test_app

    @pytest.fixture
    def client(self, app: object) -> QuartTestClient:
        return app.test_client()  # type: ignore[attr-defined]

    async def _drain(self, app: object) -> None:
        runner = await app.app.container.get(DetachedTaskRunner)  # type: ignore[attr-defined]
        assert await runner.drain(timeout=1)

    async def _file(self, client: QuartTestClient, entity: object = 1) -> int:
        response = await client.post(
            "/complaints/file", json={"entity": entity, "description": DESCRIPTION}
        )
        assert response.status_code == 201
        return (await response.get_json())["id_complaint"]

    async def test_health_check(self, client: QuartTestClient) -> None:
        response = await client.get("/healthz")

        assert response.status_code == 200
        body = await response.get_json()
        assert body["status"] == "healthy"
        assert body["dependencies"]["database"]["status"] == "not_used"
        assert body["dependencies"]["event_bus"]["status"] == "disabled"

    async def test_lists_entities(self, client: QuartTestClient) -> None:
        response = await client.get("/complaints/entities")

        assert response.status_code == 200
        assert await response.get_json() == [
            {"id_public_entity": 1, "name": "City Hall"},
            {"id_public_entity": 2, "name": "Water Board"},
        ]

    async def test_file_complaint_and_list(
        self,
        app: object,
        client: QuartTestClient,
        status_publisher: AsyncMock,
        email_publisher: AsyncMock,
    ) -> None:
        complaint_id = await self._file(client, entity="2")
        await self._drain(app)

        response = await client.get("/complaints/list")
        listed = await response.get_json()

        assert response.status_code == 200
        assert [c["id_complaint"] for c in listed] == [complaint_id]
        assert listed[0]["public_entity"] == "Water Board"
        assert listed[0]["complaint_status"] == "open"
        status_publisher.publish_status_changed.assert_awaited_once()
        email_publisher.publish_complaint_created.assert_awaited_once()

    async def test_file_complaint_accepts_form_data(self, client: QuartTestClient) -> None:
        response = await client.post(
            "/complaints/file", form={"id_public_entity": "1", "description": DESCRIPTION}
        )

        assert response.status_code == 201

    async def test_file_complaint_validation_error(self, client: QuartTestClient) -> None:
        response = await client.post(
            "/complaints/file", json={"entity": "abc", "description": DESCRIPTION}
        )

        assert response.status_code == 400
        body = await response.get_json()
        assert body["error"] == "Entity must be a valid number"

    async def test_file_complaint_for_unknown_entity(self, client: QuartTestClient) -> None:
        response = await client.post(
            "/complaints/file", json={"entity": 77, "description": DESCRIPTION}
        )

        assert response.status_code == 400
        assert (await response.get_json())["error_code"] == "ENTITY_NOT_FOUND"

    async def test_update_status(
        self,
        app: object,
        client: QuartTestClient,
        repository: MockComplaintRepositoryImpl,
        auth_client: AsyncMock,
    ) -> None:
        complaint_id = await self._file(client)

        response = await client.post(
            "/complaints/update-status",
            json={"id_complaint": complaint_id, "complaint_status": "in_review"},
            headers={"X-User-ID": "staff.user"},
        )
        await self._drain(app)

        assert response.status_code == 200
        assert "in_review" in (await response.get_json())["message"]
        assert repository.complaints[complaint_id].status is ComplaintStatus.IN_REVIEW
        assert auth_client.is_session_active.await_args.args[0] == "staff.user"

    async def test_update_status_with_inactive_session(
        self, client: QuartTestClient, auth_client: AsyncMock
    ) -> None:
        complaint_id = await self._file(client)
        auth_client.is_session_active.return_value = False

        response = await client.post(
            "/complaints/update-status",
            json={"id_complaint": complaint_id, "status": "closed", "username": "staff.user"},
        )

        assert response.status_code == 401
        body = await response.get_json()
        assert body["redirectToLogin"] is True

    async def test_update_status_requires_user(self, client: QuartTestClient) -> None:
        complaint_id = await self._file(client)

        response = await client.post(
            "/complaints/update-status",
            json={"id_complaint": complaint_id, "complaint_status": "closed"},
        )

        assert response.status_code == 400

    async def test_update_status_with_non_text_username(
        self, client: QuartTestClient, auth_client: AsyncMock
    ) -> None:
        complaint_id = await self._file(client)

        response = await client.post(
            "/complaints/update-status",
            json={"id_complaint": complaint_id, "complaint_status": "closed", "username": 123},
        )

        assert response.status_code == 400
        assert (await response.get_json())["error_code"] == "USER_REQUIRED"
        auth_client.is_session_active.assert_not_awaited()

    async def test_update_status_of_missing_complaint(self, client: QuartTestClient) -> None:
        response = await client.post(
            "/complaints/update-status",
            json={"id_complaint": 404, "complaint_status": "closed", "username": "staff.user"},
        )

        assert response.status_code == 404

    async def test_delete_hides_complaint(
        self,
        client: QuartTestClient,
        repository: MockComplaintRepositoryImpl,
    ) -> None:
        complaint_id = await self._file(client)

        response = await client.post(
            "/complaints/delete",
            json={"id_complaint": str(complaint_id), "username": "staff.user"},
        )
        listed = await (await client.get("/complaints/list")).get_json()

        assert response.status_code == 200
        assert listed == []
        assert await repository.is_soft_deleted(complaint_id) is True

        again = await client.post(
            "/complaints/delete",
            json={"id_complaint": str(complaint_id), "username": "staff.user"},
        )
        assert again.status_code == 404

    async def test_comments_and_details(self, client: QuartTestClient) -> None:
        complaint_id = await self._file(client)

        created = await client.post(
            "/complaints/comments",
            json={"id_complaint": complaint_id, "comment_text": "Same issue near the bridge"},
        )
        comments = await client.get(f"/complaints/{complaint_id}/comments")
        details = await client.get(f"/complaints/{complaint_id}/details")

        assert created.status_code == 201
        assert [c["comment_text"] for c in await comments.get_json()] == [
            "Same issue near the bridge"
        ]
        details_body = await details.get_json()
        assert details_body["complaint"]["id_complaint"] == complaint_id
        assert len(details_body["comments"]) == 1

    async def test_comment_on_missing_complaint(self, client: QuartTestClient) -> None:
        response = await client.post(
            "/complaints/comments",
            json={"id_complaint": 999, "text": "Same issue near the bridge"},
        )

        assert response.status_code == 404

    async def test_details_with_invalid_id(self, client: QuartTestClient) -> None:
        response = await client.get("/complaints/not-a-number/details")

        assert response.status_code == 400

    async def test_stats(self, client: QuartTestClient) -> None:
        await self._file(client, entity=1)
        await self._file(client, entity=1)
        await self._file(client, entity=2)

        response = await client.get("/complaints/stats")
        body = await response.get_json()

        assert response.status_code == 200
        assert body["entity_stats"][0] == {"public_entity": "City Hall", "total_complaints": 2}
        assert body["status_stats"] == [{"complaint_status": "open", "total": 3}]

    async def test_status_history_endpoint(
        self, client: QuartTestClient, repository: MockComplaintRepositoryImpl
    ) -> None:
        complaint_id = await self._file(client)

        response = await client.get(f"/complaints/{complaint_id}/history")

        assert response.status_code == 200
        assert await response.get_json() == []

    async def test_correlation_id_is_echoed(self, client: QuartTestClient) -> None:
        response = await client.get(
            "/complaints/list", headers={"X-Correlation-ID": "corr-from-client"}
        )

        assert response.headers["X-Correlation-ID"] == "corr-from-client"

    async def test_correlation_id_is_generated(self, client: QuartTestClient) -> None:
        response = await client.get("/complaints/list")

        assert response.headers.get("X-Correlation-ID")

    async def test_metrics_endpoint(self, client: QuartTestClient) -> None:
        await client.get("/complaints/list")

        response = await client.get("/metrics")
        body = (await response.get_data()).decode("utf-8")

        assert response.status_code == 200
        assert "complaint_http_requests_total" in body


class _EventBusProvider(Provider):
    scope = Scope.APP

    def __init__(self, kafka_bus: KafkaPublisherProtocol) -> None:
        super().__init__()
        self._kafka_bus = kafka_bus

    @provide
    def provide_kafka_bus(self) -> KafkaPublisherProtocol:
        return self._kafka_bus


@pytest.mark.integration
class TestStartupWithUnavailableEventBus:
    async def test_any_kafka_error_at_startup_is_tolerated(self) -> None:
        kafka_bus = AsyncMock(spec=KafkaPublisherProtocol)
        kafka_bus.start.side_effect = UnrecognizedBrokerVersion()
        kafka_bus.state = BusState.DISCONNECTED
        settings = Settings(
            DATABASE_URL="sqlite+aiosqlite:///:memory:",
            USE_MOCK_REPOSITORY=True,
            KAFKA_ENABLED=False,
            PUBLIC_ENTITY_SEED=[],
        )
        app = create_app(settings, _EventBusProvider(kafka_bus))

        async with app.test_app() as test_app:
            response = await test_app.test_client().get("/healthz")

        assert response.status_code == 200
        body = await response.get_json()
        assert body["dependencies"]["event_bus"]["status"] == "degraded"
        kafka_bus.start.assert_awaited_once()
