from __future__ import annotations

from complaints_service_libs.background_tasks import DetachedTaskRunner
from complaints_service_libs.kafka_client import (
    DisabledKafkaBus,
    KafkaBus,
    KafkaPublisherProtocol,
)
from dishka import AsyncContainer, Provider, Scope, make_async_container, provide
from prometheus_client import REGISTRY, CollectorRegistry
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from services.complaint_service.config import Settings, settings
from services.complaint_service.implementations.auth_client_impl import AuthServiceClientImpl
from services.complaint_service.implementations.complaint_repository_mock_impl import (
    MockComplaintRepositoryImpl,
)
from services.complaint_service.implementations.complaint_repository_postgres_impl import (
    PostgreSQLComplaintRepositoryImpl,
)
from services.complaint_service.implementations.complaint_service_impl import (
    ComplaintLifecycleServiceImpl,
)
from services.complaint_service.implementations.email_publisher_impl import (
    KafkaEmailNotificationPublisherImpl,
)
from services.complaint_service.implementations.status_event_publisher_impl import (
    KafkaStatusEventPublisherImpl,
)
from services.complaint_service.implementations.template_renderer_impl import (
    JinjaEmailTemplateRenderer,
)
from services.complaint_service.metrics import ComplaintMetrics
from services.complaint_service.protocols import (
    AuthClientProtocol,
    ComplaintLifecycleServiceProtocol,
    ComplaintRepositoryProtocol,
    EmailNotificationPublisherProtocol,
    EmailTemplateRendererProtocol,
    StatusEventPublisherProtocol,
)
from services.complaint_service.status_history_consumer import (
    ComplaintStatusHistoryConsumer,
    StatusHistoryProjector,
)


def build_database_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine. Pool options only apply to server databases."""
    if settings.DATABASE_URL.startswith("sqlite"):
        return create_async_engine(settings.DATABASE_URL, echo=False)
    return create_async_engine(
        settings.DATABASE_URL,
        echo=False,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_pre_ping=settings.DATABASE_POOL_PRE_PING,
        pool_recycle=settings.DATABASE_POOL_RECYCLE,
    )


class DatabaseProvider(Provider):
    def __init__(self, engine: AsyncEngine) -> None:
        super().__init__()
        self._engine = engine

    @provide(scope=Scope.APP)
    def provide_engine(self) -> AsyncEngine:
        """The engine is owned by the app so health checks and schema setup share it."""
        return self._engine


class RepositoryProvider(Provider):
    @provide(scope=Scope.APP)
    def provide_complaint_repository(
        self,
        settings: Settings,
        engine: AsyncEngine,
        metrics: ComplaintMetrics,
    ) -> ComplaintRepositoryProtocol:
        if settings.USE_MOCK_REPOSITORY:
            return MockComplaintRepositoryImpl()
        return PostgreSQLComplaintRepositoryImpl(engine, metrics)


class ServiceProvider(Provider):
    def __init__(self, service_settings: Settings = settings) -> None:
        super().__init__()
        self._settings = service_settings

    @provide(scope=Scope.APP)
    def provide_settings(self) -> Settings:
        return self._settings

    @provide(scope=Scope.APP)
    def provide_kafka_bus(self, settings: Settings) -> KafkaPublisherProtocol:
        """Provide the event bus. It is started by the app's before_serving hook."""
        if not settings.KAFKA_ENABLED:
            return DisabledKafkaBus(client_id=settings.KAFKA_CLIENT_ID)
        return KafkaBus(
            client_id=settings.KAFKA_CLIENT_ID,
            bootstrap_servers=settings.kafka_bootstrap_servers,
            request_timeout_ms=settings.KAFKA_REQUEST_TIMEOUT_MS,
        )

    @provide(scope=Scope.APP)
    def provide_task_runner(self, metrics: ComplaintMetrics) -> DetachedTaskRunner:
        return DetachedTaskRunner(on_failure=metrics.record_side_effect_failure)

    @provide(scope=Scope.APP)
    def provide_auth_client(self, settings: Settings) -> AuthClientProtocol:
        return AuthServiceClientImpl(
            base_url=settings.AUTH_SERVICE_URL,
            session_path=settings.AUTH_SESSION_PATH,
            timeout_seconds=settings.AUTH_SERVICE_TIMEOUT_SECONDS,
        )

    @provide(scope=Scope.APP)
    def provide_template_renderer(self) -> EmailTemplateRendererProtocol:
        return JinjaEmailTemplateRenderer()

    @provide(scope=Scope.APP)
    def provide_status_event_publisher(
        self, kafka_bus: KafkaPublisherProtocol, settings: Settings
    ) -> StatusEventPublisherProtocol:
        return KafkaStatusEventPublisherImpl(kafka_bus, settings)

    @provide(scope=Scope.APP)
    def provide_email_publisher(
        self,
        kafka_bus: KafkaPublisherProtocol,
        renderer: EmailTemplateRendererProtocol,
        settings: Settings,
    ) -> EmailNotificationPublisherProtocol:
        return KafkaEmailNotificationPublisherImpl(kafka_bus, renderer, settings)

    @provide(scope=Scope.REQUEST)
    def provide_lifecycle_service(
        self,
        repo: ComplaintRepositoryProtocol,
        auth_client: AuthClientProtocol,
        status_publisher: StatusEventPublisherProtocol,
        email_publisher: EmailNotificationPublisherProtocol,
        task_runner: DetachedTaskRunner,
        metrics: ComplaintMetrics,
    ) -> ComplaintLifecycleServiceProtocol:
        return ComplaintLifecycleServiceImpl(
            repo=repo,
            auth_client=auth_client,
            status_publisher=status_publisher,
            email_publisher=email_publisher,
            task_runner=task_runner,
            metrics=metrics,
        )


class KafkaProvider(Provider):
    """Provides the status history consumer."""

    @provide(scope=Scope.APP)
    def provide_status_history_projector(
        self, repository: ComplaintRepositoryProtocol
    ) -> StatusHistoryProjector:
        return StatusHistoryProjector(repository)

    @provide(scope=Scope.APP)
    def provide_status_history_consumer(
        self, settings: Settings, projector: StatusHistoryProjector
    ) -> ComplaintStatusHistoryConsumer:
        return ComplaintStatusHistoryConsumer(
            bootstrap_servers=settings.kafka_bootstrap_servers,
            topic=settings.KAFKA_TOPIC_COMPLAINT_STATUS_EVENTS,
            group_id=settings.STATUS_HISTORY_CONSUMER_GROUP,
            client_id=f"{settings.KAFKA_CLIENT_ID}-history",
            projector=projector,
        )


class MetricsProvider(Provider):
    """Provides Prometheus metrics-related dependencies."""

    @provide(scope=Scope.APP)
    def provide_metrics(self) -> ComplaintMetrics:
        """Provide an application-scoped instance of the metrics container."""
        return ComplaintMetrics()

    @provide(scope=Scope.APP)
    def provide_registry(self) -> CollectorRegistry:
        """Provide the default Prometheus collector registry."""
        return REGISTRY


def create_container(
    engine: AsyncEngine, service_settings: Settings = settings, *overrides: Provider
) -> AsyncContainer:
    """Create and configure the application's dependency injection container.

    Providers passed in ``overrides`` are registered last and replace the
    default factories for the types they provide.
    """
    return make_async_container(
        DatabaseProvider(engine),
        RepositoryProvider(),
        ServiceProvider(service_settings),
        KafkaProvider(),
        MetricsProvider(),
        *overrides,
    )
