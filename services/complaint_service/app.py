from __future__ import annotations

import asyncio

from aiokafka.errors import KafkaError
from complaints_service_libs.background_tasks import DetachedTaskRunner
from complaints_service_libs.kafka_client import BusState, KafkaPublisherProtocol
from complaints_service_libs.logging_utils import configure_service_logging, create_service_logger
from complaints_service_libs.quart_app import ComplaintsServiceApp
from complaints_service_libs.request_middleware import (
    setup_correlation_middleware,
    setup_metrics_middleware,
)
from dishka import Provider
from quart_dishka import QuartDishka

import services.complaint_service.startup_setup as startup_setup
from services.complaint_service.api.complaint_routes import complaint_bp
from services.complaint_service.api.health_routes import health_bp
from services.complaint_service.config import Settings, settings
from services.complaint_service.di import build_database_engine, create_container
from services.complaint_service.metrics import ComplaintMetrics
from services.complaint_service.protocols import ComplaintRepositoryProtocol
from services.complaint_service.status_history_consumer import ComplaintStatusHistoryConsumer

# Configure logging first
configure_service_logging(
    "complaint-service",
    environment=settings.ENVIRONMENT.value,
    log_level=settings.LOG_LEVEL,
    log_to_file=settings.LOG_TO_FILE,
    log_file_path=settings.LOG_FILE_PATH,
)
logger = create_service_logger("complaint_service.app")


def create_app(
    app_settings: Settings = settings, *container_overrides: Provider
) -> ComplaintsServiceApp:
    """Create and configure the Complaint Service app with guaranteed infrastructure."""
    app = ComplaintsServiceApp(__name__)

    if not app_settings.DATABASE_URL:
        raise ValueError("DATABASE_URL is required but not configured")

    app.database_engine = build_database_engine(app_settings)
    app.container = create_container(app.database_engine, app_settings, *container_overrides)

    # Integrate DI with Quart (must be done before registering blueprints)
    QuartDishka(app=app, container=app.container)

    setup_correlation_middleware(app)
    setup_metrics_middleware(app)

    app.register_blueprint(health_bp)
    app.register_blueprint(complaint_bp, url_prefix="/complaints")

    @app.before_serving
    async def startup() -> None:
        """Schema, seed data, event bus and optional history consumer."""
        try:
            metrics = await app.container.get(ComplaintMetrics)
            app.extensions["metrics"] = metrics.get_http_metrics()

            app_config = await app.container.get(Settings)
            repository = await app.container.get(ComplaintRepositoryProtocol)
            if not app_config.USE_MOCK_REPOSITORY:
                await startup_setup.initialize_database_schema(app)
            await startup_setup.seed_public_entities(repository, app_config)

            kafka_bus = await app.container.get(KafkaPublisherProtocol)
            try:
                await kafka_bus.start()
            except KafkaError as e:
                # Publishers retry the connection on demand
                logger.warning(f"Event bus unavailable at startup: {e}")

            if app_config.KAFKA_ENABLED and app_config.STATUS_HISTORY_CONSUMER_ENABLED:
                app.kafka_consumer = await app.container.get(ComplaintStatusHistoryConsumer)
                app.consumer_task = asyncio.create_task(app.kafka_consumer.start_consumer())

            logger.info("Complaint Service started successfully")
            logger.info(f"Event bus state: {kafka_bus.state.value}")
            logger.info("Health endpoint: /healthz")
            logger.info("Metrics endpoint: /metrics")
            logger.info("API endpoints: /complaints/")
        except Exception as e:
            logger.critical(f"Failed to start Complaint Service: {e}", exc_info=True)
            raise

    @app.after_serving
    async def shutdown() -> None:
        """Drain side effects before the producer goes away, then release resources."""
        try:
            app_config = await app.container.get(Settings)
            task_runner = await app.container.get(DetachedTaskRunner)
            await task_runner.drain(timeout=app_config.SIDE_EFFECT_DRAIN_TIMEOUT_SECONDS)

            if app.kafka_consumer:
                logger.info("Stopping status history consumer...")
                await app.kafka_consumer.stop_consumer()

            if app.consumer_task and not app.consumer_task.done():
                app.consumer_task.cancel()
                try:
                    await app.consumer_task
                except asyncio.CancelledError:
                    logger.info("Consumer task cancelled successfully")

            kafka_bus = await app.container.get(KafkaPublisherProtocol)
            if kafka_bus.state is not BusState.DISABLED:
                await kafka_bus.stop()

            await app.container.close()
            await app.database_engine.dispose()

            logger.info("Complaint Service shutdown complete")

        except Exception as e:
            logger.error(f"Error during shutdown: {e}", exc_info=True)

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    app.run(host=settings.HOST, port=settings.PORT)
