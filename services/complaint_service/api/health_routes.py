"""Health and metrics routes for the Complaint Service."""

from __future__ import annotations

from typing import Any

from complaints_service_libs.kafka_client import BusState, KafkaPublisherProtocol
from complaints_service_libs.logging_utils import create_service_logger
from dishka import FromDishka
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
from quart import Blueprint, Response, jsonify
from quart_dishka import inject
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from services.complaint_service.config import Settings

logger = create_service_logger("complaint_service.api.health")
health_bp = Blueprint("health_routes", __name__)


@health_bp.route("/healthz")
@inject
async def health_check(
    settings: FromDishka[Settings],
    engine: FromDishka[AsyncEngine],
    kafka_bus: FromDishka[KafkaPublisherProtocol],
) -> tuple[Response, int]:
    """Standardized health check endpoint."""
    checks = {"service_responsive": True, "dependencies_available": True}
    dependencies: dict[str, Any] = {}

    if settings.USE_MOCK_REPOSITORY:
        dependencies["database"] = {"status": "not_used"}
    else:
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            dependencies["database"] = {"status": "healthy"}
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Database health check failed: {e}")
            dependencies["database"] = {"status": "unhealthy", "error": str(e)}
            checks["dependencies_available"] = False

    # Publishing is fire-and-forget, so a disconnected bus does not fail the check
    bus_state = kafka_bus.state
    bus_status = {
        BusState.CONNECTED: "healthy",
        BusState.DISCONNECTED: "degraded",
        BusState.DISABLED: "disabled",
    }[bus_state]
    dependencies["event_bus"] = {"status": bus_status, "state": bus_state.value}

    overall_status = "healthy" if checks["dependencies_available"] else "unhealthy"

    health_response = {
        "service": settings.SERVICE_NAME,
        "status": overall_status,
        "message": f"Complaint Service is {overall_status}",
        "version": "1.0.0",
        "checks": checks,
        "dependencies": dependencies,
        "environment": settings.ENVIRONMENT.value,
    }

    status_code = 200 if overall_status == "healthy" else 503
    return jsonify(health_response), status_code


@health_bp.route("/metrics")
@inject
async def metrics(registry: FromDishka[CollectorRegistry]) -> Response:
    """Prometheus metrics endpoint."""
    try:
        metrics_data = generate_latest(registry)
        return Response(metrics_data, content_type=CONTENT_TYPE_LATEST)
    except Exception as e:
        logger.error(f"Error generating metrics: {e}", exc_info=True)
        return Response("Error generating metrics", status=500)
