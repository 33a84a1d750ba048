"""Request middleware for Quart services: correlation IDs and Prometheus metrics."""

from __future__ import annotations

import time
import uuid

from quart import Quart, Response, current_app, g, request
from structlog.contextvars import clear_contextvars

from .logging_utils import bind_correlation_context, create_service_logger

logger = create_service_logger("request-middleware")

CORRELATION_ID_HEADER = "X-Correlation-ID"


def get_correlation_id() -> str:
    """Return the correlation id of the current request, or a fresh one outside a request."""
    correlation_id = getattr(g, "correlation_id", None)
    return correlation_id if correlation_id else str(uuid.uuid4())


def setup_correlation_middleware(app: Quart, header_name: str = CORRELATION_ID_HEADER) -> None:
    """Attach a correlation id to every request.

    The id comes from the incoming header or is generated as a uuid4. It is
    stored on ``g``, bound to the structlog context and echoed in the response.
    """

    @app.before_request
    async def assign_correlation_id() -> None:
        correlation_id = request.headers.get(header_name) or str(uuid.uuid4())
        g.correlation_id = correlation_id
        bind_correlation_context(correlation_id, method=request.method, path=request.path)
        logger.info("Incoming request", remote_addr=request.remote_addr)

    @app.after_request
    async def echo_correlation_id(response: Response) -> Response:
        correlation_id = getattr(g, "correlation_id", None)
        if correlation_id:
            response.headers[header_name] = correlation_id
        logger.info("Outgoing response", status_code=response.status_code)
        return response

    @app.teardown_request
    async def clear_log_context(exc: BaseException | None) -> None:
        clear_contextvars()


def setup_metrics_middleware(
    app: Quart,
    request_count_metric_name: str = "http_requests_total",
    request_duration_metric_name: str = "http_request_duration_seconds",
    status_label_name: str = "http_status",
) -> None:
    """Record request count and duration for every request.

    The metric instances must be stored in ``app.extensions["metrics"]`` as a
    dict keyed by metric name.
    """

    @app.before_request
    async def record_start_time() -> None:
        g.start_time = time.time()

    @app.after_request
    async def record_request_metrics(response: Response) -> Response:
        try:
            start_time = getattr(g, "start_time", None)
            extensions = getattr(current_app, "extensions", {})
            metrics = extensions.get("metrics", {}) if extensions else {}

            if start_time is not None and metrics:
                duration = time.time() - start_time
                rule = request.url_rule.rule if request.url_rule else "unmatched"
                method = request.method

                request_count = metrics.get(request_count_metric_name)
                request_duration = metrics.get(request_duration_metric_name)

                if request_count:
                    request_count.labels(
                        method=method,
                        endpoint=rule,
                        **{status_label_name: str(response.status_code)},
                    ).inc()
                if request_duration:
                    request_duration.labels(method=method, endpoint=rule).observe(duration)

        except Exception as e:
            logger.error(f"Error recording request metrics: {e}")

        return response
