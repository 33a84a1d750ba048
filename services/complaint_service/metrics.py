"""Metrics definitions for the Complaint Service."""

from __future__ import annotations

from typing import Any, Dict

from prometheus_client import Counter, Histogram


class ComplaintMetrics:
    """A container for all Prometheus metrics for the service."""

    def __init__(self) -> None:
        # HTTP and API metrics
        self.http_requests_total = Counter(
            "complaint_http_requests_total",
            "Total number of HTTP requests for Complaint Service.",
            ["method", "endpoint", "http_status"],
        )
        self.http_request_duration_seconds = Histogram(
            "complaint_http_request_duration_seconds",
            "HTTP request duration in seconds for Complaint Service.",
            ["method", "endpoint"],
        )
        self.api_errors_total = Counter(
            "complaint_api_errors_total",
            "Total number of API errors.",
            ["endpoint", "error_type"],
        )

        # Business metrics
        self.complaints_created_total = Counter(
            "complaint_complaints_created_total",
            "Total number of complaints filed successfully.",
        )
        self.status_changes_total = Counter(
            "complaint_status_changes_total",
            "Total number of complaint status changes.",
            ["new_status"],
        )
        self.comments_created_total = Counter(
            "complaint_comments_created_total",
            "Total number of anonymous comments added.",
        )
        self.side_effect_failures_total = Counter(
            "complaint_side_effect_failures_total",
            "Detached side effects (events, emails) that failed.",
            ["operation"],
        )

        # Database metrics
        self.database_operation_duration_seconds = Histogram(
            "complaint_database_operation_duration_seconds",
            "Repository operation duration in seconds.",
            ["operation", "success"],
        )

    def record_database_operation(self, operation: str, duration: float, success: bool) -> None:
        self.database_operation_duration_seconds.labels(
            operation=operation, success=str(success).lower()
        ).observe(duration)

    def record_side_effect_failure(self, operation: str, error: BaseException) -> None:
        self.side_effect_failures_total.labels(operation=operation).inc()

    def get_http_metrics(self) -> Dict[str, Any]:
        """Metrics consumed by the request middleware."""
        return {
            "http_requests_total": self.http_requests_total,
            "http_request_duration_seconds": self.http_request_duration_seconds,
        }
