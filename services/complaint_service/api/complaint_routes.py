"""API routes for the Complaint Service.

Write endpoints accept JSON or form-encoded bodies. The acting user for staff
operations comes from the ``X-User-ID`` header or the ``username`` field.
"""

from __future__ import annotations

from typing import Any

from complaints_service_libs.logging_utils import create_service_logger
from complaints_service_libs.request_middleware import get_correlation_id
from dishka import FromDishka
from pydantic import BaseModel
from quart import Blueprint, Response, jsonify, request
from quart_dishka import inject

from services.complaint_service.metrics import ComplaintMetrics
from services.complaint_service.protocols import ComplaintLifecycleServiceProtocol
from services.complaint_service.results import Err, Result

logger = create_service_logger("complaint_service.api.complaints")
complaint_bp = Blueprint("complaint_routes", __name__)


async def _read_payload() -> dict[str, Any]:
    data = await request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    form = await request.form
    return form.to_dict() if form else {}


def _acting_user(payload: dict[str, Any]) -> Any:
    return request.headers.get("X-User-ID") or payload.get("username")


def _first_present(payload: dict[str, Any], *names: str) -> Any:
    for name in names:
        if name in payload:
            return payload[name]
    return None


def _serialize(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_serialize(item) for item in value]
    return value


def _error_response(
    err: Err, endpoint: str, metrics: ComplaintMetrics
) -> tuple[Response, int]:
    metrics.api_errors_total.labels(endpoint=endpoint, error_type=err.error_code.lower()).inc()
    body: dict[str, Any] = {"error": err.message, "error_code": err.error_code}
    if err.redirect_to_login:
        body["redirectToLogin"] = True
    return jsonify(body), err.status_code


def _to_response(
    result: Result[Any],
    endpoint: str,
    metrics: ComplaintMetrics,
    success_status: int = 200,
) -> tuple[Response, int]:
    if isinstance(result, Err):
        return _error_response(result, endpoint, metrics)
    return jsonify(_serialize(result.value)), success_status


def _message_response(
    result: Result[str], endpoint: str, metrics: ComplaintMetrics
) -> tuple[Response, int]:
    if isinstance(result, Err):
        return _error_response(result, endpoint, metrics)
    return jsonify({"message": result.value}), 200


def _server_error(
    endpoint: str, metrics: ComplaintMetrics, error: Exception
) -> tuple[Response, int]:
    logger.error(f"Unhandled error on {endpoint}: {error}", exc_info=True)
    metrics.api_errors_total.labels(endpoint=endpoint, error_type="server_error").inc()
    return jsonify({"error": "Internal server error"}), 500


@complaint_bp.route("/entities", methods=["GET"])
@inject
async def list_entities(
    service: FromDishka[ComplaintLifecycleServiceProtocol],
    metrics: FromDishka[ComplaintMetrics],
) -> tuple[Response, int]:
    """List the public entities a complaint can be filed against."""
    endpoint = "/complaints/entities"
    try:
        result = await service.list_entities(get_correlation_id())
        return _to_response(result, endpoint, metrics)
    except Exception as e:
        return _server_error(endpoint, metrics, e)


@complaint_bp.route("/list", methods=["GET"])
@inject
async def list_complaints(
    service: FromDishka[ComplaintLifecycleServiceProtocol],
    metrics: FromDishka[ComplaintMetrics],
) -> tuple[Response, int]:
    endpoint = "/complaints/list"
    try:
        result = await service.list_complaints(get_correlation_id())
        return _to_response(result, endpoint, metrics)
    except Exception as e:
        return _server_error(endpoint, metrics, e)


@complaint_bp.route("/file", methods=["POST"])
@inject
async def file_complaint(
    service: FromDishka[ComplaintLifecycleServiceProtocol],
    metrics: FromDishka[ComplaintMetrics],
) -> tuple[Response, int]:
    """File a new complaint. Returns 201 with the new complaint id."""
    endpoint = "/complaints/file"
    try:
        payload = await _read_payload()
        result = await service.create_complaint(
            _first_present(payload, "entity", "id_public_entity"),
            payload.get("description"),
            get_correlation_id(),
        )
        return _to_response(result, endpoint, metrics, success_status=201)
    except Exception as e:
        return _server_error(endpoint, metrics, e)


@complaint_bp.route("/stats", methods=["GET"])
@inject
async def complaint_stats(
    service: FromDishka[ComplaintLifecycleServiceProtocol],
    metrics: FromDishka[ComplaintMetrics],
) -> tuple[Response, int]:
    endpoint = "/complaints/stats"
    try:
        result = await service.get_stats(get_correlation_id())
        return _to_response(result, endpoint, metrics)
    except Exception as e:
        return _server_error(endpoint, metrics, e)


@complaint_bp.route("/update-status", methods=["POST"])
@inject
async def update_status(
    service: FromDishka[ComplaintLifecycleServiceProtocol],
    metrics: FromDishka[ComplaintMetrics],
) -> tuple[Response, int]:
    """Change the status of a complaint. Requires an active staff session."""
    endpoint = "/complaints/update-status"
    try:
        payload = await _read_payload()
        result = await service.update_status(
            payload.get("id_complaint"),
            _first_present(payload, "complaint_status", "status"),
            _acting_user(payload),
            get_correlation_id(),
        )
        return _message_response(result, endpoint, metrics)
    except Exception as e:
        return _server_error(endpoint, metrics, e)


@complaint_bp.route("/delete", methods=["POST"])
@inject
async def delete_complaint(
    service: FromDishka[ComplaintLifecycleServiceProtocol],
    metrics: FromDishka[ComplaintMetrics],
) -> tuple[Response, int]:
    """Soft-delete a complaint. Requires an active staff session."""
    endpoint = "/complaints/delete"
    try:
        payload = await _read_payload()
        result = await service.delete_complaint(
            payload.get("id_complaint"),
            _acting_user(payload),
            get_correlation_id(),
        )
        return _message_response(result, endpoint, metrics)
    except Exception as e:
        return _server_error(endpoint, metrics, e)


@complaint_bp.route("/comments", methods=["POST"])
@inject
async def add_comment(
    service: FromDishka[ComplaintLifecycleServiceProtocol],
    metrics: FromDishka[ComplaintMetrics],
) -> tuple[Response, int]:
    """Add an anonymous comment to an active complaint."""
    endpoint = "/complaints/comments"
    try:
        payload = await _read_payload()
        result = await service.add_comment(
            payload.get("id_complaint"),
            _first_present(payload, "comment_text", "text"),
            get_correlation_id(),
        )
        return _to_response(result, endpoint, metrics, success_status=201)
    except Exception as e:
        return _server_error(endpoint, metrics, e)


@complaint_bp.route("/<complaint_id>/comments", methods=["GET"])
@inject
async def get_comments(
    complaint_id: str,
    service: FromDishka[ComplaintLifecycleServiceProtocol],
    metrics: FromDishka[ComplaintMetrics],
) -> tuple[Response, int]:
    endpoint = "/complaints/<complaint_id>/comments"
    try:
        result = await service.get_comments(complaint_id, get_correlation_id())
        return _to_response(result, endpoint, metrics)
    except Exception as e:
        return _server_error(endpoint, metrics, e)


@complaint_bp.route("/<complaint_id>/details", methods=["GET"])
@inject
async def get_complaint_details(
    complaint_id: str,
    service: FromDishka[ComplaintLifecycleServiceProtocol],
    metrics: FromDishka[ComplaintMetrics],
) -> tuple[Response, int]:
    endpoint = "/complaints/<complaint_id>/details"
    try:
        result = await service.get_complaint_details(complaint_id, get_correlation_id())
        return _to_response(result, endpoint, metrics)
    except Exception as e:
        return _server_error(endpoint, metrics, e)


@complaint_bp.route("/<complaint_id>/history", methods=["GET"])
@inject
async def get_status_history(
    complaint_id: str,
    service: FromDishka[ComplaintLifecycleServiceProtocol],
    metrics: FromDishka[ComplaintMetrics],
) -> tuple[Response, int]:
    """Status history recorded from the status events topic."""
    endpoint = "/complaints/<complaint_id>/history"
    try:
        result = await service.get_status_history(complaint_id, get_correlation_id())
        return _to_response(result, endpoint, metrics)
    except Exception as e:
        return _server_error(endpoint, metrics, e)
