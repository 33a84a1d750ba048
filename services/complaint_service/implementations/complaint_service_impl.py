"""Complaint lifecycle use cases.

Validation and not-found outcomes come back as ``Err`` values. Storage failures
are logged and turned into a generic 500 ``Err``. Status events and email
requests are handed to the detached task runner after the database write has
succeeded, so their failures never change the result returned to the caller.
"""

from __future__ import annotations

import asyncio
from typing import Any

from complaints_core.domain_enums import ComplaintStatus
from complaints_core.error_enums import ComplaintErrorCode
from complaints_core.events.complaint_events import ComplaintStatusChangedV1
from complaints_service_libs.background_tasks import DetachedTaskRunner
from complaints_service_libs.logging_utils import create_service_logger, log_business_event

from services.complaint_service.constants import GENERIC_ERROR_MESSAGE, SYSTEM_ACTOR
from services.complaint_service.exceptions import AuthServiceUnavailableError, StorageError
from services.complaint_service.metrics import ComplaintMetrics
from services.complaint_service.protocols import (
    AuthClientProtocol,
    CommentCreated,
    CommentRecord,
    ComplaintCreated,
    ComplaintDetails,
    ComplaintLifecycleServiceProtocol,
    ComplaintRecord,
    ComplaintRepositoryProtocol,
    ComplaintStats,
    EmailNotificationPublisherProtocol,
    PublicEntityRecord,
    StatusEventPublisherProtocol,
    StatusHistoryRecord,
)
from services.complaint_service.results import (
    Err,
    Ok,
    Result,
    internal_error,
    not_found,
    session_inactive,
)
from services.complaint_service.validation import (
    validate_comment_input,
    validate_complaint_id,
    validate_complaint_input,
    validate_status,
)

logger = create_service_logger("complaint_service.lifecycle")

COMPLAINT_NOT_FOUND_MESSAGE = "Complaint not found"


def _is_username(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


class ComplaintLifecycleServiceImpl(ComplaintLifecycleServiceProtocol):
    def __init__(
        self,
        repo: ComplaintRepositoryProtocol,
        auth_client: AuthClientProtocol,
        status_publisher: StatusEventPublisherProtocol,
        email_publisher: EmailNotificationPublisherProtocol,
        task_runner: DetachedTaskRunner,
        metrics: ComplaintMetrics | None = None,
    ) -> None:
        self.repo = repo
        self.auth_client = auth_client
        self.status_publisher = status_publisher
        self.email_publisher = email_publisher
        self.task_runner = task_runner
        self.metrics = metrics

    def _storage_failure(self, operation: str, error: StorageError, correlation_id: str) -> Err:
        logger.error(
            f"Storage failure during {operation}: {error.message}",
            operation=operation,
            correlation_id=correlation_id,
        )
        return internal_error(GENERIC_ERROR_MESSAGE)

    async def _verify_session(self, acting_user: str, correlation_id: str) -> Err | None:
        try:
            is_active = await self.auth_client.is_session_active(acting_user, correlation_id)
        except AuthServiceUnavailableError as e:
            logger.error(
                f"Session check failed, treating session as inactive: {e.message}",
                username=acting_user,
                correlation_id=correlation_id,
            )
            return session_inactive("Unable to verify session. Please log in again.")

        if not is_active:
            logger.warning(
                "Inactive session rejected", username=acting_user, correlation_id=correlation_id
            )
            return session_inactive()
        return None

    def _publish_status_changed(self, event: ComplaintStatusChangedV1, correlation_id: str) -> None:
        self.task_runner.spawn(
            "publish_status_changed",
            self.status_publisher.publish_status_changed,
            event,
            correlation_id,
            correlation_id=correlation_id,
        )

    async def create_complaint(
        self, entity_raw: Any, description_raw: Any, correlation_id: str
    ) -> Result[ComplaintCreated]:
        validated = validate_complaint_input(entity_raw, description_raw)
        if isinstance(validated, Err):
            logger.info(f"Complaint rejected: {validated.message}", correlation_id=correlation_id)
            return validated
        complaint_input = validated.value

        try:
            if not await self.repo.entity_exists(complaint_input.entity_id):
                return Err(
                    400,
                    "The selected public entity does not exist",
                    ComplaintErrorCode.ENTITY_NOT_FOUND.value,
                )
            complaint_id = await self.repo.create_complaint(
                complaint_input.entity_id, complaint_input.description
            )
        except StorageError as e:
            return self._storage_failure("create_complaint", e, correlation_id)

        complaint: ComplaintRecord | None = None
        try:
            complaint = await self.repo.find_complaint_by_id(complaint_id)
        except StorageError as e:
            logger.warning(
                f"Created complaint {complaint_id} could not be read back: {e.message}",
                correlation_id=correlation_id,
            )

        if self.metrics:
            self.metrics.complaints_created_total.inc()
        log_business_event(
            logger,
            "complaint.created",
            {"complaint_id": complaint_id, "entity_id": complaint_input.entity_id},
            correlation_id,
        )

        self._publish_status_changed(
            ComplaintStatusChangedV1(
                id_complaint=complaint_id,
                previous_status=None,
                new_status=ComplaintStatus.OPEN,
                changed_by=SYSTEM_ACTOR,
                change_description="Complaint filed",
            ),
            correlation_id,
        )
        if complaint is not None:
            self.task_runner.spawn(
                "publish_complaint_created_email",
                self.email_publisher.publish_complaint_created,
                complaint,
                correlation_id,
                correlation_id=correlation_id,
            )

        return Ok(ComplaintCreated(id_complaint=complaint_id))

    async def list_complaints(self, correlation_id: str) -> Result[list[ComplaintRecord]]:
        try:
            return Ok(await self.repo.find_active_complaints())
        except StorageError as e:
            return self._storage_failure("list_complaints", e, correlation_id)

    async def list_entities(self, correlation_id: str) -> Result[list[PublicEntityRecord]]:
        try:
            return Ok(await self.repo.find_all_entities())
        except StorageError as e:
            return self._storage_failure("list_entities", e, correlation_id)

    async def update_status(
        self,
        complaint_id_raw: Any,
        new_status_raw: Any,
        acting_user: Any,
        correlation_id: str,
    ) -> Result[str]:
        id_result = validate_complaint_id(complaint_id_raw)
        if isinstance(id_result, Err):
            return id_result
        status_result = validate_status(new_status_raw)
        if isinstance(status_result, Err):
            return status_result
        if not _is_username(acting_user):
            return Err(400, "Username is required", ComplaintErrorCode.USER_REQUIRED.value)

        complaint_id = id_result.value
        new_status = status_result.value
        acting_user = acting_user.strip()

        session_error = await self._verify_session(acting_user, correlation_id)
        if session_error is not None:
            return session_error

        try:
            # Not a compare-and-swap: concurrent updates resolve last-writer-wins
            current = await self.repo.find_complaint_by_id(complaint_id)
            if current is None:
                return not_found(COMPLAINT_NOT_FOUND_MESSAGE)
            updated = await self.repo.update_complaint_status(complaint_id, new_status)
        except StorageError as e:
            return self._storage_failure("update_status", e, correlation_id)

        if not updated:
            return not_found(COMPLAINT_NOT_FOUND_MESSAGE)

        previous_status = current.complaint_status
        if self.metrics:
            self.metrics.status_changes_total.labels(new_status=new_status.value).inc()
        log_business_event(
            logger,
            "complaint.status_updated",
            {
                "complaint_id": complaint_id,
                "previous_status": previous_status.value,
                "new_status": new_status.value,
                "changed_by": acting_user,
            },
            correlation_id,
        )

        self._publish_status_changed(
            ComplaintStatusChangedV1(
                id_complaint=complaint_id,
                previous_status=previous_status,
                new_status=new_status,
                changed_by=acting_user,
                change_description=(
                    f"Status changed from {previous_status.value} to {new_status.value}"
                ),
            ),
            correlation_id,
        )
        self.task_runner.spawn(
            "publish_complaint_updated_email",
            self.email_publisher.publish_complaint_updated,
            current,
            new_status,
            correlation_id,
            correlation_id=correlation_id,
        )

        return Ok(f"Complaint status updated to {new_status.value}")

    async def delete_complaint(
        self, complaint_id_raw: Any, acting_user: Any, correlation_id: str
    ) -> Result[str]:
        id_result = validate_complaint_id(complaint_id_raw)
        if isinstance(id_result, Err):
            return id_result
        if not _is_username(acting_user):
            return Err(400, "Username is required", ComplaintErrorCode.USER_REQUIRED.value)

        complaint_id = id_result.value
        acting_user = acting_user.strip()

        session_error = await self._verify_session(acting_user, correlation_id)
        if session_error is not None:
            return session_error

        try:
            deleted = await self.repo.soft_delete_complaint(complaint_id)
        except StorageError as e:
            return self._storage_failure("delete_complaint", e, correlation_id)

        if not deleted:
            return not_found(COMPLAINT_NOT_FOUND_MESSAGE)

        log_business_event(
            logger,
            "complaint.deleted",
            {"complaint_id": complaint_id, "deleted_by": acting_user},
            correlation_id,
        )
        return Ok("Complaint deleted successfully")

    async def add_comment(
        self, complaint_id_raw: Any, text_raw: Any, correlation_id: str
    ) -> Result[CommentCreated]:
        validated = validate_comment_input(complaint_id_raw, text_raw)
        if isinstance(validated, Err):
            return validated
        comment_input = validated.value

        try:
            if await self.repo.find_complaint_by_id(comment_input.complaint_id) is None:
                return not_found(COMPLAINT_NOT_FOUND_MESSAGE)
            comment_id = await self.repo.create_comment(
                comment_input.complaint_id, comment_input.text
            )
        except StorageError as e:
            return self._storage_failure("add_comment", e, correlation_id)

        if self.metrics:
            self.metrics.comments_created_total.inc()
        log_business_event(
            logger,
            "comment.created",
            {"complaint_id": comment_input.complaint_id, "comment_id": comment_id},
            correlation_id,
        )
        return Ok(CommentCreated(id_comment=comment_id))

    async def get_comments(
        self, complaint_id_raw: Any, correlation_id: str
    ) -> Result[list[CommentRecord]]:
        id_result = validate_complaint_id(complaint_id_raw)
        if isinstance(id_result, Err):
            return id_result

        try:
            if await self.repo.find_complaint_by_id(id_result.value) is None:
                return not_found(COMPLAINT_NOT_FOUND_MESSAGE)
            return Ok(await self.repo.find_comments_by_complaint(id_result.value))
        except StorageError as e:
            return self._storage_failure("get_comments", e, correlation_id)

    async def get_complaint_details(
        self, complaint_id_raw: Any, correlation_id: str
    ) -> Result[ComplaintDetails]:
        id_result = validate_complaint_id(complaint_id_raw)
        if isinstance(id_result, Err):
            return id_result

        try:
            complaint, comments = await asyncio.gather(
                self.repo.find_complaint_by_id(id_result.value),
                self.repo.find_comments_by_complaint(id_result.value),
            )
        except StorageError as e:
            return self._storage_failure("get_complaint_details", e, correlation_id)

        if complaint is None:
            return not_found(COMPLAINT_NOT_FOUND_MESSAGE)
        return Ok(ComplaintDetails(complaint=complaint, comments=comments))

    async def get_stats(self, correlation_id: str) -> Result[ComplaintStats]:
        try:
            entity_stats, status_stats = await asyncio.gather(
                self.repo.stats_by_entity(),
                self.repo.stats_by_status(),
            )
        except StorageError as e:
            return self._storage_failure("get_stats", e, correlation_id)
        return Ok(ComplaintStats(entity_stats=entity_stats, status_stats=status_stats))

    async def get_status_history(
        self, complaint_id_raw: Any, correlation_id: str
    ) -> Result[list[StatusHistoryRecord]]:
        id_result = validate_complaint_id(complaint_id_raw)
        if isinstance(id_result, Err):
            return id_result

        try:
            if await self.repo.find_complaint_by_id(id_result.value) is None:
                return not_found(COMPLAINT_NOT_FOUND_MESSAGE)
            return Ok(await self.repo.find_status_history(id_result.value))
        except StorageError as e:
            return self._storage_failure("get_status_history", e, correlation_id)
