"""Publisher of complaint email requests for the external mail-sending service."""

from __future__ import annotations

import time

from aiokafka.errors import KafkaError
from complaints_core.domain_enums import ComplaintStatus
from complaints_core.emailing_models import (
    ComplaintEmailMetadata,
    ComplaintEmailNotificationV1,
    EmailPriority,
)
from complaints_core.event_enums import ComplaintEvent
from complaints_service_libs.kafka_client import KafkaBusUnavailableError, KafkaPublisherProtocol
from complaints_service_libs.logging_utils import create_service_logger, log_business_event
from jinja2 import TemplateError

from services.complaint_service.config import Settings
from services.complaint_service.constants import (
    COMPLAINT_CREATED_ACTION,
    EMAIL_ID_CREATED_PREFIX,
    EMAIL_ID_UPDATED_PREFIX,
    UNKNOWN_ENTITY_NAME,
    complaint_created_subject,
    complaint_created_title,
    complaint_updated_action,
    complaint_updated_subject,
    complaint_updated_title,
)
from services.complaint_service.exceptions import EventBusUnavailableError, SideEffectError
from services.complaint_service.protocols import (
    ComplaintRecord,
    EmailNotificationPublisherProtocol,
    EmailTemplateRendererProtocol,
)

logger = create_service_logger("complaint_service.email_publisher")


class KafkaEmailNotificationPublisherImpl(EmailNotificationPublisherProtocol):
    """Builds complaint email requests and hands them to the event bus.

    Nothing is published when no recipients are configured.
    """

    def __init__(
        self,
        kafka_bus: KafkaPublisherProtocol,
        renderer: EmailTemplateRendererProtocol,
        settings: Settings,
    ) -> None:
        self.kafka_bus = kafka_bus
        self.renderer = renderer
        self.settings = settings
        self.topic = settings.KAFKA_TOPIC_EMAIL_NOTIFICATIONS

    async def publish_complaint_created(
        self, complaint: ComplaintRecord, correlation_id: str
    ) -> None:
        if not self.settings.email_notifications_enabled:
            logger.debug("No email recipients configured, skipping creation email")
            return

        complaint_id = complaint.id_complaint
        entity_name = complaint.public_entity or UNKNOWN_ENTITY_NAME
        title = complaint_created_title(complaint_id, complaint.public_entity)
        html = self._render(
            "complaint_created",
            {
                "title": title,
                "complaint_id": complaint_id,
                "entity_name": entity_name,
                "description": complaint.description,
                "status": complaint.complaint_status.value,
                "created_at": complaint.created_at,
            },
        )
        notification = ComplaintEmailNotificationV1(
            id=f"{EMAIL_ID_CREATED_PREFIX}-{complaint_id}-{int(time.time() * 1000)}",
            to=list(self.settings.EMAIL_RECIPIENTS),
            cc=list(self.settings.EMAIL_CC_RECIPIENTS),
            subject=complaint_created_subject(complaint_id),
            title=title,
            html=html,
            complaint_id=complaint_id,
            description=complaint.description,
            status=complaint.complaint_status.value,
            entity_name=entity_name,
            created_at=complaint.created_at,
            action=COMPLAINT_CREATED_ACTION,
            priority=EmailPriority.HIGH,
            correlation_id=correlation_id,
            metadata=ComplaintEmailMetadata(
                event_type=ComplaintEvent.COMPLAINT_CREATED, source=self.settings.EMAIL_SOURCE
            ),
        )
        await self._publish(notification, correlation_id)

    async def publish_complaint_updated(
        self,
        complaint: ComplaintRecord,
        new_status: ComplaintStatus,
        correlation_id: str,
    ) -> None:
        if not self.settings.email_notifications_enabled:
            logger.debug("No email recipients configured, skipping update email")
            return

        complaint_id = complaint.id_complaint
        previous_status = complaint.complaint_status.value
        entity_name = complaint.public_entity or UNKNOWN_ENTITY_NAME
        title = complaint_updated_title(complaint_id)
        action = complaint_updated_action(new_status.value)
        html = self._render(
            "complaint_updated",
            {
                "title": title,
                "complaint_id": complaint_id,
                "entity_name": entity_name,
                "description": complaint.description,
                "previous_status": previous_status,
                "status": new_status.value,
                "created_at": complaint.created_at,
                "action": action,
            },
        )
        notification = ComplaintEmailNotificationV1(
            id=f"{EMAIL_ID_UPDATED_PREFIX}-{complaint_id}-{int(time.time() * 1000)}",
            to=list(self.settings.EMAIL_RECIPIENTS),
            cc=list(self.settings.EMAIL_CC_RECIPIENTS),
            subject=complaint_updated_subject(complaint_id),
            title=title,
            html=html,
            complaint_id=complaint_id,
            description=complaint.description,
            status=new_status.value,
            previous_status=previous_status,
            entity_name=entity_name,
            created_at=complaint.created_at,
            action=action,
            priority=EmailPriority.NORMAL,
            correlation_id=correlation_id,
            metadata=ComplaintEmailMetadata(
                event_type=ComplaintEvent.COMPLAINT_UPDATED, source=self.settings.EMAIL_SOURCE
            ),
        )
        await self._publish(notification, correlation_id)

    def _render(self, template_id: str, variables: dict[str, object]) -> str:
        try:
            return self.renderer.render(template_id, variables)
        except TemplateError as e:
            raise SideEffectError(f"Failed to render email template '{template_id}': {e}") from e

    async def _publish(
        self, notification: ComplaintEmailNotificationV1, correlation_id: str
    ) -> None:
        headers = {
            "event-type": notification.metadata.event_type.value,
            "correlation-id": correlation_id,
        }
        try:
            published = await self.kafka_bus.publish(
                self.topic, notification, key=notification.id, headers=headers
            )
        except (KafkaError, KafkaBusUnavailableError) as e:
            raise EventBusUnavailableError(self.topic, str(e)) from e

        if published:
            log_business_event(
                logger,
                notification.metadata.event_type.value,
                {
                    "email_id": notification.id,
                    "complaint_id": notification.complaint_id,
                    "recipients": len(notification.to),
                    "cc_recipients": len(notification.cc),
                },
                correlation_id,
            )
