"""Kafka publisher for complaint status change events."""

from __future__ import annotations

import time

from aiokafka.errors import KafkaError
from complaints_core.event_enums import ComplaintEvent, status_event_key
from complaints_core.events.complaint_events import ComplaintStatusChangedV1
from complaints_service_libs.kafka_client import KafkaBusUnavailableError, KafkaPublisherProtocol
from complaints_service_libs.logging_utils import create_service_logger, log_business_event

from services.complaint_service.config import Settings
from services.complaint_service.exceptions import EventBusUnavailableError
from services.complaint_service.protocols import StatusEventPublisherProtocol

logger = create_service_logger("complaint_service.status_event_publisher")


class KafkaStatusEventPublisherImpl(StatusEventPublisherProtocol):
    def __init__(self, kafka_bus: KafkaPublisherProtocol, settings: Settings) -> None:
        self.kafka_bus = kafka_bus
        self.settings = settings
        self.topic = settings.KAFKA_TOPIC_COMPLAINT_STATUS_EVENTS

    async def publish_status_changed(
        self, event: ComplaintStatusChangedV1, correlation_id: str
    ) -> None:
        timestamp_ms = int(time.time() * 1000)
        key = status_event_key(event.id_complaint, timestamp_ms)
        headers = {
            "event-type": ComplaintEvent.COMPLAINT_STATUS_CHANGED.value,
            "correlation-id": correlation_id,
            "complaint-id": str(event.id_complaint),
            "new-status": event.new_status.value,
            "timestamp": event.event_timestamp.isoformat(),
            "source-service": self.settings.SERVICE_NAME,
        }

        try:
            published = await self.kafka_bus.publish(
                self.topic, event, key=key, headers=headers
            )
        except (KafkaError, KafkaBusUnavailableError) as e:
            raise EventBusUnavailableError(self.topic, str(e)) from e

        if published:
            log_business_event(
                logger,
                ComplaintEvent.COMPLAINT_STATUS_CHANGED.value,
                {
                    "complaint_id": event.id_complaint,
                    "previous_status": event.previous_status.value
                    if event.previous_status
                    else None,
                    "new_status": event.new_status.value,
                    "changed_by": event.changed_by,
                    "message_key": key,
                },
                correlation_id,
            )
