"""Kafka consumer that projects status change events into the history table.

Each event is stored once, keyed by its Kafka message key, so redelivered
messages are acknowledged without creating duplicate history rows.
"""

from __future__ import annotations

import asyncio
from typing import Any

from aiokafka import AIOKafkaConsumer, TopicPartition
from aiokafka.errors import KafkaConnectionError
from complaints_core.events.complaint_events import ComplaintStatusChangedV1
from complaints_service_libs.logging_utils import bind_correlation_context, create_service_logger
from pydantic import ValidationError

from services.complaint_service.exceptions import StorageError
from services.complaint_service.protocols import ComplaintRepositoryProtocol

logger = create_service_logger("complaint_service.status_history")


def _header_value(headers: Any, name: str) -> str | None:
    for header_name, value in headers or ():
        if header_name == name and value is not None:
            return value.decode("utf-8") if isinstance(value, bytes) else str(value)
    return None


class StatusHistoryProjector:
    """Stores status change events in the complaint status history."""

    def __init__(self, repository: ComplaintRepositoryProtocol) -> None:
        self.repository = repository

    async def project(self, msg: Any) -> bool:
        """Project one consumer record.

        Returns:
            True if the offset may be committed (stored, duplicate or poison
            message), False if storage failed and the message should be retried.
        """
        correlation_id = _header_value(msg.headers, "correlation-id")
        if correlation_id:
            bind_correlation_context(correlation_id)

        try:
            event = ComplaintStatusChangedV1.model_validate_json(msg.value)
        except ValidationError as e:
            logger.error(
                f"Discarding malformed status event at {msg.topic}:{msg.partition}:{msg.offset}: {e}"
            )
            return True

        if msg.key:
            event_key = msg.key.decode("utf-8") if isinstance(msg.key, bytes) else str(msg.key)
        else:
            event_key = f"{msg.topic}-{msg.partition}-{msg.offset}"

        try:
            stored = await self.repository.record_status_change(event, event_key)
        except StorageError as e:
            logger.error(f"Failed to store status event {event_key}: {e.message}")
            return False

        if stored:
            logger.info(
                "Status change recorded",
                complaint_id=event.id_complaint,
                new_status=event.new_status.value,
                event_key=event_key,
            )
        else:
            logger.info(f"Duplicate status event skipped: {event_key}")
        return True


class ComplaintStatusHistoryConsumer:
    def __init__(
        self,
        *,
        bootstrap_servers: str,
        topic: str,
        group_id: str,
        client_id: str,
        projector: StatusHistoryProjector,
        retry_delay_seconds: float = 5.0,
    ) -> None:
        self.bootstrap_servers = bootstrap_servers
        self.topic = topic
        self.group_id = group_id
        self.client_id = client_id
        self.projector = projector
        self.retry_delay_seconds = retry_delay_seconds
        self.consumer: AIOKafkaConsumer | None = None
        self.should_stop = False

    async def start_consumer(self) -> None:
        """Start the Kafka consumer and begin processing messages."""
        logger.info("Starting status history Kafka consumer")

        self.consumer = AIOKafkaConsumer(
            self.topic,
            bootstrap_servers=self.bootstrap_servers,
            group_id=self.group_id,
            client_id=self.client_id,
            auto_offset_reset="earliest",
            enable_auto_commit=False,
            max_poll_records=1,
            session_timeout_ms=45000,
        )

        try:
            await self.consumer.start()
            logger.info("Status history consumer started", topic=self.topic, group_id=self.group_id)
            await self._process_messages()
        except asyncio.CancelledError:
            logger.info("Status history consumer task cancelled")
            raise
        except Exception as e:
            logger.error(f"Error in status history consumer: {e}", exc_info=True)
            raise
        finally:
            await self.stop_consumer()

    async def stop_consumer(self) -> None:
        """Stop the Kafka consumer gracefully."""
        self.should_stop = True
        if self.consumer:
            try:
                await self.consumer.stop()
                logger.info("Status history consumer stopped")
            except Exception as e:
                logger.error(f"Error stopping status history consumer: {e}")
            finally:
                self.consumer = None

    async def _handle_message(self, msg: Any) -> None:
        """Commit a projected message, or rewind to it so it is fetched again.

        Committing a later offset would also acknowledge a failed one, so the
        partition is not advanced past a message until it has been stored.
        """
        if not self.consumer:
            return

        if await self.projector.project(msg):
            await self.consumer.commit()
            return

        logger.warning(
            f"Message processing failed, retrying: {msg.topic}:{msg.partition}:{msg.offset}"
        )
        self.consumer.seek(TopicPartition(msg.topic, msg.partition), msg.offset)
        await asyncio.sleep(self.retry_delay_seconds)

    async def _process_messages(self) -> None:
        if not self.consumer:
            return

        while not self.should_stop:
            try:
                async for msg in self.consumer:
                    if self.should_stop:
                        break
                    await self._handle_message(msg)
            except KafkaConnectionError as kce:
                logger.error(f"Kafka connection error: {kce}", exc_info=True)
                if self.should_stop:
                    break
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                logger.info("Message consumption cancelled")
                break
            except Exception as e:
                logger.error(f"Error in message processing loop: {e}", exc_info=True)
                await asyncio.sleep(5)

        logger.info("Status history processing loop has finished")
