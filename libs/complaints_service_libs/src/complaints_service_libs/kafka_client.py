"""
Thin Kafka wrapper using aiokafka for the complaint services.

The bus is constructed explicitly at application start and handed to the
publishers through dependency injection. Its connection state is tracked as a
typed :class:`BusState` instead of being inferred from module globals.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Protocol

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError, KafkaTimeoutError
from pydantic import BaseModel

from .logging_utils import create_service_logger

logger = create_service_logger("kafka-client")


class BusState(str, Enum):
    DISABLED = "disabled"
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class KafkaBusUnavailableError(RuntimeError):
    """Raised when a message cannot be handed to the broker."""


class KafkaPublisherProtocol(Protocol):
    """Contract shared by the real and the disabled bus."""

    @property
    def state(self) -> BusState: ...

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def publish(
        self,
        topic: str,
        message: BaseModel,
        key: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> bool:
        """Publish a message. Returns False when the bus dropped it because it is disabled."""
        ...


def _encode_headers(headers: dict[str, str] | None) -> list[tuple[str, bytes]] | None:
    if not headers:
        return None
    return [(name, value.encode("utf-8")) for name, value in headers.items()]


class KafkaBus:
    def __init__(
        self,
        *,
        client_id: str,
        bootstrap_servers: str,
        request_timeout_ms: int = 30000,
    ):
        self.bootstrap_servers = bootstrap_servers
        self.client_id = client_id
        self.producer = AIOKafkaProducer(
            bootstrap_servers=self.bootstrap_servers,
            client_id=self.client_id,
            value_serializer=lambda v: json.dumps(v).encode("utf-8"),
            request_timeout_ms=request_timeout_ms,
            acks="all",
            enable_idempotence=True,
        )
        self._state = BusState.DISCONNECTED

    @property
    def state(self) -> BusState:
        return self._state

    async def start(self) -> None:
        if self._state is BusState.CONNECTED:
            return
        try:
            await self.producer.start()
            self._state = BusState.CONNECTED
            logger.info(f"KafkaProducer '{self.client_id}' started successfully.")
        except KafkaError as e:
            self._state = BusState.DISCONNECTED
            logger.error(f"KafkaProducer '{self.client_id}' failed to start: {e}")
            raise

    async def stop(self) -> None:
        try:
            # Stop even if start() never succeeded so the producer releases its resources
            await self.producer.stop()
            logger.info(f"KafkaProducer '{self.client_id}' stopped.")
        except KafkaError as e:
            logger.error(
                f"Error stopping KafkaProducer '{self.client_id}': {e}",
                exc_info=True,
            )
        finally:
            self._state = BusState.DISCONNECTED

    async def publish(
        self,
        topic: str,
        message: BaseModel,
        key: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> bool:
        if self._state is not BusState.CONNECTED:
            logger.warning(f"KafkaProducer '{self.client_id}' not started. Attempting to start.")
            try:
                await self.start()
            except KafkaError as e:
                raise KafkaBusUnavailableError(
                    f"KafkaProducer '{self.client_id}' is not running."
                ) from e
        try:
            key_bytes = key.encode("utf-8") if key else None
            record_metadata = await self.producer.send_and_wait(
                topic,
                value=message.model_dump(mode="json", by_alias=True),
                key=key_bytes,
                headers=_encode_headers(headers),
            )
            logger.debug(
                f"Message published by '{self.client_id}' to {topic} "
                f"[partition:{record_metadata.partition}, offset:{record_metadata.offset}] "
                f"key='{key}'",
            )
            return True
        except KafkaTimeoutError:
            logger.error(f"Timeout publishing message by '{self.client_id}' to topic '{topic}'.")
            raise
        except KafkaError as e:
            logger.error(
                f"Error publishing message by '{self.client_id}' to topic '{topic}': {e}",
                exc_info=True,
            )
            raise


class DisabledKafkaBus:
    """Bus used when Kafka is switched off. Every publish is dropped with a log line."""

    def __init__(self, *, client_id: str) -> None:
        self.client_id = client_id

    @property
    def state(self) -> BusState:
        return BusState.DISABLED

    async def start(self) -> None:
        logger.info(f"Kafka disabled, producer '{self.client_id}' will not connect.")

    async def stop(self) -> None:
        return None

    async def publish(
        self,
        topic: str,
        message: BaseModel,
        key: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> bool:
        logger.info(
            f"Kafka disabled, dropping message for topic '{topic}'",
            key=key,
            message_type=type(message).__name__,
        )
        return False
