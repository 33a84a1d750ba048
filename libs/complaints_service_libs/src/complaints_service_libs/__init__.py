"""
Complaints Service Libraries Package.

Shared infrastructure for the complaint services: structured logging, the
Kafka bus, detached background work and Quart request middleware.
"""

from .background_tasks import DetachedTaskRunner
from .kafka_client import BusState, DisabledKafkaBus, KafkaBus, KafkaPublisherProtocol
from .quart_app import ComplaintsServiceApp

__all__ = [
    "BusState",
    "ComplaintsServiceApp",
    "DetachedTaskRunner",
    "DisabledKafkaBus",
    "KafkaBus",
    "KafkaPublisherProtocol",
]
