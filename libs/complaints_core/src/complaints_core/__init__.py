"""
Complaints Common Core Package.

Shared enums and event contracts used by the complaint service and the
consumers of its Kafka topics.
"""

from .config_enums import Environment
from .domain_enums import ComplaintStatus
from .emailing_models import ComplaintEmailMetadata, ComplaintEmailNotificationV1, EmailPriority
from .error_enums import ComplaintErrorCode, ErrorCode
from .event_enums import ComplaintEvent, ComplaintTopic
from .events.complaint_events import ComplaintStatusChangedV1

__all__ = [
    "ComplaintEmailMetadata",
    "ComplaintEmailNotificationV1",
    "ComplaintErrorCode",
    "ComplaintEvent",
    "ComplaintStatus",
    "ComplaintStatusChangedV1",
    "ComplaintTopic",
    "EmailPriority",
    "Environment",
    "ErrorCode",
]
