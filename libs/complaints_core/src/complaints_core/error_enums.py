"""
complaints_core.error_enums - Centralized error code definitions.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    KAFKA_PUBLISH_ERROR = "KAFKA_PUBLISH_ERROR"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"

    # Generic external service errors
    TIMEOUT = "TIMEOUT"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    PROCESSING_ERROR = "PROCESSING_ERROR"


class ComplaintErrorCode(str, Enum):
    """
    Specific error codes for the Complaint Service.
    """

    VALIDATION_ERROR = "VALIDATION_ERROR"
    ENTITY_NOT_FOUND = "ENTITY_NOT_FOUND"
    COMPLAINT_NOT_FOUND = "COMPLAINT_NOT_FOUND"
    USER_REQUIRED = "USER_REQUIRED"
    SESSION_INACTIVE = "SESSION_INACTIVE"
    AUTH_SERVICE_UNAVAILABLE = "AUTH_SERVICE_UNAVAILABLE"
    STORAGE_ERROR = "STORAGE_ERROR"
    EVENT_BUS_UNAVAILABLE = "EVENT_BUS_UNAVAILABLE"
    SIDE_EFFECT_FAILED = "SIDE_EFFECT_FAILED"
