"""
complaints_core.domain_enums - Business domain enums for complaints.
"""

from __future__ import annotations

from enum import Enum


class ComplaintStatus(str, Enum):
    """Lifecycle states of a complaint.

    Values are stored verbatim in the database and on the wire, and status
    input is matched against them case-sensitively.
    """

    OPEN = "open"
    IN_REVIEW = "in_review"
    CLOSED = "closed"

    @classmethod
    def values(cls) -> list[str]:
        return [status.value for status in cls]
