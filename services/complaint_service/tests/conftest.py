"""Shared test fixtures and configuration for Complaint Service tests."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest
from complaints_core.domain_enums import ComplaintStatus
from prometheus_client import REGISTRY

from services.complaint_service.protocols import ComplaintRecord


@pytest.fixture(autouse=True)
def _clear_prometheus_registry() -> Any:
    """
    Clear the default Prometheus registry before each test.

    This prevents "Duplicated timeseries in CollectorRegistry" errors
    when running multiple tests that register metrics.
    """
    collectors = list(REGISTRY._collector_to_names.keys())
    for collector in collectors:
        REGISTRY.unregister(collector)
    yield


@pytest.fixture
def correlation_id() -> str:
    return "3f1c2a9e-0000-4000-8000-00000000abcd"


@pytest.fixture
def complaint_record() -> ComplaintRecord:
    return ComplaintRecord(
        id_complaint=7,
        id_public_entity=2,
        public_entity="Ministry of Transport",
        description="The bus stop on Main Street has no shelter",
        complaint_status=ComplaintStatus.OPEN,
        created_at=datetime(2024, 5, 1, 10, 30, tzinfo=UTC),
        updated_at=datetime(2024, 5, 1, 10, 30, tzinfo=UTC),
    )
