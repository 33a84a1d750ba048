"""
Behavior tests for the authentication service client.

aioresponses simulates the auth service so the real aiohttp request path is exercised.
"""

from __future__ import annotations

import asyncio

import aiohttp
import pytest
from aioresponses import aioresponses

from services.complaint_service.exceptions import AuthServiceUnavailableError
from services.complaint_service.implementations.auth_client_impl import AuthServiceClientImpl

AUTH_URL = "http://auth-service:4000"
SESSION_PATH = "/api/auth/validate-session"
SESSION_URL = f"{AUTH_URL}{SESSION_PATH}"


class TestAuthServiceClient:
    @pytest.fixture
    def client(self) -> AuthServiceClientImpl:
        return AuthServiceClientImpl(f"{AUTH_URL}/", SESSION_PATH, timeout_seconds=1.0)

    async def test_active_session(self, client: AuthServiceClientImpl, correlation_id: str) -> None:
        with aioresponses() as m:
            m.post(SESSION_URL, status=200, payload={"isActive": True})

            assert await client.is_session_active("staff.user", correlation_id) is True

            (request,) = next(iter(m.requests.values()))
            assert request.kwargs["json"] == {"username": "staff.user"}
            assert request.kwargs["headers"]["X-Correlation-ID"] == correlation_id

    async def test_inactive_session(
        self, client: AuthServiceClientImpl, correlation_id: str
    ) -> None:
        with aioresponses() as m:
            m.post(SESSION_URL, status=200, payload={"isActive": False})

            assert await client.is_session_active("staff.user", correlation_id) is False

    async def test_wrapped_payload_is_understood(
        self, client: AuthServiceClientImpl, correlation_id: str
    ) -> None:
        with aioresponses() as m:
            m.post(SESSION_URL, status=200, payload={"data": {"isActive": True}})

            assert await client.is_session_active("staff.user", correlation_id) is True

    async def test_missing_flag_means_inactive(
        self, client: AuthServiceClientImpl, correlation_id: str
    ) -> None:
        with aioresponses() as m:
            m.post(SESSION_URL, status=200, payload={"user": "staff.user"})

            assert await client.is_session_active("staff.user", correlation_id) is False

    @pytest.mark.parametrize("status", [401, 403, 404])
    async def test_rejection_statuses_mean_inactive(
        self, client: AuthServiceClientImpl, status: int, correlation_id: str
    ) -> None:
        with aioresponses() as m:
            m.post(SESSION_URL, status=status, payload={"error": "no session"})

            assert await client.is_session_active("staff.user", correlation_id) is False

    async def test_server_error_raises_unavailable(
        self, client: AuthServiceClientImpl, correlation_id: str
    ) -> None:
        with aioresponses() as m:
            m.post(SESSION_URL, status=500, body="Internal error")

            with pytest.raises(AuthServiceUnavailableError) as exc_info:
                await client.is_session_active("staff.user", correlation_id)

        assert exc_info.value.status_code == 500

    @pytest.mark.parametrize(
        "error", [aiohttp.ClientConnectionError("refused"), asyncio.TimeoutError()]
    )
    async def test_transport_failure_raises_unavailable(
        self, client: AuthServiceClientImpl, error: Exception, correlation_id: str
    ) -> None:
        with aioresponses() as m:
            m.post(SESSION_URL, exception=error)

            with pytest.raises(AuthServiceUnavailableError):
                await client.is_session_active("staff.user", correlation_id)

    async def test_invalid_json_raises_unavailable(
        self, client: AuthServiceClientImpl, correlation_id: str
    ) -> None:
        with aioresponses() as m:
            m.post(SESSION_URL, status=200, body="<html>not json</html>")

            with pytest.raises(AuthServiceUnavailableError):
                await client.is_session_active("staff.user", correlation_id)
