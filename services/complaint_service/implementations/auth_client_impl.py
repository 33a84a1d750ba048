"""HTTP client for session checks against the authentication service."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import aiohttp
from complaints_service_libs.logging_utils import create_service_logger

from services.complaint_service.exceptions import AuthServiceUnavailableError
from services.complaint_service.protocols import AuthClientProtocol

logger = create_service_logger("complaint_service.auth_client")

_INACTIVE_STATUSES = (401, 403, 404)


class AuthServiceClientImpl(AuthClientProtocol):
    """HTTP client implementation for authentication service communication."""

    def __init__(
        self, base_url: str, session_path: str, timeout_seconds: float = 5.0
    ) -> None:
        """Initialize with authentication service configuration.

        Args:
            base_url: Base URL of the auth service (e.g., "http://localhost:4000")
            session_path: Path of the session validation endpoint
            timeout_seconds: Total request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.url = f"{self.base_url}/{session_path.lstrip('/')}"
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def is_session_active(self, username: str, correlation_id: str) -> bool:
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(
                    self.url,
                    json={"username": username},
                    headers={
                        "Content-Type": "application/json",
                        "X-Correlation-ID": correlation_id,
                    },
                ) as response:
                    response_text = await response.text()

                    if response.status == 200:
                        body = self._parse_body(response_text, correlation_id)
                        is_active = bool(body.get("isActive", False))
                        logger.info(
                            "Session check completed",
                            username=username,
                            is_active=is_active,
                            correlation_id=correlation_id,
                        )
                        return is_active

                    if response.status in _INACTIVE_STATUSES:
                        logger.info(
                            "Session rejected by auth service",
                            username=username,
                            status_code=response.status,
                            correlation_id=correlation_id,
                        )
                        return False

                    logger.error(
                        "Unexpected response from auth service",
                        status_code=response.status,
                        response=response_text[:500],
                        correlation_id=correlation_id,
                    )
                    raise AuthServiceUnavailableError(
                        f"Auth service responded with {response.status}",
                        status_code=response.status,
                    )

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(
                f"Failed to communicate with auth service: {e}",
                url=self.url,
                correlation_id=correlation_id,
            )
            raise AuthServiceUnavailableError(
                f"Failed to communicate with auth service: {e}"
            ) from e

    @staticmethod
    def _parse_body(response_text: str, correlation_id: str) -> dict[str, Any]:
        try:
            body = json.loads(response_text)
        except json.JSONDecodeError as e:
            logger.error(
                f"Invalid JSON in auth service response: {e}", correlation_id=correlation_id
            )
            raise AuthServiceUnavailableError("Invalid JSON in auth service response") from e
        if not isinstance(body, dict):
            raise AuthServiceUnavailableError("Unexpected auth service response shape")
        # Some deployments wrap the payload as {"data": {"isActive": ...}}
        data = body.get("data")
        if isinstance(data, dict) and "isActive" in data:
            return data
        return body
