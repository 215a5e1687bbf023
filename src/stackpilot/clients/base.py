from __future__ import annotations

from typing import Any

import httpx
import structlog
from circuitbreaker import CircuitBreakerError, circuit
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger()

RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})
MAX_ERROR_TEXT = 500


class RetryableHTTPError(Exception):
    """Transient failure: network trouble or a retryable status."""


class PermanentHTTPError(Exception):
    """Failure that retrying will not fix: client errors or an unreadable body."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


# Everything a caller needs to catch to treat the service as unavailable,
# including the circuit breaker refusing calls while it is open.
UNAVAILABLE_ERRORS = (RetryableHTTPError, PermanentHTTPError, CircuitBreakerError)


def is_retryable_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUSES


class BaseHTTPClient:
    """JSON API client with retries on transient failures and a circuit breaker.

    Every failure leaves ``_request`` as either ``RetryableHTTPError`` or
    ``PermanentHTTPError``; httpx and JSON decoding errors never escape.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        """Override to provide custom headers."""
        return {"Content-Type": "application/json"}

    def _error_message(self, response: httpx.Response) -> str:
        """Describe a failed response. Override for service-specific error bodies."""
        text = response.text.strip()[:MAX_ERROR_TEXT]
        return f"HTTP {response.status_code}: {text}" if text else f"HTTP {response.status_code}"

    @circuit(
        failure_threshold=5,
        recovery_timeout=60,
        expected_exception=RetryableHTTPError,
    )
    @retry(
        retry=retry_if_exception_type(RetryableHTTPError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=2, min=1, max=30),
        reraise=True,
    )
    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        url = f"{self._base_url}{path}"
        req_headers = {**self._headers(), **(headers or {})}

        try:
            async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
                response = await client.request(
                    method, url, params=params, json=json, headers=req_headers
                )
        except httpx.TransportError as exc:
            logger.warning("http_network_error", method=method, url=url, error=str(exc))
            raise RetryableHTTPError(f"{type(exc).__name__}: {exc}") from exc
        except httpx.HTTPError as exc:
            logger.error("http_request_failed", method=method, url=url, error=str(exc))
            raise PermanentHTTPError(f"{type(exc).__name__}: {exc}") from exc

        if is_retryable_status(response.status_code):
            logger.warning("http_retryable_error", status=response.status_code, method=method, url=url)
            raise RetryableHTTPError(self._error_message(response))

        if response.is_error:
            message = self._error_message(response)
            logger.error(
                "http_permanent_error",
                status=response.status_code,
                method=method,
                url=url,
                error=message,
            )
            raise PermanentHTTPError(message, status_code=response.status_code)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            logger.error(
                "http_invalid_json",
                status=response.status_code,
                method=method,
                url=url,
                content_type=response.headers.get("content-type"),
            )
            raise PermanentHTTPError(
                f"Response from {url} is not JSON", status_code=response.status_code
            ) from exc

    async def get(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Execute GET request."""
        return await self._request("GET", path, params=params, headers=headers)
