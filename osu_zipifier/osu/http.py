"""Shared HTTP client with transient-failure retries.

Wraps an ``httpx.AsyncClient`` with a Tenacity policy:
- Network-level errors (``httpx.TransportError``) are retried
- 408, 429 and 5xx responses are retried
- Exponential backoff, base 2, bounded number of retries

When the retries run out the last outcome is surfaced as is: the final
response for a transient status, or the final exception. Callers decide what
an unsuccessful outcome means (for mirrors: try the next one).
"""
from __future__ import annotations

from typing import Any, Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from ..config import Settings, get_settings

logger = structlog.get_logger()

TRANSIENT_STATUSES = frozenset({408, 429})


def is_transient_response(response: httpx.Response) -> bool:
    return response.status_code in TRANSIENT_STATUSES or response.status_code >= 500


def _last_outcome(retry_state: RetryCallState) -> httpx.Response:
    # Re-raises the final exception, or returns the final response.
    return retry_state.outcome.result()


def _log_retry(retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome
    exc = outcome.exception()
    logger.warning(
        "http_retry",
        attempt=retry_state.attempt_number,
        url=str(retry_state.args[1]) if len(retry_state.args) > 1 else None,
        error=str(exc) if exc is not None else None,
        status=None if exc is not None else outcome.result().status_code,
    )


class RetryingClient:
    """Async HTTP client that retries transient failures with backoff."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        backoff_max_seconds: float = 30.0,
    ):
        self.client = client
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.backoff_max_seconds = backoff_max_seconds

    def _policy(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(
                multiplier=self.backoff_seconds,
                exp_base=2,
                max=self.backoff_max_seconds,
            ),
            retry=(
                retry_if_exception_type(httpx.TransportError)
                | retry_if_result(is_transient_response)
            ),
            before_sleep=_log_retry,
            retry_error_callback=_last_outcome,
        )

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        return await self.client.request(method, url, **kwargs)

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        return await self._policy()(self._send, method, url, **kwargs)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()


def create_http_client(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> RetryingClient:
    """Build the process-wide retrying client from settings."""
    settings = settings or get_settings()
    client = httpx.AsyncClient(
        timeout=settings.http_timeout_seconds,
        follow_redirects=True,
        transport=transport,
    )
    return RetryingClient(
        client,
        max_retries=settings.http_max_retries,
        backoff_seconds=settings.http_backoff_seconds,
        backoff_max_seconds=settings.http_backoff_max_seconds,
    )
