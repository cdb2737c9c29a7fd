# =============================================================================
# lib/http_client.py - Rate-Limited HTTP Fetcher
# =============================================================================
# Outbound GET requests to third-party services that throttle by client:
# - Every request identifies itself with a User-Agent
# - HTTP 429 is retried, honoring Retry-After up to a cap; a longer ask fails
# - Network failures are retried with the same exponential backoff
# - Any other non-success status fails immediately
#
# Waits are asyncio sleeps driven by tenacity, so a batch suspends instead of
# blocking a thread. There is no shared limiter: each call backs off on its own.
#
# Usage:
#   async with httpx.AsyncClient() as client:
#       response = await fetch_with_retry(client, url, params={"q": "Berlin"})
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)

from lib.utils import ApplicationError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "geocode-sync/1.0"
DEFAULT_MAX_DELAY = 30.0

Sleep = Callable[[float], Awaitable[Any]]


# =============================================================================
# Errors
# =============================================================================

class FetchError(ApplicationError):
    """
    Raised when a request cannot be completed.

    Attributes:
        url: The requested URL (without query parameters)
        status: HTTP status of the last response, None for network failures
        exhausted: True when every allowed attempt was used
    """

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        status: int | None = None,
        exhausted: bool = False,
    ):
        super().__init__(
            message=message,
            code="FETCH_ERROR",
            status_code=502,
            suggestion="The upstream service may be down or throttling this client; try again later",
            details={"url": url, "status": status, "exhausted": exhausted},
        )
        self.url = url
        self.status = status
        self.exhausted = exhausted


class RetryableFetchError(FetchError):
    """A 429 or network failure that is worth another attempt."""

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        status: int | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(message, url=url, status=status)
        self.retry_after = retry_after


# =============================================================================
# Backoff
# =============================================================================

def parse_retry_after(value: str | None) -> float | None:
    """
    Parse a Retry-After header given in seconds.

    The HTTP-date form is not supported and falls back to exponential backoff.
    """
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return max(seconds, 0.0)


def backoff_delay(initial_delay: float, attempt: int) -> float:
    """Delay before retrying after zero-based `attempt`."""
    return initial_delay * (2 ** attempt)


class wait_retry_after_or_exponential:
    """
    tenacity wait strategy: the server's Retry-After when present, otherwise
    `initial_delay * 2 ** attempt`, never longer than `max_delay`.
    """

    def __init__(self, initial_delay: float, max_delay: float = DEFAULT_MAX_DELAY):
        self.initial_delay = initial_delay
        self.max_delay = max_delay

    def __call__(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, RetryableFetchError) and exc.retry_after is not None:
            delay = exc.retry_after
        else:
            delay = backoff_delay(self.initial_delay, retry_state.attempt_number - 1)
        return min(delay, self.max_delay)


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    delay = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.warning(
        f"Attempt {retry_state.attempt_number} failed: {getattr(exc, 'message', exc)}. "
        f"Waiting {delay:.1f}s before retrying."
    )


def _give_up(retry_state: RetryCallState) -> None:
    """retry_error_callback: every attempt was throttled or failed at the network level."""
    last = retry_state.outcome.exception()
    url = getattr(last, "url", None)
    attempts = retry_state.attempt_number
    logger.error(f"Giving up on {url} after {attempts} attempts: {last}")
    raise FetchError(
        f"Failed to fetch after {attempts} attempts: {getattr(last, 'message', last)}",
        url=url,
        status=getattr(last, "status", None),
        exhausted=True,
    ) from last


# =============================================================================
# Fetch
# =============================================================================

async def _fetch_once(
    client: httpx.AsyncClient,
    url: str,
    params: dict[str, Any] | None,
    headers: dict[str, str],
    max_delay: float,
) -> httpx.Response:
    try:
        response = await client.get(url, params=params, headers=headers)
    except httpx.TransportError as e:
        raise RetryableFetchError(f"Network error: {e}", url=url) from e

    if response.is_success:
        return response

    if response.status_code == 429:
        retry_after = parse_retry_after(response.headers.get("Retry-After"))
        if retry_after is not None and retry_after > max_delay:
            logger.error(f"Rate limited, server asked to wait {retry_after:.0f}s (limit {max_delay:.0f}s)")
            raise FetchError(
                f"Rate limited (HTTP 429), Retry-After {retry_after:.0f}s exceeds {max_delay:.0f}s",
                url=url,
                status=429,
                exhausted=True,
            )
        raise RetryableFetchError(
            "Rate limited (HTTP 429)",
            url=url,
            status=429,
            retry_after=retry_after,
        )

    raise FetchError(
        f"HTTP error! status: {response.status_code}",
        url=url,
        status=response.status_code,
    )


async def fetch_with_retry(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = DEFAULT_MAX_DELAY,
    user_agent: str = DEFAULT_USER_AGENT,
    sleep: Sleep = asyncio.sleep,
) -> httpx.Response:
    """
    GET `url`, retrying throttled and failed requests.

    Args:
        client: Shared httpx.AsyncClient
        url: Endpoint to call
        params: Query parameters (URL-encoded by httpx)
        headers: Extra headers, merged over the defaults
        max_retries: Total number of attempts
        initial_delay: Backoff base in seconds
        max_delay: Longest single wait; a Retry-After above it fails at once
        user_agent: Identifying client string sent with every request
        sleep: Awaitable sleep, replaceable in tests

    Returns:
        The first successful response

    Raises:
        FetchError: Non-success status other than 429 (immediately), a
            Retry-After longer than max_delay (exhausted=True), or every
            attempt was throttled / failed at the network level (exhausted=True)
    """
    request_headers = {"User-Agent": user_agent, "Accept": "application/json"}
    if headers:
        request_headers.update(headers)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_retries),
        wait=wait_retry_after_or_exponential(initial_delay, max_delay),
        retry=retry_if_exception_type(RetryableFetchError),
        before_sleep=_log_retry,
        retry_error_callback=_give_up,
        sleep=sleep,
    )

    async for attempt in retrying:
        with attempt:
            return await _fetch_once(client, url, params, request_headers, max_delay)
