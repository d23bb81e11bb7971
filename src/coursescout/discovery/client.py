"""
Client Module - Authenticated Canvas HTTP access with retries.
==============================================================

The raw HTTP primitive used by the whole application:
- Bearer-token authentication against one Canvas instance
- JSON API calls and rendered HTML page fetches through one session
- Automatic retries with exponential backoff on 429/5xx and network errors
- Request statistics for observability
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from coursescout.shared.config import get_settings
from coursescout.shared.errors import CanvasAPIError, CanvasRequestError
from coursescout.shared.logging import get_logger
from coursescout.shared.schemas import utc_now
from coursescout.shared.utils import normalize_base_url, require

logger = get_logger(__name__)

# Ask Canvas for string ids so large identifiers survive JSON round-trips
API_ACCEPT = "application/json+canvas-string-ids"
HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def is_transient(response: httpx.Response) -> bool:
    """Check whether a response status is worth retrying."""
    return response.status_code in RETRYABLE_STATUS_CODES


# ─────────────────────────────────────────────────────────────────────────────
# Data Classes
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class ClientStats:
    """Statistics for a client session."""

    total_requests: int = 0
    successful: int = 0
    failed: int = 0
    retries: int = 0
    start_time: datetime = field(default_factory=utc_now)

    @property
    def success_rate(self) -> float:
        """Share of completed calls that returned a 2xx status."""
        completed = self.successful + self.failed
        if completed == 0:
            return 1.0
        return self.successful / completed


# ─────────────────────────────────────────────────────────────────────────────
# Client Class
# ─────────────────────────────────────────────────────────────────────────────


class CanvasClient:
    """
    Async HTTP client for one Canvas instance and one access token.

    Features:
    - Shared httpx.AsyncClient session with auth headers
    - Bounded retries with exponential backoff
    - Same session for /api/v1 JSON calls and /courses/... web pages

    Example:
        >>> async with CanvasClient("school.instructure.com", token) as client:
        ...     response = await client.call("GET", "/api/v1/courses")
        ...     print(response.status_code)
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_min_wait: Optional[float] = None,
        retry_max_wait: Optional[float] = None,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Canvas instance URL (scheme optional)
            token: Bearer access token
            timeout: Request timeout in seconds
            max_retries: Maximum attempts per request
            retry_min_wait: Minimum backoff between attempts (seconds)
            retry_max_wait: Maximum backoff between attempts (seconds)
            user_agent: User agent string
            transport: Custom httpx transport (used by tests)

        Raises:
            ValueError: If base_url or token is missing
        """
        http_config = get_settings().http

        self.base_url = normalize_base_url(base_url)
        self.token = require(token, "token")

        self.timeout = timeout if timeout is not None else http_config.timeout
        self.max_retries = max_retries if max_retries is not None else http_config.max_retries
        self.retry_min_wait = (
            retry_min_wait if retry_min_wait is not None else http_config.retry_min_wait
        )
        self.retry_max_wait = (
            retry_max_wait if retry_max_wait is not None else http_config.retry_max_wait
        )
        self.user_agent = user_agent or http_config.user_agent

        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.stats = ClientStats()

        logger.debug(
            f"Canvas client initialized: base_url={self.base_url}, "
            f"timeout={self.timeout}s, max_retries={self.max_retries}"
        )

    @property
    def http(self) -> httpx.AsyncClient:
        """Get or create the underlying httpx session."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "User-Agent": self.user_agent,
                },
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def _log_retry(self, retry_state: RetryCallState) -> None:
        self.stats.retries += 1
        outcome = retry_state.outcome
        if outcome is not None and outcome.failed:
            cause = repr(outcome.exception())
        elif outcome is not None:
            cause = f"HTTP {outcome.result().status_code}"
        else:
            cause = "unknown"
        logger.warning(
            f"Retry {retry_state.attempt_number}/{self.max_retries} "
            f"for {retry_state.args[1] if len(retry_state.args) > 1 else '?'}: {cause}"
        )

    async def _send(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]],
        headers: dict[str, str],
        timeout: Optional[float],
    ) -> httpx.Response:
        self.stats.total_requests += 1
        kwargs: dict[str, Any] = {"params": params, "headers": headers}
        if timeout is not None:
            kwargs["timeout"] = timeout
        return await self.http.request(method, path, **kwargs)

    async def call(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        accept: str = "json",
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        """
        Issue one request, retrying transient failures.

        Args:
            method: HTTP method
            path: Path relative to the base URL, or an absolute URL
            params: Query parameters
            accept: "json" for API calls, "html" for rendered pages
            timeout: Per-request timeout override in seconds

        Returns:
            The final httpx.Response (which may carry an error status)

        Raises:
            CanvasRequestError: If the request failed at the transport level
        """
        headers = {"Accept": API_ACCEPT if accept == "json" else HTML_ACCEPT}

        retrying = AsyncRetrying(
            retry=retry_if_exception_type(httpx.TransportError) | retry_if_result(is_transient),
            stop=stop_after_attempt(max(1, self.max_retries)),
            wait=wait_exponential(min=self.retry_min_wait, max=self.retry_max_wait),
            before_sleep=self._log_retry,
            # Hand back the last response (or raise the last exception) when exhausted
            retry_error_callback=lambda retry_state: retry_state.outcome.result(),
        )

        try:
            response = await retrying(self._send, method.upper(), path, params, headers, timeout)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            self.stats.failed += 1
            logger.error(f"Request failed: {method.upper()} {path}: {e!r}")
            raise CanvasRequestError(f"Request to {path} failed: {e!r}", path=path) from e

        if response.is_success:
            self.stats.successful += 1
        else:
            self.stats.failed += 1
            logger.debug(f"{method.upper()} {path} -> {response.status_code}")

        return response

    async def get_json(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        """
        GET an API path and decode its JSON body.

        Raises:
            CanvasAPIError: If Canvas answers with an error status
            CanvasRequestError: If the request failed at the transport level
        """
        response = await self.call("GET", path, params=params)
        if not response.is_success:
            raise CanvasAPIError.from_response(response, path)
        return response.json()

    async def get_html(self, path: str) -> httpx.Response:
        """GET a rendered web page."""
        return await self.call("GET", path, accept="html")

    def get_stats(self) -> ClientStats:
        """Get request statistics."""
        return self.stats

    async def aclose(self) -> None:
        """Close the underlying session."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "CanvasClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.aclose()
