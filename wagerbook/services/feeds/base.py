"""
Shared HTTP plumbing for feed clients.

Every request goes through the same pipeline:

    tenacity retry (transient errors only, exponential backoff)
      -> circuit breaker guard (per feed)
        -> single httpx GET with timeout

Transport errors are classified into the feed exception hierarchy so the
retry policy and the breaker can tell "try again" from "the provider said
no".
"""
from typing import Any, Dict, Optional

import httpx

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from wagerbook.core import metrics
from wagerbook.core.config import settings
from wagerbook.core.exceptions import FeedError, FeedResponseError, TransientFeedError
from wagerbook.core.logging import get_logger
from wagerbook.services.feeds.circuit_breaker import FeedCircuitBreaker, call_with_breaker

logger = get_logger(__name__)


class BaseFeedClient:
    """
    Base class for feed clients.

    Subclasses set ``feed`` and call ``_get_json``. The httpx client is
    created lazily and reused; call ``close()`` when done.
    """

    feed = "feed"

    def __init__(
        self,
        base_url: str,
        breaker: FeedCircuitBreaker,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        backoff_min: Optional[float] = None,
        backoff_max: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.breaker = breaker
        self.timeout = timeout if timeout is not None else settings.FEED_TIMEOUT_SECONDS
        self.max_attempts = max_attempts if max_attempts is not None else settings.FEED_MAX_ATTEMPTS
        self.backoff_min = backoff_min if backoff_min is not None else settings.FEED_BACKOFF_MIN_SECONDS
        self.backoff_max = backoff_max if backoff_max is not None else settings.FEED_BACKOFF_MAX_SECONDS
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
                headers={"Accept": "application/json", "User-Agent": "wagerbook-engine"},
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET ``path`` and return the decoded JSON body.

        Raises:
            TransientFeedError: after the last retry attempt failed transiently
            FeedUnavailableError: the breaker is open
            FeedResponseError: 4xx or undecodable body
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=1, min=self.backoff_min, max=self.backoff_max),
            retry=retry_if_exception_type(TransientFeedError),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    payload = await call_with_breaker(
                        self.breaker, self.feed, lambda: self._get_once(path, params)
                    )
        except FeedError as e:
            metrics.record_feed_failure(self.feed, type(e).__name__)
            logger.error(f"{self.feed} feed request {path} failed: {e}")
            raise

        metrics.record_feed_success(self.feed)
        return payload

    async def _get_once(self, path: str, params: Optional[Dict[str, Any]]) -> Any:
        client = await self._get_client()
        url = f"{self.base_url}{path}"

        try:
            response = await client.get(url, params=params)
        except httpx.TimeoutException as e:
            logger.warning(f"{self.feed} feed timeout: {url}")
            raise TransientFeedError(self.feed, f"timeout: {e}") from e
        except httpx.TransportError as e:
            logger.warning(f"{self.feed} feed network error: {e}")
            raise TransientFeedError(self.feed, f"network error: {e}") from e

        if response.status_code >= 500:
            logger.warning(f"{self.feed} feed returned {response.status_code} for {path}")
            raise TransientFeedError(self.feed, f"HTTP {response.status_code}", response.status_code)
        if response.status_code >= 400:
            raise FeedResponseError(self.feed, f"HTTP {response.status_code}: {response.text[:200]}", response.status_code)

        self._on_response(response)

        try:
            return response.json()
        except ValueError as e:
            raise FeedResponseError(self.feed, f"invalid JSON body: {e}", response.status_code) from e

    def _on_response(self, response: httpx.Response) -> None:
        """Hook for subclasses to inspect successful responses."""
