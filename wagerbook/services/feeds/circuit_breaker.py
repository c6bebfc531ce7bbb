"""
Circuit breakers for the external feeds.

Circuit Breaker States:
- CLOSED: Requests pass through normally
- OPEN: Requests fail immediately with FeedUnavailableError (after
  fail_max consecutive transient failures)
- HALF_OPEN: One request allowed to test if the feed has recovered

Only transient failures (timeouts, 5xx, network) count against a
breaker. A 4xx or a malformed payload means the feed answered, so it
neither trips nor resets the circuit.

Circuit Breakers:
- odds_feed_breaker: For the odds provider
- results_feed_breaker: For the results provider
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from pybreaker import CircuitBreaker, CircuitBreakerError, CircuitBreakerListener, STATE_OPEN

from wagerbook.core import metrics
from wagerbook.core.exceptions import FeedUnavailableError, TransientFeedError
from wagerbook.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_FAIL_MAX = 5  # Consecutive transient failures before opening
DEFAULT_RESET_TIMEOUT = 60  # Seconds before a trial request is allowed


class MetricsListener(CircuitBreakerListener):
    """Mirror breaker state changes into logs and the state gauge."""

    def state_change(self, cb, old_state, new_state):
        old_name = getattr(old_state, "name", old_state)
        new_name = getattr(new_state, "name", new_state)
        if new_name == STATE_OPEN:
            logger.warning(f"Circuit breaker '{cb.name}' opened after {cb.fail_counter} failures")
        else:
            logger.info(f"Circuit breaker '{cb.name}' {old_name} -> {new_name}")
        metrics.record_breaker_state(cb.name, new_name)


class FeedCircuitBreaker(CircuitBreaker):
    """CircuitBreaker that can report its open window without leaving it."""

    @property
    def opened_at(self) -> Optional[datetime]:
        opened_at = self._state_storage.opened_at
        if opened_at is not None and opened_at.tzinfo is None:
            opened_at = opened_at.replace(tzinfo=timezone.utc)
        return opened_at

    def is_rejecting(self, now: Optional[datetime] = None) -> bool:
        """True while open and the reset timeout has not yet elapsed."""
        if self.current_state != STATE_OPEN:
            return False
        opened_at = self.opened_at
        if opened_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now < opened_at + timedelta(seconds=self.reset_timeout)


def build_breaker(
    name: str,
    fail_max: int = DEFAULT_FAIL_MAX,
    reset_timeout: float = DEFAULT_RESET_TIMEOUT,
) -> FeedCircuitBreaker:
    return FeedCircuitBreaker(
        fail_max=fail_max,
        reset_timeout=reset_timeout,
        name=name,
        listeners=[MetricsListener()],
    )


# ============================================================================
# CIRCUIT BREAKERS
# ============================================================================

odds_feed_breaker = build_breaker("odds")

results_feed_breaker = build_breaker("results")


def get_all_breaker_states() -> Dict[str, str]:
    """Map breaker names to their current state."""
    return {
        odds_feed_breaker.name: odds_feed_breaker.current_state,
        results_feed_breaker.name: results_feed_breaker.current_state,
    }


# ============================================================================
# ASYNC CALL GUARD
# ============================================================================

async def call_with_breaker(
    breaker: FeedCircuitBreaker,
    feed: str,
    func: Callable[[], Awaitable[Any]],
) -> Any:
    """
    Await ``func()`` under ``breaker``.

    The coroutine runs outside pybreaker (its ``call_async`` targets
    Tornado, not asyncio); the outcome is then replayed through
    ``breaker.call`` so the breaker's own state machine does the counting.
    Once the reset timeout has elapsed, that replay is the half-open trial:
    a failed request re-opens the circuit, a successful one closes it.

    Raises:
        FeedUnavailableError: if the breaker is open, or this failure
            tripped it
        TransientFeedError / other FeedError: propagated from ``func``
    """
    if breaker.is_rejecting():
        raise FeedUnavailableError(feed, f"circuit '{breaker.name}' is open")

    try:
        result = await func()
    except TransientFeedError as exc:
        try:
            breaker.call(_raiser(exc))
        except CircuitBreakerError:
            raise FeedUnavailableError(feed, f"circuit '{breaker.name}' opened: {exc}", exc.status_code) from exc
        raise

    try:
        breaker.call(lambda: None)
    except CircuitBreakerError:
        # Another caller re-opened the circuit while this request was in flight
        logger.debug(f"Circuit '{breaker.name}' still open after a successful {feed} request")
    return result


def _raiser(exc: Exception) -> Callable[[], None]:
    def _raise():
        raise exc
    return _raise
