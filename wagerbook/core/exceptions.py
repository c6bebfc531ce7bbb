"""
Domain exceptions for feed ingestion, matching and wagering.

Hierarchy:
- WagerbookError
  - FeedError
    - TransientFeedError   (timeout, 5xx, network - retried with backoff)
    - FeedUnavailableError (circuit breaker open - not retried)
    - FeedResponseError    (4xx or malformed payload - not retried)
  - MatchingAmbiguity
  - WagerError
    - NotFoundError
    - InvalidWager
    - WageringClosed
    - InsufficientBalance
    - CancellationNotAllowed
    - UsernameTaken
"""
from typing import Optional, Sequence


class WagerbookError(Exception):
    """Base class for all engine errors."""


class FeedError(WagerbookError):
    """A feed call failed."""

    def __init__(self, feed: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"[{feed}] {message}")
        self.feed = feed
        self.status_code = status_code


class TransientFeedError(FeedError):
    """Timeout, connection failure or 5xx response. Safe to retry."""


class FeedUnavailableError(FeedError):
    """The feed's circuit breaker is open; the call was not attempted."""


class FeedResponseError(FeedError):
    """The feed rejected the request or returned an unusable payload."""


class MatchingAmbiguity(WagerbookError):
    """More than one internal game matches an external record."""

    def __init__(self, feed: str, feed_id: str, candidate_ids: Sequence[str]):
        super().__init__(
            f"Ambiguous match for {feed} record {feed_id}: "
            f"{len(candidate_ids)} same-day candidates ({', '.join(candidate_ids)})"
        )
        self.feed = feed
        self.feed_id = feed_id
        self.candidate_ids = list(candidate_ids)


class WagerError(WagerbookError):
    """A placement or cancellation request was rejected."""


class NotFoundError(WagerError):
    """Referenced user, game or wager does not exist."""


class InvalidWager(WagerError):
    """Malformed request: bad stake, bet type, selection or unquoted market."""


class WageringClosed(WagerError):
    """The game is no longer open for wagering."""


class InsufficientBalance(WagerError):
    """The user's balance does not cover the stake."""


class CancellationNotAllowed(WagerError):
    """The wager can no longer be cancelled."""


class UsernameTaken(WagerError):
    """A user with this username already exists."""
