"""
Odds feed client (The Odds API v4 compatible).

Fetches upcoming events with moneyline (h2h), spread and total markets
in American odds. Quota headers are tracked the way the provider reports
them: x-requests-remaining and x-requests-used.
"""
from datetime import datetime
from typing import Dict, List, Optional

import httpx
from pydantic import ValidationError

from wagerbook.core.config import settings
from wagerbook.core.exceptions import FeedResponseError
from wagerbook.core.logging import get_logger
from wagerbook.services.feeds.base import BaseFeedClient
from wagerbook.services.feeds.circuit_breaker import FeedCircuitBreaker, odds_feed_breaker
from wagerbook.services.feeds.schemas import OddsRecord

logger = get_logger(__name__)

MARKETS = "h2h,spreads,totals"
QUOTA_WARNING_THRESHOLD = 100


class OddsFeedClient(BaseFeedClient):
    """Client for the odds provider."""

    feed = "odds"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        sport: Optional[str] = None,
        regions: Optional[str] = None,
        breaker: Optional[FeedCircuitBreaker] = None,
        **kwargs,
    ):
        """
        Args:
            api_key: Provider API key (defaults to ODDS_FEED_API_KEY)
            base_url: Provider base URL (defaults to ODDS_FEED_BASE_URL)
            sport: Sport key, e.g. 'basketball_nba'
            regions: Bookmaker regions, e.g. 'us'
            breaker: Circuit breaker (defaults to the shared odds breaker)
            **kwargs: Transport options passed to BaseFeedClient
        """
        super().__init__(
            base_url=base_url or settings.ODDS_FEED_BASE_URL,
            breaker=breaker or odds_feed_breaker,
            **kwargs,
        )
        self.api_key = api_key if api_key is not None else settings.ODDS_FEED_API_KEY
        self.sport = sport or settings.ODDS_FEED_SPORT
        self.regions = regions or settings.ODDS_FEED_REGIONS

        self._requests_remaining: Optional[int] = None
        self._requests_used: Optional[int] = None
        self._quota_last_updated: Optional[datetime] = None

    async def fetch_odds(self) -> List[OddsRecord]:
        """
        Fetch current odds for every upcoming event of the sport.

        Records that fail validation are logged and dropped; a body that
        is not a list of events raises FeedResponseError.
        """
        payload = await self._get_json(
            f"/sports/{self.sport}/odds",
            params={
                "apiKey": self.api_key,
                "regions": self.regions,
                "markets": MARKETS,
                "oddsFormat": "american",
                "dateFormat": "iso",
            },
        )

        if not isinstance(payload, list):
            raise FeedResponseError(self.feed, f"expected a list of events, got {type(payload).__name__}")

        records = []
        for raw in payload:
            try:
                records.append(OddsRecord.model_validate(raw))
            except ValidationError as e:
                event_id = raw.get("id") if isinstance(raw, dict) else None
                logger.warning(f"Skipping malformed odds record {event_id}: {e.error_count()} errors")

        logger.info(f"Fetched {len(records)} odds records for {self.sport}")
        return records

    def _on_response(self, response: httpx.Response) -> None:
        """Track quota from response headers."""
        remaining = response.headers.get("x-requests-remaining")
        used = response.headers.get("x-requests-used")
        try:
            if remaining:
                self._requests_remaining = int(float(remaining))
            if used:
                self._requests_used = int(float(used))
        except ValueError:
            logger.warning(f"Failed to parse quota headers: remaining={remaining!r} used={used!r}")
            return

        self._quota_last_updated = datetime.now()
        if self._requests_remaining is not None and self._requests_remaining < QUOTA_WARNING_THRESHOLD:
            logger.warning(f"Odds feed quota running low: {self._requests_remaining} requests remaining")

    def get_quota_status(self) -> Dict:
        return {
            "requests_remaining": self._requests_remaining,
            "requests_used": self._requests_used,
            "last_updated": self._quota_last_updated.isoformat() if self._quota_last_updated else None,
        }
