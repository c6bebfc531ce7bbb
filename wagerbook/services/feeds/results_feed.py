"""
Results feed client: per-date scoreboards with scores and status codes.

Endpoint: GET {RESULTS_FEED_BASE_URL}/scoreboard?date=YYYYMMDD
Status codes: 1 = scheduled, 2 = in progress, 3 = final
"""
from datetime import date, timedelta
from typing import List, Optional

from pydantic import ValidationError

from wagerbook.core.config import settings
from wagerbook.core.exceptions import FeedResponseError
from wagerbook.core.logging import get_logger
from wagerbook.services.feeds.base import BaseFeedClient
from wagerbook.services.feeds.circuit_breaker import FeedCircuitBreaker, results_feed_breaker
from wagerbook.services.feeds.schemas import ResultRecord

logger = get_logger(__name__)


class ResultsFeedClient(BaseFeedClient):
    """Client for the results provider."""

    feed = "results"

    def __init__(
        self,
        base_url: Optional[str] = None,
        breaker: Optional[FeedCircuitBreaker] = None,
        **kwargs,
    ):
        super().__init__(
            base_url=base_url or settings.RESULTS_FEED_BASE_URL,
            breaker=breaker or results_feed_breaker,
            **kwargs,
        )

    async def fetch_results(self, game_date: date) -> List[ResultRecord]:
        """
        Fetch the scoreboard for one local calendar date.

        Each returned record carries ``game_date`` so the matcher can
        compare calendar days.
        """
        payload = await self._get_json(
            "/scoreboard",
            params={"date": game_date.strftime("%Y%m%d")},
        )

        if not isinstance(payload, dict) or not isinstance(payload.get("games"), list):
            raise FeedResponseError(self.feed, "expected an object with a 'games' list")

        records = []
        for raw in payload["games"]:
            try:
                record = ResultRecord.model_validate(raw)
            except ValidationError as e:
                game_id = raw.get("gameId") if isinstance(raw, dict) else None
                logger.warning(f"Skipping malformed result record {game_id}: {e.error_count()} errors")
                continue
            records.append(record.model_copy(update={"game_date": game_date}))

        logger.info(f"Fetched {len(records)} result records for {game_date.isoformat()}")
        return records

    async def fetch_recent_results(self, today: date) -> List[ResultRecord]:
        """
        Fetch yesterday's and today's scoreboards.

        Yesterday is included so games that end after local midnight are
        still seen as final.
        """
        records = await self.fetch_results(today - timedelta(days=1))
        records.extend(await self.fetch_results(today))
        return records
