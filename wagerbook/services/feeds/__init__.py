"""
Feed clients for the odds and results providers.

Usage:
    from wagerbook.services.feeds import OddsFeedClient, ResultsFeedClient

    async with OddsFeedClient() as client:
        records = await client.fetch_odds()
"""
from wagerbook.services.feeds.odds_feed import OddsFeedClient
from wagerbook.services.feeds.results_feed import ResultsFeedClient
from wagerbook.services.feeds.schemas import OddsRecord, ResultRecord

__all__ = [
    "OddsFeedClient",
    "ResultsFeedClient",
    "OddsRecord",
    "ResultRecord",
]
