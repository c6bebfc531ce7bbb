"""
Odds synchronizer: copies the current quote from an odds record onto a game.

Per market (h2h -> moneyline, spreads -> spread, totals -> total) the
quote comes from the first bookmaker, in feed order, that reports the
complete market (both sides priced, with points where the market has
them). A configured preferred bookmaker is consulted first. Quotes are
never averaged across bookmakers.

A market missing from every bookmaker in this record keeps its previous
quote.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from wagerbook.core.config import settings
from wagerbook.models import Game, GameStatus
from wagerbook.services.feeds.schemas import FeedBookmaker, FeedMarket, OddsRecord
from wagerbook.services.sync.name_normalizer import normalize_team_name
from wagerbook.utils.timezone import utcnow

logger = logging.getLogger(__name__)

MARKET_KEYS = ("h2h", "spreads", "totals")


class OddsSynchronizer:
    """Apply odds records to catalog games."""

    def __init__(self, preferred_bookmaker: Optional[str] = None):
        self.preferred_bookmaker = (
            preferred_bookmaker if preferred_bookmaker is not None else settings.ODDS_PREFERRED_BOOKMAKER
        )

    def apply(self, game: Game, record: OddsRecord, now: Optional[datetime] = None) -> bool:
        """
        Update ``game`` from ``record``.

        Finished and cancelled games are left untouched. Every other
        sighting refreshes ``last_feed_update``; ``last_updated`` moves
        only when a quote value actually changed, not on a start time move.

        Returns:
            True if any quote or the start time changed
        """
        if game.status in (GameStatus.FINISHED, GameStatus.CANCELLED):
            return False

        now = now or utcnow()
        game.last_feed_update = now

        rescheduled = False
        if game.status == GameStatus.SCHEDULED and record.commence_time != game.start_time:
            logger.info(
                f"Game {game.id} start moved {game.start_time.isoformat()} -> "
                f"{record.commence_time.isoformat()}"
            )
            game.start_time = record.commence_time
            rescheduled = True

        values, sources = self.select_quotes(record)
        changed = False
        for column, value in values.items():
            if getattr(game, column) != value:
                setattr(game, column, value)
                changed = True

        bookmaker = ",".join(sources) if sources else None
        if bookmaker and game.odds_bookmaker != bookmaker:
            game.odds_bookmaker = bookmaker

        if changed:
            game.last_updated = now
            logger.debug(f"Game {game.id} quote updated from {bookmaker}")
        if changed or rescheduled:
            game.updated_at = now
        return changed or rescheduled

    def select_quotes(self, record: OddsRecord) -> Tuple[Dict[str, object], List[str]]:
        """
        Pick one complete quote per market.

        Returns:
            (column -> value for every market found, bookmaker keys used
            in market order without duplicates)
        """
        home = normalize_team_name(record.home_team)
        away = normalize_team_name(record.away_team)

        values: Dict[str, object] = {}
        sources: List[str] = []
        for market_key in MARKET_KEYS:
            for bookmaker in self._ordered(record.bookmakers):
                market = _find_market(bookmaker, market_key)
                if market is None:
                    continue
                quote = _extract(market, home, away)
                if quote is None:
                    continue
                values.update(quote)
                if bookmaker.key not in sources:
                    sources.append(bookmaker.key)
                break
        return values, sources

    def _ordered(self, bookmakers: List[FeedBookmaker]) -> List[FeedBookmaker]:
        if not self.preferred_bookmaker:
            return list(bookmakers)
        preferred = [b for b in bookmakers if b.key == self.preferred_bookmaker]
        others = [b for b in bookmakers if b.key != self.preferred_bookmaker]
        return preferred + others


def _find_market(bookmaker: FeedBookmaker, key: str) -> Optional[FeedMarket]:
    for market in bookmaker.markets:
        if market.key == key:
            return market
    return None


def _extract(market: FeedMarket, home: str, away: str) -> Optional[Dict[str, object]]:
    """Column values for a complete market, or None if any side is missing."""
    sides = {}
    for outcome in market.outcomes:
        if outcome.price == 0:
            continue
        if market.key == "totals":
            side = outcome.name.strip().lower()
        else:
            name = normalize_team_name(outcome.name)
            side = "home" if name == home else "away" if name == away else None
        if side:
            sides[side] = outcome

    if market.key == "h2h":
        if {"home", "away"} <= sides.keys():
            return {
                "moneyline_home": sides["home"].price,
                "moneyline_away": sides["away"].price,
            }
        return None

    if market.key == "spreads":
        if {"home", "away"} <= sides.keys() and all(sides[s].point is not None for s in ("home", "away")):
            return {
                "spread_home": sides["home"].point,
                "spread_home_odds": sides["home"].price,
                "spread_away": sides["away"].point,
                "spread_away_odds": sides["away"].price,
            }
        return None

    if market.key == "totals":
        if {"over", "under"} <= sides.keys() and all(sides[s].point is not None for s in ("over", "under")):
            return {
                "total_over": sides["over"].point,
                "total_over_odds": sides["over"].price,
                "total_under": sides["under"].point,
                "total_under_odds": sides["under"].price,
            }
        return None

    return None
