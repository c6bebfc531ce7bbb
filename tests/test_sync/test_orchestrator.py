"""Integration tests for IngestionOrchestrator.

Test Strategy:
1. Test odds records create and update catalog games
2. Test repeated cycles never duplicate games
3. Test a final result finishes the game and settles its wagers
4. Test a failing feed is skipped while the other feed is applied
5. Test ambiguous records are skipped and counted
6. Test overdue games are force-finished and their wagers pushed

Each test follows the pattern:
- Given: Database state and mocked feed clients
- When: trigger_ingestion_cycle() is called
- Then: Correct summary and database state
"""
from datetime import date, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.orm import Session

from wagerbook.core.exceptions import FeedUnavailableError
from wagerbook.models import Game, User, Wager
from wagerbook.services.feeds.schemas import OddsRecord, ResultRecord, STATUS_FINAL
from wagerbook.services.sync.orchestrator import IngestionOrchestrator, get_last_cycle

from conftest import NOW

TZ = "America/New_York"
# 7:30pm Eastern on March 3
TIP_OFF = datetime(2024, 3, 4, 0, 30)
GAME_DAY = date(2024, 3, 3)


def _odds_record(event_id="evt-1", home_price=150, away_price=-180):
    return OddsRecord.model_validate({
        "id": event_id,
        "home_team": "Philadelphia 76ers",
        "away_team": "Boston Celtics",
        "commence_time": "2024-03-04T00:30:00Z",
        "bookmakers": [{
            "key": "draftkings",
            "markets": [
                {"key": "h2h", "outcomes": [
                    {"name": "Philadelphia 76ers", "price": home_price},
                    {"name": "Boston Celtics", "price": away_price},
                ]},
                {"key": "totals", "outcomes": [
                    {"name": "Over", "price": -110, "point": 220.5},
                    {"name": "Under", "price": -110, "point": 220.5},
                ]},
            ],
        }],
    })


def _final_result(home_score=110, away_score=100):
    return ResultRecord(
        game_id="0022300871",
        home_team="PHI",
        away_team="BOS",
        home_score=home_score,
        away_score=away_score,
        status_code=STATUS_FINAL,
        game_date=GAME_DAY,
    )


def _clients(odds=None, results=None):
    odds_client = AsyncMock()
    odds_client.fetch_odds.return_value = odds or []
    results_client = AsyncMock()
    results_client.fetch_recent_results.return_value = results or []
    return odds_client, results_client


async def _cycle(db: Session, now: datetime, odds=None, results=None, odds_client=None, results_client=None):
    default_odds, default_results = _clients(odds, results)
    orchestrator = IngestionOrchestrator(
        db,
        odds_client=odds_client or default_odds,
        results_client=results_client or default_results,
        tz_name=TZ,
    )
    return await orchestrator.trigger_ingestion_cycle(now)


class TestIngestionCycle:
    """Full-cycle behaviour with mocked feeds."""

    # Catalog
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_odds_record_creates_game(self, db_session: Session):
        """Should create a scheduled game carrying the feed quote."""
        summary = await _cycle(db_session, NOW, odds=[_odds_record()])

        assert summary['feeds']['odds'] == {'ok': True, 'records': 1}
        assert summary['odds']['created'] == 1

        game = db_session.query(Game).one()
        assert game.odds_event_id == "evt-1"
        assert game.start_time == TIP_OFF
        assert game.moneyline_home == 150
        assert game.total_over == 220.5
        assert game.spread_home is None
        assert game.odds_bookmaker == "draftkings"

    @pytest.mark.asyncio
    async def test_repeated_cycles_do_not_duplicate_games(self, db_session: Session):
        """Should reuse the game on every later cycle."""
        await _cycle(db_session, NOW, odds=[_odds_record()])
        second = await _cycle(db_session, NOW + timedelta(minutes=15), odds=[_odds_record()])
        third = await _cycle(db_session, NOW + timedelta(minutes=30), odds=[_odds_record(home_price=135)])

        assert db_session.query(Game).count() == 1
        assert second['odds']['unchanged'] == 1
        assert third['odds']['updated'] == 1
        assert db_session.query(Game).one().moneyline_home == 135

    # Results and Settlement
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_final_result_settles_wagers(self, db_session: Session, user_factory, wager_factory):
        """Should finish the game and settle its pending wagers in the same cycle."""
        await _cycle(db_session, NOW, odds=[_odds_record()])
        game = db_session.query(Game).one()
        user = user_factory()
        wager = wager_factory(user, game, "moneyline", "home", Decimal("100"), odds=150)

        summary = await _cycle(
            db_session, TIP_OFF + timedelta(hours=3),
            odds=[_odds_record()], results=[_final_result()],
        )

        assert summary['results']['matched'] == 1
        assert summary['finished_games'] == [game.id]
        assert summary['settlement'][0]['won'] == 1

        db_session.expire_all()
        finished = db_session.get(Game, game.id)
        assert finished.status == "finished"
        assert finished.results_event_id == "0022300871"
        assert finished.settled_at is not None
        assert db_session.get(Wager, wager.id).status == "won"
        assert db_session.get(User, user.id).balance == Decimal("1150.00")

    @pytest.mark.asyncio
    async def test_repeated_final_result_does_not_resettle(self, db_session: Session, user_factory, wager_factory):
        await _cycle(db_session, NOW, odds=[_odds_record()])
        game = db_session.query(Game).one()
        user = user_factory()
        wager_factory(user, game, "moneyline", "home", Decimal("100"), odds=150)

        later = TIP_OFF + timedelta(hours=3)
        await _cycle(db_session, later, results=[_final_result()])
        again = await _cycle(db_session, later + timedelta(minutes=15), results=[_final_result(120, 80)])

        assert again['finished_games'] == []
        db_session.expire_all()
        assert db_session.get(Game, game.id).home_score == 110
        assert db_session.get(User, user.id).balance == Decimal("1150.00")

    @pytest.mark.asyncio
    async def test_unmatched_result_is_skipped(self, db_session: Session):
        summary = await _cycle(db_session, NOW, results=[_final_result()])
        assert summary['results']['unmatched'] == 1
        assert db_session.query(Game).count() == 0

    # Failure Handling
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_failed_feed_is_skipped(self, db_session: Session, game_factory):
        """Should apply results even when the odds feed is unavailable."""
        game = game_factory(start_time=TIP_OFF, status="in_progress")
        odds_client, results_client = _clients(results=[_final_result()])
        odds_client.fetch_odds.side_effect = FeedUnavailableError("odds", "circuit breaker open")

        summary = await _cycle(
            db_session, TIP_OFF + timedelta(hours=3),
            odds_client=odds_client, results_client=results_client,
        )

        assert summary['feeds']['odds']['ok'] is False
        assert summary['feeds']['results']['ok'] is True
        assert summary['finished_games'] == [game.id]

    @pytest.mark.asyncio
    async def test_ambiguous_result_is_counted(self, db_session: Session, game_factory):
        game_factory(start_time=TIP_OFF)
        game_factory(start_time=TIP_OFF - timedelta(hours=2))

        summary = await _cycle(db_session, TIP_OFF + timedelta(hours=3), results=[_final_result()])

        assert summary['results']['ambiguous'] == 1
        assert summary['finished_games'] == []

    @pytest.mark.asyncio
    async def test_overdue_game_is_force_finished_and_pushed(
        self, db_session: Session, user_factory, game_factory, wager_factory
    ):
        game = game_factory(start_time=NOW - timedelta(hours=30), status="in_progress")
        user = user_factory()
        wager = wager_factory(user, game, "moneyline", "away", Decimal("40"), odds=-180)

        summary = await _cycle(db_session, NOW)

        assert summary['forced_finished'] == [game.id]
        assert summary['settlement'][0]['pushed'] == 1
        db_session.expire_all()
        assert db_session.get(Wager, wager.id).status == "pushed"
        assert db_session.get(User, user.id).balance == Decimal("1000.00")
        assert db_session.get(Game, game.id).needs_review is True

    @pytest.mark.asyncio
    async def test_last_cycle_summary_is_kept(self, db_session: Session):
        summary = await _cycle(db_session, NOW)
        assert get_last_cycle() is summary
        assert summary['duration_ms'] >= 0
