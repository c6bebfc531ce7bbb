"""Tests for LifecycleMonitor transitions, overdue fallback and pruning."""
from datetime import timedelta
from decimal import Decimal

from wagerbook.models import Game
from wagerbook.services.feeds.schemas import ResultRecord, STATUS_FINAL, STATUS_IN_PROGRESS, STATUS_SCHEDULED
from wagerbook.services.sync.lifecycle_monitor import LifecycleMonitor

from conftest import NOW


def _result(status_code, home_score=None, away_score=None):
    return ResultRecord(
        game_id="0022300871",
        home_team="PHI",
        away_team="BOS",
        home_score=home_score,
        away_score=away_score,
        status_code=status_code,
        game_date=NOW.date(),
    )


class TestApplyResult:
    """Results-feed transitions."""

    def test_final_record_finishes_with_scores(self, db_session, game_factory):
        game = game_factory(start_time=NOW - timedelta(hours=3), status="in_progress")
        monitor = LifecycleMonitor(db_session)

        finished = monitor.apply_result(game, _result(STATUS_FINAL, 112, 104), NOW)

        assert finished is True
        assert game.status == "finished"
        assert (game.home_score, game.away_score) == (112, 104)
        assert game.result_confirmed is True
        assert game.finished_at == NOW

    def test_scheduled_game_can_jump_to_finished(self, db_session, game_factory):
        game = game_factory(start_time=NOW - timedelta(hours=3))
        assert LifecycleMonitor(db_session).apply_result(game, _result(STATUS_FINAL, 99, 101), NOW)
        assert game.status == "finished"

    def test_in_progress_record(self, db_session, game_factory):
        game = game_factory(start_time=NOW - timedelta(minutes=30))
        finished = LifecycleMonitor(db_session).apply_result(game, _result(STATUS_IN_PROGRESS, 20, 18), NOW)

        assert finished is False
        assert game.status == "in_progress"
        assert game.home_score is None
        assert game.last_feed_update == NOW

    def test_status_never_moves_backwards(self, db_session, game_factory):
        game = game_factory(status="in_progress")
        LifecycleMonitor(db_session).apply_result(game, _result(STATUS_SCHEDULED), NOW)
        assert game.status == "in_progress"

    def test_finished_game_keeps_first_scores(self, db_session, game_factory):
        game = game_factory(status="finished", home_score=100, away_score=90, result_confirmed=True)

        changed = LifecycleMonitor(db_session).apply_result(game, _result(STATUS_FINAL, 101, 90), NOW)

        assert changed is False
        assert game.home_score == 100

    def test_final_without_scores_is_ignored(self, db_session, game_factory):
        game = game_factory(status="in_progress")
        assert LifecycleMonitor(db_session).apply_result(game, _result(STATUS_FINAL), NOW) is False
        assert game.status == "in_progress"
        assert game.last_feed_update is None

    def test_scoreless_final_does_not_defer_fallback(self, db_session, game_factory):
        game = game_factory(start_time=NOW - timedelta(hours=30), status="in_progress")
        monitor = LifecycleMonitor(db_session, grace_hours=24)

        monitor.apply_result(game, _result(STATUS_FINAL), NOW - timedelta(minutes=5))
        db_session.commit()

        assert monitor.force_finish_overdue(NOW) == [game.id]


class TestForceFinishOverdue:
    """Fallback for games the results feed stopped reporting."""

    def test_overdue_game_forced_to_unconfirmed_finish(self, db_session, game_factory):
        overdue = game_factory(start_time=NOW - timedelta(hours=30), status="in_progress")
        recent = game_factory(start_time=NOW - timedelta(hours=2), status="in_progress")

        forced = LifecycleMonitor(db_session, grace_hours=24).force_finish_overdue(NOW)

        assert forced == [overdue.id]
        db_session.expire_all()
        game = db_session.get(Game, overdue.id)
        assert game.status == "finished"
        assert game.result_confirmed is False
        assert game.needs_review is True
        assert game.home_score is None
        assert db_session.get(Game, recent.id).status == "in_progress"

    def test_recent_feed_sighting_defers_fallback(self, db_session, game_factory):
        game_factory(
            start_time=NOW - timedelta(hours=30),
            status="in_progress",
            last_feed_update=NOW - timedelta(hours=1),
        )
        assert LifecycleMonitor(db_session, grace_hours=24).force_finish_overdue(NOW) == []


class TestPrune:
    """Retention archives old finished games without pending wagers."""

    def test_archives_only_settled_old_games(self, db_session, user_factory, game_factory, wager_factory):
        old = game_factory(status="finished", finished_at=NOW - timedelta(days=10))
        old_with_pending = game_factory(status="finished", finished_at=NOW - timedelta(days=10))
        fresh = game_factory(status="finished", finished_at=NOW - timedelta(days=1))
        wager_factory(user_factory(), old_with_pending, stake=Decimal("5"))

        archived = LifecycleMonitor(db_session, retention_days=7).prune(NOW)

        assert archived == 1
        db_session.expire_all()
        assert db_session.get(Game, old.id).archived_at == NOW
        assert db_session.get(Game, old_with_pending.id).archived_at is None
        assert db_session.get(Game, fresh.id).archived_at is None
