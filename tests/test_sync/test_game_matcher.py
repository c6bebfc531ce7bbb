"""Tests for game matching.

Test Strategy:
1. Pure match_game: exact ID, same-day name match, ambiguity, other days
2. GameMatcher.resolve against the database: create, attach, skip
3. Calendar days are local (a late tip-off is still the same game day)
"""
from datetime import date, datetime, timedelta

import pytest

from wagerbook.core.exceptions import MatchingAmbiguity
from wagerbook.models import Game
from wagerbook.services.feeds.schemas import OddsRecord, ResultRecord
from wagerbook.services.sync.game_matcher import (
    ExternalGameRef,
    GameCandidate,
    GameMatcher,
    MatchKind,
    match_game,
)

TZ = "America/New_York"
GAME_DAY = date(2024, 3, 3)
# 7:30pm Eastern on GAME_DAY
TIP_OFF = datetime(2024, 3, 4, 0, 30)


def _external(feed="results", feed_id="g-1", home="Philadelphia 76ers", away="Boston Celtics", day=GAME_DAY):
    return ExternalGameRef(feed=feed, feed_id=feed_id, home_team=home, away_team=away, game_day=day)


def _candidate(game_id, home="Philadelphia 76ers", away="Boston Celtics", day=GAME_DAY, **ids):
    return GameCandidate(game_id=game_id, home_team=home, away_team=away, game_day=day, **ids)


class TestMatchGame:
    """Pure matching rules."""

    # Exact ID
    # ─────────────────────────────────────────────────────────────

    def test_exact_id_wins_over_names(self):
        """A stored feed ID matches even if names differ."""
        candidates = [
            _candidate("a"),
            _candidate("b", home="Miami Heat", away="Utah Jazz", results_event_id="g-1"),
        ]
        result = match_game(_external(), candidates)
        assert result.kind == MatchKind.EXACT_ID
        assert result.game_id == "b"

    def test_feed_ids_are_per_feed(self):
        """An odds ID equal to the results record's ID is not an exact match."""
        candidates = [_candidate("a", home="Miami Heat", away="Utah Jazz", odds_event_id="g-1")]
        assert match_game(_external(), candidates).kind == MatchKind.NO_MATCH

    # Name Match
    # ─────────────────────────────────────────────────────────────

    def test_same_day_name_match_with_aliases(self):
        result = match_game(_external(home="PHI", away="BOS"), [_candidate("a")])
        assert result.kind == MatchKind.SAME_DAY_NAME_MATCH
        assert result.game_id == "a"

    def test_other_day_never_matches(self):
        """Same teams one day later is a different game."""
        candidates = [_candidate("a", day=GAME_DAY + timedelta(days=1))]
        assert match_game(_external(), candidates).kind == MatchKind.NO_MATCH

    def test_home_and_away_are_not_interchangeable(self):
        candidates = [_candidate("a", home="Boston Celtics", away="Philadelphia 76ers")]
        assert match_game(_external(), candidates).kind == MatchKind.NO_MATCH

    def test_two_same_day_candidates_are_ambiguous(self):
        result = match_game(_external(), [_candidate("a"), _candidate("b")])
        assert result.kind == MatchKind.AMBIGUOUS
        assert set(result.candidate_ids) == {"a", "b"}
        assert result.game_id is None

    def test_no_candidates(self):
        assert match_game(_external(), []).kind == MatchKind.NO_MATCH


class TestExternalGameRef:
    def test_odds_record_uses_local_day(self):
        """00:30 UTC on March 4 is the evening of March 3 in New York."""
        record = OddsRecord(
            id="evt-1",
            home_team="Philadelphia 76ers",
            away_team="Boston Celtics",
            commence_time="2024-03-04T00:30:00Z",
        )
        ref = ExternalGameRef.from_odds_record(record, TZ)
        assert ref.game_day == GAME_DAY
        assert ref.commence_time == TIP_OFF

    def test_result_record_requires_date(self):
        record = ResultRecord(gameId=1, homeTeam="PHI", awayTeam="BOS", statusCode=1)
        with pytest.raises(ValueError):
            ExternalGameRef.from_result_record(record)


class TestGameMatcher:
    """Database-backed resolution."""

    def test_unmatched_odds_record_creates_game(self, db_session):
        matcher = GameMatcher(db_session, TZ)
        external = ExternalGameRef(
            feed="odds", feed_id="evt-1",
            home_team="Philadelphia 76ers", away_team="Boston Celtics",
            game_day=GAME_DAY, commence_time=TIP_OFF,
        )

        resolution = matcher.resolve(external)
        db_session.commit()

        assert resolution.created is True
        assert resolution.match.kind == MatchKind.NO_MATCH
        game = db_session.get(Game, resolution.game.id)
        assert game.external_id == "odds:evt-1"
        assert game.odds_event_id == "evt-1"
        assert game.start_time == TIP_OFF
        assert game.status == "scheduled"

    def test_repeated_odds_record_reuses_game(self, db_session):
        matcher = GameMatcher(db_session, TZ)
        external = ExternalGameRef(
            feed="odds", feed_id="evt-1",
            home_team="Philadelphia 76ers", away_team="Boston Celtics",
            game_day=GAME_DAY, commence_time=TIP_OFF,
        )
        first = matcher.resolve(external)
        db_session.commit()
        second = matcher.resolve(external)

        assert second.created is False
        assert second.match.kind == MatchKind.EXACT_ID
        assert second.game.id == first.game.id
        assert db_session.query(Game).count() == 1

    def test_results_record_attaches_by_name(self, db_session, game_factory):
        game = game_factory(start_time=TIP_OFF)
        matcher = GameMatcher(db_session, TZ)

        resolution = matcher.resolve(_external(feed="results", feed_id="0022300871", home="PHI", away="BOS"))
        db_session.commit()

        assert resolution.match.kind == MatchKind.SAME_DAY_NAME_MATCH
        assert resolution.game.id == game.id
        db_session.expire_all()
        assert db_session.get(Game, game.id).results_event_id == "0022300871"

        again = matcher.resolve(_external(feed="results", feed_id="0022300871", home="x", away="y"))
        assert again.match.kind == MatchKind.EXACT_ID

    def test_unmatched_results_record_is_skipped(self, db_session):
        resolution = GameMatcher(db_session, TZ).resolve(_external())
        assert resolution.game is None
        assert resolution.match.kind == MatchKind.NO_MATCH
        assert db_session.query(Game).count() == 0

    def test_ambiguous_candidates_raise(self, db_session, game_factory):
        game_factory(start_time=TIP_OFF)
        game_factory(start_time=TIP_OFF - timedelta(hours=3))

        with pytest.raises(MatchingAmbiguity) as exc_info:
            GameMatcher(db_session, TZ).resolve(_external())
        assert len(exc_info.value.candidate_ids) == 2

    def test_archived_game_is_found_by_exact_id(self, db_session, game_factory):
        """An archived game is never re-created for a late odds record."""
        game = game_factory(start_time=TIP_OFF, odds_event_id="evt-9", archived_at=TIP_OFF)
        external = ExternalGameRef(
            feed="odds", feed_id="evt-9",
            home_team="Philadelphia 76ers", away_team="Boston Celtics",
            game_day=GAME_DAY, commence_time=TIP_OFF,
        )

        resolution = GameMatcher(db_session, TZ).resolve(external)

        assert resolution.game.id == game.id
        assert resolution.created is False
        assert db_session.query(Game).count() == 1
