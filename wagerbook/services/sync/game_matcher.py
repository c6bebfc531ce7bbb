"""Game matcher for correlating feed records with the internal game catalog.

Matching priority:
1. Exact ID - the record's feed identifier equals the one stored for that feed
2. Same-day name match - normalized (home, away) pair equal and same local
   calendar day (MATCH_TIMEZONE)
3. No match

Two or more same-day name matches are AMBIGUOUS and never guessed.
Candidates on other calendar days never match, even with identical teams.

``match_game`` is pure and works on plain candidate snapshots; the
db-backed ``GameMatcher`` loads candidates, acts on the result, and
creates catalog entries for unmatched odds records.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Iterable, Optional, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from wagerbook.core.config import settings
from wagerbook.core.exceptions import MatchingAmbiguity
from wagerbook.models import Game
from wagerbook.repositories import GameRepository
from wagerbook.repositories.game_repository import ODDS_FEED, RESULTS_FEED
from wagerbook.services.feeds.schemas import OddsRecord, ResultRecord
from wagerbook.services.sync.name_normalizer import normalize_team_name
from wagerbook.utils.timezone import local_game_day

logger = logging.getLogger(__name__)


class MatchKind(str, Enum):
    EXACT_ID = "exact_id"
    SAME_DAY_NAME_MATCH = "same_day_name_match"
    AMBIGUOUS = "ambiguous"
    NO_MATCH = "no_match"


@dataclass(frozen=True)
class ExternalGameRef:
    """What a feed record says about a game, reduced to matching keys."""
    feed: str
    feed_id: str
    home_team: str
    away_team: str
    game_day: date
    commence_time: Optional[datetime] = None  # naive UTC, odds feed only

    @classmethod
    def from_odds_record(cls, record: OddsRecord, tz_name: str) -> "ExternalGameRef":
        return cls(
            feed=ODDS_FEED,
            feed_id=record.id,
            home_team=record.home_team,
            away_team=record.away_team,
            game_day=local_game_day(record.commence_time, tz_name),
            commence_time=record.commence_time,
        )

    @classmethod
    def from_result_record(cls, record: ResultRecord) -> "ExternalGameRef":
        if record.game_date is None:
            raise ValueError(f"Result record {record.game_id} has no scoreboard date")
        return cls(
            feed=RESULTS_FEED,
            feed_id=record.game_id,
            home_team=record.home_team,
            away_team=record.away_team,
            game_day=record.game_date,
        )


@dataclass(frozen=True)
class GameCandidate:
    """Snapshot of a catalog game as seen by the pure matcher."""
    game_id: str
    home_team: str
    away_team: str
    game_day: date
    odds_event_id: Optional[str] = None
    results_event_id: Optional[str] = None

    @classmethod
    def from_game(cls, game: Game, tz_name: str) -> "GameCandidate":
        return cls(
            game_id=game.id,
            home_team=game.home_team,
            away_team=game.away_team,
            game_day=local_game_day(game.start_time, tz_name),
            odds_event_id=game.odds_event_id,
            results_event_id=game.results_event_id,
        )

    def feed_id(self, feed: str) -> Optional[str]:
        if feed == ODDS_FEED:
            return self.odds_event_id
        if feed == RESULTS_FEED:
            return self.results_event_id
        return None


@dataclass(frozen=True)
class MatchResult:
    kind: MatchKind
    game_id: Optional[str] = None
    candidate_ids: Tuple[str, ...] = field(default_factory=tuple)


def match_game(external: ExternalGameRef, candidates: Iterable[GameCandidate]) -> MatchResult:
    """
    Resolve an external record against catalog candidates.

    Args:
        external: Keys from the feed record
        candidates: Catalog snapshots to consider

    Returns:
        MatchResult with kind EXACT_ID or SAME_DAY_NAME_MATCH (and game_id),
        AMBIGUOUS (and candidate_ids), or NO_MATCH
    """
    candidates = list(candidates)

    for candidate in candidates:
        if candidate.feed_id(external.feed) == external.feed_id:
            return MatchResult(MatchKind.EXACT_ID, candidate.game_id)

    home = normalize_team_name(external.home_team)
    away = normalize_team_name(external.away_team)
    same_day = [
        c for c in candidates
        if c.game_day == external.game_day
        and normalize_team_name(c.home_team) == home
        and normalize_team_name(c.away_team) == away
    ]

    if len(same_day) == 1:
        return MatchResult(MatchKind.SAME_DAY_NAME_MATCH, same_day[0].game_id)
    if len(same_day) > 1:
        return MatchResult(MatchKind.AMBIGUOUS, candidate_ids=tuple(c.game_id for c in same_day))
    return MatchResult(MatchKind.NO_MATCH)


@dataclass
class Resolution:
    """Outcome of GameMatcher.resolve for one record."""
    match: MatchResult
    game: Optional[Game] = None
    created: bool = False


class GameMatcher:
    """
    Match feed records to catalog games.

    Resolution happens at the start of a record's unit of work: a newly
    created game is flushed but not committed, and a feed identifier
    attached by a name match is committed with the caller's updates.
    """

    def __init__(self, db: Session, tz_name: Optional[str] = None):
        self.db = db
        self.games = GameRepository(db)
        self.tz_name = tz_name or settings.MATCH_TIMEZONE

    def resolve(self, external: ExternalGameRef) -> Resolution:
        """
        Find (or, for odds records, create) the game a record refers to.

        Returns:
            Resolution; ``game`` is None for unmatched results records.

        Raises:
            MatchingAmbiguity: more than one same-day candidate
        """
        # Exact lookup covers archived games so they are never re-created.
        game = self.games.find_by_feed_id(external.feed, external.feed_id)
        if game is not None:
            return Resolution(MatchResult(MatchKind.EXACT_ID, game.id), game)

        candidates = [
            GameCandidate.from_game(g, self.tz_name)
            for g in self.games.find_candidates_between(*self._day_window(external.game_day))
        ]
        result = match_game(external, candidates)

        if result.kind == MatchKind.AMBIGUOUS:
            raise MatchingAmbiguity(external.feed, external.feed_id, result.candidate_ids)

        if result.kind in (MatchKind.EXACT_ID, MatchKind.SAME_DAY_NAME_MATCH):
            game = self.games.find_by_id(result.game_id)
            self._attach_feed_id(game, external)
            return Resolution(result, game)

        if external.feed != ODDS_FEED:
            logger.info(
                f"No catalog game for {external.feed} record {external.feed_id} "
                f"({external.away_team} @ {external.home_team}, {external.game_day}); skipping"
            )
            return Resolution(result)

        game, created = self.games.upsert_by_external_id(
            f"{external.feed}:{external.feed_id}",
            odds_event_id=external.feed_id,
            home_team=external.home_team,
            away_team=external.away_team,
            start_time=external.commence_time,
        )
        if created:
            logger.info(
                f"Created game {game.id} for odds event {external.feed_id}: "
                f"{external.away_team} @ {external.home_team} at {external.commence_time}"
            )
        return Resolution(result, game, created)

    def _attach_feed_id(self, game: Game, external: ExternalGameRef) -> None:
        attribute = GameRepository.feed_id_attribute(external.feed)
        current = getattr(game, attribute)
        if current == external.feed_id:
            return
        if current:
            logger.warning(
                f"Game {game.id} {attribute} changes from {current} to {external.feed_id}"
            )
        setattr(game, attribute, external.feed_id)
        logger.info(f"Linked {external.feed} record {external.feed_id} to game {game.id} by name")

    def _day_window(self, game_day: date) -> Tuple[datetime, datetime]:
        """
        UTC bounds that cover the local calendar day with a day of slack
        on each side; ``match_game`` does the exact day comparison.
        """
        local_midnight = datetime.combine(game_day, time.min, tzinfo=ZoneInfo(self.tz_name))
        start = local_midnight.astimezone(timezone.utc).replace(tzinfo=None) - timedelta(days=1)
        return start, start + timedelta(days=3)
