"""
Game Repository for catalog data access.

Usage:
    repo = GameRepository(db)
    game = repo.find_by_feed_id("odds", "e912304de2b2ce35b473ce2ecd3d1502")
    pending = repo.find_needing_settlement()
"""
import uuid
from datetime import datetime, timedelta
from typing import Optional, List, Tuple, Any

from sqlalchemy import and_, exists
from sqlalchemy.exc import IntegrityError

from wagerbook.models import Game, Wager, GameStatus, WagerStatus
from wagerbook.repositories.base import BaseRepository
from wagerbook.utils.timezone import utcnow

ODDS_FEED = "odds"
RESULTS_FEED = "results"

_FEED_ID_COLUMNS = {
    ODDS_FEED: "odds_event_id",
    RESULTS_FEED: "results_event_id",
}


class GameRepository(BaseRepository[Game]):
    """Repository for game catalog access."""

    def __init__(self, db):
        super().__init__(Game, db)

    # ========================================================================
    # Identifier Lookups
    # ========================================================================

    def find_by_external_id(self, external_id: str) -> Optional[Game]:
        """Find a game by the matcher-assigned external ID."""
        return self.where_first(Game.external_id == external_id)

    def find_by_feed_id(self, feed: str, feed_id: str) -> Optional[Game]:
        """Find a game by the identifier a specific feed uses for it."""
        column = getattr(Game, _FEED_ID_COLUMNS[feed])
        return self.where_first(column == feed_id)

    @staticmethod
    def feed_id_attribute(feed: str) -> str:
        """Name of the Game attribute holding ``feed``'s identifier."""
        return _FEED_ID_COLUMNS[feed]

    def upsert_by_external_id(self, external_id: str, **fields: Any) -> Tuple[Game, bool]:
        """
        Return the game with ``external_id``, inserting it if absent.

        Uses check-then-insert with IntegrityError handling: if another
        process inserts the same external ID between the check and the
        flush, the session is rolled back and the winner's row is returned.
        Call this at the start of a unit of work, since the rollback
        discards anything else pending in the session. Existing rows are
        not modified; callers apply updates themselves.

        Returns:
            (game, created)
        """
        existing = self.find_by_external_id(external_id)
        if existing:
            return existing, False

        now = utcnow()
        game = Game(
            id=str(uuid.uuid4()),
            external_id=external_id,
            status=GameStatus.SCHEDULED.value,
            result_confirmed=False,
            needs_review=False,
            created_at=now,
            updated_at=now,
            **fields,
        )
        try:
            self.db.add(game)
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            game = self.find_by_external_id(external_id)
            if game is None:
                raise
            return game, False

        return game, True

    # ========================================================================
    # Working-set Queries
    # ========================================================================

    def find_candidates_between(self, start: datetime, end: datetime) -> List[Game]:
        """Active, non-cancelled games starting in [start, end) (naive UTC)."""
        return self.query().filter(
            Game.archived_at.is_(None),
            Game.status != GameStatus.CANCELLED.value,
            Game.start_time >= start,
            Game.start_time < end,
        ).order_by(Game.start_time).all()

    def find_overdue(self, started_before: datetime) -> List[Game]:
        """Scheduled or in-progress games that started before the cutoff."""
        return self.query().filter(
            Game.archived_at.is_(None),
            Game.status.in_([GameStatus.SCHEDULED.value, GameStatus.IN_PROGRESS.value]),
            Game.start_time < started_before,
        ).all()

    def find_prunable(self, finished_before: datetime) -> List[Game]:
        """Finished, unarchived games past the horizon with no pending wagers."""
        has_pending = exists().where(and_(
            Wager.game_id == Game.id,
            Wager.status == WagerStatus.PENDING.value,
        ))
        return self.query().filter(
            Game.status == GameStatus.FINISHED.value,
            Game.archived_at.is_(None),
            Game.finished_at < finished_before,
            ~has_pending,
        ).all()

    def find_needing_settlement(self) -> List[Game]:
        """Finished, unarchived games that still have pending wagers."""
        has_pending = exists().where(and_(
            Wager.game_id == Game.id,
            Wager.status == WagerStatus.PENDING.value,
        ))
        return self.query().filter(
            Game.status == GameStatus.FINISHED.value,
            Game.archived_at.is_(None),
            has_pending,
        ).order_by(Game.finished_at).all()

    def find_review_queue(self) -> List[Game]:
        """Games flagged for manual review (force-finished without a score)."""
        return self.query().filter(Game.needs_review.is_(True)).order_by(Game.start_time).all()

    # ========================================================================
    # Listing Queries
    # ========================================================================

    def find_upcoming(self, limit: int = 100) -> List[Game]:
        """Scheduled games, soonest first."""
        return self.query().filter(
            Game.status == GameStatus.SCHEDULED.value,
        ).order_by(Game.start_time).limit(limit).all()

    def find_by_status(self, status: GameStatus, include_archived: bool = False) -> List[Game]:
        """Find games in a status, oldest start first."""
        query = self.query().filter(Game.status == status.value)
        if not include_archived:
            query = query.filter(Game.archived_at.is_(None))
        return query.order_by(Game.start_time).all()

    def find_live(self) -> List[Game]:
        """Games currently in progress."""
        return self.find_by_status(GameStatus.IN_PROGRESS)

    def find_recently_finished(self, hours: int = 24) -> List[Game]:
        """Games that finished within the last ``hours``, newest first."""
        cutoff = utcnow() - timedelta(hours=hours)
        return self.query().filter(
            Game.status == GameStatus.FINISHED.value,
            Game.finished_at >= cutoff,
        ).order_by(Game.finished_at.desc()).all()
