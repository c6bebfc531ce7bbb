"""
Lifecycle monitor: moves games through scheduled -> in_progress -> finished.

Sources of transitions:
- Results feed status codes (2 = in progress, 3 = final with scores)
- Fallback: a game still open LIFECYCLE_GRACE_HOURS after its start time,
  with no feed sighting inside that window, is forced to finished without
  scores and flagged for review
- Retention: finished games older than RETENTION_DAYS with no pending
  wagers are archived out of the working set

Status only moves forward; scores are written once, on the transition
into finished. Every transition into finished is reported to the caller
so settlement can run for it.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from wagerbook.core.config import settings
from wagerbook.models import Game, GameStatus
from wagerbook.models.enums import GAME_STATUS_RANK
from wagerbook.repositories import GameRepository
from wagerbook.services.feeds.schemas import ResultRecord
from wagerbook.utils.timezone import utcnow

logger = logging.getLogger(__name__)


class LifecycleMonitor:
    """Apply game state transitions."""

    def __init__(
        self,
        db: Session,
        grace_hours: Optional[int] = None,
        retention_days: Optional[int] = None,
    ):
        self.db = db
        self.games = GameRepository(db)
        self.grace = timedelta(hours=grace_hours if grace_hours is not None else settings.LIFECYCLE_GRACE_HOURS)
        self.retention = timedelta(days=retention_days if retention_days is not None else settings.RETENTION_DAYS)

    def apply_result(self, game: Game, record: ResultRecord, now: Optional[datetime] = None) -> bool:
        """
        Apply a results-feed record to a matched game (not committed).

        Returns:
            True if this call moved the game into finished
        """
        if game.status in (GameStatus.FINISHED, GameStatus.CANCELLED):
            return False

        if record.is_final and (record.home_score is None or record.away_score is None):
            # Does not count as a feed sighting
            logger.warning(
                f"Results record {record.game_id} is final without scores; "
                f"game {game.id} left {game.status}"
            )
            return False

        now = now or utcnow()
        game.last_feed_update = now

        if record.is_final:
            game.status = GameStatus.FINISHED.value
            game.home_score = record.home_score
            game.away_score = record.away_score
            game.result_confirmed = True
            game.finished_at = now
            game.updated_at = now
            logger.info(
                f"Game {game.id} finished: {game.away_team} {record.away_score} @ "
                f"{game.home_team} {record.home_score}"
            )
            return True

        if record.is_in_progress and self._is_forward(game.status, GameStatus.IN_PROGRESS):
            game.status = GameStatus.IN_PROGRESS.value
            game.updated_at = now
            logger.info(f"Game {game.id} in progress")

        return False

    def force_finish_overdue(self, now: Optional[datetime] = None) -> List[str]:
        """
        Force-finish games the results feed has stopped reporting on.

        A scheduled or in-progress game qualifies when its start time and
        its last feed sighting are both older than the grace window. It
        becomes finished with no scores, ``result_confirmed = False`` and
        ``needs_review = True``; settlement then pushes its wagers.

        Returns:
            IDs of games moved into finished (committed)
        """
        now = now or utcnow()
        cutoff = now - self.grace

        finished = []
        for game in self.games.find_overdue(cutoff):
            if game.last_feed_update is not None and game.last_feed_update >= cutoff:
                continue
            game.status = GameStatus.FINISHED.value
            game.result_confirmed = False
            game.needs_review = True
            game.finished_at = now
            game.updated_at = now
            finished.append(game.id)
            logger.warning(
                f"Game {game.id} ({game.away_team} @ {game.home_team}, started {game.start_time}) "
                f"force-finished without a confirmed result; flagged for review"
            )

        if finished:
            self.db.commit()
        return finished

    def prune(self, now: Optional[datetime] = None) -> int:
        """
        Archive finished games past the retention horizon.

        Games with pending wagers are never archived. Archived rows stay
        in the database but drop out of matching and lifecycle scans.

        Returns:
            Number of games archived (committed)
        """
        now = now or utcnow()
        games = self.games.find_prunable(now - self.retention)
        for game in games:
            game.archived_at = now
            game.updated_at = now

        if games:
            self.db.commit()
            logger.info(f"Archived {len(games)} finished games older than {self.retention.days} days")
        return len(games)

    @staticmethod
    def _is_forward(current: str, target: GameStatus) -> bool:
        rank = GAME_STATUS_RANK.get(GameStatus(current))
        return rank is not None and GAME_STATUS_RANK[target] > rank
