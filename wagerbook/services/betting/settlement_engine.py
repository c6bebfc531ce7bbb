"""
Settlement engine: grades and pays out every pending wager on a finished game.

Each wager is its own unit of work:

1. Snapshot the wager and the game's final result.
2. Grade it (pure, ``odds_math.evaluate_wager``).
3. Compare-and-set the wager from ``pending`` to its outcome and issue
   the paired ledger credit in the same transaction, then commit.

If the compare-and-set finds the wager already out of ``pending``
(cancelled by its owner, or settled by an overlapping pass) the unit is a
silent no-op. If anything raises, only that wager's transaction is rolled
back; it stays ``pending`` and the next pass picks it up. This makes
``trigger_settlement_for_game`` safe to call any number of times.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from wagerbook.core import metrics
from wagerbook.core.exceptions import CancellationNotAllowed, NotFoundError
from wagerbook.models import GameStatus, WagerStatus, BetType, Selection
from wagerbook.repositories import GameRepository, WagerRepository, LedgerRepository
from wagerbook.services.betting.odds_math import evaluate_wager, to_money
from wagerbook.utils.timezone import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FinalResult:
    """The game facts settlement depends on, read once per pass."""
    home_score: Optional[int]
    away_score: Optional[int]
    confirmed: bool


@dataclass(frozen=True)
class WagerSnapshot:
    id: str
    user_id: str
    bet_type: BetType
    selection: Selection
    line: Optional[float]
    odds: int
    stake: Decimal


class SettlementEngine:
    """
    Settles wagers against finished games.

    Entry points:
    - trigger_settlement_for_game(game_id): one game, idempotent
    - settle_all_finished(): every finished game that still has pending
      wagers (the scheduled sweep and operator tooling both call this)
    - cancel_game(game_id): operator exit for a scheduled game; refunds
      its pending wagers
    """

    def __init__(self, db: Session):
        self.db = db
        self.games = GameRepository(db)
        self.wagers = WagerRepository(db)
        self.ledger = LedgerRepository(db)

    def trigger_settlement_for_game(self, game_id: str) -> Dict:
        """
        Settle every pending wager on a game.

        Returns:
            Summary dict with counts: processed, won, lost, pushed,
            conflicts, failed; plus ``skipped`` when the game is not
            finished.

        Raises:
            NotFoundError: if the game does not exist
        """
        game = self.games.find_by_id(game_id)
        if game is None:
            raise NotFoundError(f"Game {game_id} not found")

        summary = {
            'game_id': game_id,
            'processed': 0,
            'won': 0,
            'lost': 0,
            'pushed': 0,
            'conflicts': 0,
            'failed': 0,
        }

        if game.status != GameStatus.FINISHED:
            summary['skipped'] = f"game status is {game.status}"
            return summary

        result = FinalResult(
            home_score=game.home_score,
            away_score=game.away_score,
            confirmed=bool(game.result_confirmed),
        )
        if not result.confirmed:
            logger.warning(
                f"Game {game_id} finished without a confirmed score; "
                f"pending wagers will be pushed"
            )

        snapshots = [self._snapshot(w) for w in self.wagers.find_pending_by_game(game_id)]
        # Release the read transaction before per-wager units begin.
        self.db.rollback()

        for snapshot in snapshots:
            summary['processed'] += 1
            try:
                status = self._settle_one(snapshot, result)
            except Exception:
                self.db.rollback()
                summary['failed'] += 1
                metrics.settlement_failures_total.inc()
                logger.exception(f"Settlement failed for wager {snapshot.id} on game {game_id}; left pending")
                continue

            if status is None:
                summary['conflicts'] += 1
                metrics.settlement_conflicts_total.inc()
                logger.info(f"Wager {snapshot.id} already settled elsewhere; skipping")
                continue

            summary[status.value] += 1
            metrics.wagers_settled_total.labels(outcome=status.value).inc()

        if summary['failed'] == 0:
            self._mark_settled(game_id)

        logger.info(
            f"Settlement for game {game_id}: {summary['processed']} processed, "
            f"{summary['won']} won, {summary['lost']} lost, {summary['pushed']} pushed, "
            f"{summary['conflicts']} conflicts, {summary['failed']} failed"
        )
        return summary

    def settle_all_finished(self) -> List[Dict]:
        """Run settlement for every finished game that still has pending wagers."""
        game_ids = [g.id for g in self.games.find_needing_settlement()]
        self.db.rollback()

        summaries = []
        for game_id in game_ids:
            try:
                summaries.append(self.trigger_settlement_for_game(game_id))
            except Exception:
                self.db.rollback()
                logger.exception(f"Settlement sweep failed for game {game_id}")
        return summaries

    def cancel_game(self, game_id: str, now: Optional[datetime] = None) -> Dict:
        """
        Cancel a scheduled game and refund every pending wager on it.

        Each refund goes through the same pending compare-and-set as
        settlement and reverses the placement counters the way a user
        cancellation does. Calling again on a cancelled game retries any
        refund that failed.

        Returns:
            Summary dict with counts: processed, refunded, conflicts, failed

        Raises:
            NotFoundError: if the game does not exist
            CancellationNotAllowed: if the game has already started or finished
        """
        now = now or utcnow()
        game = self.games.find_by_id(game_id)
        if game is None:
            raise NotFoundError(f"Game {game_id} not found")
        if game.status not in (GameStatus.SCHEDULED, GameStatus.CANCELLED):
            raise CancellationNotAllowed(f"Game {game_id} is {game.status}")

        if game.status == GameStatus.SCHEDULED:
            game.status = GameStatus.CANCELLED.value
            game.updated_at = now
            self.db.commit()
            logger.warning(f"Game {game_id} cancelled: {game.away_team} @ {game.home_team}")

        summary = {
            'game_id': game_id,
            'processed': 0,
            'refunded': 0,
            'conflicts': 0,
            'failed': 0,
        }

        snapshots = [self._snapshot(w) for w in self.wagers.find_pending_by_game(game_id)]
        self.db.rollback()

        for snapshot in snapshots:
            summary['processed'] += 1
            try:
                refunded = self._refund_one(snapshot, now)
            except Exception:
                self.db.rollback()
                summary['failed'] += 1
                metrics.settlement_failures_total.inc()
                logger.exception(f"Refund failed for wager {snapshot.id} on cancelled game {game_id}; left pending")
                continue

            if not refunded:
                summary['conflicts'] += 1
                metrics.settlement_conflicts_total.inc()
                continue

            summary['refunded'] += 1
            metrics.wagers_settled_total.labels(outcome=WagerStatus.CANCELLED.value).inc()

        if summary['failed'] == 0:
            self._mark_settled(game_id)

        logger.info(
            f"Cancellation of game {game_id}: {summary['refunded']} refunded, "
            f"{summary['conflicts']} conflicts, {summary['failed']} failed"
        )
        return summary

    # ========================================================================
    # Internals
    # ========================================================================

    @staticmethod
    def _snapshot(wager) -> WagerSnapshot:
        return WagerSnapshot(
            id=wager.id,
            user_id=wager.user_id,
            bet_type=BetType(wager.bet_type),
            selection=Selection(wager.selection),
            line=wager.line_at_placement,
            odds=wager.odds_at_placement,
            stake=to_money(wager.stake),
        )

    def _settle_one(self, wager: WagerSnapshot, result: FinalResult) -> Optional[WagerStatus]:
        """
        Settle one wager in its own transaction.

        Returns:
            The outcome status, or None if the wager was no longer pending.
        """
        outcome = evaluate_wager(
            bet_type=wager.bet_type,
            selection=wager.selection,
            line=wager.line,
            odds=wager.odds,
            stake=wager.stake,
            home_score=result.home_score,
            away_score=result.away_score,
            result_confirmed=result.confirmed,
        )

        transitioned = self.wagers.update_status(
            wager.id,
            WagerStatus.PENDING,
            outcome.status,
            settled_at=utcnow(),
            payout=outcome.payout,
        )
        if not transitioned:
            self.db.rollback()
            return None

        if outcome.status == WagerStatus.WON:
            credited = self.ledger.credit(
                wager.user_id, outcome.payout, wagers_won=1, total_returned=outcome.payout
            )
        elif outcome.status == WagerStatus.LOST:
            credited = self.ledger.credit(wager.user_id, Decimal("0.00"), wagers_lost=1)
        else:
            credited = self.ledger.credit(wager.user_id, outcome.payout)

        if not credited:
            raise NotFoundError(f"User {wager.user_id} not found for wager {wager.id}")

        self.db.commit()
        return outcome.status

    def _refund_one(self, wager: WagerSnapshot, now: datetime) -> bool:
        """Refund one wager in its own transaction; False if no longer pending."""
        transitioned = self.wagers.update_status(
            wager.id,
            WagerStatus.PENDING,
            WagerStatus.CANCELLED,
            settled_at=now,
            payout=wager.stake,
        )
        if not transitioned:
            self.db.rollback()
            return False

        credited = self.ledger.credit(
            wager.user_id, wager.stake, wagers_placed=-1, total_staked=-wager.stake
        )
        if not credited:
            raise NotFoundError(f"User {wager.user_id} not found for wager {wager.id}")

        self.db.commit()
        return True

    def _mark_settled(self, game_id: str) -> None:
        game = self.games.find_by_id(game_id)
        if game is not None and game.settled_at is None:
            game.settled_at = utcnow()
            game.updated_at = game.settled_at
            self.db.commit()
