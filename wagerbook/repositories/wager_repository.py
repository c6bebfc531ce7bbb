"""
Wager Repository.

``update_status`` is the single place where a wager leaves ``pending``.
It is a compare-and-set: the UPDATE only matches while the row still has
the expected status, so two concurrent writers (settlement and
cancellation, or two settlement passes) cannot both succeed.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from wagerbook.models import Wager, WagerStatus
from wagerbook.repositories.base import BaseRepository


class WagerRepository(BaseRepository[Wager]):
    """Repository for wager access and status transitions."""

    def __init__(self, db):
        super().__init__(Wager, db)

    def create(
        self,
        user_id: str,
        game_id: str,
        bet_type: str,
        selection: str,
        odds_at_placement: int,
        line_at_placement: Optional[float],
        stake: Decimal,
        potential_payout: Decimal,
        placed_at: datetime,
    ) -> Wager:
        """Add a pending wager to the session (not committed)."""
        return super().create(
            id=str(uuid.uuid4()),
            user_id=user_id,
            game_id=game_id,
            bet_type=bet_type,
            selection=selection,
            odds_at_placement=odds_at_placement,
            line_at_placement=line_at_placement,
            stake=stake,
            potential_payout=potential_payout,
            status=WagerStatus.PENDING.value,
            placed_at=placed_at,
        )

    def find_pending_by_game(self, game_id: str) -> List[Wager]:
        """Pending wagers on a game, oldest first."""
        return self.query().filter(
            Wager.game_id == game_id,
            Wager.status == WagerStatus.PENDING.value,
        ).order_by(Wager.placed_at).all()

    def find_by_user(self, user_id: str, limit: int = 100) -> List[Wager]:
        """A user's wagers, newest first."""
        return self.query().filter(
            Wager.user_id == user_id,
        ).order_by(Wager.placed_at.desc()).limit(limit).all()

    def update_status(
        self,
        wager_id: str,
        from_status: WagerStatus,
        to_status: WagerStatus,
        settled_at: Optional[datetime] = None,
        payout: Optional[Decimal] = None,
    ) -> bool:
        """
        Move a wager from ``from_status`` to ``to_status``.

        Returns:
            True if this call performed the transition, False if the wager
            was no longer in ``from_status`` (nothing is written).
        """
        values = {Wager.status: to_status.value}
        if settled_at is not None:
            values[Wager.settled_at] = settled_at
        if payout is not None:
            values[Wager.payout] = payout

        changed = self.update_where(
            values,
            Wager.id == wager_id,
            Wager.status == from_status.value,
        )
        return changed == 1
