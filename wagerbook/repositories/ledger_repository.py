"""
Ledger Repository: user balances and wagering counters.

Every balance change is a single SQL expression evaluated by the
database (``balance = balance + :amount``), so concurrent writers never
overwrite each other's read-modify-write. Nothing here commits; the
service that pairs the ledger write with a wager transition owns the
transaction.
"""
import uuid
from decimal import Decimal
from typing import Optional, List

from wagerbook.models import User
from wagerbook.repositories.base import BaseRepository
from wagerbook.utils.timezone import utcnow

COUNTER_COLUMNS = frozenset({
    "wagers_placed",
    "wagers_won",
    "wagers_lost",
    "total_staked",
    "total_returned",
})


class LedgerRepository(BaseRepository[User]):
    """Repository for the user ledger."""

    def __init__(self, db):
        super().__init__(User, db)

    def create_user(self, username: str, starting_balance: Decimal) -> User:
        """Add a new user with a starting balance (not committed)."""
        return self.create(
            id=str(uuid.uuid4()),
            username=username,
            balance=starting_balance,
            wagers_placed=0,
            wagers_won=0,
            wagers_lost=0,
            total_staked=Decimal("0"),
            total_returned=Decimal("0"),
            created_at=utcnow(),
        )

    def find_by_username(self, username: str) -> Optional[User]:
        return self.where_first(User.username == username)

    def leaderboard(self, limit: int = 20) -> List[User]:
        """Users ordered by balance, then by wins."""
        return self.query().order_by(
            User.balance.desc(),
            User.wagers_won.desc(),
        ).limit(limit).all()

    def debit(self, user_id: str, amount: Decimal, **counter_deltas) -> bool:
        """
        Subtract ``amount`` from the balance if it is covered.

        Args:
            user_id: User to debit
            amount: Positive amount
            **counter_deltas: Counter increments applied in the same UPDATE,
                e.g. ``wagers_placed=1, total_staked=amount``

        Returns:
            False if the user does not exist or the balance is below
            ``amount``; nothing is written in that case.
        """
        values = self._counter_values(counter_deltas)
        values[User.balance] = User.balance - amount
        changed = self.update_where(values, User.id == user_id, User.balance >= amount)
        return changed == 1

    def credit(self, user_id: str, amount: Decimal, **counter_deltas) -> bool:
        """
        Add ``amount`` to the balance (``amount`` may be zero for a
        counter-only update such as a recorded loss).

        Returns:
            False if the user does not exist.
        """
        values = self._counter_values(counter_deltas)
        values[User.balance] = User.balance + amount
        changed = self.update_where(values, User.id == user_id)
        return changed == 1

    @staticmethod
    def _counter_values(counter_deltas: dict) -> dict:
        unknown = set(counter_deltas) - COUNTER_COLUMNS
        if unknown:
            raise ValueError(f"Unknown ledger counters: {', '.join(sorted(unknown))}")

        values = {}
        for name, delta in counter_deltas.items():
            column = getattr(User, name)
            values[column] = column + delta
        return values
