"""
Service for placing and cancelling wagers and managing ledger users.

Placement and cancellation each run as one transaction: the ledger write
and the wager row change commit together or not at all.
"""
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wagerbook.core.config import settings
from wagerbook.core.exceptions import (
    CancellationNotAllowed,
    InsufficientBalance,
    InvalidWager,
    NotFoundError,
    UsernameTaken,
    WageringClosed,
)
from wagerbook.models import Game, User, Wager, BetType, GameStatus, Selection, WagerStatus
from wagerbook.models.enums import VALID_SELECTIONS
from wagerbook.repositories import GameRepository, WagerRepository, LedgerRepository
from wagerbook.services.betting.odds_math import calculate_payout, to_money
from wagerbook.services.sync.name_normalizer import normalize_team_name
from wagerbook.utils.timezone import utcnow

logger = logging.getLogger(__name__)

# (odds column, line column) on Game for each market side
QUOTE_COLUMNS = {
    (BetType.MONEYLINE, Selection.HOME): ("moneyline_home", None),
    (BetType.MONEYLINE, Selection.AWAY): ("moneyline_away", None),
    (BetType.SPREAD, Selection.HOME): ("spread_home_odds", "spread_home"),
    (BetType.SPREAD, Selection.AWAY): ("spread_away_odds", "spread_away"),
    (BetType.TOTAL, Selection.OVER): ("total_over_odds", "total_over"),
    (BetType.TOTAL, Selection.UNDER): ("total_under_odds", "total_under"),
}


class WagerService:
    """Service for wager placement, cancellation and ledger users."""

    def __init__(self, db: Session):
        self.db = db
        self.games = GameRepository(db)
        self.wagers = WagerRepository(db)
        self.ledger = LedgerRepository(db)

    # ========================================================================
    # Users
    # ========================================================================

    def create_user(self, username: str, starting_balance: Optional[Decimal] = None) -> User:
        """
        Create a ledger user with the configured starting balance.

        Raises:
            InvalidWager: if the username is empty
            UsernameTaken: if the username already exists
        """
        username = (username or "").strip()
        if not username:
            raise InvalidWager("Username is required")
        if self.ledger.find_by_username(username):
            raise UsernameTaken(f"Username {username!r} is already taken")

        balance = to_money(starting_balance if starting_balance is not None else settings.STARTING_BALANCE)
        try:
            user = self.ledger.create_user(username, balance)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise UsernameTaken(f"Username {username!r} is already taken")

        logger.info(f"Created user {user.id} ({username}) with balance {balance}")
        return user

    def get_user(self, user_id: str) -> User:
        user = self.ledger.find_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def leaderboard(self, limit: int = 20) -> List[User]:
        return self.ledger.leaderboard(limit)

    # ========================================================================
    # Wagers
    # ========================================================================

    def get_wager(self, wager_id: str) -> Wager:
        wager = self.wagers.find_by_id(wager_id)
        if wager is None:
            raise NotFoundError(f"Wager {wager_id} not found")
        return wager

    def list_wagers(self, user_id: str, limit: int = 100) -> List[Wager]:
        """A user's wagers, newest first."""
        self.get_user(user_id)
        return self.wagers.find_by_user(user_id, limit)

    def place_wager(
        self,
        user_id: str,
        game_id: str,
        bet_type: str,
        selection: str,
        stake,
        now: Optional[datetime] = None,
    ) -> Wager:
        """
        Place a wager at the game's current quote.

        Args:
            user_id: Acting user
            game_id: Internal game ID
            bet_type: 'moneyline', 'spread' or 'total'
            selection: 'home'/'away'/'over'/'under', or a team name for
                moneyline and spread
            stake: Positive amount (rounded to the cent)
            now: Placement time (naive UTC), defaults to the current time

        Returns:
            The committed pending wager

        Raises:
            InvalidWager: bad stake, bet type, selection, or unquoted market
            NotFoundError: unknown user or game
            WageringClosed: game not scheduled or already started
            InsufficientBalance: balance does not cover the stake
        """
        now = now or utcnow()
        amount = self._parse_stake(stake)
        market = self._parse_bet_type(bet_type)

        user = self.ledger.find_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")

        game = self.games.find_by_id(game_id)
        if game is None:
            raise NotFoundError(f"Game {game_id} not found")

        side = self._parse_selection(market, selection, game)
        self._ensure_open(game, now)
        odds, line = self._current_quote(game, market, side)

        try:
            debited = self.ledger.debit(user_id, amount, wagers_placed=1, total_staked=amount)
            if not debited:
                raise InsufficientBalance(
                    f"Balance does not cover stake of {amount} for user {user_id}"
                )
            wager = self.wagers.create(
                user_id=user_id,
                game_id=game_id,
                bet_type=market.value,
                selection=side.value,
                odds_at_placement=odds,
                line_at_placement=line,
                stake=amount,
                potential_payout=calculate_payout(amount, odds),
                placed_at=now,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Placed wager {wager.id}: user={user_id} game={game_id} "
            f"{market.value}/{side.value} odds={odds} line={line} stake={amount}"
        )
        return wager

    def cancel_wager(
        self,
        wager_id: str,
        user_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Wager:
        """
        Cancel a pending wager and refund its stake.

        Allowed only while the wager is pending and its game is still
        scheduled and not started. When ``user_id`` is given, only the
        wager's owner may cancel it.

        Raises:
            NotFoundError: unknown wager
            CancellationNotAllowed: not the owner, not pending, game closed,
                or the wager was settled concurrently
        """
        now = now or utcnow()
        wager = self.get_wager(wager_id)

        if user_id is not None and wager.user_id != user_id:
            raise CancellationNotAllowed(f"Wager {wager_id} does not belong to user {user_id}")
        if wager.status != WagerStatus.PENDING:
            raise CancellationNotAllowed(f"Wager {wager_id} is already {wager.status}")

        game = wager.game
        try:
            self._ensure_open(game, now)
        except WageringClosed as e:
            raise CancellationNotAllowed(str(e))

        owner_id = wager.user_id
        stake = to_money(wager.stake)

        try:
            transitioned = self.wagers.update_status(
                wager_id,
                WagerStatus.PENDING,
                WagerStatus.CANCELLED,
                settled_at=now,
                payout=stake,
            )
            if not transitioned:
                raise CancellationNotAllowed(f"Wager {wager_id} was settled before it could be cancelled")
            credited = self.ledger.credit(
                owner_id, stake, wagers_placed=-1, total_staked=-stake
            )
            if not credited:
                raise NotFoundError(f"User {owner_id} not found")
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Cancelled wager {wager_id}, refunded {stake} to user {owner_id}")
        self.db.expire(wager)
        return wager

    # ========================================================================
    # Validation
    # ========================================================================

    @staticmethod
    def _parse_stake(stake) -> Decimal:
        try:
            amount = Decimal(str(stake))
        except (InvalidOperation, ValueError):
            raise InvalidWager(f"Stake {stake!r} is not a number")
        if not amount.is_finite() or amount <= 0:
            raise InvalidWager("Stake must be greater than zero")
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidWager("Stake must be at least 0.01")
        return amount

    @staticmethod
    def _parse_bet_type(bet_type: str) -> BetType:
        try:
            return BetType((bet_type or "").lower())
        except ValueError:
            raise InvalidWager(f"Unknown bet type: {bet_type!r}")

    @staticmethod
    def _parse_selection(market: BetType, selection: str, game: Game) -> Selection:
        """Resolve a selection keyword or team name to a market side."""
        raw = (selection or "").strip()
        try:
            side = Selection(raw.lower())
        except ValueError:
            side = None
            if market in (BetType.MONEYLINE, BetType.SPREAD) and raw:
                key = normalize_team_name(raw)
                if key == normalize_team_name(game.home_team):
                    side = Selection.HOME
                elif key == normalize_team_name(game.away_team):
                    side = Selection.AWAY

        if side is None or side not in VALID_SELECTIONS[market]:
            raise InvalidWager(f"Selection {selection!r} is not valid for {market.value}")
        return side

    @staticmethod
    def _ensure_open(game: Game, now: datetime) -> None:
        if game.status != GameStatus.SCHEDULED:
            raise WageringClosed(f"Game {game.id} is {game.status}")
        if now >= game.start_time:
            raise WageringClosed(f"Game {game.id} started at {game.start_time.isoformat()}")

    @staticmethod
    def _current_quote(game: Game, market: BetType, side: Selection) -> Tuple[int, Optional[float]]:
        odds_column, line_column = QUOTE_COLUMNS[(market, side)]
        odds = getattr(game, odds_column)
        line = getattr(game, line_column) if line_column else None
        if odds is None or (line_column and line is None):
            raise InvalidWager(f"No {market.value} quote available for game {game.id}")
        return odds, line
