"""
Database models for the wagerbook engine: users (ledger), games, wagers.
"""
from sqlalchemy import (
    Column, String, Float, Integer, DateTime, Numeric, ForeignKey, Boolean,
    Index, CheckConstraint,
)
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()

MONEY = Numeric(12, 2)


class User(Base):
    """User ledger entry: balance plus aggregate wagering counters."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    balance = Column(MONEY, nullable=False, default=1000)
    wagers_placed = Column(Integer, nullable=False, default=0)
    wagers_won = Column(Integer, nullable=False, default=0)
    wagers_lost = Column(Integer, nullable=False, default=0)
    total_staked = Column(MONEY, nullable=False, default=0)
    total_returned = Column(MONEY, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False)

    wagers = relationship("Wager", back_populates="user")

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_users_balance_non_negative"),
        CheckConstraint("wagers_placed >= 0", name="ck_users_wagers_placed_non_negative"),
    )


class Game(Base):
    """
    A real-world event in the catalog.

    ``external_id`` is assigned by the matcher on first sighting
    (``"<feed>:<feed_id>"``); the per-feed identifiers are kept separately
    because the odds and results feeds use disjoint ID spaces.
    """
    __tablename__ = "games"

    id = Column(String(36), primary_key=True)
    external_id = Column(String(120), unique=True, nullable=False, index=True)
    odds_event_id = Column(String(100), unique=True, nullable=True)
    results_event_id = Column(String(100), unique=True, nullable=True)
    home_team = Column(String(100), nullable=False)
    away_team = Column(String(100), nullable=False)
    start_time = Column(DateTime, nullable=False, index=True)  # naive UTC
    status = Column(String(20), nullable=False, index=True, default="scheduled")
    home_score = Column(Integer, nullable=True)
    away_score = Column(Integer, nullable=True)

    # Current quote (American odds; points for spread/total)
    moneyline_home = Column(Integer, nullable=True)
    moneyline_away = Column(Integer, nullable=True)
    spread_home = Column(Float, nullable=True)
    spread_home_odds = Column(Integer, nullable=True)
    spread_away = Column(Float, nullable=True)
    spread_away_odds = Column(Integer, nullable=True)
    total_over = Column(Float, nullable=True)
    total_over_odds = Column(Integer, nullable=True)
    total_under = Column(Float, nullable=True)
    total_under_odds = Column(Integer, nullable=True)
    odds_bookmaker = Column(String(100), nullable=True)

    last_updated = Column(DateTime, nullable=True)  # last market value change
    last_feed_update = Column(DateTime, nullable=True)  # last sighting in any feed
    result_confirmed = Column(Boolean, nullable=False, default=False)
    needs_review = Column(Boolean, nullable=False, default=False)
    finished_at = Column(DateTime, nullable=True)
    settled_at = Column(DateTime, nullable=True)
    archived_at = Column(DateTime, nullable=True, index=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    wagers = relationship("Wager", back_populates="game")

    __table_args__ = (
        Index('ix_games_status_archived', 'status', 'archived_at'),
    )


class Wager(Base):
    """A user's stake on one market of one game, with odds frozen at placement."""
    __tablename__ = "wagers"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    game_id = Column(String(36), ForeignKey("games.id"), nullable=False, index=True)
    bet_type = Column(String(20), nullable=False)  # moneyline, spread, total
    selection = Column(String(10), nullable=False)  # home, away, over, under
    odds_at_placement = Column(Integer, nullable=False)
    line_at_placement = Column(Float, nullable=True)
    stake = Column(MONEY, nullable=False)
    potential_payout = Column(MONEY, nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    payout = Column(MONEY, nullable=True)
    placed_at = Column(DateTime, nullable=False)
    settled_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="wagers")
    game = relationship("Game", back_populates="wagers")

    __table_args__ = (
        Index('ix_wagers_game_status', 'game_id', 'status'),
        CheckConstraint("stake > 0", name="ck_wagers_stake_positive"),
    )
