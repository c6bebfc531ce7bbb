"""Shared pytest fixtures for wagerbook tests."""
import os
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Generator

# Settings are read at import time; pin the test environment first.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOG_JSON", "false")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# A fixed clock for tests that pass ``now`` explicitly (naive UTC)
NOW = datetime(2024, 3, 3, 18, 0, 0)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create fresh test database session with isolated in-memory database."""
    from wagerbook.models import Base

    # StaticPool keeps a single connection so every session (including the
    # ones TestClient requests run on) sees the same in-memory database.
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestSessionLocal()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def user_factory(db_session: Session):
    """Create committed users: ``user_factory("alice", balance=Decimal("500"))``."""
    from wagerbook.models import User

    def _create(username: str = None, balance: Decimal = Decimal("1000.00")) -> User:
        user = User(
            id=str(uuid.uuid4()),
            username=username or f"user-{uuid.uuid4().hex[:8]}",
            balance=balance,
            wagers_placed=0,
            wagers_won=0,
            wagers_lost=0,
            total_staked=Decimal("0"),
            total_returned=Decimal("0"),
            created_at=NOW,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _create


@pytest.fixture
def game_factory(db_session: Session):
    """
    Create committed games with a full default quote.

    Defaults: Boston Celtics @ Philadelphia 76ers, starting one day after
    NOW, moneyline +150/-180, spread -3.5/+3.5 at -110, total 220.5 at -110.
    """
    from wagerbook.models import Game

    def _create(**overrides) -> Game:
        odds_event_id = overrides.pop("odds_event_id", uuid.uuid4().hex)
        fields = dict(
            id=str(uuid.uuid4()),
            external_id=f"odds:{odds_event_id}",
            odds_event_id=odds_event_id,
            home_team="Philadelphia 76ers",
            away_team="Boston Celtics",
            start_time=NOW + timedelta(days=1),
            status="scheduled",
            moneyline_home=150,
            moneyline_away=-180,
            spread_home=-3.5,
            spread_home_odds=-110,
            spread_away=3.5,
            spread_away_odds=-110,
            total_over=220.5,
            total_over_odds=-110,
            total_under=220.5,
            total_under_odds=-110,
            odds_bookmaker="draftkings",
            result_confirmed=False,
            needs_review=False,
            created_at=NOW,
            updated_at=NOW,
        )
        fields.update(overrides)
        game = Game(**fields)
        db_session.add(game)
        db_session.commit()
        return game

    return _create


@pytest.fixture
def wager_factory(db_session: Session):
    """
    Create committed pending wagers directly (bypassing placement).

    The user's balance is debited as placement would, so ledger totals
    stay consistent for conservation checks.
    """
    from wagerbook.models import User, Wager
    from wagerbook.services.betting.odds_math import calculate_payout

    def _create(user, game, bet_type="moneyline", selection="home", stake=Decimal("100.00"),
                odds=None, line=None, status="pending") -> Wager:
        if odds is None:
            odds = -110 if bet_type != "moneyline" else 150
        wager = Wager(
            id=str(uuid.uuid4()),
            user_id=user.id,
            game_id=game.id,
            bet_type=bet_type,
            selection=selection,
            odds_at_placement=odds,
            line_at_placement=line,
            stake=stake,
            potential_payout=calculate_payout(stake, odds),
            status=status,
            placed_at=NOW,
        )
        db_session.add(wager)
        db_session.query(User).filter(User.id == user.id).update({
            User.balance: User.balance - stake,
            User.wagers_placed: User.wagers_placed + 1,
            User.total_staked: User.total_staked + stake,
        }, synchronize_session=False)
        db_session.commit()
        return wager

    return _create


# =============================================================================
# FASTAPI TEST CLIENT FIXTURE
# =============================================================================

@pytest.fixture(scope="function")
def test_client(db_session):
    """
    Create FastAPI TestClient bound to the test database session.

    The client is not used as a context manager, so the application
    lifespan (table creation, scheduler) does not run.
    """
    from fastapi.testclient import TestClient
    from wagerbook.main import app
    from wagerbook.core.database import get_db

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()
