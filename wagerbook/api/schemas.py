"""
Request and response models for the HTTP API.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ==================== GAMES ====================

class GameResponse(BaseModel):
    """Catalog game with its current quote."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    external_id: str
    home_team: str
    away_team: str
    start_time: datetime = Field(..., description="Start time (UTC)")
    status: str
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    moneyline_home: Optional[int] = None
    moneyline_away: Optional[int] = None
    spread_home: Optional[float] = None
    spread_home_odds: Optional[int] = None
    spread_away: Optional[float] = None
    spread_away_odds: Optional[int] = None
    total_over: Optional[float] = None
    total_over_odds: Optional[int] = None
    total_under: Optional[float] = None
    total_under_odds: Optional[int] = None
    odds_bookmaker: Optional[str] = None
    last_updated: Optional[datetime] = None
    result_confirmed: bool
    needs_review: bool
    finished_at: Optional[datetime] = None
    settled_at: Optional[datetime] = None


# ==================== WAGERS ====================

class PlaceWagerRequest(BaseModel):
    """Place a wager at the game's current quote."""
    user_id: str
    game_id: str
    bet_type: str = Field(..., description="moneyline, spread or total")
    selection: str = Field(..., description="home, away, over, under, or a team name")
    stake: Decimal

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "user_id": "5f0c6b1e-8a8e-4d4b-9a59-3f9b8f0c2d11",
            "game_id": "0b7c2d0e-7f7e-4c0e-8a4f-1f1d8a8e6c22",
            "bet_type": "spread",
            "selection": "Boston Celtics",
            "stake": "50.00",
        }
    })


class WagerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    game_id: str
    bet_type: str
    selection: str
    odds_at_placement: int = Field(..., description="American odds frozen at placement")
    line_at_placement: Optional[float] = None
    stake: Decimal
    potential_payout: Decimal
    status: str
    payout: Optional[Decimal] = None
    placed_at: datetime
    settled_at: Optional[datetime] = None


# ==================== USERS ====================

class CreateUserRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    balance: Decimal
    wagers_placed: int
    wagers_won: int
    wagers_lost: int
    total_staked: Decimal
    total_returned: Decimal
    created_at: datetime
