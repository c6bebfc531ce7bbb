"""Game catalog routes.

Provides endpoints for:
- Upcoming (scheduled) games with current quotes
- Live games
- Recently finished games
- A single game by ID
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from wagerbook.api.schemas import GameResponse
from wagerbook.core.database import get_db
from wagerbook.repositories import GameRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/games", tags=["games"])


def get_game_repository(db: Session = Depends(get_db)) -> GameRepository:
    """Dependency to get game repository instance."""
    return GameRepository(db)


@router.get("/upcoming", response_model=List[GameResponse])
async def get_upcoming_games(
    limit: int = Query(100, ge=1, le=500),
    games: GameRepository = Depends(get_game_repository),
):
    """Scheduled games, soonest first."""
    return games.find_upcoming(limit=limit)


@router.get("/live", response_model=List[GameResponse])
async def get_live_games(games: GameRepository = Depends(get_game_repository)):
    """Games currently in progress."""
    return games.find_live()


@router.get("/finished", response_model=List[GameResponse])
async def get_finished_games(
    hours: int = Query(24, ge=1, le=24 * 14, description="Look-back window in hours"),
    games: GameRepository = Depends(get_game_repository),
):
    """Games that finished within the look-back window, newest first."""
    return games.find_recently_finished(hours=hours)


@router.get("/{game_id}", response_model=GameResponse)
async def get_game(game_id: str, games: GameRepository = Depends(get_game_repository)):
    game = games.find_by_id(game_id)
    if game is None:
        raise HTTPException(status_code=404, detail=f"Game {game_id} not found")
    return game
