"""Wager routes.

The acting user is an explicit request field; these routes perform no
authentication.

Base path: /api/wagers
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from wagerbook.api.errors import http_error
from wagerbook.api.schemas import PlaceWagerRequest, WagerResponse
from wagerbook.core.database import get_db
from wagerbook.core.exceptions import WagerError
from wagerbook.services.betting.wager_service import WagerService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/wagers", tags=["wagers"])


def get_wager_service(db: Session = Depends(get_db)) -> WagerService:
    """Dependency to get wager service instance."""
    return WagerService(db)


@router.post("", response_model=WagerResponse, status_code=status.HTTP_201_CREATED)
async def place_wager(
    request: PlaceWagerRequest,
    service: WagerService = Depends(get_wager_service),
):
    """
    Place a wager at the game's current quote.

    Errors:
        400: invalid stake, bet type or selection; unquoted market;
             insufficient balance
        404: unknown user or game
        409: game no longer open for wagering
    """
    try:
        return service.place_wager(
            user_id=request.user_id,
            game_id=request.game_id,
            bet_type=request.bet_type,
            selection=request.selection,
            stake=request.stake,
        )
    except WagerError as e:
        raise http_error(e)


@router.get("", response_model=List[WagerResponse])
async def list_wagers(
    user_id: str = Query(..., description="Owner of the wagers"),
    limit: int = Query(100, ge=1, le=500),
    service: WagerService = Depends(get_wager_service),
):
    """A user's wagers, newest first."""
    try:
        return service.list_wagers(user_id, limit=limit)
    except WagerError as e:
        raise http_error(e)


@router.get("/{wager_id}", response_model=WagerResponse)
async def get_wager(wager_id: str, service: WagerService = Depends(get_wager_service)):
    try:
        return service.get_wager(wager_id)
    except WagerError as e:
        raise http_error(e)


@router.delete("/{wager_id}", response_model=WagerResponse)
async def cancel_wager(
    wager_id: str,
    user_id: Optional[str] = Query(None, description="Acting user; must own the wager"),
    service: WagerService = Depends(get_wager_service),
):
    """
    Cancel a pending wager before its game starts and refund the stake.

    Errors:
        404: unknown wager
        409: not the owner, already settled, or game closed
    """
    try:
        return service.cancel_wager(wager_id, user_id=user_id)
    except WagerError as e:
        raise http_error(e)
