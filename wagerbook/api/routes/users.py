"""User ledger routes: registration, balances and leaderboard data."""
import logging
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from wagerbook.api.errors import http_error
from wagerbook.api.schemas import CreateUserRequest, UserResponse
from wagerbook.core.database import get_db
from wagerbook.core.exceptions import WagerError
from wagerbook.services.betting.wager_service import WagerService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def get_wager_service(db: Session = Depends(get_db)) -> WagerService:
    return WagerService(db)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    request: CreateUserRequest,
    service: WagerService = Depends(get_wager_service),
):
    """Create a user with the configured starting balance."""
    try:
        return service.create_user(request.username)
    except WagerError as e:
        raise http_error(e)


@router.get("/leaderboard", response_model=List[UserResponse])
async def get_leaderboard(
    limit: int = Query(20, ge=1, le=100),
    service: WagerService = Depends(get_wager_service),
):
    """Users ordered by balance, then wins."""
    return service.leaderboard(limit=limit)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, service: WagerService = Depends(get_wager_service)):
    try:
        return service.get_user(user_id)
    except WagerError as e:
        raise http_error(e)
