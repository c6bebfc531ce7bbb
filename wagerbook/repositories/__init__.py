"""
Repository layer for data access.

Usage:
    from wagerbook.repositories import GameRepository, WagerRepository, LedgerRepository
    from wagerbook.core.database import SessionLocal

    db = SessionLocal()
    pending = WagerRepository(db).find_pending_by_game(game_id)
    db.close()
"""

from wagerbook.repositories.base import BaseRepository
from wagerbook.repositories.game_repository import GameRepository
from wagerbook.repositories.wager_repository import WagerRepository
from wagerbook.repositories.ledger_repository import LedgerRepository

__all__ = [
    "BaseRepository",
    "GameRepository",
    "WagerRepository",
    "LedgerRepository",
]
