"""
Models module.

Usage:
    from wagerbook.models import Game, Wager, User
"""
from wagerbook.models.models import Base, User, Game, Wager
from wagerbook.models.enums import GameStatus, WagerStatus, BetType, Selection

__all__ = [
    "Base",
    "User",
    "Game",
    "Wager",
    "GameStatus",
    "WagerStatus",
    "BetType",
    "Selection",
]
