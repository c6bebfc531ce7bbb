"""
Status and type enums shared by models and services.

Columns store the ``.value`` strings; members compare equal to those
strings, so rows read back from the database can be checked directly
against the enum.
"""
from enum import Enum


class GameStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"
    CANCELLED = "cancelled"


class WagerStatus(str, Enum):
    PENDING = "pending"
    WON = "won"
    LOST = "lost"
    PUSHED = "pushed"
    CANCELLED = "cancelled"


class BetType(str, Enum):
    MONEYLINE = "moneyline"
    SPREAD = "spread"
    TOTAL = "total"


class Selection(str, Enum):
    HOME = "home"
    AWAY = "away"
    OVER = "over"
    UNDER = "under"


# Forward order of the game state machine; cancelled is a side exit.
GAME_STATUS_RANK = {
    GameStatus.SCHEDULED: 0,
    GameStatus.IN_PROGRESS: 1,
    GameStatus.FINISHED: 2,
}

VALID_SELECTIONS = {
    BetType.MONEYLINE: (Selection.HOME, Selection.AWAY),
    BetType.SPREAD: (Selection.HOME, Selection.AWAY),
    BetType.TOTAL: (Selection.OVER, Selection.UNDER),
}
