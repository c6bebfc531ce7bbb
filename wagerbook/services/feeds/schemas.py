"""
Pydantic models for feed payloads.

Odds feed records follow The Odds API v4 ``/sports/{sport}/odds`` shape;
results feed records follow the per-date scoreboard shape
``{"games": [{"gameId", "homeTeam", "awayTeam", "homeScore", "awayScore", "statusCode"}]}``.
Unknown fields are ignored so provider additions do not break parsing.
"""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from wagerbook.utils.timezone import to_naive_utc

# Results feed status codes
STATUS_SCHEDULED = 1
STATUS_IN_PROGRESS = 2
STATUS_FINAL = 3


class FeedOutcome(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    price: int
    point: Optional[float] = None


class FeedMarket(BaseModel):
    model_config = ConfigDict(extra="ignore")

    key: str
    outcomes: List[FeedOutcome] = []


class FeedBookmaker(BaseModel):
    model_config = ConfigDict(extra="ignore")

    key: str
    title: Optional[str] = None
    markets: List[FeedMarket] = []


class OddsRecord(BaseModel):
    """One event from the odds feed with every bookmaker's markets."""
    model_config = ConfigDict(extra="ignore")

    id: str
    home_team: str
    away_team: str
    commence_time: datetime
    bookmakers: List[FeedBookmaker] = []

    @field_validator("commence_time")
    @classmethod
    def _naive_utc(cls, value: datetime) -> datetime:
        return to_naive_utc(value)


class ResultRecord(BaseModel):
    """One game from the results scoreboard."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    game_id: str = Field(alias="gameId")
    home_team: str = Field(alias="homeTeam")
    away_team: str = Field(alias="awayTeam")
    home_score: Optional[int] = Field(default=None, alias="homeScore")
    away_score: Optional[int] = Field(default=None, alias="awayScore")
    status_code: int = Field(alias="statusCode")
    # Scoreboard date the record was fetched for (not part of the payload)
    game_date: Optional[date] = None

    @field_validator("game_id", mode="before")
    @classmethod
    def _id_as_str(cls, value):
        return str(value) if value is not None else value

    @property
    def is_final(self) -> bool:
        return self.status_code == STATUS_FINAL

    @property
    def is_in_progress(self) -> bool:
        return self.status_code == STATUS_IN_PROGRESS
