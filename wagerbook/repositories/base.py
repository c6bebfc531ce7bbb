"""
Base repository class for data access layer.

Repositories keep query logic in one place and never commit: the calling
service owns the transaction boundary, so a ledger write and a wager
status change issued through two repositories still commit together.

Example:
    class GameRepository(BaseRepository[Game]):
        def find_by_odds_event_id(self, odds_event_id: str) -> Optional[Game]:
            return self.where_first(Game.odds_event_id == odds_event_id)
"""
from abc import ABC
from typing import TypeVar, Generic, Type, Optional, Any, Dict
from sqlalchemy.orm import Query, Session

T = TypeVar("T")


class BaseRepository(Generic[T], ABC):
    """
    Base repository class providing common data access methods.

    Attributes:
        model_type: The SQLAlchemy model class this repository manages
        db: The database session
    """

    def __init__(self, model_type: Type[T], db: Session):
        self.model_type = model_type
        self.db = db

    def find_by_id(self, id: str) -> Optional[T]:
        """Find a single record by ID."""
        return self.db.query(self.model_type).filter(self.model_type.id == id).first()

    def create(self, **kwargs) -> T:
        """Add a new record to the session (not committed)."""
        instance = self.model_type(**kwargs)
        self.db.add(instance)
        return instance

    def query(self) -> Query:
        """Get a new query object for this model."""
        return self.db.query(self.model_type)

    def where_first(self, *criterion) -> Optional[T]:
        """Filter records using SQLAlchemy expressions and return first match."""
        return self.db.query(self.model_type).filter(*criterion).first()

    def update_where(self, values: Dict[str, Any], *criterion) -> int:
        """
        Issue a single UPDATE for rows matching ``criterion``.

        Returns the number of rows the database reports as changed, which
        callers use as a compare-and-set result.
        """
        return (
            self.db.query(self.model_type)
            .filter(*criterion)
            .update(values, synchronize_session=False)
        )
