"""Base repository class with common CRUD operations."""

from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from contribux.db import Base
from contribux.utils import utcnow

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """
    Base repository providing common CRUD operations.

    Every mutating method stamps ``updated_at`` itself; the models carry no
    ``onupdate`` hooks.

    Usage:
        class UserRepository(BaseRepository[User]):
            model = User

        repo = UserRepository(session)
        user = repo.get_by_id(1)
    """

    model: type[T]

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, id: int) -> T | None:
        """Get a single record by ID."""
        return self.session.get(self.model, id)

    def get_many(self, ids: list[int]) -> list[T]:
        """Get records for the given IDs, ordered by ID."""
        if not ids:
            return []
        return (
            self.session.query(self.model)
            .filter(self.model.id.in_(ids))  # type: ignore[attr-defined]
            .order_by(self.model.id)  # type: ignore[attr-defined]
            .all()
        )

    def create(self, **kwargs) -> T:
        """Create a new record."""
        now = utcnow()
        kwargs.setdefault("created_at", now)
        kwargs.setdefault("updated_at", now)
        instance = self.model(**kwargs)
        self.session.add(instance)
        self.session.flush()
        return instance

    def apply(self, instance: T, **kwargs) -> T:
        """Set attributes on a loaded instance and stamp ``updated_at``."""
        for key, value in kwargs.items():
            if hasattr(instance, key):
                setattr(instance, key, value)
        instance.updated_at = utcnow()  # type: ignore[attr-defined]
        self.session.flush()
        return instance

    def delete(self, id: int) -> bool:
        """Delete a record by ID."""
        instance = self.get_by_id(id)
        if instance:
            self.session.delete(instance)
            self.session.flush()
            return True
        return False
