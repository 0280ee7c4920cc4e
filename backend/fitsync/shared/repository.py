"""
Base repository with common CRUD operations.

Provides generic database operations for all feature repositories.
Uses SQLAlchemy async session for non-blocking database access.

Usage:
    class ActivityRepository(BaseRepository[Activity]):
        def __init__(self, db: AsyncSession):
            super().__init__(db, Activity)

        async def count_runs(self) -> int:
            return await self.count(type="Run")
"""

from typing import Any, TypeVar, Generic, Type
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Base repository for database operations.

    Provides common CRUD methods that can be inherited by feature repositories.
    Repositories only flush; committing is the caller's responsibility.
    """

    def __init__(self, db: AsyncSession, model: Type[T]):
        """
        Initialize repository.

        Args:
            db: Async database session
            model: SQLAlchemy model class
        """
        self.db = db
        self.model = model

    async def get_by_id(self, id: Any) -> T | None:
        """
        Get entity by primary key.

        Args:
            id: Primary key value

        Returns:
            Entity if found, None otherwise
        """
        return await self.db.get(self.model, id)

    async def create(self, **kwargs) -> T:
        """
        Create new entity.

        Args:
            **kwargs: Field values for new entity

        Returns:
            Created entity
        """
        entity = self.model(**kwargs)
        self.db.add(entity)
        await self.db.flush()
        return entity

    async def update(self, entity: T, **kwargs) -> T:
        """
        Update entity fields.

        Args:
            entity: Entity to update
            **kwargs: Field values to update

        Returns:
            Updated entity
        """
        for key, value in kwargs.items():
            setattr(entity, key, value)
        await self.db.flush()
        return entity

    async def upsert(self, id: Any, **kwargs) -> T:
        """
        Insert or update the entity with the given primary key.

        Calling it repeatedly with the same key never creates duplicates;
        the last call's values win.

        Args:
            id: Primary key value
            **kwargs: Field values to write

        Returns:
            The stored entity
        """
        existing = await self.get_by_id(id)
        if existing is not None:
            return await self.update(existing, **kwargs)
        return await self.create(id=id, **kwargs)

    async def count(self, **kwargs) -> int:
        """Count entities matching criteria."""
        query = select(func.count()).select_from(self.model)
        for key, value in kwargs.items():
            query = query.where(getattr(self.model, key) == value)
        result = await self.db.execute(query)
        return result.scalar() or 0
