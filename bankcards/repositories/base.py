"""
Base repository with generic CRUD operations.

All specific repositories inherit from BaseRepository. Every method works
inside the session it was constructed with, so the caller controls the
transaction boundary: nothing here commits.

Type Parameters:
    ModelType: The SQLAlchemy model class (e.g., Card, User)
"""

import uuid
from typing import Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bankcards.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Generic base repository for database operations.

    Usage:
        class UserRepository(BaseRepository[User]):
            def __init__(self, session: AsyncSession):
                super().__init__(User, session)
    """

    def __init__(self, model: type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    async def get_by_id(self, id: uuid.UUID) -> ModelType | None:
        """Get a record by ID, or None if it doesn't exist."""
        result = await self.session.execute(
            select(self.model).where(self.model.id == id)
        )
        return result.scalar_one_or_none()

    async def get_all(self, offset: int = 0, limit: int = 100) -> list[ModelType]:
        result = await self.session.execute(
            select(self.model)
            .order_by(self.model.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def save(self, instance: ModelType) -> ModelType:
        """
        Persist a new or modified instance.

        Flushes so store-assigned values (IDs, defaults) are populated and
        constraint violations surface here rather than at commit.
        """
        self.session.add(instance)
        await self.session.flush()
        return instance

    async def delete(self, instance: ModelType) -> None:
        """Hard delete. No cascades: callers check preconditions first."""
        await self.session.delete(instance)
        await self.session.flush()

    async def count(self) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(self.model)
        )
        return result.scalar_one()
