"""User repository."""

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bankcards.models.user import User
from bankcards.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):

    def __init__(self, session: AsyncSession):
        super().__init__(User, session)

    async def get_by_username(self, username: str) -> User | None:
        result = await self.session.execute(
            select(User).where(User.username == username)
        )
        return result.scalar_one_or_none()

    async def find_conflict(self, username: str, email: str) -> User | None:
        """An existing user holding this username or email, if any."""
        result = await self.session.execute(
            select(User).where(or_(User.username == username, User.email == email))
        )
        return result.scalars().first()
