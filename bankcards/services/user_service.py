"""
User service — admin user management.

Deleting a user never cascades to their cards: a user who still owns any
card is refused with UserHasCardsError. Cards must be emptied and deleted
first, which in turn requires they have no transfer history.
"""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from bankcards.exceptions import UserHasCardsError, UserNotFoundError
from bankcards.models.user import User, UserRole
from bankcards.repositories import CardRepository, UserRepository

logger = logging.getLogger(__name__)


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await UserRepository(db).get_by_id(user_id)
    if user is None:
        raise UserNotFoundError(user_id)
    return user


async def admin_get_all_users(
    db: AsyncSession,
    limit: int = 50,
    offset: int = 0,
) -> list[User]:
    """[ADMIN ONLY] Every user, newest first."""
    return await UserRepository(db).get_all(offset=offset, limit=limit)


async def assign_role(db: AsyncSession, user_id: uuid.UUID, role: UserRole) -> User:
    """
    [ADMIN ONLY] Change a user's role.

    Raises:
        UserNotFoundError: If the user doesn't exist.
    """
    users = UserRepository(db)
    user = await get_user(db, user_id)
    user.role = role
    await users.save(user)
    logger.info("User %s assigned role %s", user_id, role.value)
    return user


async def delete_user(db: AsyncSession, user_id: uuid.UUID) -> None:
    """
    [ADMIN ONLY] Remove a user who owns no cards.

    Raises:
        UserNotFoundError: If the user doesn't exist.
        UserHasCardsError: If the user still owns cards.
    """
    user = await get_user(db, user_id)
    if await CardRepository(db).count_by_owner(user_id):
        raise UserHasCardsError(user_id)
    await UserRepository(db).delete(user)
    logger.info("User %s deleted", user_id)
