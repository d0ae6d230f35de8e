"""
Authentication service — signup and login business logic.

Signup flow:
  1. Reject a username or email that's already registered
  2. Hash the password with Argon2id
  3. Create the User (always role USER)
  4. Return a JWT token so the user is immediately logged in

Login flow:
  1. Look up user by username
  2. Verify password against stored hash
  3. Return a JWT token

Login returns the same error for "wrong password", "unknown username" and
"deactivated user" so usernames can't be enumerated.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from bankcards.exceptions import DuplicateUserError, InvalidCredentialsError
from bankcards.models.user import User, UserRole
from bankcards.repositories import UserRepository
from bankcards.security import hash_password, verify_password, create_access_token

logger = logging.getLogger(__name__)


async def signup(
    db: AsyncSession,
    username: str,
    email: str,
    password: str,
) -> tuple[User, str]:
    """
    Register a new user.

    Returns:
        Tuple of (User instance, JWT token string).

    Raises:
        DuplicateUserError: If the username or email is already registered.
    """
    users = UserRepository(db)
    existing = await users.find_conflict(username, email)
    if existing is not None:
        if existing.username == username:
            raise DuplicateUserError("username", username)
        raise DuplicateUserError("email", email)

    user = User(
        username=username,
        email=email,
        hashed_password=hash_password(password),
        role=UserRole.USER,
    )
    await users.save(user)
    logger.info("User %s registered", user.id)

    token = create_access_token(data={"sub": str(user.id)})
    return user, token


async def login(
    db: AsyncSession,
    username: str,
    password: str,
) -> tuple[User, str]:
    """
    Authenticate a user and return a JWT token.

    Raises:
        InvalidCredentialsError: If the user doesn't exist, is inactive, or
            the password is wrong.
    """
    user = await UserRepository(db).get_by_username(username)

    if not user:
        raise InvalidCredentialsError()

    if not verify_password(password, user.hashed_password):
        raise InvalidCredentialsError()

    if not user.is_active:
        raise InvalidCredentialsError()

    token = create_access_token(data={"sub": str(user.id)})
    return user, token
