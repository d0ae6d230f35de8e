"""
Test fixtures for the Bank Cards API test suite.

This module provides shared fixtures used across all test files:

  - db_engine / db_session: Fresh in-memory SQLite database for each test
  - session_factory: Opens extra sessions on the same database (concurrency
    tests run each transfer in its own session, like separate requests)
  - locks: A private CardLockManager so tests never share lock state
  - make_user / make_card / set_balance / fetch_card: service-level helpers
  - client: Async HTTP test client (unauthenticated)
  - user_client / other_user_client: Clients signed up as USER
  - admin_client: Client signed up and then promoted to ADMIN

Key design decisions:
  - The secrets the settings require are set before any bankcards import.
  - In-memory SQLite (sqlite+aiosqlite://) is used for speed and isolation.
    Each test gets a completely fresh database.
  - Each role gets its own AsyncClient, so switching user never overwrites
    another client's Authorization header.
  - The admin is created by signing up normally and then updating the role
    in the DB, the way an operator provisions admins (see demo/promote_admin.py).
"""

import os

os.environ.setdefault("SECRET_KEY", "test-jwt-secret-key-not-for-production")
os.environ.setdefault("CARD_ENCRYPTION_SECRET", "test-card-encryption-secret")

import uuid
from decimal import Decimal

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from bankcards.database import Base, get_db
from bankcards.main import app
from bankcards.models.card import Card
from bankcards.models.user import User, UserRole
from bankcards.services import card_service
from bankcards.services.locking import CardLockManager
from bankcards.vault import get_vault


# In-memory SQLite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Provide an async session bound to the test engine."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def locks():
    return CardLockManager()


@pytest_asyncio.fixture
async def vault():
    return get_vault()


# ---------------------------------------------------------------------------
# Service-level helpers
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def make_user(db_session):
    """Insert a user directly. Service tests never log in, so the hash is a placeholder."""
    async def _make_user(username: str | None = None, role: UserRole = UserRole.USER) -> User:
        username = username or f"user_{uuid.uuid4().hex[:8]}"
        user = User(
            username=username,
            email=f"{username}@example.com",
            hashed_password="not-a-real-hash",
            role=role,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest_asyncio.fixture
async def make_card(db_session):
    """Issue a card through the card service and commit it."""
    async def _make_card(owner: User, balance: Decimal | str | None = None):
        view = await card_service.create_card(db_session, owner_id=owner.id)
        await db_session.commit()
        if balance is not None:
            await _set_balance(db_session, view.id, Decimal(balance))
        return view

    return _make_card


async def _set_balance(session: AsyncSession, card_id: uuid.UUID, balance: Decimal) -> None:
    # Cards have no deposit operation; opening balances are written directly
    await session.execute(
        update(Card).where(Card.id == card_id).values(balance=balance)
    )
    await session.commit()


@pytest_asyncio.fixture
async def set_balance(db_session):
    async def _set(card_id: uuid.UUID, balance: Decimal | str) -> None:
        await _set_balance(db_session, card_id, Decimal(balance))

    return _set


@pytest_asyncio.fixture
async def fetch_card(session_factory):
    """Read a card's committed state through a fresh session."""
    async def _fetch(card_id: uuid.UUID) -> Card | None:
        async with session_factory() as session:
            return await session.get(Card, card_id)

    return _fetch


# ---------------------------------------------------------------------------
# HTTP clients
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def client(session_factory):
    """
    Async HTTP test client with the test database injected.

    This overrides the get_db dependency so all requests hit the
    in-memory test database instead of the real one.
    """
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


async def _signed_up_client(client: AsyncClient, username: str, password: str):
    """A new AsyncClient authenticated as a freshly signed-up user."""
    response = await client.post(
        "/auth/signup",
        json={
            "username": username,
            "email": f"{username}@example.com",
            "password": password,
        },
    )
    assert response.status_code == 201, f"Signup failed: {response.text}"
    body = response.json()

    ac = AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"Authorization": f"Bearer {body['token']}"},
    )
    ac.user_id = uuid.UUID(body["user_id"])
    return ac


@pytest_asyncio.fixture
async def user_client(client):
    """Client authenticated as a regular card holder."""
    ac = await _signed_up_client(client, "testuser", "SecurePass123!")
    async with ac:
        yield ac


@pytest_asyncio.fixture
async def other_user_client(client):
    """A second card holder, for cross-user authorization tests."""
    ac = await _signed_up_client(client, "otheruser", "SecurePass456!")
    async with ac:
        yield ac


@pytest_asyncio.fixture
async def admin_client(client, session_factory):
    """
    Client authenticated as an ADMIN.

    Signs up as a normal user, promotes the role directly in the database,
    then logs in again so the flow matches how an operator provisions admins.
    """
    ac = await _signed_up_client(client, "adminuser", "AdminPass123!")

    async with session_factory() as session:
        await session.execute(
            update(User)
            .where(User.id == ac.user_id)
            .values(role=UserRole.ADMIN)
        )
        await session.commit()

    login_response = await client.post(
        "/auth/login",
        json={"username": "adminuser", "password": "AdminPass123!"},
    )
    assert login_response.status_code == 200
    ac.headers["Authorization"] = f"Bearer {login_response.json()['token']}"
    async with ac:
        yield ac
