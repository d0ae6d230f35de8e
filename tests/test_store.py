"""
Tests for the persistence layer: Money column, repositories and the
locked unit of work.

These tests verify:
  - Money stores exact cents and refuses sub-cent values
  - get_by_id_for_update re-reads committed state
  - Transfer history lookups by card
  - locked_unit_of_work commits on success and rolls back on error
  - A database write lock held elsewhere surfaces as ResourceBusyError
  - Settings refuse multiple workers on SQLite
  - Logging configuration switches between text and JSON formatters
"""

import sqlite3
from decimal import Decimal

import pytest
from pydantic import ValidationError
from sqlalchemy import func, select, update
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from bankcards.config import Settings, settings
from bankcards.database import Base, engine_connect_args, is_lock_timeout
from bankcards.exceptions import ResourceBusyError
from bankcards.models.transfer import Transfer
from bankcards.models.user import User
from bankcards.services import card_service
from bankcards.services.locking import CardLockManager
from bankcards.logging_config import get_logging_config
from bankcards.models.card import Card, CardStatus
from bankcards.models.types import Money
from bankcards.repositories import CardRepository, TransferRepository
from bankcards.services.locking import locked_unit_of_work
from bankcards.services.transfer_service import transfer_between_cards


class TestMoney:
    """Tests for the Money column type."""

    def test_bind_to_cents(self):
        assert Money().process_bind_param(Decimal("12.34"), None) == 1234
        assert Money().process_bind_param(Decimal("0.10"), None) == 10
        assert Money().process_bind_param(None, None) is None

    def test_bind_rejects_sub_cent(self):
        with pytest.raises(ValueError):
            Money().process_bind_param(Decimal("0.001"), None)

    def test_result_from_cents(self):
        assert Money().process_result_value(1234, None) == Decimal("12.34")
        assert str(Money().process_result_value(5, None)) == "0.05"

    async def test_large_balance_exact(self, make_user, make_card, fetch_card):
        owner = await make_user()
        card = await make_card(owner, balance="9999999999999.99")
        assert (await fetch_card(card.id)).balance == Decimal("9999999999999.99")


class TestCardRepository:
    """Tests for CardRepository."""

    async def test_for_update_sees_committed_state(
        self, make_user, make_card, db_session, session_factory
    ):
        owner = await make_user()
        view = await make_card(owner)
        repo = CardRepository(db_session)
        card = await repo.get_by_id(view.id)
        assert card.status == CardStatus.ACTIVE
        await db_session.commit()

        # Another unit of work changes the row behind this session's back
        async with session_factory() as other:
            await other.execute(
                update(Card).where(Card.id == view.id).values(status=CardStatus.BLOCKED)
            )
            await other.commit()

        locked = await repo.get_by_id_for_update(view.id, lock_timeout=1.0)
        assert locked.status == CardStatus.BLOCKED

    async def test_number_index_exists(self, make_user, make_card, db_session, fetch_card):
        owner = await make_user()
        view = await make_card(owner)
        card = await fetch_card(view.id)
        repo = CardRepository(db_session)

        assert await repo.number_index_exists(card.card_number_index)
        assert not await repo.number_index_exists("0" * 64)

    async def test_count_by_owner(self, make_user, make_card, db_session):
        owner = await make_user()
        await make_card(owner)
        await make_card(owner)
        assert await CardRepository(db_session).count_by_owner(owner.id) == 2


class TestTransferRepository:

    async def test_get_by_card(self, make_user, make_card, db_session, locks):
        owner = await make_user()
        a = await make_card(owner, balance="10.00")
        b = await make_card(owner)
        c = await make_card(owner)

        await transfer_between_cards(db_session, owner.id, a.id, b.id, "1.00", locks=locks)
        await transfer_between_cards(db_session, owner.id, b.id, c.id, "1.00", locks=locks)

        repo = TransferRepository(db_session)
        assert len(await repo.get_by_card(a.id)) == 1
        assert len(await repo.get_by_card(b.id)) == 2
        assert len(await repo.get_by_card(c.id)) == 1

        outgoing, incoming = await CardRepository(db_session).count_transfers(b.id)
        assert (outgoing, incoming) == (1, 1)


class TestLockedUnitOfWork:
    """Tests for locked_unit_of_work."""

    async def test_commits(self, make_user, make_card, db_session, locks, fetch_card):
        owner = await make_user()
        view = await make_card(owner)

        async with locked_unit_of_work(db_session, view.id, locks=locks):
            card = await CardRepository(db_session).get_by_id_for_update(view.id)
            card.status = CardStatus.BLOCKED

        assert (await fetch_card(view.id)).status == CardStatus.BLOCKED

    async def test_rolls_back_on_error(self, make_user, make_card, db_session, locks, fetch_card):
        owner = await make_user()
        view = await make_card(owner)

        with pytest.raises(RuntimeError):
            async with locked_unit_of_work(db_session, view.id, locks=locks):
                card = await CardRepository(db_session).get_by_id_for_update(view.id)
                card.status = CardStatus.BLOCKED
                await db_session.flush()
                raise RuntimeError("boom")

        assert (await fetch_card(view.id)).status == CardStatus.ACTIVE


class _PgLockNotAvailable(Exception):
    sqlstate = "55P03"


class TestDatabaseLockTimeout:
    """Database lock waits are bounded and reported as ResourceBusyError."""

    def test_sqlite_gets_busy_timeout(self):
        assert engine_connect_args("sqlite+aiosqlite:///./x.db", 2.5) == {"timeout": 2.5}
        assert engine_connect_args("postgresql+asyncpg://db/cards", 2.5) == {}

    def test_lock_timeout_errors_recognized(self):
        locked = OperationalError("UPDATE cards", {}, sqlite3.OperationalError("database is locked"))
        pg_timeout = DBAPIError("SELECT", {}, _PgLockNotAvailable("canceling statement"))
        other = OperationalError("UPDATE cards", {}, sqlite3.OperationalError("disk I/O error"))

        assert is_lock_timeout(locked)
        assert is_lock_timeout(pg_timeout)
        assert not is_lock_timeout(other)

    async def test_sqlite_write_lock_is_resource_busy(self, tmp_path):
        """
        Another connection holding SQLite's write lock makes a transfer fail
        with a retryable ResourceBusyError and no partial writes.
        """
        url = f"sqlite+aiosqlite:///{tmp_path / 'cards.db'}"
        engine = create_async_engine(url, connect_args=engine_connect_args(url, 0.2))
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

            async with factory() as session:
                owner = User(username="owner", email="owner@example.com", hashed_password="x")
                bystander = User(username="bystander", email="by@example.com", hashed_password="x")
                session.add_all([owner, bystander])
                await session.commit()
                source = await card_service.create_card(session, owner_id=owner.id)
                dest = await card_service.create_card(session, owner_id=owner.id)
                await session.execute(
                    update(Card).where(Card.id == source.id).values(balance=Decimal("10.00"))
                )
                await session.commit()

            async with factory() as blocker, factory() as session:
                # Uncommitted write on an unrelated row holds the database write lock
                await blocker.execute(
                    update(User).where(User.id == bystander.id).values(is_active=False)
                )
                with pytest.raises(ResourceBusyError) as exc_info:
                    await transfer_between_cards(
                        session, owner.id, source.id, dest.id, "1.00",
                        locks=CardLockManager(timeout=1),
                    )
                await blocker.rollback()

            assert exc_info.value.retryable is True
            async with factory() as session:
                assert (await session.get(Card, source.id)).balance == Decimal("10.00")
                assert (await session.get(Card, dest.id)).balance == Decimal("0.00")
                count = await session.execute(select(func.count()).select_from(Transfer))
                assert count.scalar_one() == 0
        finally:
            await engine.dispose()


class TestSettings:

    def test_sqlite_refuses_multiple_workers(self):
        with pytest.raises(ValidationError):
            Settings(
                _env_file=None,
                DATABASE_URL="sqlite+aiosqlite:///./data/bankcards.db",
                WEB_CONCURRENCY=2,
            )

    def test_postgres_allows_multiple_workers(self):
        configured = Settings(
            _env_file=None,
            DATABASE_URL="postgresql+asyncpg://bank@db/bankcards",
            WEB_CONCURRENCY=4,
        )
        assert configured.WEB_CONCURRENCY == 4


class TestLoggingConfig:

    def test_text_formatter_by_default(self, monkeypatch):
        monkeypatch.setattr(settings, "LOG_FORMAT", "text")
        config = get_logging_config()
        assert config["handlers"]["console"]["formatter"] == "default"

    def test_json_formatter(self, monkeypatch):
        monkeypatch.setattr(settings, "LOG_FORMAT", "json")
        config = get_logging_config()
        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["formatters"]["json"]["()"].startswith("pythonjsonlogger")
