"""
In-process card locks with a global acquisition order.

A transfer touches two cards. If transfer A->B locked A then B while a
concurrent B->A locked B then A, each would wait on the other forever.
Acquiring locks in one global order (ascending card ID) for every transfer,
regardless of direction, makes that circular wait impossible.

This manager applies the rule to asyncio locks within one process. The
same order is then used for the database row locks (SELECT ... FOR UPDATE),
which carry the guarantee across processes on PostgreSQL. On SQLite, which
has no row locks, these locks are what serialize competing transfers.

Locks are held by the caller until its unit of work has committed or rolled
back, so the next holder always re-reads committed state.

Locks are kept in a WeakValueDictionary: an entry lives only while some
coroutine holds or waits on it, so the registry does not grow with the
number of cards ever touched.
"""

import asyncio
import logging
import uuid
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from bankcards.config import settings
from bankcards.database import is_lock_timeout
from bankcards.exceptions import ResourceBusyError

logger = logging.getLogger(__name__)


class CardLockManager:
    """Registry of per-card asyncio locks acquired in ascending card-ID order."""

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout
        self._locks: weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, card_id: uuid.UUID) -> asyncio.Lock:
        lock = self._locks.get(card_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[card_id] = lock
        return lock

    @staticmethod
    def lock_order(card_ids: Iterable[uuid.UUID]) -> list[uuid.UUID]:
        """Distinct card IDs in the order their locks must be taken."""
        return sorted(set(card_ids))

    @asynccontextmanager
    async def hold(self, *card_ids: uuid.UUID) -> AsyncIterator[list[uuid.UUID]]:
        """
        Hold exclusive locks on all given cards for the duration of the block.

        Yields the card IDs in acquisition order.

        Raises:
            ResourceBusyError: If any lock is not acquired within the timeout.
                Locks already taken are released before raising.
        """
        timeout = self.timeout if self.timeout is not None else settings.LOCK_TIMEOUT_SECONDS
        ordered = self.lock_order(card_ids)
        # Strong references for the whole block keep the weak registry entries alive
        locks = [self._lock_for(card_id) for card_id in ordered]
        acquired: list[asyncio.Lock] = []
        try:
            for card_id, lock in zip(ordered, locks):
                try:
                    await asyncio.wait_for(lock.acquire(), timeout=timeout)
                except asyncio.TimeoutError:
                    logger.warning("Timed out after %.1fs waiting for card %s", timeout, card_id)
                    raise ResourceBusyError(f"Card {card_id} is busy, please retry")
                acquired.append(lock)
            yield ordered
        finally:
            for lock in reversed(acquired):
                lock.release()


# Shared by every request in this process
card_locks = CardLockManager()


@asynccontextmanager
async def locked_unit_of_work(
    db: AsyncSession,
    *card_ids: uuid.UUID,
    locks: CardLockManager | None = None,
) -> AsyncIterator[list[uuid.UUID]]:
    """
    Run one unit of work while holding the locks of the given cards.

    Commits when the block exits normally and rolls back when it raises,
    both BEFORE the locks are released. The next holder therefore sees
    either all of this unit's writes or none of them.

    Raises:
        ResourceBusyError: If a card lock or the database write lock could
            not be acquired in time.
    """
    async with (locks or card_locks).hold(*card_ids) as ordered:
        try:
            yield ordered
            await db.commit()
        except DBAPIError as exc:
            await db.rollback()
            if is_lock_timeout(exc):
                logger.warning("Timed out waiting for a database lock on cards %s", ordered)
                raise ResourceBusyError("Card is busy, please retry") from exc
            raise
        except BaseException:
            await db.rollback()
            raise
