"""
Card repository — the card store, including the exclusive-lock primitive.

get_by_id_for_update() is the only way the services obtain a card they
intend to mutate. It issues SELECT ... FOR UPDATE so the row stays locked
until the surrounding transaction commits or rolls back, and it always
re-reads the row (populate_existing) so the caller sees the state committed
by whoever held the lock before it.

The repository does not decide lock ORDER; the transfer service does
(smaller card ID first), which is what rules out deadlocks.

SQLite note:
  SQLite has no row-level locks; with_for_update() is a no-op there. The
  in-process CardLockManager (services/locking.py) provides the same
  ordering guarantee within one process, which is why SQLite deployments
  are limited to one worker (see Settings.WEB_CONCURRENCY). SQLite's
  database write lock is bounded by the driver busy timeout, PostgreSQL's
  row locks by SET LOCAL lock_timeout; either timeout surfaces as
  ResourceBusyError.
"""

import logging
import uuid

from sqlalchemy import func, or_, select, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from bankcards.database import is_lock_timeout
from bankcards.exceptions import ResourceBusyError
from bankcards.models.card import Card
from bankcards.models.transfer import Transfer
from bankcards.repositories.base import BaseRepository

logger = logging.getLogger(__name__)

class CardRepository(BaseRepository[Card]):
    """Repository for card database operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Card, session)

    async def get_by_id_for_update(
        self,
        card_id: uuid.UUID,
        lock_timeout: float | None = None,
    ) -> Card | None:
        """
        Fetch a card and hold an exclusive lock on its row.

        Args:
            card_id: The card to lock.
            lock_timeout: Seconds to wait for the row lock (PostgreSQL only).

        Returns:
            The freshly re-read Card, or None if it doesn't exist.

        Raises:
            ResourceBusyError: If the lock wait timed out.
        """
        if lock_timeout is not None and self.session.bind.dialect.name == "postgresql":
            # SET does not accept bind parameters; the value is a number we format
            await self.session.execute(
                text(f"SET LOCAL lock_timeout = '{int(lock_timeout * 1000)}ms'")
            )

        try:
            result = await self.session.execute(
                select(Card)
                .where(Card.id == card_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        except DBAPIError as exc:
            if is_lock_timeout(exc):
                logger.warning("Timed out waiting for row lock on card %s", card_id)
                raise ResourceBusyError(f"Card {card_id} is busy, please retry") from exc
            raise
        return result.scalar_one_or_none()

    async def get_by_owner(
        self,
        owner_id: uuid.UUID,
        offset: int = 0,
        limit: int = 50,
    ) -> list[Card]:
        result = await self.session.execute(
            select(Card)
            .where(Card.owner_id == owner_id)
            .order_by(Card.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_by_owner(self, owner_id: uuid.UUID) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(Card).where(Card.owner_id == owner_id)
        )
        return result.scalar_one()

    async def list_encrypted_numbers(self) -> list[bytes]:
        """Every stored card number ciphertext (for audits and key rotation)."""
        result = await self.session.execute(select(Card.card_number_encrypted))
        return list(result.scalars().all())

    async def number_index_exists(self, number_index: str) -> bool:
        """True if a card with this blind index has already been issued."""
        result = await self.session.execute(
            select(Card.id).where(Card.card_number_index == number_index)
        )
        return result.first() is not None

    async def count_transfers(self, card_id: uuid.UUID) -> tuple[int, int]:
        """
        Count transfer history for a card.

        Returns:
            Tuple of (outgoing, incoming) transfer counts.
        """
        result = await self.session.execute(
            select(
                func.count().filter(Transfer.from_card_id == card_id),
                func.count().filter(Transfer.to_card_id == card_id),
            ).where(
                or_(Transfer.from_card_id == card_id, Transfer.to_card_id == card_id)
            )
        )
        outgoing, incoming = result.one()
        return outgoing, incoming
