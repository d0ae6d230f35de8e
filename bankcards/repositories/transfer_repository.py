"""
Transfer repository — append-only audit records.

There is no update method: a Transfer is written once, in the
same transaction as the balance changes it records.
"""

import uuid

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bankcards.models.transfer import Transfer
from bankcards.repositories.base import BaseRepository


class TransferRepository(BaseRepository[Transfer]):

    def __init__(self, session: AsyncSession):
        super().__init__(Transfer, session)

    async def get_by_card(
        self,
        card_id: uuid.UUID,
        offset: int = 0,
        limit: int = 50,
    ) -> list[Transfer]:
        """Incoming and outgoing transfers for a card, newest first."""
        result = await self.session.execute(
            select(Transfer)
            .where(or_(Transfer.from_card_id == card_id, Transfer.to_card_id == card_id))
            .order_by(Transfer.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())
