"""
Transfer model — immutable audit record of one completed funds movement.

A Transfer row is written in the same database transaction as the two card
balance updates it describes, so it exists if and only if the money moved.
Rejected attempts (insufficient funds, blocked card, ...) are rolled back
and leave no record.

Rows are append-only: nothing updates or deletes them. Their existence is
what prevents a card from being deleted (see card_service.delete_card).

Why amount is always positive:
  The direction is given by from_card_id/to_card_id, never by sign.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from bankcards.database import Base
from bankcards.models.types import Money


TRANSFER_STATUS_SUCCESS = "SUCCESS"


class Transfer(Base):
    __tablename__ = "transfers"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transfers_positive_amount"),
        CheckConstraint("from_card_id != to_card_id", name="ck_transfers_distinct_cards"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    from_card_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("cards.id"),
        nullable=False,
        index=True,
    )

    to_card_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("cards.id"),
        nullable=False,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(
        Money(),
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=TRANSFER_STATUS_SUCCESS,
    )

    # Assigned at commit time by the transfer service
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
