"""
Card model — one payment instrument owned by a user.

The card number itself is never stored in clear:

  - card_number_encrypted: Fernet token (AES-128-CBC + HMAC-SHA256, random
    IV embedded in the token). Only the vault can turn it back into digits.
  - card_number_index: keyed HMAC-SHA256 of the plain number (a "blind
    index"). It is deterministic, so a UNIQUE constraint on it guarantees
    global card number uniqueness and lets the generator check for
    collisions with one indexed lookup instead of decrypting every card.

The row is a plain record: it never calls into the vault. Masked numbers
are produced by the service layer (see card_service.to_card_view).

Balance management:
  `balance` is a Money column: Python Decimal with 2 places, stored as
  integer cents (see models/types.py). It is only mutated by the transfer
  service while holding the card's exclusive lock.
  A CHECK constraint keeps it non-negative as a final safety net.

Lifecycle:
  ACTIVE -> BLOCK_REQUESTED -> BLOCKED -> ACTIVE. EXPIRED is terminal and
  set by date rollover outside this service.
"""

import enum
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    LargeBinary,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bankcards.database import Base
from bankcards.models.types import Money


class CardStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    BLOCK_REQUESTED = "BLOCK_REQUESTED"
    BLOCKED = "BLOCKED"
    EXPIRED = "EXPIRED"


class Card(Base):
    __tablename__ = "cards"

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_cards_non_negative_balance"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    # Full card number, Fernet-encrypted
    card_number_encrypted: Mapped[bytes] = mapped_column(
        LargeBinary,
        nullable=False,
    )

    # HMAC-SHA256 hex digest of the plain number (blind index)
    card_number_index: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )

    status: Mapped[CardStatus] = mapped_column(
        Enum(CardStatus),
        default=CardStatus.ACTIVE,
        nullable=False,
    )

    balance: Mapped[Decimal] = mapped_column(
        Money(),
        default=Decimal("0.00"),
        nullable=False,
    )

    expiry_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # --- Relationships ---
    owner: Mapped["User"] = relationship(
        back_populates="cards",
    )
