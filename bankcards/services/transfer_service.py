"""
Transfer service — moves money between two cards.

THIS IS THE MOST CRITICAL FILE IN THE PROJECT. It handles:
  - Amount validation (positive, at most 2 decimal places)
  - Deadlock-free locking of both cards
  - Eligibility checks re-run under the locks
  - The debit, credit and audit insert as one atomic unit

Atomicity:
  Both balance updates and the Transfer record are flushed and committed
  in the same database transaction. Any guard violation raises before the
  first mutation, and any exception rolls the whole unit back, so there is
  never a debit without its credit, or a record without the money moving.

Deadlock prevention:
  Both cards are locked in ascending card-ID order, whatever the transfer
  direction. Transfers A->B and B->A therefore queue on the same first
  lock instead of each holding one lock and waiting for the other.

  Two layers use that order:
    1. CardLockManager (asyncio, in-process), bounded by LOCK_TIMEOUT_SECONDS
    2. SELECT ... FOR UPDATE row locks (PostgreSQL; a no-op on SQLite)
  Both are held until after commit/rollback. A lock wait that times out
  raises ResourceBusyError, which callers may retry verbatim.

Re-check after locking:
  Ownership, status and balance are read only after the locks are held.
  A transfer that waited behind another one sees its committed result.

Ownership:
  Both cards must belong to the requester. Touching someone else's card is
  a security violation (CardOwnershipError), logged at WARNING.

Decimal only:
  Amounts and balances are Decimal end to end. No float is ever created.
"""

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from sqlalchemy.ext.asyncio import AsyncSession

from bankcards.config import settings
from bankcards.exceptions import (
    CardNotActiveError,
    CardNotFoundError,
    CardOwnershipError,
    InsufficientFundsError,
    InvalidAmountError,
    SameCardTransferError,
)
from bankcards.models.card import Card, CardStatus
from bankcards.models.transfer import Transfer, TRANSFER_STATUS_SUCCESS
from bankcards.models.types import CENT
from bankcards.repositories import CardRepository, TransferRepository
from bankcards.schemas.transfer import TransferView
from bankcards.services.locking import CardLockManager, locked_unit_of_work
from bankcards.vault import CardNumberVault, get_vault

logger = logging.getLogger(__name__)


def normalize_amount(amount: Decimal | int | str) -> Decimal:
    """
    Validate a transfer amount and return it with exactly 2 decimal places.

    Raises:
        InvalidAmountError: If the amount is not a finite number, is zero or
            negative, or has more than 2 decimal places.
    """
    if isinstance(amount, (float, bool)):
        # Floats can't represent most cent values exactly; bools are not amounts
        raise InvalidAmountError(str(amount))
    try:
        value = Decimal(amount)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountError(str(amount))
    if not value.is_finite() or value <= 0:
        raise InvalidAmountError(value)
    try:
        quantized = value.quantize(CENT)
    except InvalidOperation:
        raise InvalidAmountError(value)
    if quantized != value:
        raise InvalidAmountError(value)
    return quantized


async def transfer_between_cards(
    db: AsyncSession,
    requester_id: uuid.UUID,
    from_card_id: uuid.UUID,
    to_card_id: uuid.UUID,
    amount: Decimal | int | str,
    locks: CardLockManager | None = None,
    vault: CardNumberVault | None = None,
) -> TransferView:
    """
    Move `amount` from one of the requester's cards to another.

    Args:
        db: Database session. This function commits it.
        requester_id: The authenticated user; must own both cards.
        from_card_id: Card to debit.
        to_card_id: Card to credit.
        amount: Positive amount with at most 2 decimal places.
        locks: Lock manager (defaults to the process-wide one).
        vault: Card number vault used to mask the response.

    Returns:
        TransferView with both card numbers masked.

    Raises:
        InvalidAmountError: If the amount is not positive or too precise.
        SameCardTransferError: If from_card_id == to_card_id.
        ResourceBusyError: If a card lock could not be acquired in time.
        CardNotFoundError: If either card doesn't exist.
        CardOwnershipError: If either card belongs to someone else.
        CardNotActiveError: If either card is not ACTIVE.
        InsufficientFundsError: If the source balance is below the amount.
    """
    amount = normalize_amount(amount)
    if from_card_id == to_card_id:
        raise SameCardTransferError(from_card_id)

    vault = vault or get_vault()
    cards = CardRepository(db)

    async with locked_unit_of_work(db, from_card_id, to_card_id, locks=locks) as lock_order:
        # Row locks in the same global order as the in-process locks
        locked: dict[uuid.UUID, Card] = {}
        for card_id in lock_order:
            card = await cards.get_by_id_for_update(
                card_id, lock_timeout=settings.LOCK_TIMEOUT_SECONDS
            )
            if card is None:
                raise CardNotFoundError(card_id)
            locked[card_id] = card

        source = locked[from_card_id]
        dest = locked[to_card_id]

        for card in (source, dest):
            if card.owner_id != requester_id:
                action = "transfer_from" if card is source else "transfer_to"
                logger.warning(
                    "Security violation: user %s attempted %s on card %s",
                    requester_id, action, card.id,
                )
                raise CardOwnershipError(requester_id, card.id, action=action)

        for card in (source, dest):
            if card.status != CardStatus.ACTIVE:
                raise CardNotActiveError(card.id, card.status.value)

        if source.balance < amount:
            raise InsufficientFundsError(
                card_id=source.id,
                requested=amount,
                available=source.balance,
            )

        logger.info(
            "Transfer initiated: user=%s, from_card=%s, to_card=%s, amount=%s",
            requester_id, source.id, dest.id, amount,
        )

        # --- Critical section: no guard below this line may fail ---
        source.balance = source.balance - amount
        dest.balance = dest.balance + amount
        transfer = Transfer(
            from_card_id=source.id,
            to_card_id=dest.id,
            amount=amount,
            status=TRANSFER_STATUS_SUCCESS,
            created_at=datetime.now(timezone.utc),
        )
        await TransferRepository(db).save(transfer)

    logger.info(
        "Transfer completed: transfer=%s, user=%s, amount=%s",
        transfer.id, requester_id, amount,
    )

    return TransferView(
        id=transfer.id,
        from_card_masked=vault.reveal_masked(source.card_number_encrypted),
        to_card_masked=vault.reveal_masked(dest.card_number_encrypted),
        amount=transfer.amount,
        status=transfer.status,
        created_at=transfer.created_at,
    )
