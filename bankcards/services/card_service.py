"""
Card service — issuance and the card lifecycle state machine.

States:
    ACTIVE --request_block--> BLOCK_REQUESTED --confirm_block--> BLOCKED
    BLOCK_REQUESTED --reject_block--> ACTIVE
    BLOCKED --activate--> ACTIVE
    EXPIRED is terminal and set outside this service (date rollover).

Who may do what:
  - request_block: the card's owner only. Anyone else gets
    CardOwnershipError, a security violation logged separately from
    ordinary business errors.
  - confirm_block / reject_block / activate / delete / create: admin.
    Role gating happens in the router; these functions trust their caller.

Every mutation re-reads the card under its exclusive lock (the same lock
the transfer service takes), so a status change never interleaves with a
transfer's eligibility check.

Deletion never cascades. A card may only be removed when its balance is
exactly zero and no transfer references it.
"""

import logging
import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from bankcards.config import settings
from bankcards.exceptions import (
    CardAlreadyInStateError,
    CardHasHistoryError,
    CardNonZeroBalanceError,
    CardNotFoundError,
    CardOwnershipError,
    UserNotFoundError,
)
from bankcards.models.card import Card, CardStatus
from bankcards.repositories import CardRepository, UserRepository
from bankcards.schemas.card import CardView
from bankcards.services.locking import CardLockManager, locked_unit_of_work
from bankcards.vault import CardNumberVault, get_vault

logger = logging.getLogger(__name__)


def to_card_view(card: Card, vault: CardNumberVault | None = None) -> CardView:
    """External representation of a card: the number is always masked."""
    vault = vault or get_vault()
    return CardView(
        id=card.id,
        masked_number=vault.reveal_masked(card.card_number_encrypted),
        owner_id=card.owner_id,
        balance=card.balance,
        status=card.status,
        expiry_date=card.expiry_date,
    )


def _add_years(start: date, years: int) -> date:
    try:
        return start.replace(year=start.year + years)
    except ValueError:
        # Feb 29 in a non-leap target year
        return start.replace(year=start.year + years, day=28)


async def _lock_card(db: AsyncSession, card_id: uuid.UUID) -> Card:
    card = await CardRepository(db).get_by_id_for_update(
        card_id, lock_timeout=settings.LOCK_TIMEOUT_SECONDS
    )
    if card is None:
        raise CardNotFoundError(card_id)
    return card


# ---------------------------------------------------------------------------
# Issuance
# ---------------------------------------------------------------------------

async def create_card(
    db: AsyncSession,
    owner_id: uuid.UUID,
    vault: CardNumberVault | None = None,
    today: date | None = None,
) -> CardView:
    """
    Issue a new card for a user.

    The card starts ACTIVE with a zero balance and expires
    CARD_VALIDITY_YEARS after issuance.

    Args:
        db: Database session.
        owner_id: The user who will own the card.
        vault: Card number vault (defaults to the process-wide one).
        today: Issuance date (defaults to today).

    Returns:
        The masked view of the new card.

    Raises:
        UserNotFoundError: If the owner doesn't exist.
        CardNumberGenerationError: If no unique number could be generated.
    """
    vault = vault or get_vault()
    owner = await UserRepository(db).get_by_id(owner_id)
    if owner is None:
        raise UserNotFoundError(owner_id)

    cards = CardRepository(db)
    card_number = await vault.generate(cards.number_index_exists)
    issued_on = today or date.today()

    card = Card(
        owner_id=owner.id,
        card_number_encrypted=vault.encrypt(card_number),
        card_number_index=vault.blind_index(card_number),
        status=CardStatus.ACTIVE,
        balance=Decimal("0.00"),
        expiry_date=_add_years(issued_on, settings.CARD_VALIDITY_YEARS),
    )
    await cards.save(card)
    logger.info("Card %s issued to user %s", card.id, owner.id)
    return to_card_view(card, vault)


# ---------------------------------------------------------------------------
# Lifecycle transitions
# ---------------------------------------------------------------------------

async def request_block(
    db: AsyncSession,
    requester_id: uuid.UUID,
    card_id: uuid.UUID,
    locks: CardLockManager | None = None,
) -> CardView:
    """
    Owner asks for their card to be blocked; an admin must confirm.

    Raises:
        CardNotFoundError: If the card doesn't exist.
        CardOwnershipError: If the requester does not own the card.
        CardAlreadyInStateError: If the card is already BLOCKED.
    """
    async with locked_unit_of_work(db, card_id, locks=locks):
        card = await _lock_card(db, card_id)
        if card.owner_id != requester_id:
            logger.warning(
                "Security violation: user %s attempted request_block on card %s",
                requester_id, card_id,
            )
            raise CardOwnershipError(requester_id, card_id, action="request_block")
        if card.status == CardStatus.BLOCKED:
            raise CardAlreadyInStateError(card_id, CardStatus.BLOCKED.value)

        card.status = CardStatus.BLOCK_REQUESTED
        await db.flush()
    logger.info("Block requested for card %s by owner %s", card_id, requester_id)
    return to_card_view(card)


async def confirm_block(
    db: AsyncSession,
    card_id: uuid.UUID,
    locks: CardLockManager | None = None,
) -> CardView:
    """
    [ADMIN] Block a card.

    Raises:
        CardNotFoundError: If the card doesn't exist.
    """
    async with locked_unit_of_work(db, card_id, locks=locks):
        card = await _lock_card(db, card_id)
        card.status = CardStatus.BLOCKED
        await db.flush()
    logger.info("Card %s blocked", card_id)
    return to_card_view(card)


async def reject_block(
    db: AsyncSession,
    card_id: uuid.UUID,
    locks: CardLockManager | None = None,
) -> CardView:
    """
    [ADMIN] Turn down a block request; the card goes back to ACTIVE.

    Raises:
        CardNotFoundError: If the card doesn't exist.
    """
    async with locked_unit_of_work(db, card_id, locks=locks):
        card = await _lock_card(db, card_id)
        card.status = CardStatus.ACTIVE
        await db.flush()
    logger.info("Block request rejected for card %s", card_id)
    return to_card_view(card)


async def activate_card(
    db: AsyncSession,
    card_id: uuid.UUID,
    locks: CardLockManager | None = None,
) -> CardView:
    """
    [ADMIN] Re-activate a card.

    Raises:
        CardNotFoundError: If the card doesn't exist.
        CardAlreadyInStateError: If the card is already ACTIVE.
    """
    async with locked_unit_of_work(db, card_id, locks=locks):
        card = await _lock_card(db, card_id)
        if card.status == CardStatus.ACTIVE:
            raise CardAlreadyInStateError(card_id, CardStatus.ACTIVE.value)
        card.status = CardStatus.ACTIVE
        await db.flush()
    logger.info("Card %s activated", card_id)
    return to_card_view(card)


async def delete_card(
    db: AsyncSession,
    card_id: uuid.UUID,
    locks: CardLockManager | None = None,
) -> None:
    """
    [ADMIN] Permanently remove a card.

    Raises:
        CardNotFoundError: If the card doesn't exist.
        CardNonZeroBalanceError: If the balance is not exactly 0.00.
        CardHasHistoryError: If any transfer references the card.
    """
    async with locked_unit_of_work(db, card_id, locks=locks):
        cards = CardRepository(db)
        card = await _lock_card(db, card_id)
        if card.balance != 0:
            raise CardNonZeroBalanceError(card_id, card.balance)

        outgoing, incoming = await cards.count_transfers(card_id)
        if outgoing or incoming:
            raise CardHasHistoryError(card_id, outgoing=outgoing, incoming=incoming)

        await cards.delete(card)
    logger.info("Card %s deleted", card_id)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_user_cards(
    db: AsyncSession,
    owner_id: uuid.UUID,
    limit: int = 50,
    offset: int = 0,
) -> list[CardView]:
    """The owner's cards, newest first."""
    vault = get_vault()
    cards = await CardRepository(db).get_by_owner(owner_id, offset=offset, limit=limit)
    return [to_card_view(card, vault) for card in cards]


async def get_card_balance(
    db: AsyncSession,
    requester_id: uuid.UUID,
    card_id: uuid.UUID,
) -> Decimal:
    """
    Balance of one of the requester's cards.

    Raises:
        CardNotFoundError: If the card doesn't exist.
        CardOwnershipError: If the card belongs to someone else.
    """
    card = await CardRepository(db).get_by_id(card_id)
    if card is None:
        raise CardNotFoundError(card_id)
    if card.owner_id != requester_id:
        logger.warning(
            "Security violation: user %s attempted get_balance on card %s",
            requester_id, card_id,
        )
        raise CardOwnershipError(requester_id, card_id, action="get_balance")
    return card.balance


# ---------------------------------------------------------------------------
# Admin read-only functions
# ---------------------------------------------------------------------------

async def admin_get_all_cards(
    db: AsyncSession,
    limit: int = 50,
    offset: int = 0,
) -> list[CardView]:
    """[ADMIN ONLY] Every card in the system, newest first."""
    vault = get_vault()
    cards = await CardRepository(db).get_all(offset=offset, limit=limit)
    return [to_card_view(card, vault) for card in cards]


async def admin_get_card(db: AsyncSession, card_id: uuid.UUID) -> CardView:
    """[ADMIN ONLY] Any single card without ownership check."""
    card = await CardRepository(db).get_by_id(card_id)
    if card is None:
        raise CardNotFoundError(card_id)
    return to_card_view(card)
