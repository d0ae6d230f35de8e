"""
Cards router — card holder endpoints.

Endpoints:
  GET   /cards/my                 — List the current user's cards (masked)
  PATCH /cards/request-block      — Ask an admin to block one of your cards
  GET   /cards/{card_id}/balance  — Balance of one of your cards

Card numbers are never returned, only "**** **** **** 1234". Requests for
someone else's card are rejected with 403 and logged as security
violations.
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bankcards.database import get_db
from bankcards.dependencies import get_current_user
from bankcards.models.user import User
from bankcards.schemas.card import CardBalanceResponse, CardBlockRequest, CardView
from bankcards.services import card_service

router = APIRouter()


@router.get(
    "/my",
    response_model=list[CardView],
    summary="List my cards",
)
async def list_my_cards(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List the authenticated user's cards, newest first."""
    return await card_service.get_user_cards(
        db=db,
        owner_id=user.id,
        limit=limit,
        offset=offset,
    )


@router.patch(
    "/request-block",
    response_model=CardView,
    summary="Request a block on one of my cards",
)
async def request_block(
    request: CardBlockRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Move the card to BLOCK_REQUESTED. An admin then confirms or rejects.

    - Only the card's owner may request a block
    - A card that is already BLOCKED is rejected with 409
    """
    return await card_service.request_block(
        db=db,
        requester_id=user.id,
        card_id=request.card_id,
    )


@router.get(
    "/{card_id}/balance",
    response_model=CardBalanceResponse,
    summary="Get the balance of one of my cards",
)
async def get_balance(
    card_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    balance = await card_service.get_card_balance(
        db=db,
        requester_id=user.id,
        card_id=card_id,
    )
    return CardBalanceResponse(card_id=card_id, balance=balance)
