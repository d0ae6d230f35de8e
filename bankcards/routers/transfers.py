"""
Transfers router — atomic money transfers between the caller's own cards.

Endpoints:
  POST /transfers — Move funds from one of your cards to another

Both cards must belong to the authenticated user and be ACTIVE. The amount
is a decimal with at most 2 fractional digits, sent as a string ("12.50")
or a JSON number.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from bankcards.database import get_db
from bankcards.dependencies import get_current_user
from bankcards.models.user import User
from bankcards.schemas.transfer import TransferRequest, TransferView
from bankcards.services import transfer_service

router = APIRouter()


@router.post(
    "",
    response_model=TransferView,
    status_code=status.HTTP_201_CREATED,
    summary="Transfer money between my cards",
)
async def create_transfer(
    request: TransferRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Transfer money between two of your cards.

    Either both balances change and a transfer record is written, or
    nothing changes at all.

    - 400: amount not positive / more than 2 decimals, or same card
    - 403: either card belongs to someone else
    - 404: either card doesn't exist
    - 409: either card is not ACTIVE
    - 422: insufficient funds on the source card
    - 503: a card is busy with another transfer; safe to retry
    """
    return await transfer_service.transfer_between_cards(
        db=db,
        requester_id=user.id,
        from_card_id=request.from_card_id,
        to_card_id=request.to_card_id,
        amount=request.amount,
    )
