"""
Admin router — card issuance, block approval and user management.

All endpoints require ADMIN role.

Endpoints:
  POST   /admin/cards                        — Issue a card to a user
  GET    /admin/cards                        — List ALL cards
  GET    /admin/cards/{card_id}              — Get any card's details
  PATCH  /admin/cards/{card_id}/confirm-block — Block a card
  PATCH  /admin/cards/{card_id}/reject-block  — Turn down a block request
  PATCH  /admin/cards/{card_id}/activate      — Re-activate a card
  DELETE /admin/cards/{card_id}              — Delete an empty card with no history
  GET    /admin/users                        — List ALL users
  PATCH  /admin/users/{user_id}/role         — Change a user's role
  DELETE /admin/users/{user_id}              — Delete a user who owns no cards

By consolidating all admin routes in one router, we avoid route-ordering
conflicts that arise when multiple routers share a prefix and have
overlapping parameterized paths.
"""

import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from bankcards.database import get_db
from bankcards.dependencies import require_admin
from bankcards.models.user import User
from bankcards.schemas.card import CardCreateRequest, CardView
from bankcards.schemas.user import UserResponse, UserRoleUpdateRequest
from bankcards.services import card_service, user_service

router = APIRouter()


# ---------------------------------------------------------------------------
# Card admin endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/cards",
    response_model=CardView,
    status_code=status.HTTP_201_CREATED,
    summary="[Admin] Issue a new card",
)
async def admin_create_card(
    request: CardCreateRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Issue a card to an existing user.

    The card starts ACTIVE with a 0.00 balance. Its number is generated,
    Luhn-checked and encrypted; only the masked form is returned.
    """
    return await card_service.create_card(db, owner_id=request.owner_id)


@router.get(
    "/cards",
    response_model=list[CardView],
    summary="[Admin] List all cards",
)
async def admin_list_all_cards(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await card_service.admin_get_all_cards(db, limit=limit, offset=offset)


@router.get(
    "/cards/{card_id}",
    response_model=CardView,
    summary="[Admin] Get any card's details",
)
async def admin_get_card(
    card_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Get any card without ownership check."""
    return await card_service.admin_get_card(db, card_id)


@router.patch(
    "/cards/{card_id}/confirm-block",
    response_model=CardView,
    summary="[Admin] Block a card",
)
async def admin_confirm_block(
    card_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await card_service.confirm_block(db, card_id)


@router.patch(
    "/cards/{card_id}/reject-block",
    response_model=CardView,
    summary="[Admin] Reject a block request",
)
async def admin_reject_block(
    card_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await card_service.reject_block(db, card_id)


@router.patch(
    "/cards/{card_id}/activate",
    response_model=CardView,
    summary="[Admin] Re-activate a card",
)
async def admin_activate_card(
    card_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Re-activate a card. Already ACTIVE cards are rejected with 409."""
    return await card_service.activate_card(db, card_id)


@router.delete(
    "/cards/{card_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="[Admin] Delete a card",
)
async def admin_delete_card(
    card_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Permanently delete a card.

    Only cards with a 0.00 balance and no transfer history can be deleted;
    anything else is rejected with 409. Nothing cascades.
    """
    await card_service.delete_card(db, card_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# User admin endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/users",
    response_model=list[UserResponse],
    summary="[Admin] List all users",
)
async def admin_list_users(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.admin_get_all_users(db, limit=limit, offset=offset)


@router.patch(
    "/users/{user_id}/role",
    response_model=UserResponse,
    summary="[Admin] Change a user's role",
)
async def admin_assign_role(
    user_id: uuid.UUID,
    request: UserRoleUpdateRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.assign_role(db, user_id, request.role)


@router.delete(
    "/users/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="[Admin] Delete a user",
)
async def admin_delete_user(
    user_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Delete a user. Users who still own cards are rejected with 409."""
    await user_service.delete_user(db, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
