"""
Pydantic schemas for Card endpoints.

Card numbers are NEVER returned in API responses, not even once at
issuance. Only the masked form ("**** **** **** 1234") leaves the service.

Monetary values are Decimal and serialize to JSON as strings ("100.00"),
so no client ever parses a balance as a float.
"""

import uuid
from datetime import date
from decimal import Decimal

from pydantic import BaseModel

from bankcards.models.card import CardStatus


class CardView(BaseModel):
    """Public representation of a card."""
    id: uuid.UUID
    masked_number: str
    owner_id: uuid.UUID
    balance: Decimal
    status: CardStatus
    expiry_date: date


class CardCreateRequest(BaseModel):
    """Request body for POST /admin/cards."""
    owner_id: uuid.UUID


class CardBlockRequest(BaseModel):
    """Request body for PATCH /cards/request-block."""
    card_id: uuid.UUID


class CardBalanceResponse(BaseModel):
    card_id: uuid.UUID
    balance: Decimal
