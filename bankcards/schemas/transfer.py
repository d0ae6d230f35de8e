"""
Pydantic schemas for Transfer endpoints.

The request does not validate the amount's sign or the
from/to difference: the transfer service owns those rules and reports them
as InvalidInput (400) like every other caller of the engine would see.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class TransferRequest(BaseModel):
    """Request body for POST /transfers."""
    from_card_id: uuid.UUID
    to_card_id: uuid.UUID
    amount: Decimal


class TransferView(BaseModel):
    """Response body for a completed transfer."""
    id: uuid.UUID
    from_card_masked: str
    to_card_masked: str
    amount: Decimal
    status: str
    created_at: datetime
