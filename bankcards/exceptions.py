"""
Custom exception classes and FastAPI exception handlers.

The service layer raises domain-specific errors (like InsufficientFundsError)
without importing HTTP concepts. The handler layer then translates them into
HTTP responses. Each error *category* maps to one stable status code and
error_type, so clients never have to inspect message text.

Exception hierarchy:
    BankCardsError (base)
    ├── NotFoundError (404)
    │   ├── CardNotFoundError
    │   └── UserNotFoundError
    ├── ForbiddenError (403)
    │   └── CardOwnershipError       — foreign card access, security violation
    ├── InvalidInputError (400)
    │   ├── InvalidAmountError       — non-positive or over-precise amount
    │   ├── SameCardTransferError
    │   └── InvalidCardNumberError   — empty/malformed card number
    ├── StateConflictError (409)
    │   ├── CardNotActiveError
    │   ├── CardAlreadyInStateError
    │   ├── CardNonZeroBalanceError
    │   ├── CardHasHistoryError
    │   ├── UserHasCardsError
    │   └── DuplicateUserError
    ├── InsufficientFundsError (422)
    ├── ResourceBusyError (503)      — lock wait timed out, safe to retry
    │   └── CardNumberGenerationError
    ├── CryptoError (500)
    ├── ConfigurationError (500)
    └── InvalidCredentialsError (401)
"""

import logging
import uuid
from decimal import Decimal

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class BankCardsError(Exception):
    """Base exception for all Bank Cards domain errors."""

    status_code: int = 500
    error_type: str = "internal_error"

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------

class NotFoundError(BankCardsError):
    status_code = 404
    error_type = "not_found"


class CardNotFoundError(NotFoundError):
    """Raised when a requested card does not exist."""

    error_type = "card_not_found"

    def __init__(self, card_id: uuid.UUID):
        self.card_id = card_id
        super().__init__(f"Card {card_id} not found")


class UserNotFoundError(NotFoundError):
    """Raised when a referenced user does not exist."""

    error_type = "user_not_found"

    def __init__(self, user_id: uuid.UUID):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


# ---------------------------------------------------------------------------
# Forbidden
# ---------------------------------------------------------------------------

class ForbiddenError(BankCardsError):
    """Raised when a user attempts to act on a resource they don't own."""

    status_code = 403
    error_type = "forbidden"
    security_violation: bool = False

    def __init__(self, detail: str = "You do not have access to this resource"):
        super().__init__(detail)


class CardOwnershipError(ForbiddenError):
    """
    Raised when a user touches a card that belongs to someone else.

    Flagged as a security violation: the service raising it logs a WARNING
    with the requester and card IDs, and the HTTP body carries
    "security_violation": true, so it can be alerted on separately from
    ordinary business-rule errors.
    """

    error_type = "card_ownership_violation"
    security_violation = True

    def __init__(self, requester_id: uuid.UUID, card_id: uuid.UUID, action: str):
        self.requester_id = requester_id
        self.card_id = card_id
        self.action = action
        super().__init__(f"Card {card_id} does not belong to the requester")


# ---------------------------------------------------------------------------
# Invalid input
# ---------------------------------------------------------------------------

class InvalidInputError(BankCardsError):
    status_code = 400
    error_type = "invalid_input"


class InvalidAmountError(InvalidInputError):
    """Raised when a transfer amount is not a positive 2-decimal value."""

    error_type = "invalid_amount"

    def __init__(self, amount: Decimal | str):
        self.amount = amount
        super().__init__(
            f"Transfer amount must be positive with at most 2 decimal places, got {amount}"
        )


class SameCardTransferError(InvalidInputError):
    error_type = "same_card_transfer"

    def __init__(self, card_id: uuid.UUID):
        self.card_id = card_id
        super().__init__("Cannot transfer to the same card")


class InvalidCardNumberError(InvalidInputError):
    error_type = "invalid_card_number"

    def __init__(self, detail: str = "Card number cannot be empty"):
        super().__init__(detail)


# ---------------------------------------------------------------------------
# State conflicts
# ---------------------------------------------------------------------------

class StateConflictError(BankCardsError):
    status_code = 409
    error_type = "state_conflict"


class CardNotActiveError(StateConflictError):
    """Raised when a transfer touches a card that is not ACTIVE."""

    error_type = "card_not_active"

    def __init__(self, card_id: uuid.UUID, status: str):
        self.card_id = card_id
        self.status = status
        super().__init__(f"Card {card_id} is not active (status: {status})")


class CardAlreadyInStateError(StateConflictError):
    """Raised when a lifecycle action would not change the card's status."""

    error_type = "card_already_in_state"

    def __init__(self, card_id: uuid.UUID, status: str):
        self.card_id = card_id
        self.status = status
        super().__init__(f"Card {card_id} is already {status}")


class CardNonZeroBalanceError(StateConflictError):
    error_type = "card_non_zero_balance"

    def __init__(self, card_id: uuid.UUID, balance: Decimal):
        self.card_id = card_id
        self.balance = balance
        super().__init__(
            f"Cannot delete card {card_id} with non-zero balance: {balance:.2f}"
        )


class CardHasHistoryError(StateConflictError):
    error_type = "card_has_history"

    def __init__(self, card_id: uuid.UUID, outgoing: int, incoming: int):
        self.card_id = card_id
        self.outgoing = outgoing
        self.incoming = incoming
        super().__init__(
            f"Cannot delete card {card_id} with transfer history "
            f"(outgoing: {outgoing}, incoming: {incoming})"
        )


class UserHasCardsError(StateConflictError):
    error_type = "user_has_cards"

    def __init__(self, user_id: uuid.UUID):
        self.user_id = user_id
        super().__init__(f"User {user_id} still owns cards")


class DuplicateUserError(StateConflictError):
    """Raised when signing up with a username or email that's already in use."""

    error_type = "duplicate_user"

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"{field.capitalize()} {value} is already registered")


# ---------------------------------------------------------------------------
# Funds
# ---------------------------------------------------------------------------

class InsufficientFundsError(BankCardsError):
    """
    Raised when a transfer would take the source card below zero.

    Attributes:
        card_id: The card that lacks sufficient funds.
        requested: The amount the user tried to move.
        available: The card's balance at the time of the check.
    """

    status_code = 422
    error_type = "insufficient_funds"

    def __init__(self, card_id: uuid.UUID, requested: Decimal, available: Decimal):
        self.card_id = card_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient funds on card {card_id}: "
            f"requested {requested:.2f}, available {available:.2f}"
        )


# ---------------------------------------------------------------------------
# Contention and infrastructure failures
# ---------------------------------------------------------------------------

class ResourceBusyError(BankCardsError):
    """Raised when a card lock could not be acquired in time. Safe to retry."""

    status_code = 503
    error_type = "resource_busy"
    retryable = True

    def __init__(self, detail: str = "Card is busy, please retry"):
        super().__init__(detail)


class CardNumberGenerationError(ResourceBusyError):
    error_type = "card_number_generation_failed"

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Could not generate a unique card number after {attempts} attempts"
        )


class CryptoError(BankCardsError):
    """Raised when card number encryption or decryption fails."""

    error_type = "crypto_failure"

    def __init__(self, detail: str = "Card number could not be processed"):
        super().__init__(detail)


class ConfigurationError(BankCardsError):
    """Raised at startup when required configuration is missing."""

    error_type = "configuration_error"


class InvalidCredentialsError(BankCardsError):
    """Raised when login credentials are incorrect."""

    status_code = 401
    error_type = "invalid_credentials"

    def __init__(self):
        super().__init__("Invalid username or password")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def _error_response(exc: BankCardsError, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error_type": exc.error_type, **extra},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers with the FastAPI application.

    Each handler maps an error category to its HTTP status and a consistent
    JSON body: {"detail": "...", "error_type": "..."}.

    This is called once during app startup in main.py.
    """

    @app.exception_handler(ForbiddenError)
    async def forbidden_handler(request: Request, exc: ForbiddenError) -> JSONResponse:
        # Security violations are logged where they are raised
        return _error_response(exc, security_violation=exc.security_violation)

    @app.exception_handler(InsufficientFundsError)
    async def insufficient_funds_handler(
        request: Request, exc: InsufficientFundsError
    ) -> JSONResponse:
        # Amounts are serialized as strings so no float ever touches them
        return _error_response(
            exc,
            card_id=str(exc.card_id),
            requested=f"{exc.requested:.2f}",
            available=f"{exc.available:.2f}",
        )

    @app.exception_handler(ResourceBusyError)
    async def resource_busy_handler(
        request: Request, exc: ResourceBusyError
    ) -> JSONResponse:
        response = _error_response(exc, retryable=True)
        response.headers["Retry-After"] = "1"
        return response

    @app.exception_handler(CryptoError)
    async def crypto_handler(request: Request, exc: CryptoError) -> JSONResponse:
        logger.error("Crypto failure while handling %s %s", request.method, request.url.path)
        return _error_response(exc)

    @app.exception_handler(BankCardsError)
    async def bank_cards_error_handler(
        request: Request, exc: BankCardsError
    ) -> JSONResponse:
        # NotFound, InvalidInput, StateConflict, InvalidCredentials, Configuration
        return _error_response(exc)
