"""
Card number vault: generation, encryption, blind indexing and masking.

All card number cryptography lives here so it is easy to audit. The vault
holds key material in memory only; it is derived once from the configured
CARD_ENCRYPTION_SECRET and never written anywhere.

1. GENERATION
   16 digits = issuer prefix (CARD_BIN, 6 digits) + 9 random digits from
   `secrets` + 1 Luhn check digit. Candidates are checked against the blind
   index; a collision triggers another attempt, up to
   MAX_CARD_NUMBER_ATTEMPTS.

2. ENCRYPTION (Fernet: AES-128-CBC + HMAC-SHA256)
   Authenticated encryption with a random IV per call, embedded in the
   token. Encrypting the same number twice yields two different tokens.
   The Fernet key is the SHA-256 digest of the secret, base64-encoded as
   Fernet expects.

3. BLIND INDEX (HMAC-SHA256)
   Deterministic keyed hash of the plain number, stored next to the
   ciphertext under a UNIQUE constraint. It answers "is this number already
   issued?" without decrypting anything, and reveals nothing without the
   key. The index key is derived from the same secret with a distinct
   prefix, so it never equals the encryption key.

4. MASKING
   "**** **** **** 1234" for display. Only the last four digits survive.

Enterprise note:
  In production the secret would come from a secrets manager or HSM rather
  than an environment variable. Rotating it makes existing ciphertexts and
  indexes unreadable, so rotation needs a re-encryption migration.
"""

import base64
import hashlib
import hmac
import logging
import secrets
from functools import lru_cache
from typing import Awaitable, Callable

from cryptography.fernet import Fernet, InvalidToken

from bankcards.config import settings
from bankcards.exceptions import (
    CardNumberGenerationError,
    ConfigurationError,
    CryptoError,
    InvalidCardNumberError,
)

logger = logging.getLogger(__name__)

CARD_NUMBER_LENGTH = 16
FULL_MASK = "****"


# ---------------------------------------------------------------------------
# Luhn checksum
# ---------------------------------------------------------------------------

def luhn_check_digit(payload: str) -> int:
    """
    Compute the Luhn check digit for a string of digits.

    Starting from the rightmost payload digit, every second digit is
    doubled (9 subtracted when the result exceeds 9), all digits are summed,
    and the check digit brings the total to a multiple of 10.
    """
    total = 0
    for position, char in enumerate(reversed(payload)):
        digit = int(char)
        if position % 2 == 0:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return (10 - total % 10) % 10


def is_luhn_valid(number: str) -> bool:
    """True if `number` is all digits and its last digit is the Luhn check digit."""
    if len(number) < 2 or not number.isdigit():
        return False
    return luhn_check_digit(number[:-1]) == int(number[-1])


def mask(plain: str | None) -> str:
    """Display form revealing only the last four digits."""
    if plain is None or len(plain) < 4:
        return FULL_MASK
    return f"**** **** **** {plain[-4:]}"


# ---------------------------------------------------------------------------
# Vault
# ---------------------------------------------------------------------------

class CardNumberVault:
    """
    Encrypts, decrypts, indexes and generates card numbers.

    Stateless apart from its keys, which are read-only after construction,
    so a single instance is shared by all concurrent requests.
    """

    def __init__(
        self,
        secret: str | None,
        bin_prefix: str = "400000",
        max_attempts: int = 10,
    ):
        if secret is None or not secret.strip():
            raise ConfigurationError(
                "CARD_ENCRYPTION_SECRET is not configured; the card vault cannot start"
            )
        if len(bin_prefix) != 6 or not bin_prefix.isdigit():
            raise ConfigurationError(f"CARD_BIN must be exactly 6 digits, got {bin_prefix!r}")

        secret_bytes = secret.encode("utf-8")
        self._fernet = Fernet(base64.urlsafe_b64encode(hashlib.sha256(secret_bytes).digest()))
        self._index_key = hashlib.sha256(b"card-number-index:" + secret_bytes).digest()
        self.bin_prefix = bin_prefix
        self.max_attempts = max_attempts
        logger.info("Card number vault initialized (BIN %s)", bin_prefix)

    # --- Encryption -------------------------------------------------------

    def encrypt(self, plain: str | None) -> bytes:
        """
        Encrypt a card number.

        Raises:
            InvalidCardNumberError: If the number is empty or None.
        """
        if not plain:
            raise InvalidCardNumberError()
        return self._fernet.encrypt(plain.encode("utf-8"))

    def decrypt(self, token: bytes | str | None) -> str:
        """
        Decrypt a card number token.

        Raises:
            CryptoError: If the token is empty, malformed, truncated, was
                tampered with, or was produced under a different key.
        """
        if not token:
            raise CryptoError("Encrypted card number is empty")
        if isinstance(token, str):
            token = token.encode("ascii")
        try:
            return self._fernet.decrypt(token).decode("utf-8")
        except (InvalidToken, UnicodeDecodeError) as exc:
            logger.error("Card number decryption failed: %s", type(exc).__name__)
            raise CryptoError("Failed to decrypt card number") from exc

    def blind_index(self, plain: str) -> str:
        """Keyed HMAC-SHA256 of the plain number, as 64 hex characters."""
        if not plain:
            raise InvalidCardNumberError()
        return hmac.new(self._index_key, plain.encode("utf-8"), hashlib.sha256).hexdigest()

    def reveal_masked(self, token: bytes) -> str:
        """Decrypt and mask in one step; the plain number never leaves this call."""
        return mask(self.decrypt(token))

    mask = staticmethod(mask)

    # --- Generation -------------------------------------------------------

    def generate_candidate(self) -> str:
        """One Luhn-valid 16-digit number under this vault's BIN."""
        body_length = CARD_NUMBER_LENGTH - len(self.bin_prefix) - 1
        payload = self.bin_prefix + "".join(
            str(secrets.randbelow(10)) for _ in range(body_length)
        )
        return payload + str(luhn_check_digit(payload))

    async def generate(self, is_taken: Callable[[str], Awaitable[bool]]) -> str:
        """
        Generate a card number not yet issued.

        Args:
            is_taken: Async predicate receiving a candidate's blind index and
                returning True if a card with that index already exists.

        Raises:
            CardNumberGenerationError: If every attempt collided.
        """
        for attempt in range(1, self.max_attempts + 1):
            candidate = self.generate_candidate()
            if not await is_taken(self.blind_index(candidate)):
                return candidate
            logger.warning(
                "Generated duplicate card number, attempt %d/%d", attempt, self.max_attempts
            )
        raise CardNumberGenerationError(self.max_attempts)


@lru_cache
def get_vault() -> CardNumberVault:
    """
    Process-wide vault built from settings.

    Called during application startup so a missing secret stops the process
    before it serves a single request.
    """
    return CardNumberVault(
        secret=settings.CARD_ENCRYPTION_SECRET,
        bin_prefix=settings.CARD_BIN,
        max_attempts=settings.MAX_CARD_NUMBER_ATTEMPTS,
    )
