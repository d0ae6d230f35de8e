"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. This keeps secrets out of source code: the .env file is
gitignored, and .env.example provides a safe template for developers.

Pydantic Settings automatically:
  1. Reads from environment variables (highest priority)
  2. Falls back to .env file values
  3. Uses defaults defined here (lowest priority)

Usage:
    from bankcards.config import settings
    print(settings.CARD_BIN)
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the Bank Cards API.

    Required fields (no defaults) MUST be set in .env or environment:
      - SECRET_KEY: Used to sign JWT tokens
      - CARD_ENCRYPTION_SECRET: Key material for the card number vault.
        A blank value is rejected by the vault at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Bank Cards API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # --- Database ---
    # SQLite for local runs; use a postgresql+asyncpg URL in production.
    # SQLite is single-process only: card locks are in-process and SQLite has
    # no row locks, so a second worker could overwrite a balance from a stale read.
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/bankcards.db"
    # Worker count; uvicorn reads the same variable as its --workers default
    WEB_CONCURRENCY: int = Field(default=1, ge=1)

    # --- Authentication ---
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # --- Card number vault ---
    # Any non-empty string; the Fernet and blind-index keys are derived from it
    CARD_ENCRYPTION_SECRET: str
    # Issuer prefix (BIN) placed in front of every generated card number
    CARD_BIN: str = Field(default="400000", pattern=r"^\d{6}$")
    CARD_VALIDITY_YEARS: int = Field(default=3, ge=1)
    MAX_CARD_NUMBER_ATTEMPTS: int = Field(default=10, ge=1)

    # --- Transfers ---
    # Upper bound on how long a transfer waits for a card lock
    LOCK_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0)

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    # "text" or "json"
    LOG_FORMAT: str = "text"

    # --- CORS ---
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]

    @model_validator(mode="after")
    def check_sqlite_single_worker(self) -> "Settings":
        if self.DATABASE_URL.startswith("sqlite") and self.WEB_CONCURRENCY > 1:
            raise ValueError(
                "SQLite supports a single worker only; "
                "set WEB_CONCURRENCY=1 or use a PostgreSQL DATABASE_URL"
            )
        return self


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
