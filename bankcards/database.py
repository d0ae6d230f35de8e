"""
Database engine, session management, and base model class.

This module sets up SQLAlchemy 2.0 with async support. Key components:

  - engine: The async database engine (connection pool for production DBs)
  - AsyncSessionLocal: Factory for creating async database sessions
  - Base: Declarative base class that all ORM models inherit from
  - get_db(): FastAPI dependency that provides a session per request

The session is the unit of work. Services flush their changes into it;
get_db() commits on success and rolls back on any exception, so a rejected
lifecycle action or transfer leaves nothing behind. The transfer service
commits inside its own lock scope (see services/transfer_service.py) and
the trailing commit here is then a no-op.
"""

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from bankcards.config import settings


# PostgreSQL SQLSTATE for lock_not_available (raised when lock_timeout expires)
PG_LOCK_NOT_AVAILABLE = "55P03"


def engine_connect_args(url: str, lock_timeout: float) -> dict:
    """
    Driver arguments bounding lock waits.

    SQLite waits up to `timeout` seconds for another connection's write lock
    before failing with "database is locked". PostgreSQL is bounded per
    transaction instead (SET LOCAL lock_timeout, see CardRepository).
    """
    if url.startswith("sqlite"):
        return {"timeout": lock_timeout}
    return {}


def is_lock_timeout(exc: DBAPIError) -> bool:
    """True if a driver error means a lock wait ran out of time."""
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code == PG_LOCK_NOT_AVAILABLE:
        return True
    return "database is locked" in str(orig) or "database table is locked" in str(orig)


# echo=True in debug mode logs all SQL statements
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    connect_args=engine_connect_args(settings.DATABASE_URL, settings.LOCK_TIMEOUT_SECONDS),
)

# expire_on_commit=False prevents lazy-load errors after commit: accessing
# attributes on a committed object would otherwise trigger an implicit
# synchronous DB call, which fails in async context.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


async def get_db():
    """
    FastAPI dependency that provides a database session.

    Usage in a route:
        @router.get("/items")
        async def list_items(db: AsyncSession = Depends(get_db)):
            ...

    Committed on success, rolled back on any exception (business errors
    included: failed attempts never leave a record), then closed.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
