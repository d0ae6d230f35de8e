"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all() runs
  2. Other modules can import from bankcards.models directly
"""

from bankcards.models.user import User, UserRole  # noqa: F401
from bankcards.models.card import Card, CardStatus  # noqa: F401
from bankcards.models.transfer import Transfer  # noqa: F401
