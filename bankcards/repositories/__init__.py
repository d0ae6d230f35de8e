"""
Repositories: the persistence boundary for cards, transfers and users.

Services never build queries themselves; they go through these classes,
which all operate inside the caller's AsyncSession (the unit of work).
"""

from bankcards.repositories.base import BaseRepository
from bankcards.repositories.card_repository import CardRepository
from bankcards.repositories.transfer_repository import TransferRepository
from bankcards.repositories.user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "CardRepository",
    "TransferRepository",
    "UserRepository",
]
