from .card import CardStatus, GiftCard
from .transaction import CardTransaction, TransactionType
from .user import User

__all__ = [
    "CardStatus",
    "GiftCard",
    "CardTransaction",
    "TransactionType",
    "User",
]
