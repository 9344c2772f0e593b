from .card_ids import CardIdGenerator
from .card_store import CardSpec, CardStore
from .engine import LedgerEngine, LedgerPolicy, OperationResult
from .errors import (
    CardIdGenerationExhausted,
    CardLockTimeout,
    CardNotFoundError,
    LedgerError,
    LedgerInfrastructureError,
    LedgerValidationError,
    UserNotFoundError,
)
from .locks import CardLocks
from .reporting import CardHistoryPage, LedgerReports, StatusSummary
from .transaction_log import TransactionFilter, TransactionLog
from .user_directory import UserDirectory

__all__ = [
    "CardHistoryPage",
    "CardIdGenerationExhausted",
    "CardIdGenerator",
    "CardLockTimeout",
    "CardLocks",
    "CardNotFoundError",
    "CardSpec",
    "CardStore",
    "LedgerEngine",
    "LedgerError",
    "LedgerInfrastructureError",
    "LedgerPolicy",
    "LedgerReports",
    "LedgerValidationError",
    "OperationResult",
    "StatusSummary",
    "TransactionFilter",
    "TransactionLog",
    "UserDirectory",
]
