from .card import (
    AmountRequest,
    BulkIssueRequest,
    BulkIssueResponse,
    CardIssueRequest,
    CardIssueResponse,
    CardResponse,
    ExpirySweepResponse,
    OperationResponse,
    OwnerAssignRequest,
    StatusChangeRequest,
    TransferRequest,
)
from .transaction import (
    CardsByUserEntry,
    CardStatementResponse,
    RedemptionTotalResponse,
    StatusSummaryResponse,
    TransactionResponse,
)

__all__ = [
    "AmountRequest",
    "BulkIssueRequest",
    "BulkIssueResponse",
    "CardIssueRequest",
    "CardIssueResponse",
    "CardResponse",
    "CardsByUserEntry",
    "CardStatementResponse",
    "ExpirySweepResponse",
    "OperationResponse",
    "OwnerAssignRequest",
    "RedemptionTotalResponse",
    "StatusChangeRequest",
    "StatusSummaryResponse",
    "TransactionResponse",
    "TransferRequest",
]
