from __future__ import annotations

from shared.errors import ServiceError


class LedgerError(ServiceError):
    """Hard failure of a ledger operation; nothing was changed."""


class LedgerValidationError(LedgerError):
    status_code = 422
    error = "validation_error"


class CardNotFoundError(LedgerError):
    status_code = 404
    error = "card_not_found"


class UserNotFoundError(LedgerError):
    status_code = 404
    error = "user_not_found"


class CardIdGenerationExhausted(LedgerError):
    status_code = 503
    error = "card_id_generation_exhausted"


class CardLockTimeout(LedgerError):
    status_code = 409
    error = "card_lock_timeout"


class LedgerInfrastructureError(LedgerError):
    status_code = 500
    error = "ledger_unavailable"
