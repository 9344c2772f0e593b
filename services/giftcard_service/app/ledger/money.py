from __future__ import annotations

from decimal import Decimal, InvalidOperation

from .errors import LedgerValidationError

CENT = Decimal("0.01")
# Largest value a Numeric(10, 2) balance column holds
MAX_AMOUNT = Decimal("99999999.99")


def to_money(value: Decimal | int | str, field: str = "amount") -> Decimal:
    """Coerce ``value`` to a two-decimal amount, rejecting finer precision and values the store cannot hold."""
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise LedgerValidationError(f"{field} is not a valid amount") from exc
    if not amount.is_finite():
        raise LedgerValidationError(f"{field} is not a valid amount")
    if abs(amount) > MAX_AMOUNT:
        raise LedgerValidationError(f"{field} must not exceed {MAX_AMOUNT}")
    if amount != amount.quantize(CENT):
        raise LedgerValidationError(f"{field} must have at most two decimal places")
    return amount.quantize(CENT)
