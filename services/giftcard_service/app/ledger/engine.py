from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..metrics import (
    giftcard_expired_total,
    giftcard_issued_total,
    giftcard_lock_timeout_total,
    giftcard_recharge_total,
    giftcard_redeemed_amount_total,
    giftcard_redemption_total,
    giftcard_status_change_total,
    giftcard_transfer_total,
)
from ..models import CardStatus, GiftCard, TransactionType
from ..settings import GiftCardSettings
from .card_ids import CardIdGenerator
from .card_store import CardSpec, CardStore, Mutator, T, utcnow
from .errors import CardLockTimeout, CardNotFoundError, LedgerValidationError, UserNotFoundError
from .locks import CardLocks
from .money import MAX_AMOUNT, to_money
from .transaction_log import TransactionLog
from .unit_of_work import unit_of_work
from .user_directory import UserDirectory

logger = logging.getLogger(__name__)

MSG_CARD_NOT_FOUND = "Gift card not found"
MSG_NOT_OWNED = "User does not own this gift card or card is unassigned"
MSG_EXPIRED = "Gift card is expired"
MSG_INSUFFICIENT_BALANCE = "Insufficient balance"
MSG_LIMIT_EXCEEDED = "Transaction exceeds allowed limit"
MSG_REDEEM_AMOUNT_NOT_POSITIVE = "Redemption amount must be positive"
MSG_RECHARGE_AMOUNT_NOT_POSITIVE = "Recharge amount must be positive"
MSG_UNASSIGNED_TRANSFER = "Gift card is unassigned and cannot be transferred"
MSG_WRONG_SENDER = "Gift card does not belong to the transferring user"
MSG_UNKNOWN_RECIPIENT = "Recipient user not found"


def _status_message(status: str) -> str:
    return f"Gift card status is {status}"


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a balance or ownership operation.

    Business-rule rejections are reported here rather than raised; ``reason``
    is a stable machine-readable code next to the human-readable ``message``.
    """

    success: bool
    message: str
    reason: str = "ok"

    @classmethod
    def ok(cls, message: str) -> OperationResult:
        return cls(True, message)

    @classmethod
    def fail(cls, reason: str, message: str) -> OperationResult:
        return cls(False, message, reason)


@dataclass(frozen=True)
class LedgerPolicy:
    fraud_threshold: Decimal = Decimal("1000.00")
    bulk_issue_max: int = 1000
    # Recharge and owner assignment are lenient unless these are switched on
    recharge_requires_owner: bool = False
    strict_owner_assignment: bool = False

    @classmethod
    def from_settings(cls, settings: GiftCardSettings) -> LedgerPolicy:
        return cls(
            fraud_threshold=to_money(settings.fraud_threshold, "fraud_threshold"),
            bulk_issue_max=settings.bulk_issue_max,
            recharge_requires_owner=settings.recharge_requires_owner,
            strict_owner_assignment=settings.strict_owner_assignment,
        )


class LedgerEngine:
    """Validated, atomic state transitions over gift cards and their audit log.

    Every mutating call runs inside ``CardStore.update_exclusive``: the card is
    locked, checked, changed and logged in one transaction. The engine keeps no
    state of its own beyond its collaborators.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        policy: LedgerPolicy | None = None,
        card_ids: CardIdGenerator | None = None,
        locks: CardLocks | None = None,
        clock: Callable[[], date] | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.policy = policy or LedgerPolicy()
        self.card_ids = card_ids or CardIdGenerator()
        self.cards = CardStore(session_factory, locks)
        self.transactions = TransactionLog()
        self.users = UserDirectory()
        self._today = clock or _utc_today

    @classmethod
    def from_settings(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        settings: GiftCardSettings,
        **kwargs,
    ) -> LedgerEngine:
        return cls(
            session_factory,
            policy=LedgerPolicy.from_settings(settings),
            card_ids=CardIdGenerator(settings.card_id_length, settings.card_id_max_attempts),
            locks=CardLocks(settings.lock_timeout_seconds),
            **kwargs,
        )

    # Issuance

    async def issue_single(
        self,
        initial_balance: Decimal | int | str,
        expiry: date,
        owner_user_id: int | None = None,
    ) -> str:
        balance = self._validate_issue(initial_balance, expiry)
        (card_id,) = await self._issue(1, balance, expiry, owner_user_id, CardStatus.active)
        giftcard_issued_total.labels(mode="single").inc()
        logger.info("giftcard.issue.single", extra={"card_id": card_id, "owner_user_id": owner_user_id})
        return card_id

    async def issue_bulk(
        self,
        count: int,
        initial_balance: Decimal | int | str,
        expiry: date,
        owner_user_id: int | None = None,
    ) -> list[str]:
        """Create ``count`` inactive cards in one transaction: all of them or none."""
        if count <= 0:
            raise LedgerValidationError("Count must be a positive integer")
        if count > self.policy.bulk_issue_max:
            raise LedgerValidationError(f"Count exceeds the bulk issuance limit of {self.policy.bulk_issue_max}")
        balance = self._validate_issue(initial_balance, expiry)
        card_ids = await self._issue(count, balance, expiry, owner_user_id, CardStatus.inactive)
        giftcard_issued_total.labels(mode="bulk").inc(count)
        logger.info("giftcard.issue.bulk", extra={"count": count, "owner_user_id": owner_user_id})
        return card_ids

    def _validate_issue(self, initial_balance: Decimal | int | str, expiry: date) -> Decimal:
        balance = to_money(initial_balance, "initial_balance")
        if balance <= 0:
            raise LedgerValidationError("Initial balance must be positive")
        if expiry <= self._today():
            raise LedgerValidationError("Expiration date must be in the future")
        return balance

    async def _issue(
        self,
        count: int,
        balance: Decimal,
        expiry: date,
        owner_user_id: int | None,
        status: CardStatus,
    ) -> list[str]:
        spec = CardSpec(initial_balance=balance, expiration_date=expiry, status=status, user_id=owner_user_id)
        async with unit_of_work(self.session_factory) as session:
            if owner_user_id is not None and not await self.users.exists(session, owner_user_id):
                raise UserNotFoundError(f"User {owner_user_id} not found")
            return await self.cards.create_many(session, [spec] * count, self.card_ids)

    # Balance operations

    async def redeem(self, card_id: str, user_id: int, amount: Decimal | int | str) -> OperationResult:
        """Debit ``amount`` from a card owned by ``user_id``.

        Checks run in a fixed order against the locked row. A card found past
        its expiry date is switched to ``expired`` and that change is committed
        even though the redemption itself is rejected.
        """
        amount = to_money(amount)
        today = self._today()

        async def apply(session: AsyncSession, card: GiftCard | None) -> OperationResult:
            if card is None:
                return OperationResult.fail("card_not_found", MSG_CARD_NOT_FOUND)
            if amount <= 0:
                return OperationResult.fail("invalid_amount", MSG_REDEEM_AMOUNT_NOT_POSITIVE)
            if card.user_id is None or card.user_id != user_id:
                return OperationResult.fail("not_owned", MSG_NOT_OWNED)
            if card.is_past_expiry(today) and card.status != CardStatus.expired.value:
                card.status = CardStatus.expired.value
                card.updated_at = utcnow()
                giftcard_expired_total.labels(source="redeem").inc()
                return OperationResult.fail("expired", MSG_EXPIRED)
            if card.status != CardStatus.active.value:
                return OperationResult.fail("status", _status_message(card.status))
            if card.current_balance < amount:
                return OperationResult.fail("insufficient_balance", MSG_INSUFFICIENT_BALANCE)
            if amount > self.policy.fraud_threshold:
                return OperationResult.fail("limit_exceeded", MSG_LIMIT_EXCEEDED)

            card.current_balance = card.current_balance - amount
            card.updated_at = utcnow()
            await self.transactions.append(
                session,
                card_id=card.card_id,
                user_id=user_id,
                transaction_type=TransactionType.redemption,
                amount=amount,
                notes="Redemption",
            )
            return OperationResult.ok("Redemption successful")

        result = await self._exclusive("redeem", card_id, apply)
        if result.success:
            giftcard_redeemed_amount_total.inc(float(amount))
        return self._record("redeem", card_id, result, giftcard_redemption_total)

    async def recharge(self, card_id: str, user_id: int, amount: Decimal | int | str) -> OperationResult:
        amount = to_money(amount)

        async def apply(session: AsyncSession, card: GiftCard | None) -> OperationResult:
            if card is None:
                return OperationResult.fail("card_not_found", MSG_CARD_NOT_FOUND)
            if self.policy.recharge_requires_owner and (card.user_id is None or card.user_id != user_id):
                return OperationResult.fail("not_owned", MSG_NOT_OWNED)
            if card.status != CardStatus.active.value:
                return OperationResult.fail("status", _status_message(card.status))
            if amount <= 0:
                return OperationResult.fail("invalid_amount", MSG_RECHARGE_AMOUNT_NOT_POSITIVE)
            if card.current_balance + amount > MAX_AMOUNT:
                raise LedgerValidationError(f"Recharge would take the balance above {MAX_AMOUNT}")

            card.current_balance = card.current_balance + amount
            card.updated_at = utcnow()
            await self.transactions.append(
                session,
                card_id=card.card_id,
                user_id=user_id,
                transaction_type=TransactionType.recharge,
                amount=amount,
                notes="Recharge",
            )
            return OperationResult.ok("Recharge successful")

        result = await self._exclusive("recharge", card_id, apply)
        return self._record("recharge", card_id, result, giftcard_recharge_total)

    # Ownership

    async def transfer(self, card_id: str, from_user_id: int, to_user_id: int) -> OperationResult:
        async def apply(session: AsyncSession, card: GiftCard | None) -> OperationResult:
            if card is None:
                return OperationResult.fail("card_not_found", MSG_CARD_NOT_FOUND)
            if card.user_id is None:
                return OperationResult.fail("unassigned", MSG_UNASSIGNED_TRANSFER)
            if card.user_id != from_user_id:
                return OperationResult.fail("not_owned", MSG_WRONG_SENDER)
            if card.status != CardStatus.active.value:
                return OperationResult.fail("status", _status_message(card.status))
            if not await self.users.exists(session, to_user_id):
                return OperationResult.fail("unknown_recipient", MSG_UNKNOWN_RECIPIENT)

            card.user_id = to_user_id
            card.updated_at = utcnow()
            await self.transactions.append(
                session,
                card_id=card.card_id,
                user_id=from_user_id,
                transaction_type=TransactionType.transfer_out,
                amount=Decimal("0.00"),
                notes=f"Transferred to user {to_user_id}",
            )
            await self.transactions.append(
                session,
                card_id=card.card_id,
                user_id=to_user_id,
                transaction_type=TransactionType.transfer_in,
                amount=Decimal("0.00"),
                notes=f"Received from user {from_user_id}",
            )
            return OperationResult.ok("Gift card transferred successfully")

        result = await self._exclusive("transfer", card_id, apply)
        return self._record("transfer", card_id, result, giftcard_transfer_total)

    async def assign_owner(self, card_id: str, user_id: int | None) -> None:
        """Overwrite the card's owner; ``None`` detaches it.

        A missing card is ignored unless the policy asks for strict assignment.
        """

        async def apply(session: AsyncSession, card: GiftCard | None) -> None:
            if user_id is not None and not await self.users.exists(session, user_id):
                raise UserNotFoundError(f"User {user_id} not found")
            if card is None:
                if self.policy.strict_owner_assignment:
                    raise CardNotFoundError(MSG_CARD_NOT_FOUND)
                logger.info("giftcard.assign.card_missing", extra={"card_id": card_id})
                return
            card.user_id = user_id
            card.updated_at = utcnow()
            logger.info("giftcard.assign.applied", extra={"card_id": card_id, "user_id": user_id})

        await self._exclusive("assign_owner", card_id, apply)

    # Lifecycle

    async def set_status(self, card_id: str, new_status: CardStatus | str) -> OperationResult:
        try:
            status = CardStatus(new_status)
        except ValueError as exc:
            raise LedgerValidationError(f"Unknown gift card status: {new_status}") from exc

        async def apply(session: AsyncSession, card: GiftCard | None) -> OperationResult:
            if card is None:
                return OperationResult.fail("card_not_found", MSG_CARD_NOT_FOUND)
            card.status = status.value
            card.updated_at = utcnow()
            return OperationResult.ok(f"Gift card status updated to {status.value}")

        result = await self._exclusive("set_status", card_id, apply)
        if result.success:
            giftcard_status_change_total.labels(status=status.value).inc()
        logger.info(
            "giftcard.status.%s" % ("updated" if result.success else "rejected"),
            extra={"card_id": card_id, "status": status.value, "reason": result.reason},
        )
        return result

    async def expire_due(self) -> int:
        """Expire every active card whose date has passed; returns how many changed."""
        today = self._today()
        expired = await self.cards.expire_due(today)
        if expired:
            giftcard_expired_total.labels(source="sweep").inc(expired)
        logger.info("giftcard.expiry.sweep", extra={"expired": expired, "as_of": today.isoformat()})
        return expired

    async def _exclusive(self, operation: str, card_id: str, mutator: Mutator[T]) -> T:
        try:
            return await self.cards.update_exclusive(card_id, mutator)
        except CardLockTimeout:
            giftcard_lock_timeout_total.labels(operation=operation).inc()
            logger.warning("giftcard.%s.lock_timeout" % operation, extra={"card_id": card_id})
            raise

    @staticmethod
    def _record(operation: str, card_id: str, result: OperationResult, counter) -> OperationResult:
        counter.labels(outcome=result.reason).inc()
        if result.success:
            logger.info("giftcard.%s.succeeded" % operation, extra={"card_id": card_id})
        else:
            logger.info(
                "giftcard.%s.rejected" % operation,
                extra={"card_id": card_id, "reason": result.reason},
            )
        return result
