"""
Credit Ledger - Every crystal balance mutation goes through here.

Each operation:
1. Locks the user row (SELECT FOR UPDATE)
2. Verifies the resulting balance is non-negative
3. Updates the balance and appends a CreditTransaction
4. Flushes

The caller owns the transaction and commits.
"""

from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from photoforge.db.models import CreditTransaction, User
from photoforge.exceptions import (
    DataIntegrityError,
    InsufficientCreditsError,
    UserNotFoundError,
)
from photoforge.models.api import TransactionType
from photoforge.models.domain import LedgerEntry
from photoforge.observability.metrics import metrics

logger = get_logger(__name__)


class CreditLedger:
    """Per-user serialized crystal balance with an append-only log."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize ledger with database session."""
        self.session = session

    async def debit(
        self,
        user_id: UUID,
        amount: int,
        transaction_type: TransactionType,
        description: str,
        reference_id: UUID | str | None = None,
    ) -> LedgerEntry:
        """
        Remove crystals from a user's balance.

        Raises:
            ValueError: amount is not positive
            UserNotFoundError: user doesn't exist
            InsufficientCreditsError: balance below amount (nothing is written)
        """
        if amount <= 0:
            raise ValueError(f"Debit amount must be positive: {amount}")

        return await self._apply(user_id, -amount, transaction_type, description, reference_id)

    async def credit(
        self,
        user_id: UUID,
        amount: int,
        transaction_type: TransactionType,
        description: str,
        reference_id: UUID | str | None = None,
    ) -> LedgerEntry:
        """
        Add crystals to a user's balance (purchase, refund, bonus).

        Raises:
            ValueError: amount is not positive
            UserNotFoundError: user doesn't exist
        """
        if amount <= 0:
            raise ValueError(f"Credit amount must be positive: {amount}")

        return await self._apply(user_id, amount, transaction_type, description, reference_id)

    async def refund(
        self,
        user_id: UUID,
        amount: int,
        description: str,
        reference_id: UUID | str | None = None,
    ) -> LedgerEntry:
        """Return a previously debited amount."""
        return await self.credit(
            user_id, amount, TransactionType.REFUND, description, reference_id
        )

    async def adjust(self, user_id: UUID, delta: int, description: str) -> LedgerEntry:
        """
        Signed manual adjustment by an administrator.

        Raises:
            ValueError: delta is zero
            InsufficientCreditsError: adjustment would make the balance negative
        """
        if delta == 0:
            raise ValueError("Adjustment delta cannot be zero")

        return await self._apply(user_id, delta, TransactionType.ADJUSTMENT, description, None)

    async def _apply(
        self,
        user_id: UUID,
        delta: int,
        transaction_type: TransactionType,
        description: str,
        reference_id: UUID | str | None,
    ) -> LedgerEntry:
        user = await self._lock_user_for_update(user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        balance_before = user.credits
        balance_after = balance_before + delta

        if balance_after < 0:
            metrics.insufficient_credit_total.inc()
            logger.info(
                "credits_insufficient",
                user_id=str(user_id),
                balance=balance_before,
                required=-delta,
                transaction_type=transaction_type.value,
            )
            raise InsufficientCreditsError(balance_before, -delta)

        transaction = CreditTransaction(
            id=uuid4(),
            user_id=user.id,
            transaction_type=transaction_type,
            delta=delta,
            balance_before=balance_before,
            balance_after=balance_after,
            description=description,
            reference_id=str(reference_id) if reference_id is not None else None,
        )
        self.session.add(transaction)

        user.credits = balance_after
        await self.session.flush()

        # Re-read the stored balance
        await self.session.refresh(user, attribute_names=["credits"])
        if user.credits != balance_after:
            raise DataIntegrityError(
                f"Credits mismatch: expected {balance_after}, got {user.credits}"
            )

        metrics.record_credit_mutation(transaction_type.value, delta)
        logger.info(
            "credits_mutated",
            user_id=str(user_id),
            transaction_type=transaction_type.value,
            delta=delta,
            balance_before=balance_before,
            balance_after=balance_after,
            reference_id=transaction.reference_id,
        )

        return LedgerEntry(
            transaction_id=transaction.id,
            user_id=user.id,
            transaction_type=transaction_type,
            delta=delta,
            balance_before=balance_before,
            balance_after=balance_after,
            reference_id=transaction.reference_id,
        )

    async def _lock_user_for_update(self, user_id: UUID) -> User | None:
        """Lock user row for update (SELECT FOR UPDATE)."""
        stmt = select(User).where(User.id == user_id).with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
