"""
Tests for CreditLedger.

Balance mutations, the transaction log and the non-negative invariant.
"""

from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from sqlalchemy.ext.asyncio import AsyncSession

from photoforge.db.models import CreditTransaction
from photoforge.exceptions import DataIntegrityError, InsufficientCreditsError, UserNotFoundError
from photoforge.models.api import TransactionType
from photoforge.services.ledger import CreditLedger
from tests.factories import added_objects, create_mock_user, make_result


def _session_for(user: MagicMock | None) -> AsyncMock:
    session = AsyncMock(spec=AsyncSession)
    session.add = MagicMock()
    session.flush = AsyncMock()
    session.execute = AsyncMock(return_value=make_result(scalar=user))
    return session


class TestDebit:
    """Tests for debiting crystals."""

    async def test_debit_reduces_balance_and_logs_transaction(self) -> None:
        user = create_mock_user(credits=30)
        session = _session_for(user)
        reference = uuid4()

        entry = await CreditLedger(session).debit(
            user.id, 12, TransactionType.GENERATION_CHARGE, "Generation", reference_id=reference
        )

        assert user.credits == 18
        assert entry.delta == -12
        assert entry.balance_before == 30
        assert entry.balance_after == 18
        assert entry.reference_id == str(reference)

        [transaction] = added_objects(session, CreditTransaction)
        assert transaction.delta == -12
        assert transaction.balance_before == 30
        assert transaction.balance_after == 18
        assert transaction.transaction_type == TransactionType.GENERATION_CHARGE
        assert transaction.id == entry.transaction_id
        session.flush.assert_awaited_once()

    async def test_debit_exact_balance_reaches_zero(self) -> None:
        user = create_mock_user(credits=3)
        session = _session_for(user)

        entry = await CreditLedger(session).debit(
            user.id, 3, TransactionType.GENERATION_CHARGE, "Generation"
        )

        assert entry.balance_after == 0
        assert user.credits == 0

    async def test_debit_insufficient_writes_nothing(self) -> None:
        user = create_mock_user(credits=2)
        session = _session_for(user)

        with pytest.raises(InsufficientCreditsError) as exc_info:
            await CreditLedger(session).debit(
                user.id, 3, TransactionType.GENERATION_CHARGE, "Generation"
            )

        assert exc_info.value.balance == 2
        assert exc_info.value.required == 3
        assert user.credits == 2
        session.add.assert_not_called()
        session.flush.assert_not_awaited()

    async def test_debit_unknown_user(self) -> None:
        session = _session_for(None)

        with pytest.raises(UserNotFoundError):
            await CreditLedger(session).debit(
                uuid4(), 3, TransactionType.GENERATION_CHARGE, "Generation"
            )

    async def test_debit_rereads_stored_balance(self) -> None:
        user = create_mock_user(credits=30)
        session = _session_for(user)

        await CreditLedger(session).debit(user.id, 12, TransactionType.GENERATION_CHARGE, "Gen")

        session.refresh.assert_awaited_once_with(user, attribute_names=["credits"])

    async def test_debit_stored_balance_mismatch(self) -> None:
        user = create_mock_user(credits=30)
        session = _session_for(user)

        async def stale_refresh(instance, attribute_names=None):
            instance.credits = 30

        session.refresh = AsyncMock(side_effect=stale_refresh)

        with pytest.raises(DataIntegrityError, match="expected 18, got 30"):
            await CreditLedger(session).debit(
                user.id, 12, TransactionType.GENERATION_CHARGE, "Generation"
            )

    @pytest.mark.parametrize("amount", [0, -5])
    async def test_debit_rejects_non_positive_amount(self, amount: int) -> None:
        session = _session_for(create_mock_user())

        with pytest.raises(ValueError, match="positive"):
            await CreditLedger(session).debit(
                uuid4(), amount, TransactionType.GENERATION_CHARGE, "Generation"
            )
        session.execute.assert_not_awaited()


class TestCreditAndRefund:
    """Tests for adding crystals."""

    async def test_credit_purchase(self) -> None:
        user = create_mock_user(credits=5)
        session = _session_for(user)

        entry = await CreditLedger(session).credit(
            user.id, 200, TransactionType.PURCHASE, "Kaspi payment"
        )

        assert entry.balance_after == 205
        assert user.credits == 205

    async def test_refund_uses_refund_type(self) -> None:
        user = create_mock_user(credits=18)
        session = _session_for(user)

        entry = await CreditLedger(session).refund(user.id, 12, "Refund")

        assert entry.transaction_type == TransactionType.REFUND
        assert entry.balance_after == 30

    async def test_credit_rejects_zero(self) -> None:
        session = _session_for(create_mock_user())

        with pytest.raises(ValueError):
            await CreditLedger(session).credit(uuid4(), 0, TransactionType.PURCHASE, "x")


class TestAdjust:
    """Tests for admin adjustments."""

    async def test_negative_adjustment(self) -> None:
        user = create_mock_user(credits=40)
        session = _session_for(user)

        entry = await CreditLedger(session).adjust(user.id, -15, "Correction")

        assert entry.transaction_type == TransactionType.ADJUSTMENT
        assert entry.balance_after == 25

    async def test_adjustment_below_zero_rejected(self) -> None:
        user = create_mock_user(credits=10)
        session = _session_for(user)

        with pytest.raises(InsufficientCreditsError):
            await CreditLedger(session).adjust(user.id, -11, "Correction")
        assert user.credits == 10

    async def test_zero_adjustment_rejected(self) -> None:
        session = _session_for(create_mock_user())

        with pytest.raises(ValueError, match="zero"):
            await CreditLedger(session).adjust(uuid4(), 0, "Nothing")


class TestLedgerProperties:
    """Property-based checks of the balance invariant."""

    @given(
        balance=st.integers(min_value=0, max_value=100_000),
        amount=st.integers(min_value=1, max_value=100_000),
    )
    @settings(max_examples=50, deadline=None)
    async def test_debit_never_goes_negative(self, balance: int, amount: int) -> None:
        user = create_mock_user(credits=balance)
        session = _session_for(user)

        if amount > balance:
            with pytest.raises(InsufficientCreditsError):
                await CreditLedger(session).debit(
                    user.id, amount, TransactionType.GENERATION_CHARGE, "Generation"
                )
            assert user.credits == balance
        else:
            entry = await CreditLedger(session).debit(
                user.id, amount, TransactionType.GENERATION_CHARGE, "Generation"
            )
            assert entry.balance_after == balance - amount
            assert user.credits >= 0

    @given(
        balance=st.integers(min_value=0, max_value=10_000),
        amount=st.integers(min_value=1, max_value=10_000),
    )
    @settings(max_examples=50, deadline=None)
    async def test_debit_then_refund_restores_balance(self, balance: int, amount: int) -> None:
        user = create_mock_user(credits=balance + amount)
        session = _session_for(user)
        ledger = CreditLedger(session)

        await ledger.debit(user.id, amount, TransactionType.TRAINING_CHARGE, "Training")
        await ledger.refund(user.id, amount, "Refund")

        assert user.credits == balance + amount
        transactions = added_objects(session, CreditTransaction)
        assert sum(t.delta for t in transactions) == 0
