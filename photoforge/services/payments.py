"""
Payment Workflow - Manual Kaspi transfer requests approved by an administrator.

State machine:
    pending -> paid | rejected
    paid    -> confirmed | rejected
    confirmed, rejected are terminal

Credits are granted on paid -> confirmed only, inside the same transaction
that records the confirmation.
"""

from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from photoforge.config import settings
from photoforge.db.models import PaymentRequest, utc_now
from photoforge.exceptions import (
    InvalidPaymentTransitionError,
    OwnershipError,
    PaymentsDisabledError,
    ResourceNotFoundError,
)
from photoforge.models.api import PaymentActor, PaymentStatus, TransactionType
from photoforge.observability.metrics import metrics
from photoforge.services.app_settings import AppSettingsService
from photoforge.services.ledger import CreditLedger
from photoforge.services.notifications import NotificationRelay

logger = get_logger(__name__)

ALLOWED_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.REJECTED}),
    PaymentStatus.PAID: frozenset({PaymentStatus.CONFIRMED, PaymentStatus.REJECTED}),
    PaymentStatus.CONFIRMED: frozenset(),
    PaymentStatus.REJECTED: frozenset(),
}

TERMINAL_STATUSES = frozenset({PaymentStatus.CONFIRMED, PaymentStatus.REJECTED})


def can_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class PaymentWorkflow:
    """Create and advance payment requests."""

    def __init__(
        self,
        session: AsyncSession,
        notifier: NotificationRelay,
        app_settings: AppSettingsService | None = None,
    ) -> None:
        self.session = session
        self.notifier = notifier
        self.app_settings = app_settings or AppSettingsService(session)
        self.ledger = CreditLedger(session)

    async def create(
        self,
        user_id: UUID,
        amount: int,
        crystals: int,
        payer_phone: str,
        payer_name: str,
    ) -> PaymentRequest:
        """
        Open a pending request and alert the administrator.

        Raises:
            PaymentsDisabledError: payments are switched off
        """
        if not await self.app_settings.payments_enabled():
            logger.info("payment_create_disabled", user_id=str(user_id))
            raise PaymentsDisabledError()

        payment = PaymentRequest(
            id=uuid4(),
            user_id=user_id,
            amount=amount,
            crystals=crystals,
            payer_phone=payer_phone,
            payer_name=payer_name,
            status=PaymentStatus.PENDING,
            created_at=utc_now(),
        )
        self.session.add(payment)
        await self.session.commit()

        metrics.payment_transitions_total.labels(to_status=PaymentStatus.PENDING.value).inc()
        logger.info(
            "payment_created",
            payment_id=str(payment.id),
            user_id=str(user_id),
            amount=amount,
            crystals=crystals,
        )

        await self.notifier.notify_new_payment_request(payment)
        return payment

    async def mark_paid(
        self, payment_id: UUID, actor: PaymentActor, user_id: UUID | None = None
    ) -> PaymentRequest:
        """
        Move pending -> paid.

        ``actor`` is the user ("money sent") or the admin ("invoice sent").
        A user may only mark their own request.

        Raises:
            ResourceNotFoundError: unknown payment
            OwnershipError: user actor doesn't own the request
            InvalidPaymentTransitionError: request is not pending
        """
        payment = await self._lock_payment(payment_id)
        if actor == PaymentActor.USER and payment.user_id != user_id:
            logger.warning(
                "payment_mark_paid_forbidden",
                payment_id=str(payment_id),
                user_id=str(user_id),
                owner_id=str(payment.user_id),
            )
            raise OwnershipError("Payment", payment_id, user_id)  # type: ignore[arg-type]

        self._check_transition(payment, PaymentStatus.PAID)

        payment.status = PaymentStatus.PAID
        payment.paid_at = utc_now()
        payment.paid_marked_by = actor
        await self.session.commit()

        metrics.payment_transitions_total.labels(to_status=PaymentStatus.PAID.value).inc()
        logger.info(
            "payment_marked_paid",
            payment_id=str(payment.id),
            user_id=str(payment.user_id),
            actor=actor.value,
        )

        await self.notifier.notify_payment_marked_paid(payment)
        return payment

    async def confirm(self, payment_id: UUID) -> tuple[PaymentRequest, int]:
        """
        Move paid -> confirmed and grant the purchased crystals.

        Returns the payment and the user's new balance.

        Raises:
            ResourceNotFoundError: unknown payment
            InvalidPaymentTransitionError: request is not paid (incl. already confirmed)
        """
        payment = await self._lock_payment(payment_id)
        self._check_transition(payment, PaymentStatus.CONFIRMED)

        payment.status = PaymentStatus.CONFIRMED
        payment.confirmed_at = utc_now()
        entry = await self.ledger.credit(
            payment.user_id,
            payment.crystals,
            TransactionType.PURCHASE,
            f"Kaspi payment {payment.amount} KZT",
            reference_id=payment.id,
        )
        await self.session.commit()

        metrics.payment_transitions_total.labels(to_status=PaymentStatus.CONFIRMED.value).inc()
        logger.info(
            "payment_confirmed",
            payment_id=str(payment.id),
            user_id=str(payment.user_id),
            crystals=payment.crystals,
            balance_after=entry.balance_after,
        )
        return payment, entry.balance_after

    async def reject(self, payment_id: UUID, note: str | None = None) -> PaymentRequest:
        """
        Move pending|paid -> rejected. Grants nothing.

        Raises:
            ResourceNotFoundError: unknown payment
            InvalidPaymentTransitionError: request already terminal
        """
        payment = await self._lock_payment(payment_id)
        self._check_transition(payment, PaymentStatus.REJECTED)

        payment.status = PaymentStatus.REJECTED
        payment.rejected_at = utc_now()
        if note:
            payment.admin_note = note
        await self.session.commit()

        metrics.payment_transitions_total.labels(to_status=PaymentStatus.REJECTED.value).inc()
        logger.info("payment_rejected", payment_id=str(payment.id), user_id=str(payment.user_id))
        return payment

    async def delete(self, payment_id: UUID) -> None:
        """
        Hard-delete a non-terminal request (spam/duplicate cleanup).

        Raises:
            ResourceNotFoundError: unknown payment
            InvalidPaymentTransitionError: request already terminal
        """
        payment = await self._lock_payment(payment_id)
        if payment.status in TERMINAL_STATUSES:
            raise InvalidPaymentTransitionError(payment.id, payment.status.value, "deleted")

        await self.session.delete(payment)
        await self.session.commit()

        logger.info(
            "payment_deleted",
            payment_id=str(payment_id),
            user_id=str(payment.user_id),
            status=payment.status.value,
        )

    # ========================================================================
    # Queries
    # ========================================================================

    async def list_for_user(self, user_id: UUID) -> list[PaymentRequest]:
        """Newest first."""
        stmt = (
            select(PaymentRequest)
            .where(PaymentRequest.user_id == user_id)
            .order_by(PaymentRequest.created_at.desc())
            .limit(settings.list_limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_all(
        self, status: PaymentStatus | None = None, limit: int = 100
    ) -> list[PaymentRequest]:
        """Newest first, optionally filtered by status."""
        stmt = select(PaymentRequest)
        if status is not None:
            stmt = stmt.where(PaymentRequest.status == status)
        stmt = stmt.order_by(PaymentRequest.created_at.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def next_paid(self) -> PaymentRequest | None:
        """Oldest request waiting for confirmation."""
        stmt = (
            select(PaymentRequest)
            .where(PaymentRequest.status == PaymentStatus.PAID)
            .order_by(PaymentRequest.paid_at.asc(), PaymentRequest.created_at.asc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def stats(self) -> dict[str, int]:
        """Counts per status plus confirmed crystals and revenue."""
        stmt = select(
            PaymentRequest.status,
            func.count(PaymentRequest.id),
            func.coalesce(func.sum(PaymentRequest.crystals), 0),
            func.coalesce(func.sum(PaymentRequest.amount), 0),
        ).group_by(PaymentRequest.status)
        result = await self.session.execute(stmt)

        counts = {status: 0 for status in PaymentStatus}
        crystals_sold = 0
        revenue = 0
        for status, count, crystals, amount in result.all():
            counts[PaymentStatus(status)] = int(count)
            if PaymentStatus(status) == PaymentStatus.CONFIRMED:
                crystals_sold = int(crystals)
                revenue = int(amount)

        return {
            "total_payments": sum(counts.values()),
            "pending_payments": counts[PaymentStatus.PENDING],
            "paid_payments": counts[PaymentStatus.PAID],
            "confirmed_payments": counts[PaymentStatus.CONFIRMED],
            "rejected_payments": counts[PaymentStatus.REJECTED],
            "total_crystals_sold": crystals_sold,
            "total_revenue": revenue,
        }

    # ========================================================================
    # Private Helper Methods
    # ========================================================================

    def _check_transition(self, payment: PaymentRequest, target: PaymentStatus) -> None:
        if not can_transition(payment.status, target):
            logger.info(
                "payment_transition_rejected",
                payment_id=str(payment.id),
                current=payment.status.value,
                requested=target.value,
            )
            raise InvalidPaymentTransitionError(payment.id, payment.status.value, target.value)

    async def _lock_payment(self, payment_id: UUID) -> PaymentRequest:
        """Lock payment row for update (SELECT FOR UPDATE)."""
        stmt = select(PaymentRequest).where(PaymentRequest.id == payment_id).with_for_update()
        result = await self.session.execute(stmt)
        payment = result.scalar_one_or_none()
        if payment is None:
            raise ResourceNotFoundError("Payment", payment_id)
        return payment
