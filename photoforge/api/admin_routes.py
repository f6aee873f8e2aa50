"""
Admin API routes for the payment queue, users and runtime settings.

Protected by JWT authentication issued by POST /admin/login.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from photoforge.api.admin_dependencies import get_admin_auth_service, get_current_admin
from photoforge.api.dependencies import get_payment_workflow
from photoforge.db.models import Generation, User
from photoforge.db.session import get_db
from photoforge.exceptions import (
    AuthenticationError,
    InsufficientCreditsError,
    InvalidPaymentTransitionError,
    ResourceNotFoundError,
)
from photoforge.models.api import (
    AdminLoginRequest,
    AdminLoginResponse,
    AdminStatsResponse,
    AdminUserListResponse,
    ConfirmPaymentResponse,
    CreditAdjustmentRequest,
    CreditAdjustmentResponse,
    GenerationStatus,
    PaymentActor,
    PaymentEnvelope,
    PaymentListResponse,
    PaymentResponse,
    PaymentStatus,
    PaymentsToggleRequest,
    PublicSettingsResponse,
    RejectPaymentRequest,
    SuccessResponse,
    UserResponse,
)
from photoforge.models.domain import AdminPrincipal
from photoforge.services.admin_auth import AdminAuthService
from photoforge.services.app_settings import PAYMENTS_ENABLED, AppSettingsService
from photoforge.services.ledger import CreditLedger
from photoforge.services.payments import PaymentWorkflow
from photoforge.services.users import UserService

logger = get_logger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])


def _payment_not_found(exc: ResourceNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found")


def _invalid_transition(exc: InvalidPaymentTransitionError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=f"Payment cannot move from {exc.current} to {exc.requested}",
    )


# ============================================================================
# Session
# ============================================================================


@router.post("/login", response_model=AdminLoginResponse)
async def admin_login(
    request: AdminLoginRequest,
    response: Response,
    auth_service: AdminAuthService = Depends(get_admin_auth_service),
) -> AdminLoginResponse:
    """Exchange admin credentials for a JWT (also set as the admin_token cookie)."""
    try:
        admin = auth_service.authenticate(request.email, request.password)
    except AuthenticationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.message,
        ) from exc

    access_token = auth_service.create_jwt_token(admin)
    response.set_cookie(
        key="admin_token",
        value=access_token,
        httponly=True,
        secure=True,
        samesite="lax",
        max_age=auth_service.expires_in_seconds,
    )

    return AdminLoginResponse(
        access_token=access_token,
        expires_in=auth_service.expires_in_seconds,
    )


@router.post("/logout", response_model=SuccessResponse)
async def admin_logout(response: Response) -> SuccessResponse:
    """Clear the admin_token cookie."""
    response.delete_cookie(key="admin_token")
    logger.info("admin_logout")
    return SuccessResponse()


# ============================================================================
# Dashboard / Users
# ============================================================================


@router.get("/stats", response_model=AdminStatsResponse)
async def get_stats(
    db: AsyncSession = Depends(get_db),
    workflow: PaymentWorkflow = Depends(get_payment_workflow),
    admin: AdminPrincipal = Depends(get_current_admin),
) -> AdminStatsResponse:
    """User, payment and in-flight generation counters."""
    total_users = (await db.execute(select(func.count(User.id)))).scalar() or 0
    processing = (
        await db.execute(
            select(func.count(Generation.id)).where(
                Generation.status == GenerationStatus.PROCESSING
            )
        )
    ).scalar() or 0
    payment_stats = await workflow.stats()

    return AdminStatsResponse(
        total_users=total_users,
        processing_generations=processing,
        **payment_stats,
    )


@router.get("/users", response_model=AdminUserListResponse)
async def list_users(
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    admin: AdminPrincipal = Depends(get_current_admin),
) -> AdminUserListResponse:
    """Newest users first."""
    users = await UserService(db).list_users(limit=limit)
    return AdminUserListResponse(users=[UserResponse.model_validate(u) for u in users])


@router.post("/users/{user_id}/credits", response_model=CreditAdjustmentResponse)
async def adjust_user_credits(
    user_id: UUID,
    request: CreditAdjustmentRequest,
    db: AsyncSession = Depends(get_db),
    admin: AdminPrincipal = Depends(get_current_admin),
) -> CreditAdjustmentResponse:
    """Signed manual crystal adjustment; cannot take a balance below zero."""
    try:
        entry = await CreditLedger(db).adjust(user_id, request.delta, request.description)
    except ResourceNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        ) from exc
    except InsufficientCreditsError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Adjustment would make balance negative. Balance: {exc.balance}",
        ) from exc
    await db.commit()

    logger.info(
        "admin_credits_adjusted",
        admin=admin.email,
        user_id=str(user_id),
        delta=request.delta,
        balance_after=entry.balance_after,
    )
    return CreditAdjustmentResponse(user_id=user_id, credits=entry.balance_after)


# ============================================================================
# Payments
# ============================================================================


@router.get("/payments", response_model=PaymentListResponse)
async def list_payments(
    payment_status: PaymentStatus | None = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=1000),
    workflow: PaymentWorkflow = Depends(get_payment_workflow),
    admin: AdminPrincipal = Depends(get_current_admin),
) -> PaymentListResponse:
    """Payment requests, newest first, optionally filtered by status."""
    payments = await workflow.list_all(status=payment_status, limit=limit)
    return PaymentListResponse(payments=[PaymentResponse.model_validate(p) for p in payments])


@router.get("/payments/next", response_model=PaymentEnvelope)
async def next_payment(
    workflow: PaymentWorkflow = Depends(get_payment_workflow),
    admin: AdminPrincipal = Depends(get_current_admin),
) -> PaymentEnvelope:
    """Oldest paid request awaiting confirmation."""
    payment = await workflow.next_paid()
    if payment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No payments awaiting confirmation",
        )
    return PaymentEnvelope(payment=PaymentResponse.model_validate(payment))


@router.post("/payments/{payment_id}/mark-sent", response_model=PaymentEnvelope)
async def mark_invoice_sent(
    payment_id: UUID,
    workflow: PaymentWorkflow = Depends(get_payment_workflow),
    admin: AdminPrincipal = Depends(get_current_admin),
) -> PaymentEnvelope:
    """Admin reports the invoice as sent (pending -> paid)."""
    try:
        payment = await workflow.mark_paid(payment_id, PaymentActor.ADMIN)
    except ResourceNotFoundError as exc:
        raise _payment_not_found(exc) from exc
    except InvalidPaymentTransitionError as exc:
        raise _invalid_transition(exc) from exc
    return PaymentEnvelope(payment=PaymentResponse.model_validate(payment))


@router.post("/payments/{payment_id}/confirm", response_model=ConfirmPaymentResponse)
async def confirm_payment(
    payment_id: UUID,
    workflow: PaymentWorkflow = Depends(get_payment_workflow),
    admin: AdminPrincipal = Depends(get_current_admin),
) -> ConfirmPaymentResponse:
    """Confirm a paid request and grant its crystals."""
    try:
        payment, user_credits = await workflow.confirm(payment_id)
    except ResourceNotFoundError as exc:
        raise _payment_not_found(exc) from exc
    except InvalidPaymentTransitionError as exc:
        raise _invalid_transition(exc) from exc

    logger.info("admin_payment_confirmed", admin=admin.email, payment_id=str(payment_id))
    return ConfirmPaymentResponse(
        payment=PaymentResponse.model_validate(payment),
        user_credits=user_credits,
    )


@router.post("/payments/{payment_id}/reject", response_model=PaymentEnvelope)
async def reject_payment(
    payment_id: UUID,
    request: RejectPaymentRequest | None = None,
    workflow: PaymentWorkflow = Depends(get_payment_workflow),
    admin: AdminPrincipal = Depends(get_current_admin),
) -> PaymentEnvelope:
    """Reject a pending or paid request, optionally with a note."""
    note = request.note if request else None
    try:
        payment = await workflow.reject(payment_id, note=note)
    except ResourceNotFoundError as exc:
        raise _payment_not_found(exc) from exc
    except InvalidPaymentTransitionError as exc:
        raise _invalid_transition(exc) from exc

    logger.info("admin_payment_rejected", admin=admin.email, payment_id=str(payment_id))
    return PaymentEnvelope(payment=PaymentResponse.model_validate(payment))


@router.delete("/payments/{payment_id}", response_model=SuccessResponse)
async def delete_payment(
    payment_id: UUID,
    workflow: PaymentWorkflow = Depends(get_payment_workflow),
    admin: AdminPrincipal = Depends(get_current_admin),
) -> SuccessResponse:
    """Permanently remove a non-terminal request."""
    try:
        await workflow.delete(payment_id)
    except ResourceNotFoundError as exc:
        raise _payment_not_found(exc) from exc
    except InvalidPaymentTransitionError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot delete a {exc.current} payment",
        ) from exc

    logger.info("admin_payment_deleted", admin=admin.email, payment_id=str(payment_id))
    return SuccessResponse()


# ============================================================================
# Settings
# ============================================================================


@router.get("/settings", response_model=PublicSettingsResponse)
async def get_settings(
    db: AsyncSession = Depends(get_db),
    admin: AdminPrincipal = Depends(get_current_admin),
) -> PublicSettingsResponse:
    """Current runtime switches."""
    enabled = await AppSettingsService(db).payments_enabled()
    return PublicSettingsResponse(payments_enabled=enabled)


@router.put("/settings/payments", response_model=PublicSettingsResponse)
async def toggle_payments(
    request: PaymentsToggleRequest,
    db: AsyncSession = Depends(get_db),
    admin: AdminPrincipal = Depends(get_current_admin),
) -> PublicSettingsResponse:
    """Switch payment request creation on or off for every instance."""
    await AppSettingsService(db).set_bool(PAYMENTS_ENABLED, request.enabled)
    await db.commit()

    logger.info("admin_payments_toggled", admin=admin.email, enabled=request.enabled)
    return PublicSettingsResponse(payments_enabled=request.enabled)
