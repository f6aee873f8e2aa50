"""
API Routes - FastAPI endpoints for the single-page client.

Ownership violations answer 404 so existence is not leaked; the services log
them separately from genuine misses.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from photoforge.api.dependencies import (
    get_current_user,
    get_job_dispatcher,
    get_payment_workflow,
    verify_google_token,
)
from photoforge.db.models import User
from photoforge.db.session import get_db
from photoforge.exceptions import (
    AuthenticationError,
    ExternalProviderError,
    InsufficientCreditsError,
    InvalidPaymentTransitionError,
    ModelNotReadyError,
    OwnershipError,
    PaymentsDisabledError,
    ResourceNotFoundError,
)
from photoforge.models.api import (
    AuthResponse,
    CreatePaymentRequest,
    GenerationListResponse,
    GenerationRequest,
    GenerationResponse,
    GenerationSubmitResponse,
    GoogleAuthRequest,
    ModelListResponse,
    PaymentActor,
    PaymentEnvelope,
    PaymentListResponse,
    PaymentResponse,
    PublicSettingsResponse,
    SuccessResponse,
    TrainedModelResponse,
    TrainingRequest,
    TrainingSubmitResponse,
    UserResponse,
)
from photoforge.models.domain import GenerationIntent, TrainingIntent
from photoforge.services.app_settings import AppSettingsService
from photoforge.services.jobs import JobDispatcher
from photoforge.services.payments import PaymentWorkflow
from photoforge.services.users import UserService

router = APIRouter(prefix="/api")


def _invalid_request(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _insufficient(exc: InsufficientCreditsError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_402_PAYMENT_REQUIRED,
        detail=f"Insufficient credits. Balance: {exc.balance}, Required: {exc.required}",
    )


def _provider_failure(exc: ExternalProviderError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail="Generation service is unavailable, credits were refunded",
    )


# =============================================================================
# Auth / User
# =============================================================================


@router.post("/auth/google", response_model=AuthResponse)
async def google_auth(
    request: GoogleAuthRequest,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """
    Sign in with a Google ID token.

    First sign-in registers the user with the signup bonus.
    """
    try:
        claims = verify_google_token(request.token)
    except AuthenticationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.message,
        ) from exc

    user = await UserService(db).get_or_create(claims)
    return AuthResponse(user=UserResponse.model_validate(user))


@router.get("/user/me", response_model=AuthResponse)
async def get_me(user: User = Depends(get_current_user)) -> AuthResponse:
    """Current user profile and crystal balance."""
    return AuthResponse(user=UserResponse.model_validate(user))


# =============================================================================
# Generations
# =============================================================================


@router.post(
    "/generations",
    response_model=GenerationSubmitResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_generation(
    request: GenerationRequest,
    user: User = Depends(get_current_user),
    dispatcher: JobDispatcher = Depends(get_job_dispatcher),
) -> GenerationSubmitResponse:
    """
    Start a generation.

    Costs 3 crystals per requested image, debited up front and refunded if
    the provider rejects the dispatch. Images arrive later via webhook;
    the client polls GET /api/generations.
    """
    try:
        intent = GenerationIntent(
            prompt=request.prompt,
            model_ref=request.model_id,
            aspect_ratio=request.aspect_ratio,
            num_images=request.num_images,
            style_image_url=request.style_image_url,
            super_resolution=request.super_resolution,
            film_grain=request.film_grain,
            inpaint_faces=request.inpaint_faces,
        )
    except ValueError as exc:
        raise _invalid_request(exc) from exc

    try:
        submission = await dispatcher.submit_generation(user.id, intent)
    except (ResourceNotFoundError, OwnershipError) as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Model not found",
        ) from exc
    except ModelNotReadyError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Model is not ready (status: {exc.status})",
        ) from exc
    except InsufficientCreditsError as exc:
        raise _insufficient(exc) from exc
    except ExternalProviderError as exc:
        raise _provider_failure(exc) from exc

    return GenerationSubmitResponse(
        generation=GenerationResponse.model_validate(submission.generation),
        credits_remaining=submission.credits_remaining,
    )


@router.get("/generations", response_model=GenerationListResponse)
async def list_generations(
    user: User = Depends(get_current_user),
    dispatcher: JobDispatcher = Depends(get_job_dispatcher),
) -> GenerationListResponse:
    """Latest generations, newest first."""
    generations = await dispatcher.list_generations(user.id)
    return GenerationListResponse(
        generations=[GenerationResponse.model_validate(g) for g in generations]
    )


@router.delete("/generations/{generation_id}", response_model=SuccessResponse)
async def delete_generation(
    generation_id: UUID,
    user: User = Depends(get_current_user),
    dispatcher: JobDispatcher = Depends(get_job_dispatcher),
) -> SuccessResponse:
    """Delete one of the user's generations."""
    try:
        await dispatcher.delete_generation(user.id, generation_id)
    except (ResourceNotFoundError, OwnershipError) as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Generation not found",
        ) from exc
    return SuccessResponse()


# =============================================================================
# Trained Models
# =============================================================================


@router.post(
    "/models",
    response_model=TrainingSubmitResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_training(
    request: TrainingRequest,
    user: User = Depends(get_current_user),
    dispatcher: JobDispatcher = Depends(get_job_dispatcher),
) -> TrainingSubmitResponse:
    """
    Train a personal model from already-uploaded photos.

    Costs a flat 50 crystals; refunded if the provider rejects the dispatch.
    """
    try:
        intent = TrainingIntent(
            name=request.name,
            subject_class=request.subject_class,
            image_urls=tuple(request.image_urls),
        )
    except ValueError as exc:
        raise _invalid_request(exc) from exc

    try:
        submission = await dispatcher.submit_training(user.id, intent)
    except InsufficientCreditsError as exc:
        raise _insufficient(exc) from exc
    except ExternalProviderError as exc:
        raise _provider_failure(exc) from exc

    return TrainingSubmitResponse(
        model=TrainedModelResponse.model_validate(submission.model),
        credits_remaining=submission.credits_remaining,
    )


@router.get("/models", response_model=ModelListResponse)
async def list_models(
    user: User = Depends(get_current_user),
    dispatcher: JobDispatcher = Depends(get_job_dispatcher),
) -> ModelListResponse:
    """The user's trained models, newest first."""
    models = await dispatcher.list_models(user.id)
    return ModelListResponse(models=[TrainedModelResponse.model_validate(m) for m in models])


@router.delete("/models/{model_id}", response_model=SuccessResponse)
async def delete_model(
    model_id: UUID,
    user: User = Depends(get_current_user),
    dispatcher: JobDispatcher = Depends(get_job_dispatcher),
) -> SuccessResponse:
    """Delete one of the user's trained models."""
    try:
        await dispatcher.delete_model(user.id, model_id)
    except (ResourceNotFoundError, OwnershipError) as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Model not found",
        ) from exc
    return SuccessResponse()


# =============================================================================
# Payments
# =============================================================================


@router.post(
    "/payments",
    response_model=PaymentEnvelope,
    status_code=status.HTTP_201_CREATED,
)
async def create_payment(
    request: CreatePaymentRequest,
    user: User = Depends(get_current_user),
    workflow: PaymentWorkflow = Depends(get_payment_workflow),
) -> PaymentEnvelope:
    """Open a Kaspi payment request; the administrator is notified."""
    try:
        payment = await workflow.create(
            user_id=user.id,
            amount=request.amount,
            crystals=request.crystals,
            payer_phone=request.payer_phone.strip(),
            payer_name=request.payer_name.strip(),
        )
    except PaymentsDisabledError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payments are temporarily disabled",
        ) from exc

    return PaymentEnvelope(payment=PaymentResponse.model_validate(payment))


@router.post("/payments/{payment_id}/mark-paid", response_model=PaymentEnvelope)
async def mark_payment_paid(
    payment_id: UUID,
    user: User = Depends(get_current_user),
    workflow: PaymentWorkflow = Depends(get_payment_workflow),
) -> PaymentEnvelope:
    """User reports the transfer as sent."""
    try:
        payment = await workflow.mark_paid(payment_id, PaymentActor.USER, user_id=user.id)
    except (ResourceNotFoundError, OwnershipError) as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Payment not found",
        ) from exc
    except InvalidPaymentTransitionError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Payment is already {exc.current}",
        ) from exc

    return PaymentEnvelope(payment=PaymentResponse.model_validate(payment))


@router.get("/payments", response_model=PaymentListResponse)
async def list_my_payments(
    user: User = Depends(get_current_user),
    workflow: PaymentWorkflow = Depends(get_payment_workflow),
) -> PaymentListResponse:
    """The user's payment requests, newest first."""
    payments = await workflow.list_for_user(user.id)
    return PaymentListResponse(payments=[PaymentResponse.model_validate(p) for p in payments])


@router.get("/settings/public", response_model=PublicSettingsResponse)
async def public_settings(db: AsyncSession = Depends(get_db)) -> PublicSettingsResponse:
    """Runtime switches the client needs before login."""
    enabled = await AppSettingsService(db).payments_enabled()
    return PublicSettingsResponse(payments_enabled=enabled)
