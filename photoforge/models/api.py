"""
API Models - Pydantic models for request/response validation.

Every response body carries ``success`` so the single-page client can branch
on one flag; errors are rendered by the handlers in ``photoforge.main``.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GenerationStatus(str, Enum):
    """Generation lifecycle status."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ModelStatus(str, Enum):
    """Trained model lifecycle status."""

    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class SubjectClass(str, Enum):
    """Subject a model is trained on; prefixes generation prompts."""

    MAN = "man"
    WOMAN = "woman"
    PERSON = "person"


class PaymentStatus(str, Enum):
    """Manual payment request status."""

    PENDING = "pending"
    PAID = "paid"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class PaymentActor(str, Enum):
    """Who moved a payment request from pending to paid."""

    USER = "user"  # "I have sent the money"
    ADMIN = "admin"  # "I have sent the invoice"


class TransactionType(str, Enum):
    """Credit ledger transaction type."""

    GENERATION_CHARGE = "generation_charge"
    TRAINING_CHARGE = "training_charge"
    REFUND = "refund"
    PURCHASE = "purchase"
    ADJUSTMENT = "adjustment"
    SIGNUP_BONUS = "signup_bonus"


DEMO_MODEL_REF = "demo"

ASPECT_RATIOS = ("1:1", "2:3", "3:2", "3:4", "4:3", "9:16", "16:9")


# ============================================================================
# Auth / User Models
# ============================================================================


class GoogleAuthRequest(BaseModel):
    """POST /api/auth/google request body."""

    token: str = Field(..., min_length=1, description="Google ID token")


class UserResponse(BaseModel):
    """Public user profile."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    name: str
    picture_url: str | None = None
    credits: int
    created_at: datetime


class AuthResponse(BaseModel):
    """POST /api/auth/google and GET /api/user/me response."""

    success: bool = True
    user: UserResponse


# ============================================================================
# Generation Models
# ============================================================================


class GenerationRequest(BaseModel):
    """POST /api/generations request body."""

    model_config = ConfigDict(protected_namespaces=())

    prompt: str = Field(..., min_length=1, max_length=2000)
    model_id: str = Field(
        DEMO_MODEL_REF,
        min_length=1,
        max_length=64,
        description='Trained model id, or "demo" for the shared base model',
    )
    aspect_ratio: str = Field("2:3")
    num_images: int = Field(1, ge=1, le=32, description="Images requested (billed per image)")
    style_image_url: str | None = Field(None, max_length=2048)
    super_resolution: bool = True
    film_grain: bool = False
    inpaint_faces: bool = False

    @field_validator("aspect_ratio")
    @classmethod
    def validate_aspect_ratio(cls, v: str) -> str:
        """Only ratios the provider accepts."""
        if v not in ASPECT_RATIOS:
            raise ValueError(f"aspect_ratio must be one of {', '.join(ASPECT_RATIOS)}")
        return v

    @field_validator("prompt")
    @classmethod
    def validate_prompt(cls, v: str) -> str:
        """Reject whitespace-only prompts."""
        if not v.strip():
            raise ValueError("prompt cannot be blank")
        return v.strip()


class GenerationResponse(BaseModel):
    """Single generation record."""

    model_config = ConfigDict(from_attributes=True, protected_namespaces=())

    id: UUID
    prompt: str
    original_prompt: str | None = None
    image_url: str
    status: GenerationStatus
    aspect_ratio: str
    model_ref: str
    model_name: str
    created_at: datetime
    completed_at: datetime | None = None


class GenerationSubmitResponse(BaseModel):
    """POST /api/generations response."""

    success: bool = True
    generation: GenerationResponse
    credits_remaining: int


class GenerationListResponse(BaseModel):
    """GET /api/generations response."""

    success: bool = True
    generations: list[GenerationResponse]


# ============================================================================
# Trained Model Models
# ============================================================================


class TrainingRequest(BaseModel):
    """POST /api/models request body."""

    name: str = Field(..., min_length=1, max_length=100)
    subject_class: SubjectClass = SubjectClass.PERSON
    image_urls: list[str] = Field(..., min_length=1, max_length=30)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Reject whitespace-only names."""
        if not v.strip():
            raise ValueError("name cannot be blank")
        return v.strip()

    @field_validator("image_urls")
    @classmethod
    def validate_image_urls(cls, v: list[str]) -> list[str]:
        """Training images must be absolute http(s) URLs."""
        for url in v:
            if not url.startswith(("http://", "https://")):
                raise ValueError(f"image url must be http(s): {url[:50]}")
        return v


class TrainedModelResponse(BaseModel):
    """Single trained model record."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    subject_class: SubjectClass
    status: ModelStatus
    training_images: list[str]
    thumbnail_url: str | None = None
    created_at: datetime
    completed_at: datetime | None = None


class TrainingSubmitResponse(BaseModel):
    """POST /api/models response."""

    success: bool = True
    model: TrainedModelResponse
    credits_remaining: int


class ModelListResponse(BaseModel):
    """GET /api/models response."""

    success: bool = True
    models: list[TrainedModelResponse]


# ============================================================================
# Payment Models
# ============================================================================


class CreatePaymentRequest(BaseModel):
    """POST /api/payments request body."""

    amount: int = Field(..., gt=0, description="Transfer amount in tenge")
    crystals: int = Field(..., gt=0, description="Crystals purchased")
    payer_phone: str = Field(..., min_length=5, max_length=32)
    payer_name: str = Field(..., min_length=1, max_length=255)


class RejectPaymentRequest(BaseModel):
    """POST /admin/payments/{id}/reject request body."""

    note: str | None = Field(None, max_length=1000)


class PaymentResponse(BaseModel):
    """Single payment request record."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    amount: int
    crystals: int
    payer_phone: str
    payer_name: str
    status: PaymentStatus
    paid_marked_by: PaymentActor | None = None
    created_at: datetime
    paid_at: datetime | None = None
    confirmed_at: datetime | None = None
    rejected_at: datetime | None = None
    admin_note: str | None = None


class PaymentEnvelope(BaseModel):
    """Response wrapping a single payment request."""

    success: bool = True
    payment: PaymentResponse


class PaymentListResponse(BaseModel):
    """Response wrapping a list of payment requests."""

    success: bool = True
    payments: list[PaymentResponse]


class ConfirmPaymentResponse(BaseModel):
    """POST /admin/payments/{id}/confirm response."""

    success: bool = True
    payment: PaymentResponse
    user_credits: int


# ============================================================================
# Settings / Admin Models
# ============================================================================


class PublicSettingsResponse(BaseModel):
    """GET /api/settings/public response."""

    success: bool = True
    payments_enabled: bool


class PaymentsToggleRequest(BaseModel):
    """PUT /admin/settings/payments request body."""

    enabled: bool


class AdminLoginRequest(BaseModel):
    """POST /admin/login request body."""

    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=255)


class AdminLoginResponse(BaseModel):
    """POST /admin/login response."""

    success: bool = True
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class CreditAdjustmentRequest(BaseModel):
    """POST /admin/users/{id}/credits request body."""

    delta: int = Field(..., description="Signed crystal adjustment")
    description: str = Field("Manual adjustment", min_length=1, max_length=255)

    @field_validator("delta")
    @classmethod
    def validate_delta(cls, v: int) -> int:
        """Zero adjustments are meaningless."""
        if v == 0:
            raise ValueError("delta cannot be zero")
        return v


class CreditAdjustmentResponse(BaseModel):
    """POST /admin/users/{id}/credits response."""

    success: bool = True
    user_id: UUID
    credits: int


class AdminUserListResponse(BaseModel):
    """GET /admin/users response."""

    success: bool = True
    users: list[UserResponse]


class AdminStatsResponse(BaseModel):
    """GET /admin/stats response."""

    success: bool = True
    total_users: int
    total_payments: int
    pending_payments: int
    paid_payments: int
    confirmed_payments: int
    rejected_payments: int
    total_crystals_sold: int
    total_revenue: int
    processing_generations: int


class SuccessResponse(BaseModel):
    """Bare success acknowledgement."""

    success: bool = True


class WebhookAck(BaseModel):
    """Provider webhook acknowledgement; always returned."""

    received: bool = True


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str
    timestamp: datetime
