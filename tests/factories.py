"""
Mock factories shared by the test modules.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

from photoforge.db.models import Generation, PaymentRequest, TrainedModel, User
from photoforge.models.api import (
    DEMO_MODEL_REF,
    GenerationStatus,
    ModelStatus,
    PaymentActor,
    PaymentStatus,
    SubjectClass,
)


def make_result(scalar: object | None = None, items: list | None = None) -> MagicMock:
    """Mock execute() result for scalar and list queries."""
    result = MagicMock()
    result.scalar_one_or_none = MagicMock(return_value=scalar)
    result.scalar = MagicMock(return_value=scalar)
    result.scalars = MagicMock(return_value=MagicMock(all=MagicMock(return_value=items or [])))
    result.all = MagicMock(return_value=items or [])
    return result


def added_objects(session: AsyncMock, cls: type) -> list:
    """Objects of a given type passed to session.add()."""
    return [c.args[0] for c in session.add.call_args_list if isinstance(c.args[0], cls)]


# ============================================================================
# Mock Entity Factories
# ============================================================================


def create_mock_user(
    user_id: UUID | None = None,
    credits: int = 30,
    email: str = "aigerim@example.com",
    name: str = "Aigerim",
    google_id: str = "google-sub-123",
    picture_url: str | None = None,
) -> MagicMock:
    """Factory function to create mock User objects."""
    user = MagicMock(spec=User)
    user.id = user_id or uuid4()
    user.google_id = google_id
    user.email = email
    user.name = name
    user.picture_url = picture_url
    user.credits = credits
    user.created_at = datetime.now(UTC)
    user.updated_at = datetime.now(UTC)
    return user


def create_mock_generation(
    generation_id: UUID | None = None,
    user_id: UUID | None = None,
    status: GenerationStatus = GenerationStatus.PROCESSING,
    image_url: str = "https://placehold.co/512x768?text=Generating",
    provider_prompt_id: str | None = "prompt-1",
    model_ref: str = DEMO_MODEL_REF,
) -> MagicMock:
    """Factory function to create mock Generation objects."""
    generation = MagicMock(spec=Generation)
    generation.id = generation_id or uuid4()
    generation.user_id = user_id or uuid4()
    generation.prompt = "studio portrait, soft light"
    generation.original_prompt = "портрет в студии"
    generation.image_url = image_url
    generation.provider_prompt_id = provider_prompt_id
    generation.status = status
    generation.aspect_ratio = "2:3"
    generation.model_ref = model_ref
    generation.model_name = "Demo"
    generation.created_at = datetime.now(UTC)
    generation.completed_at = None
    return generation


def create_mock_model(
    model_id: UUID | None = None,
    user_id: UUID | None = None,
    status: ModelStatus = ModelStatus.READY,
    provider_tune_id: str | None = "tune-42",
    subject_class: SubjectClass = SubjectClass.WOMAN,
    name: str = "Me",
) -> MagicMock:
    """Factory function to create mock TrainedModel objects."""
    model = MagicMock(spec=TrainedModel)
    model.id = model_id or uuid4()
    model.user_id = user_id or uuid4()
    model.name = name
    model.subject_class = subject_class
    model.training_images = ["https://cdn.example.com/1.jpg"]
    model.thumbnail_url = "https://cdn.example.com/1.jpg"
    model.status = status
    model.provider_tune_id = provider_tune_id
    model.is_usable = status == ModelStatus.READY and bool(provider_tune_id)
    model.created_at = datetime.now(UTC)
    model.completed_at = None
    return model


def create_mock_payment(
    payment_id: UUID | None = None,
    user_id: UUID | None = None,
    status: PaymentStatus = PaymentStatus.PENDING,
    amount: int = 2000,
    crystals: int = 200,
    paid_marked_by: PaymentActor | None = None,
) -> MagicMock:
    """Factory function to create mock PaymentRequest objects."""
    payment = MagicMock(spec=PaymentRequest)
    payment.id = payment_id or uuid4()
    payment.user_id = user_id or uuid4()
    payment.amount = amount
    payment.crystals = crystals
    payment.payer_phone = "+77011234567"
    payment.payer_name = "Aigerim S."
    payment.status = status
    payment.paid_marked_by = paid_marked_by
    payment.created_at = datetime.now(UTC)
    payment.paid_at = None
    payment.confirmed_at = None
    payment.rejected_at = None
    payment.admin_note = None
    return payment

