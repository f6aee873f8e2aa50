"""
Domain Models - Internal business logic models using dataclasses.

Intents are immutable and validated on construction.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import UUID

from photoforge.models.api import DEMO_MODEL_REF, SubjectClass, TransactionType

if TYPE_CHECKING:
    from photoforge.db.models import Generation, TrainedModel


@dataclass(frozen=True)
class IdentityClaims:
    """Verified claims from the identity provider's token."""

    google_id: str
    email: str
    name: str
    picture_url: str | None = None

    def __post_init__(self) -> None:
        """Validate identity claims."""
        if not self.google_id:
            raise ValueError("google_id cannot be empty")
        if not self.email:
            raise ValueError("email cannot be empty")


@dataclass(frozen=True)
class GenerationIntent:
    """A user's request to generate images, before any side effect."""

    prompt: str
    model_ref: str = DEMO_MODEL_REF
    aspect_ratio: str = "2:3"
    num_images: int = 1
    style_image_url: str | None = None
    super_resolution: bool = True
    film_grain: bool = False
    inpaint_faces: bool = False

    def __post_init__(self) -> None:
        """Validate generation constraints."""
        if not self.prompt.strip():
            raise ValueError("Prompt cannot be empty")
        if self.num_images < 1:
            raise ValueError(f"num_images must be positive: {self.num_images}")
        if not self.model_ref:
            raise ValueError("model_ref cannot be empty")

    @property
    def uses_demo_model(self) -> bool:
        return self.model_ref == DEMO_MODEL_REF


@dataclass(frozen=True)
class TrainingIntent:
    """A user's request to fine-tune a personal model."""

    name: str
    subject_class: SubjectClass
    image_urls: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        """Validate training constraints."""
        if not self.name.strip():
            raise ValueError("Model name cannot be empty")
        if not self.image_urls:
            raise ValueError("At least one training image is required")


@dataclass(frozen=True)
class LedgerEntry:
    """Immutable record of one balance mutation."""

    transaction_id: UUID
    user_id: UUID
    transaction_type: TransactionType
    delta: int
    balance_before: int
    balance_after: int
    reference_id: str | None


@dataclass(frozen=True)
class GenerationSubmission:
    """Result of an accepted generation request."""

    generation: "Generation"
    credits_remaining: int


@dataclass(frozen=True)
class TrainingSubmission:
    """Result of an accepted training request."""

    model: "TrainedModel"
    credits_remaining: int


@dataclass(frozen=True)
class AdminPrincipal:
    """Authenticated administrator."""

    email: str
    role: str = "admin"
