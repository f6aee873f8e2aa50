"""
Tests for domain dataclasses, API models and the exception hierarchy.
"""

from uuid import uuid4

import pytest
from pydantic import ValidationError

from photoforge.exceptions import (
    ExternalProviderError,
    InsufficientCreditsError,
    InvalidPaymentTransitionError,
    ModelNotFoundError,
    ModelOwnershipError,
    OwnershipError,
    PhotoForgeError,
    ResourceNotFoundError,
    UserNotFoundError,
)
from photoforge.models.api import (
    CreatePaymentRequest,
    CreditAdjustmentRequest,
    GenerationRequest,
    SubjectClass,
    TrainingRequest,
)
from photoforge.models.domain import GenerationIntent, IdentityClaims, TrainingIntent


class TestIntents:
    """Validation on construction."""

    def test_generation_intent_defaults_to_demo(self) -> None:
        intent = GenerationIntent(prompt="portrait")
        assert intent.uses_demo_model is True
        assert intent.num_images == 1

    @pytest.mark.parametrize(
        "kwargs",
        [{"prompt": "   "}, {"prompt": "x", "num_images": 0}, {"prompt": "x", "model_ref": ""}],
    )
    def test_generation_intent_rejects(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            GenerationIntent(**kwargs)

    def test_training_intent_requires_images(self) -> None:
        with pytest.raises(ValueError):
            TrainingIntent(name="Me", subject_class=SubjectClass.MAN, image_urls=())

    def test_identity_requires_email(self) -> None:
        with pytest.raises(ValueError):
            IdentityClaims(google_id="sub", email="", name="x")


class TestRequestModels:
    """Request body validation."""

    def test_generation_request_strips_prompt(self) -> None:
        request = GenerationRequest(prompt="  portrait  ")
        assert request.prompt == "portrait"
        assert request.model_id == "demo"

    @pytest.mark.parametrize(
        "body",
        [
            {"prompt": "x", "aspect_ratio": "5:7"},
            {"prompt": "   "},
            {"prompt": "x", "num_images": 0},
        ],
    )
    def test_generation_request_rejects(self, body: dict) -> None:
        with pytest.raises(ValidationError):
            GenerationRequest(**body)

    def test_training_request_requires_http_urls(self) -> None:
        with pytest.raises(ValidationError):
            TrainingRequest(name="Me", image_urls=["ftp://example.com/a.jpg"])

    def test_training_request_strips_name(self) -> None:
        request = TrainingRequest(name="  Me  ", image_urls=["https://cdn.example.com/a.jpg"])
        assert request.name == "Me"

    def test_training_request_rejects_blank_name(self) -> None:
        with pytest.raises(ValidationError):
            TrainingRequest(name="   ", image_urls=["https://cdn.example.com/a.jpg"])

    def test_payment_request_positive_amounts(self) -> None:
        with pytest.raises(ValidationError):
            CreatePaymentRequest(amount=0, crystals=10, payer_phone="+77011234567", payer_name="A")

    def test_zero_adjustment_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CreditAdjustmentRequest(delta=0)


class TestExceptions:
    """Typed attributes and hierarchy."""

    def test_insufficient_credits_attributes(self) -> None:
        exc = InsufficientCreditsError(balance=2, required=3)
        assert exc.balance == 2
        assert exc.required == 3
        assert "Balance: 2" in str(exc)

    def test_not_found_hierarchy(self) -> None:
        assert issubclass(UserNotFoundError, ResourceNotFoundError)
        assert issubclass(ModelNotFoundError, ResourceNotFoundError)
        assert ModelNotFoundError("demo-x").resource == "Model"

    def test_ownership_hierarchy(self) -> None:
        user_id = uuid4()
        exc = ModelOwnershipError(uuid4(), user_id)
        assert isinstance(exc, OwnershipError)
        assert exc.user_id == user_id

    def test_provider_error_status_code(self) -> None:
        exc = ExternalProviderError("rejected", status_code=429)
        assert exc.status_code == 429
        assert isinstance(exc, PhotoForgeError)

    def test_transition_error(self) -> None:
        exc = InvalidPaymentTransitionError(uuid4(), "confirmed", "paid")
        assert exc.current == "confirmed"
        assert exc.requested == "paid"
