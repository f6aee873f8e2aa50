"""
Exception Classes - Strongly typed exception hierarchy.

All exceptions carry typed attributes so routes can build responses
without parsing messages.
"""

from uuid import UUID


class PhotoForgeError(Exception):
    """Base exception for all PhotoForge errors."""

    pass


class InsufficientCreditsError(PhotoForgeError):
    """Raised when a user's crystal balance does not cover a charge."""

    def __init__(self, balance: int, required: int) -> None:
        self.balance = balance
        self.required = required
        super().__init__(f"Insufficient credits. Balance: {balance}, Required: {required}")


class ResourceNotFoundError(PhotoForgeError):
    """Raised when an entity id does not resolve to a record."""

    def __init__(self, resource: str, resource_id: UUID | str) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found: {resource_id}")


class UserNotFoundError(ResourceNotFoundError):
    """Raised when a user doesn't exist."""

    def __init__(self, user_id: UUID | str) -> None:
        super().__init__("User", user_id)


class ModelNotFoundError(ResourceNotFoundError):
    """Raised when a trained model reference doesn't resolve."""

    def __init__(self, model_ref: UUID | str) -> None:
        super().__init__("Model", model_ref)


class OwnershipError(PhotoForgeError):
    """Raised when a user references an entity owned by somebody else."""

    def __init__(self, resource: str, resource_id: UUID | str, user_id: UUID) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.user_id = user_id
        super().__init__(f"{resource} {resource_id} is not owned by user {user_id}")


class ModelOwnershipError(OwnershipError):
    """Raised when a generation references another user's trained model."""

    def __init__(self, model_id: UUID, user_id: UUID) -> None:
        super().__init__("Model", model_id, user_id)


class ModelNotReadyError(PhotoForgeError):
    """Raised when a trained model is not ready to be used for generation."""

    def __init__(self, model_id: UUID, status: str) -> None:
        self.model_id = model_id
        self.status = status
        super().__init__(f"Model {model_id} is not ready (status: {status})")


class ExternalProviderError(PhotoForgeError):
    """Raised when a call to the generation or training provider fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(f"External provider error: {message}")


class InvalidPaymentTransitionError(PhotoForgeError):
    """Raised when a payment request cannot move to the requested state."""

    def __init__(self, payment_id: UUID, current: str, requested: str) -> None:
        self.payment_id = payment_id
        self.current = current
        self.requested = requested
        super().__init__(f"Payment {payment_id} cannot move from {current} to {requested}")


class PaymentsDisabledError(PhotoForgeError):
    """Raised when payment requests are switched off at runtime."""

    def __init__(self) -> None:
        super().__init__("Payments are temporarily disabled")


class MalformedCallbackError(PhotoForgeError):
    """Raised when a provider callback lacks the identifiers it must carry."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Malformed callback: {message}")


class DataIntegrityError(PhotoForgeError):
    """Raised when data integrity constraint violated."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Data integrity error: {message}")


class AuthenticationError(PhotoForgeError):
    """Raised when authentication fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Authentication failed: {message}")
