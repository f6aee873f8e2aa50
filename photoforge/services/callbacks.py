"""
Callback URLs - Correlation identifiers carried by the provider's callbacks.

The provider echoes nothing of ours, so every identifier the webhook needs is
embedded in the callback URL's query string.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlencode
from uuid import UUID

from photoforge.exceptions import MalformedCallbackError

WEBHOOK_PATH = "/api/webhooks/provider"


class CallbackType(str, Enum):
    """Discriminator in the ``type`` query parameter."""

    GENERATION = "generation"
    TRAINING = "training"


@dataclass(frozen=True)
class CallbackParams:
    """Parsed callback query parameters."""

    callback_type: CallbackType
    token: str | None = None
    # generation
    user_id: UUID | None = None
    model_ref: str | None = None
    generation_id: UUID | None = None
    # training
    model_id: UUID | None = None


class CallbackUrlBuilder:
    """Builds callback URLs for dispatched jobs."""

    def __init__(self, base_url: str, secret: str = "") -> None:
        self.base_url = base_url.rstrip("/")
        self.secret = secret

    def generation_url(self, user_id: UUID, model_ref: str, generation_id: UUID) -> str:
        return self._build(
            {
                "type": CallbackType.GENERATION.value,
                "user_id": str(user_id),
                "model_ref": model_ref,
                "generation_id": str(generation_id),
            }
        )

    def training_url(self, model_id: UUID) -> str:
        return self._build({"type": CallbackType.TRAINING.value, "model_id": str(model_id)})

    def _build(self, params: dict[str, str]) -> str:
        if self.secret:
            params["token"] = self.secret
        return f"{self.base_url}{WEBHOOK_PATH}?{urlencode(params)}"


def _parse_uuid(query: Mapping[str, str], name: str) -> UUID:
    raw = query.get(name)
    if not raw:
        raise MalformedCallbackError(f"missing {name}")
    try:
        return UUID(raw)
    except ValueError as e:
        raise MalformedCallbackError(f"invalid {name}: {raw[:64]}") from e


def parse_callback_params(query: Mapping[str, str]) -> CallbackParams:
    """
    Parse the webhook query string.

    Raises:
        MalformedCallbackError: unknown type or missing/invalid identifiers
    """
    raw_type = query.get("type", "")
    try:
        callback_type = CallbackType(raw_type)
    except ValueError as e:
        raise MalformedCallbackError(f"unknown callback type: {raw_type[:32]!r}") from e

    token = query.get("token") or None

    if callback_type == CallbackType.TRAINING:
        return CallbackParams(
            callback_type=callback_type,
            token=token,
            model_id=_parse_uuid(query, "model_id"),
        )

    model_ref = query.get("model_ref")
    if not model_ref:
        raise MalformedCallbackError("missing model_ref")

    return CallbackParams(
        callback_type=callback_type,
        token=token,
        user_id=_parse_uuid(query, "user_id"),
        model_ref=model_ref,
        generation_id=_parse_uuid(query, "generation_id"),
    )
