"""
Webhook Receiver - Finalizes jobs from the provider's asynchronous callbacks.

Callbacks are matched through the identifiers embedded in the callback URL.
Finalization is terminal: a second callback for a finished record is a no-op.
Nothing here raises to the provider; every outcome is logged and acknowledged.
"""

import hmac
from enum import Enum
from typing import Any
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from photoforge.db.models import Generation, TrainedModel, utc_now
from photoforge.models.api import GenerationStatus, ModelStatus
from photoforge.observability.metrics import metrics
from photoforge.services.callbacks import CallbackParams, CallbackType

logger = get_logger(__name__)

_FAILURE_STATUSES = {"failed", "failure", "error", "cancelled", "canceled"}


class WebhookOutcome(str, Enum):
    """What a callback did."""

    COMPLETED = "completed"
    FAILED = "failed"
    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"
    USER_MISMATCH = "user_mismatch"
    NO_IMAGES = "no_images"
    UNAUTHORIZED = "unauthorized"
    MALFORMED = "malformed"


def _nested(payload: dict[str, Any], key: str) -> dict[str, Any]:
    value = payload.get(key)
    return value if isinstance(value, dict) else {}


def extract_image_urls(payload: dict[str, Any]) -> list[str]:
    """
    Image URLs from a generation callback.

    ``images`` may sit at the top level or inside a nested ``prompt`` object;
    each entry is either a URL string or an object with a ``url`` key.
    """
    images = payload.get("images")
    if not isinstance(images, list):
        images = _nested(payload, "prompt").get("images")
    if not isinstance(images, list):
        return []

    urls: list[str] = []
    for item in images:
        if isinstance(item, dict):
            item = item.get("url")
        if isinstance(item, str) and item.strip():
            urls.append(item.strip())
    return urls


def is_failure_payload(payload: dict[str, Any]) -> bool:
    """Whether the provider reports the job as failed."""
    for candidate in (payload, _nested(payload, "prompt"), _nested(payload, "tune")):
        if candidate.get("failed") is True:
            return True
        status = candidate.get("status")
        if isinstance(status, str) and status.strip().lower() in _FAILURE_STATUSES:
            return True
        if candidate.get("error"):
            return True
    return False


def _provider_id(payload: dict[str, Any], nested_key: str) -> str | None:
    value = payload.get("id") or _nested(payload, nested_key).get("id")
    return str(value) if value else None


class WebhookReceiver:
    """Applies provider callbacks to generation and model records."""

    def __init__(self, session: AsyncSession, secret: str = "") -> None:
        self.session = session
        self.secret = secret

    async def handle(self, params: CallbackParams, payload: dict[str, Any]) -> WebhookOutcome:
        kind = params.callback_type.value

        if self.secret and not hmac.compare_digest(params.token or "", self.secret):
            logger.warning("webhook_token_mismatch", callback_type=kind)
            outcome = WebhookOutcome.UNAUTHORIZED
        elif params.callback_type == CallbackType.TRAINING:
            outcome = await self._handle_training(params, payload)
        else:
            outcome = await self._handle_generation(params, payload)

        metrics.webhook_callbacks_total.labels(kind=kind, outcome=outcome.value).inc()
        return outcome

    async def _handle_training(
        self, params: CallbackParams, payload: dict[str, Any]
    ) -> WebhookOutcome:
        model = await self._lock_model(params)
        if model is None:
            logger.warning("webhook_model_not_found", model_id=str(params.model_id))
            return WebhookOutcome.NOT_FOUND

        if model.status != ModelStatus.PROCESSING:
            logger.info(
                "webhook_model_already_final", model_id=str(model.id), status=model.status.value
            )
            return WebhookOutcome.DUPLICATE

        failed = is_failure_payload(payload)
        model.status = ModelStatus.FAILED if failed else ModelStatus.READY
        model.completed_at = utc_now()
        if not model.provider_tune_id:
            model.provider_tune_id = _provider_id(payload, "tune")
        await self.session.commit()

        logger.info(
            "webhook_training_finalized",
            model_id=str(model.id),
            user_id=str(model.user_id),
            status=model.status.value,
        )
        return WebhookOutcome.FAILED if failed else WebhookOutcome.COMPLETED

    async def _handle_generation(
        self, params: CallbackParams, payload: dict[str, Any]
    ) -> WebhookOutcome:
        generation = await self._lock_generation(params)
        if generation is None:
            logger.warning("webhook_generation_not_found", generation_id=str(params.generation_id))
            return WebhookOutcome.NOT_FOUND

        if generation.user_id != params.user_id:
            logger.warning(
                "webhook_generation_user_mismatch",
                generation_id=str(generation.id),
                owner_id=str(generation.user_id),
                callback_user_id=str(params.user_id),
            )
            return WebhookOutcome.USER_MISMATCH

        if generation.status != GenerationStatus.PROCESSING:
            logger.info(
                "webhook_generation_already_final",
                generation_id=str(generation.id),
                status=generation.status.value,
            )
            return WebhookOutcome.DUPLICATE

        now = utc_now()
        if is_failure_payload(payload):
            generation.status = GenerationStatus.FAILED
            generation.completed_at = now
            await self.session.commit()
            logger.info("webhook_generation_failed", generation_id=str(generation.id))
            return WebhookOutcome.FAILED

        urls = extract_image_urls(payload)
        if not urls:
            logger.warning("webhook_generation_no_images", generation_id=str(generation.id))
            return WebhookOutcome.NO_IMAGES

        if not generation.provider_prompt_id:
            generation.provider_prompt_id = _provider_id(payload, "prompt")
        generation.image_url = urls[0]
        generation.status = GenerationStatus.COMPLETED
        generation.completed_at = now

        for url in urls[1:]:
            self.session.add(
                Generation(
                    id=uuid4(),
                    user_id=generation.user_id,
                    prompt=generation.prompt,
                    original_prompt=generation.original_prompt,
                    image_url=url,
                    provider_prompt_id=generation.provider_prompt_id,
                    status=GenerationStatus.COMPLETED,
                    aspect_ratio=generation.aspect_ratio,
                    model_ref=generation.model_ref,
                    model_name=generation.model_name,
                    created_at=now,
                    completed_at=now,
                )
            )
        await self.session.commit()

        logger.info(
            "webhook_generation_completed",
            generation_id=str(generation.id),
            user_id=str(generation.user_id),
            images=len(urls),
        )
        return WebhookOutcome.COMPLETED

    async def _lock_generation(self, params: CallbackParams) -> Generation | None:
        stmt = select(Generation).where(Generation.id == params.generation_id).with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _lock_model(self, params: CallbackParams) -> TrainedModel | None:
        stmt = select(TrainedModel).where(TrainedModel.id == params.model_id).with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
