"""
Webhook Routes - Provider callbacks.

Always acknowledged with 200 so the provider never retries; problems are
logged only.
"""

import json

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from photoforge.config import settings
from photoforge.db.session import get_db
from photoforge.exceptions import MalformedCallbackError
from photoforge.models.api import WebhookAck
from photoforge.observability.metrics import metrics
from photoforge.services.callbacks import parse_callback_params
from photoforge.services.webhooks import WebhookOutcome, WebhookReceiver

logger = get_logger(__name__)

router = APIRouter(prefix="/api/webhooks")


@router.post("/provider", response_model=WebhookAck)
async def provider_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> WebhookAck:
    """
    Generation and training completion callbacks.

    Correlation ids come from the query string built at dispatch time.
    """
    try:
        params = parse_callback_params(request.query_params)
    except MalformedCallbackError as exc:
        metrics.webhook_callbacks_total.labels(
            kind="unknown", outcome=WebhookOutcome.MALFORMED.value
        ).inc()
        logger.warning("webhook_malformed_query", error=exc.message)
        return WebhookAck()

    raw = await request.body()
    try:
        payload = json.loads(raw) if raw else {}
    except ValueError as exc:
        metrics.webhook_callbacks_total.labels(
            kind=params.callback_type.value, outcome=WebhookOutcome.MALFORMED.value
        ).inc()
        logger.warning("webhook_malformed_body", error=str(exc), size=len(raw))
        return WebhookAck()

    if not isinstance(payload, dict):
        metrics.webhook_callbacks_total.labels(
            kind=params.callback_type.value, outcome=WebhookOutcome.MALFORMED.value
        ).inc()
        logger.warning("webhook_body_not_object", body_type=type(payload).__name__)
        return WebhookAck()

    receiver = WebhookReceiver(db, secret=settings.webhook_secret)
    try:
        outcome = await receiver.handle(params, payload)
    except Exception as exc:
        # The provider must always get an acknowledgement
        await db.rollback()
        metrics.record_error(type(exc).__name__, "provider_webhook")
        logger.exception("webhook_processing_failed", callback_type=params.callback_type.value)
        return WebhookAck()

    logger.info("webhook_processed", callback_type=params.callback_type.value, outcome=outcome.value)
    return WebhookAck()
