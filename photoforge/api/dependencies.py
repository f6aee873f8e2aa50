"""
FastAPI Dependencies - Authentication and service wiring.

Users authenticate with a Google ID token as a bearer token.
"""

import time
from functools import lru_cache

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from photoforge.config import settings
from photoforge.db.models import User
from photoforge.db.session import get_db
from photoforge.exceptions import AuthenticationError
from photoforge.models.domain import IdentityClaims
from photoforge.services.app_settings import AppSettingsService
from photoforge.services.callbacks import CallbackUrlBuilder
from photoforge.services.generation_provider import AstriaProvider, GenerationProvider
from photoforge.services.jobs import JobDispatcher
from photoforge.services.notifications import NotificationRelay
from photoforge.services.payments import PaymentWorkflow
from photoforge.services.prompt_enhancer import PromptEnhancer
from photoforge.services.users import UserService

logger = get_logger(__name__)

# Bearer token scheme for Google ID tokens
bearer_scheme = HTTPBearer(auto_error=False)

# Cache for verified Google ID tokens: token -> (claims, expiry_timestamp)
_google_token_cache: dict[str, tuple[IdentityClaims, float]] = {}
_MAX_CACHE_SIZE = 10000


def _cleanup_google_token_cache() -> None:
    """Remove expired entries from the cache."""
    if len(_google_token_cache) < _MAX_CACHE_SIZE:
        return

    now = time.time()
    expired = [k for k, (_, exp) in _google_token_cache.items() if exp < now]
    for k in expired:
        del _google_token_cache[k]


def verify_google_token(token: str) -> IdentityClaims:
    """
    Verify a Google ID token and return its identity claims.

    Checks signature, expiry, issuer and audience (GOOGLE_CLIENT_ID).
    Verified tokens are cached until they expire.

    Raises:
        AuthenticationError: token invalid or server not configured
    """
    cached = _google_token_cache.get(token)
    if cached is not None:
        claims, expiry = cached
        if time.time() < expiry:
            return claims
        del _google_token_cache[token]

    if not settings.GOOGLE_CLIENT_ID:
        logger.error("google_client_id_not_configured")
        raise AuthenticationError("Google sign-in is not configured")

    try:
        idinfo = id_token.verify_oauth2_token(  # type: ignore[no-untyped-call]
            token,
            google_requests.Request(),  # type: ignore[no-untyped-call]
            settings.GOOGLE_CLIENT_ID,
        )
    except ValueError as e:
        logger.warning("google_token_invalid", error=str(e))
        raise AuthenticationError(f"Invalid Google ID token: {e}") from e

    try:
        claims = IdentityClaims(
            google_id=str(idinfo.get("sub") or ""),
            email=str(idinfo.get("email") or ""),
            name=str(idinfo.get("name") or idinfo.get("email") or ""),
            picture_url=idinfo.get("picture"),
        )
    except ValueError as e:
        raise AuthenticationError(f"Invalid token claims: {e}") from e

    # Cache the verified token until it expires (with 60s buffer)
    expiry = float(idinfo.get("exp", time.time() + 3600)) - 60
    _cleanup_google_token_cache()
    _google_token_cache[token] = (claims, expiry)

    return claims


async def get_identity_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> IdentityClaims:
    """
    Validate the Google ID token from the Authorization header.

    Raises:
        HTTPException 401 if no token or invalid token
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return verify_google_token(credentials.credentials)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def get_current_user(
    claims: IdentityClaims = Depends(get_identity_claims),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Authenticated user record, registered on first sight.

    Usage:
        @router.get("/user/me")
        async def me(user: User = Depends(get_current_user)):
            ...
    """
    return await UserService(db).get_or_create(claims)


# ============================================================================
# Service wiring
# ============================================================================


@lru_cache
def get_generation_provider() -> GenerationProvider:
    """Shared provider client."""
    return AstriaProvider(
        api_key=settings.astria_api_key,
        base_url=settings.astria_base_url,
        timeout_seconds=settings.provider_timeout_seconds,
    )


@lru_cache
def get_prompt_enhancer() -> PromptEnhancer:
    """Shared prompt enhancer."""
    return PromptEnhancer(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        base_url=settings.openai_base_url,
        timeout_seconds=settings.prompt_enhancement_timeout_seconds,
    )


@lru_cache
def get_notification_relay() -> NotificationRelay:
    """Shared admin notification relay."""
    return NotificationRelay(
        bot_token=settings.telegram_bot_token,
        admin_chat_id=settings.telegram_admin_chat_id,
        api_base_url=settings.telegram_api_base_url,
    )


def get_callback_builder() -> CallbackUrlBuilder:
    return CallbackUrlBuilder(settings.public_base_url, settings.webhook_secret)


def get_job_dispatcher(
    db: AsyncSession = Depends(get_db),
    provider: GenerationProvider = Depends(get_generation_provider),
    enhancer: PromptEnhancer = Depends(get_prompt_enhancer),
    callbacks: CallbackUrlBuilder = Depends(get_callback_builder),
) -> JobDispatcher:
    return JobDispatcher(db, provider, enhancer, callbacks)


def get_payment_workflow(
    db: AsyncSession = Depends(get_db),
    notifier: NotificationRelay = Depends(get_notification_relay),
) -> PaymentWorkflow:
    return PaymentWorkflow(db, notifier, AppSettingsService(db))
