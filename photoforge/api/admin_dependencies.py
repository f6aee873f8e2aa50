"""
Admin authentication dependencies for protecting admin routes.

Provides FastAPI dependencies for JWT validation.
"""

from fastapi import Depends, Header, HTTPException, Request, status
from structlog import get_logger

from photoforge.config import get_settings
from photoforge.models.domain import AdminPrincipal
from photoforge.services.admin_auth import AdminAuthService

logger = get_logger(__name__)


def get_admin_auth_service() -> AdminAuthService:
    """Get admin auth service instance."""
    settings = get_settings()
    return AdminAuthService(
        admin_email=settings.ADMIN_EMAIL,
        password_hash=settings.ADMIN_PASSWORD_HASH,
        jwt_secret=settings.ADMIN_JWT_SECRET,
        jwt_expire_hours=settings.admin_jwt_expire_hours,
    )


async def get_current_admin(
    request: Request,
    authorization: str | None = Header(None),
    auth_service: AdminAuthService = Depends(get_admin_auth_service),
) -> AdminPrincipal:
    """
    Get current authenticated admin.

    Checks Authorization header first, then cookie.

    Raises:
        HTTPException(401): If no token provided or token is invalid
    """
    # Try Authorization header first
    token = None
    if authorization and authorization.startswith("Bearer "):
        token = authorization.replace("Bearer ", "")

    # Try cookie if no header
    if not token:
        token = request.cookies.get("admin_token")

    if not token:
        logger.warning("admin_auth_no_token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    admin = auth_service.principal_from_token(token)
    if admin is None:
        logger.warning("admin_auth_invalid_token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.debug("admin_auth_success", email=admin.email)
    return admin
