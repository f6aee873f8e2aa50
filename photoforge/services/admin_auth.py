"""
Admin authentication service.

Single administrator configured through the environment: the password is
checked against an Argon2 hash and a short-lived HS256 JWT is issued.
"""

import hmac
from datetime import UTC, datetime, timedelta

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from structlog import get_logger

from photoforge.exceptions import AuthenticationError
from photoforge.models.domain import AdminPrincipal

logger = get_logger(__name__)


class AdminAuthService:
    """Admin authentication service."""

    def __init__(
        self,
        admin_email: str,
        password_hash: str,
        jwt_secret: str,
        jwt_expire_hours: int = 24,
    ):
        self.admin_email = admin_email
        self.password_hash = password_hash
        self.jwt_secret = jwt_secret
        self.jwt_expire_hours = jwt_expire_hours
        self.password_hasher = PasswordHasher()

    @property
    def configured(self) -> bool:
        return bool(self.admin_email and self.password_hash and self.jwt_secret)

    def authenticate(self, email: str, password: str) -> AdminPrincipal:
        """
        Check admin credentials.

        Raises:
            AuthenticationError: not configured, unknown email or wrong password
        """
        if not self.configured:
            logger.error("admin_login_not_configured")
            raise AuthenticationError("Admin login is not configured")

        email_ok = hmac.compare_digest(email.strip().lower(), self.admin_email.strip().lower())
        try:
            self.password_hasher.verify(self.password_hash, password)
            password_ok = True
        except (VerificationError, InvalidHashError):
            password_ok = False

        if not (email_ok and password_ok):
            logger.warning("admin_login_failed", email=email)
            raise AuthenticationError("Invalid credentials")

        logger.info("admin_login_success", email=self.admin_email)
        return AdminPrincipal(email=self.admin_email)

    def create_jwt_token(self, admin: AdminPrincipal) -> str:
        """Create JWT token for the admin."""
        now = datetime.now(UTC)
        payload = {
            "sub": admin.email,
            "email": admin.email,
            "role": admin.role,
            "iat": now,
            "exp": now + timedelta(hours=self.jwt_expire_hours),
        }

        return jwt.encode(payload, self.jwt_secret, algorithm="HS256")

    @property
    def expires_in_seconds(self) -> int:
        return self.jwt_expire_hours * 3600

    def verify_jwt_token(self, token: str) -> dict[str, str | int] | None:
        """Verify JWT token and return payload."""
        if not self.jwt_secret:
            return None
        try:
            payload: dict[str, str | int] = jwt.decode(token, self.jwt_secret, algorithms=["HS256"])
            return payload
        except jwt.ExpiredSignatureError:
            logger.warning("jwt_token_expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning("jwt_token_invalid", error=str(e))
            return None

    def principal_from_token(self, token: str) -> AdminPrincipal | None:
        """Admin principal for a valid token issued to the configured admin."""
        payload = self.verify_jwt_token(token)
        if payload is None:
            return None
        email = str(payload.get("email", ""))
        if payload.get("role") != "admin" or email.lower() != self.admin_email.lower():
            logger.warning("jwt_token_wrong_subject", email=email)
            return None
        return AdminPrincipal(email=email)
