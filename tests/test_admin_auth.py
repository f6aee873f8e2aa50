"""
Tests for admin authentication: credentials, JWT issuance and the dependency.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import jwt
import pytest
from argon2 import PasswordHasher
from fastapi import HTTPException

from photoforge.api.admin_dependencies import get_current_admin
from photoforge.exceptions import AuthenticationError
from photoforge.models.domain import AdminPrincipal
from photoforge.services.admin_auth import AdminAuthService

SECRET = "test-secret-key-for-jwt-signing-min-32-chars"
PASSWORD = "correct horse battery staple"


@pytest.fixture(scope="module")
def password_hash() -> str:
    return PasswordHasher().hash(PASSWORD)


@pytest.fixture
def auth_service(password_hash: str) -> AdminAuthService:
    return AdminAuthService("admin@photoforge.kz", password_hash, SECRET, jwt_expire_hours=2)


class TestAuthenticate:
    """Tests for credential checks."""

    def test_valid_credentials(self, auth_service: AdminAuthService) -> None:
        admin = auth_service.authenticate("Admin@PhotoForge.kz ", PASSWORD)
        assert admin == AdminPrincipal(email="admin@photoforge.kz")

    def test_wrong_password(self, auth_service: AdminAuthService) -> None:
        with pytest.raises(AuthenticationError):
            auth_service.authenticate("admin@photoforge.kz", "wrong")

    def test_wrong_email(self, auth_service: AdminAuthService) -> None:
        with pytest.raises(AuthenticationError):
            auth_service.authenticate("someone@photoforge.kz", PASSWORD)

    def test_not_configured(self) -> None:
        service = AdminAuthService("", "", SECRET)
        assert service.configured is False
        with pytest.raises(AuthenticationError, match="not configured"):
            service.authenticate("admin@photoforge.kz", PASSWORD)

    def test_corrupt_hash_rejected(self) -> None:
        service = AdminAuthService("admin@photoforge.kz", "not-a-hash", SECRET)
        with pytest.raises(AuthenticationError):
            service.authenticate("admin@photoforge.kz", PASSWORD)


class TestTokens:
    """Tests for JWT round trips."""

    def test_token_round_trip(self, auth_service: AdminAuthService) -> None:
        token = auth_service.create_jwt_token(AdminPrincipal(email="admin@photoforge.kz"))

        assert auth_service.principal_from_token(token) == AdminPrincipal(
            email="admin@photoforge.kz"
        )
        assert auth_service.expires_in_seconds == 7200

    def test_expired_token(self, auth_service: AdminAuthService) -> None:
        past = datetime.now(UTC) - timedelta(hours=3)
        payload = {
            "sub": "admin@photoforge.kz",
            "email": "admin@photoforge.kz",
            "role": "admin",
            "iat": past,
            "exp": past + timedelta(hours=1),
        }
        token = jwt.encode(payload, SECRET, algorithm="HS256")
        assert auth_service.verify_jwt_token(token) is None

    def test_token_signed_with_other_secret(self, auth_service: AdminAuthService) -> None:
        other = AdminAuthService("admin@photoforge.kz", "x", "another-secret-of-sufficient-length!!")
        token = other.create_jwt_token(AdminPrincipal(email="admin@photoforge.kz"))
        assert auth_service.principal_from_token(token) is None

    def test_token_for_other_email(self, auth_service: AdminAuthService) -> None:
        token = auth_service.create_jwt_token(AdminPrincipal(email="intruder@photoforge.kz"))
        assert auth_service.principal_from_token(token) is None


class TestGetCurrentAdmin:
    """Tests for the admin route dependency."""

    async def test_bearer_header(self, auth_service: AdminAuthService) -> None:
        token = auth_service.create_jwt_token(AdminPrincipal(email="admin@photoforge.kz"))
        request = MagicMock()
        request.cookies.get.return_value = None

        admin = await get_current_admin(
            request=request, authorization=f"Bearer {token}", auth_service=auth_service
        )

        assert admin.email == "admin@photoforge.kz"

    async def test_cookie(self, auth_service: AdminAuthService) -> None:
        token = auth_service.create_jwt_token(AdminPrincipal(email="admin@photoforge.kz"))
        request = MagicMock()
        request.cookies.get.return_value = token

        admin = await get_current_admin(request=request, authorization=None, auth_service=auth_service)

        assert admin.email == "admin@photoforge.kz"
        request.cookies.get.assert_called_once_with("admin_token")

    async def test_no_token_raises_401(self, auth_service: AdminAuthService) -> None:
        request = MagicMock()
        request.cookies.get.return_value = None

        with pytest.raises(HTTPException) as exc_info:
            await get_current_admin(request=request, authorization=None, auth_service=auth_service)
        assert exc_info.value.status_code == 401

    async def test_invalid_token_raises_401(self, auth_service: AdminAuthService) -> None:
        request = MagicMock()
        request.cookies.get.return_value = None

        with pytest.raises(HTTPException) as exc_info:
            await get_current_admin(
                request=request, authorization="Bearer garbage", auth_service=auth_service
            )
        assert exc_info.value.status_code == 401
