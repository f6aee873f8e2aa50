"""
Tests for UserService and Google sign-in verification.
"""

import time
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.exc import IntegrityError

from photoforge.api import dependencies
from photoforge.api.dependencies import get_identity_claims, verify_google_token
from photoforge.db.models import User
from photoforge.exceptions import AuthenticationError, DataIntegrityError, UserNotFoundError
from photoforge.models.api import TransactionType
from photoforge.models.domain import IdentityClaims
from photoforge.services.users import UserService
from tests.factories import added_objects, create_mock_user, make_result

CLAIMS = IdentityClaims(
    google_id="google-sub-123",
    email="aigerim@example.com",
    name="Aigerim",
    picture_url="https://lh3.googleusercontent.com/a/pic",
)


class TestGetOrCreate:
    """Registration and profile refresh."""

    async def test_new_user_gets_signup_bonus(self, db_session: AsyncMock) -> None:
        with patch("photoforge.services.users.CreditLedger") as MockLedger:
            MockLedger.return_value.credit = AsyncMock()
            user = await UserService(db_session).get_or_create(CLAIMS)

        assert added_objects(db_session, User) == [user]
        assert user.google_id == "google-sub-123"
        assert user.credits == 0
        MockLedger.return_value.credit.assert_awaited_once_with(
            user.id, 10, TransactionType.SIGNUP_BONUS, "Signup bonus"
        )
        db_session.commit.assert_awaited_once()

    async def test_existing_user_profile_refreshed(self, db_session: AsyncMock) -> None:
        existing = create_mock_user(name="Old Name", google_id="google-sub-123")
        db_session.execute = AsyncMock(return_value=make_result(scalar=existing))

        with patch("photoforge.services.users.CreditLedger") as MockLedger:
            user = await UserService(db_session).get_or_create(CLAIMS)

        assert user is existing
        assert user.name == "Aigerim"
        assert user.picture_url == CLAIMS.picture_url
        MockLedger.assert_not_called()
        db_session.add.assert_not_called()
        db_session.commit.assert_awaited_once()

    async def test_existing_user_unchanged_not_committed(self, db_session: AsyncMock) -> None:
        existing = create_mock_user(
            google_id="google-sub-123",
            email=CLAIMS.email,
            name=CLAIMS.name,
            picture_url=CLAIMS.picture_url,
        )
        db_session.execute = AsyncMock(return_value=make_result(scalar=existing))

        await UserService(db_session).get_or_create(CLAIMS)

        db_session.commit.assert_not_awaited()

    async def test_concurrent_registration_returns_winner(self, db_session: AsyncMock) -> None:
        winner = create_mock_user(google_id="google-sub-123")
        db_session.execute = AsyncMock(side_effect=[make_result(), make_result(scalar=winner)])
        db_session.flush = AsyncMock(side_effect=IntegrityError("insert", {}, Exception("dup")))

        with patch("photoforge.services.users.CreditLedger") as MockLedger:
            user = await UserService(db_session).get_or_create(CLAIMS)

        assert user is winner
        db_session.rollback.assert_awaited_once()
        MockLedger.assert_not_called()

    async def test_concurrent_registration_without_winner(self, db_session: AsyncMock) -> None:
        db_session.flush = AsyncMock(side_effect=IntegrityError("insert", {}, Exception("dup")))

        with pytest.raises(DataIntegrityError):
            await UserService(db_session).get_or_create(CLAIMS)


class TestLookup:
    """Lookups by id."""

    async def test_get_missing(self, db_session: AsyncMock) -> None:
        with pytest.raises(UserNotFoundError):
            await UserService(db_session).get(uuid4())

    async def test_list_users(self, db_session: AsyncMock) -> None:
        users = [create_mock_user(), create_mock_user()]
        db_session.execute = AsyncMock(return_value=make_result(items=users))

        assert await UserService(db_session).list_users(limit=10) == users


class TestVerifyGoogleToken:
    """Google ID token verification and caching."""

    @pytest.fixture(autouse=True)
    def clear_cache(self):
        dependencies._google_token_cache.clear()
        yield
        dependencies._google_token_cache.clear()

    def test_valid_token(self) -> None:
        idinfo = {
            "sub": "google-sub-123",
            "email": "aigerim@example.com",
            "name": "Aigerim",
            "picture": "https://lh3.googleusercontent.com/a/pic",
            "exp": time.time() + 3600,
        }
        with patch(
            "photoforge.api.dependencies.id_token.verify_oauth2_token", return_value=idinfo
        ) as mock_verify:
            first = verify_google_token("token-abc")
            second = verify_google_token("token-abc")

        assert first == CLAIMS
        assert second == CLAIMS
        mock_verify.assert_called_once()

    def test_invalid_token(self) -> None:
        with patch(
            "photoforge.api.dependencies.id_token.verify_oauth2_token",
            side_effect=ValueError("Wrong recipient"),
        ):
            with pytest.raises(AuthenticationError):
                verify_google_token("token-bad")

    def test_token_without_email(self) -> None:
        with patch(
            "photoforge.api.dependencies.id_token.verify_oauth2_token",
            return_value={"sub": "google-sub-123", "exp": time.time() + 3600},
        ):
            with pytest.raises(AuthenticationError):
                verify_google_token("token-no-email")

    async def test_missing_header_raises_401(self) -> None:
        with pytest.raises(HTTPException) as exc_info:
            await get_identity_claims(credentials=None)
        assert exc_info.value.status_code == 401

    async def test_invalid_header_token_raises_401(self) -> None:
        credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials="token-bad")
        with patch(
            "photoforge.api.dependencies.id_token.verify_oauth2_token",
            side_effect=ValueError("expired"),
        ):
            with pytest.raises(HTTPException) as exc_info:
                await get_identity_claims(credentials=credentials)
        assert exc_info.value.status_code == 401

