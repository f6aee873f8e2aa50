"""
User Service - Registration from identity claims and admin lookups.
"""

from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from photoforge.db.models import User
from photoforge.exceptions import DataIntegrityError, UserNotFoundError
from photoforge.models.api import TransactionType
from photoforge.models.domain import IdentityClaims
from photoforge.services.ledger import CreditLedger
from photoforge.services.pricing import SIGNUP_BONUS

logger = get_logger(__name__)


class UserService:
    """User registration and lookup."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_or_create(self, claims: IdentityClaims) -> User:
        """
        Find a user by Google subject id, refreshing profile fields,
        or register them with the signup bonus.

        Raises:
            DataIntegrityError: registration raced with another request and
                the winner's row could not be read back
        """
        user = await self._find_by_google_id(claims.google_id)
        if user is not None:
            changed = False
            for field, value in (
                ("email", claims.email),
                ("name", claims.name),
                ("picture_url", claims.picture_url),
            ):
                if value is not None and getattr(user, field) != value:
                    setattr(user, field, value)
                    changed = True
            if changed:
                await self.session.commit()
                logger.info("user_profile_refreshed", user_id=str(user.id))
            return user

        # Balance starts at zero; the signup bonus goes through the ledger
        user = User(
            id=uuid4(),
            google_id=claims.google_id,
            email=claims.email,
            name=claims.name,
            picture_url=claims.picture_url,
            credits=0,
        )
        self.session.add(user)
        try:
            await self.session.flush()
        except IntegrityError:
            await self.session.rollback()
            existing = await self._find_by_google_id(claims.google_id)
            if existing is None:
                raise DataIntegrityError(
                    f"User {claims.email} could not be created or found"
                ) from None
            return existing

        await CreditLedger(self.session).credit(
            user.id,
            SIGNUP_BONUS,
            TransactionType.SIGNUP_BONUS,
            "Signup bonus",
        )
        await self.session.commit()

        logger.info("user_registered", user_id=str(user.id), email=claims.email)
        return user

    async def get(self, user_id: UUID) -> User:
        user = await self.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def list_users(self, limit: int = 100) -> list[User]:
        """Newest users first."""
        stmt = select(User).order_by(User.created_at.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def _find_by_google_id(self, google_id: str) -> User | None:
        result = await self.session.execute(select(User).where(User.google_id == google_id))
        return result.scalar_one_or_none()
