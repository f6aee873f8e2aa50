"""
Runtime Settings - Database-backed switches shared by every API instance.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from photoforge.db.models import AppSetting, utc_now

PAYMENTS_ENABLED = "payments_enabled"

DEFAULT_SETTINGS: dict[str, str] = {
    PAYMENTS_ENABLED: "true",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}


class AppSettingsService:
    """Read and write runtime settings rows."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, key: str, default: str | None = None) -> str | None:
        """Stored value, else the given default, else the built-in default."""
        row = await self._find(key)
        if row is not None:
            return row.value
        if default is not None:
            return default
        return DEFAULT_SETTINGS.get(key)

    async def set(self, key: str, value: str) -> None:
        """Upsert a value. Flushes; the caller commits."""
        row = await self._find(key)
        if row is not None:
            row.value = value
            row.updated_at = utc_now()
        else:
            self.session.add(AppSetting(key=key, value=value, updated_at=utc_now()))
        await self.session.flush()

    async def get_bool(self, key: str, default: bool = False) -> bool:
        raw = await self.get(key)
        if raw is None:
            return default
        return raw.strip().lower() in _TRUE_VALUES

    async def set_bool(self, key: str, value: bool) -> None:
        await self.set(key, "true" if value else "false")

    async def payments_enabled(self) -> bool:
        return await self.get_bool(PAYMENTS_ENABLED, default=True)

    async def all(self) -> dict[str, str]:
        """Every setting with built-in defaults filled in."""
        result = await self.session.execute(select(AppSetting))
        values = dict(DEFAULT_SETTINGS)
        for row in result.scalars().all():
            values[row.key] = row.value
        return values

    async def _find(self, key: str) -> AppSetting | None:
        result = await self.session.execute(select(AppSetting).where(AppSetting.key == key))
        return result.scalar_one_or_none()
