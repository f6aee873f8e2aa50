"""
Tests for AppSettingsService.
"""

from unittest.mock import AsyncMock, MagicMock

from photoforge.db.models import AppSetting
from photoforge.services.app_settings import PAYMENTS_ENABLED, AppSettingsService
from tests.factories import added_objects, make_result


def _row(key: str, value: str) -> MagicMock:
    row = MagicMock(spec=AppSetting)
    row.key = key
    row.value = value
    return row


class TestAppSettings:
    """Runtime switches stored in the database."""

    async def test_payments_enabled_by_default(self, db_session: AsyncMock) -> None:
        assert await AppSettingsService(db_session).payments_enabled() is True

    async def test_payments_disabled_when_stored_false(self, db_session: AsyncMock) -> None:
        db_session.execute = AsyncMock(return_value=make_result(scalar=_row(PAYMENTS_ENABLED, "false")))

        assert await AppSettingsService(db_session).payments_enabled() is False

    async def test_get_falls_back_to_explicit_default(self, db_session: AsyncMock) -> None:
        assert await AppSettingsService(db_session).get("unknown", "x") == "x"
        assert await AppSettingsService(db_session).get("unknown") is None

    async def test_set_inserts_new_row(self, db_session: AsyncMock) -> None:
        await AppSettingsService(db_session).set_bool(PAYMENTS_ENABLED, False)

        [row] = added_objects(db_session, AppSetting)
        assert row.key == PAYMENTS_ENABLED
        assert row.value == "false"
        db_session.flush.assert_awaited_once()

    async def test_set_updates_existing_row(self, db_session: AsyncMock) -> None:
        existing = _row(PAYMENTS_ENABLED, "false")
        db_session.execute = AsyncMock(return_value=make_result(scalar=existing))

        await AppSettingsService(db_session).set_bool(PAYMENTS_ENABLED, True)

        assert existing.value == "true"
        db_session.add.assert_not_called()

    async def test_all_merges_defaults(self, db_session: AsyncMock) -> None:
        db_session.execute = AsyncMock(
            return_value=make_result(items=[_row("maintenance_banner", "Back at 18:00")])
        )

        values = await AppSettingsService(db_session).all()

        assert values == {PAYMENTS_ENABLED: "true", "maintenance_banner": "Back at 18:00"}
