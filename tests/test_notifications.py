"""
Tests for NotificationRelay.
"""

from unittest.mock import AsyncMock, MagicMock

from aiogram.exceptions import TelegramForbiddenError, TelegramNetworkError

from photoforge.models.api import PaymentActor, PaymentStatus
from photoforge.services.notifications import NotificationRelay
from tests.factories import create_mock_payment


def _bot(error: Exception | None = None) -> MagicMock:
    bot = MagicMock()
    bot.send_message = AsyncMock(side_effect=error)
    bot.session.close = AsyncMock()
    return bot


class TestNotificationRelay:
    """Admin alerts are best effort."""

    async def test_new_payment_message_sent_to_admin_chat(self) -> None:
        bot = _bot()
        relay = NotificationRelay("123:ABC", "-100200", bot=bot)
        payment = create_mock_payment(amount=2000, crystals=200)

        assert await relay.notify_new_payment_request(payment) is True

        chat_id, text = bot.send_message.await_args.args
        assert chat_id == "-100200"
        assert "2000" in text
        assert "200" in text
        assert payment.payer_phone in text
        assert str(payment.id) in text

    async def test_marked_paid_message_names_actor(self) -> None:
        bot = _bot()
        relay = NotificationRelay("123:ABC", "-100200", bot=bot)
        payment = create_mock_payment(status=PaymentStatus.PAID, paid_marked_by=PaymentActor.ADMIN)

        assert await relay.notify_payment_marked_paid(payment) is True
        assert "admin" in bot.send_message.await_args.args[1]

    async def test_not_configured_skips(self) -> None:
        bot = _bot()
        relay = NotificationRelay("", "", bot=bot)

        assert relay.configured is False
        assert await relay.notify_new_payment_request(create_mock_payment()) is False
        bot.send_message.assert_not_awaited()

    async def test_network_error_is_swallowed(self) -> None:
        error = TelegramNetworkError(method=MagicMock(), message="refused")
        relay = NotificationRelay("123:ABC", "-100200", bot=_bot(error=error))

        assert await relay.notify_new_payment_request(create_mock_payment()) is False

    async def test_rejected_by_api(self) -> None:
        error = TelegramForbiddenError(method=MagicMock(), message="bot was blocked")
        relay = NotificationRelay("123:ABC", "-100200", bot=_bot(error=error))

        assert await relay.notify_payment_marked_paid(create_mock_payment()) is False

    async def test_close_releases_bot_session(self) -> None:
        bot = _bot()
        relay = NotificationRelay("123:ABC", "-100200", bot=bot)

        await relay.close()

        bot.session.close.assert_awaited_once()
        await relay.close()
        bot.session.close.assert_awaited_once()

    def test_bot_created_lazily_with_custom_server(self) -> None:
        relay = NotificationRelay("123:ABC", "-100200", api_base_url="https://tg.example.test/")

        bot = relay.bot

        assert bot is relay.bot
        assert bot.token == "123:ABC"
        assert bot.session.api.base.startswith("https://tg.example.test/bot")
