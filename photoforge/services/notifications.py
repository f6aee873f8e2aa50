"""
Notification Relay - One-way admin alerts through an aiogram Bot.

Best effort: delivery problems are logged and never raised.
"""

from aiogram import Bot
from aiogram.client.session.aiohttp import AiohttpSession
from aiogram.client.telegram import TelegramAPIServer
from aiogram.exceptions import TelegramAPIError, TelegramNetworkError
from structlog import get_logger

from photoforge.db.models import PaymentRequest
from photoforge.observability.metrics import metrics

logger = get_logger(__name__)


class NotificationRelay:
    """Pushes payment events to the administrator chat."""

    def __init__(
        self,
        bot_token: str,
        admin_chat_id: str,
        api_base_url: str = "https://api.telegram.org",
        timeout_seconds: float = 10.0,
        bot: Bot | None = None,
    ) -> None:
        self.bot_token = bot_token
        self.admin_chat_id = admin_chat_id
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._bot = bot

    @property
    def configured(self) -> bool:
        return bool(self.bot_token and self.admin_chat_id)

    @property
    def bot(self) -> Bot:
        """Get the bot, creating it on first use."""
        if self._bot is None:
            session = AiohttpSession(
                api=TelegramAPIServer.from_base(self.api_base_url),
                timeout=self.timeout_seconds,
            )
            self._bot = Bot(token=self.bot_token, session=session)
        return self._bot

    async def close(self) -> None:
        """Close the bot's HTTP session."""
        if self._bot is not None:
            await self._bot.session.close()
            self._bot = None

    async def notify_new_payment_request(self, payment: PaymentRequest) -> bool:
        text = (
            "💳 New payment request\n\n"
            f"Amount: {payment.amount} ₸\n"
            f"Crystals: {payment.crystals}\n"
            f"Kaspi: {payment.payer_phone}\n"
            f"Name: {payment.payer_name}\n"
            f"ID: {payment.id}"
        )
        return await self._send("new_payment_request", text)

    async def notify_payment_marked_paid(self, payment: PaymentRequest) -> bool:
        actor = payment.paid_marked_by.value if payment.paid_marked_by else "unknown"
        text = (
            "✅ Payment marked as paid\n\n"
            f"Amount: {payment.amount} ₸\n"
            f"Crystals: {payment.crystals}\n"
            f"Kaspi: {payment.payer_phone}\n"
            f"Marked by: {actor}\n"
            f"ID: {payment.id}"
        )
        return await self._send("payment_marked_paid", text)

    async def _send(self, event: str, text: str) -> bool:
        if not self.configured:
            metrics.notifications_total.labels(kind=event, outcome="skipped").inc()
            logger.info("notification_skipped", notification_event=event, reason="not_configured")
            return False

        try:
            await self.bot.send_message(self.admin_chat_id, text)
        except TelegramNetworkError as e:
            metrics.notifications_total.labels(kind=event, outcome="error").inc()
            logger.warning("notification_failed", notification_event=event, error=str(e))
            return False
        except TelegramAPIError as e:
            metrics.notifications_total.labels(kind=event, outcome="rejected").inc()
            logger.warning(
                "notification_rejected",
                notification_event=event,
                error_type=type(e).__name__,
                error=str(e)[:200],
            )
            return False

        metrics.notifications_total.labels(kind=event, outcome="delivered").inc()
        logger.info("notification_delivered", notification_event=event)
        return True
