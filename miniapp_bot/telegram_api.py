"""Outbound Telegram Bot API calls through python-telegram-bot's Bot.

Every call is fire-and-forget from the caller's point of view: failures are
logged and reported as False/None, never raised or retried.
"""

from telegram import Bot, InlineKeyboardMarkup
from telegram.error import TelegramError
from telegram.request import HTTPXRequest


TELEGRAM_API_BASE = "https://api.telegram.org"
DEFAULT_TIMEOUT = 8.0


class TelegramNotifier:
    def __init__(
        self, bot_token: str, timeout: float = DEFAULT_TIMEOUT,
        api_base: str = TELEGRAM_API_BASE,
    ):
        self._timeout = timeout
        self._request = None
        self._bot = None
        # Bot refuses an empty token; without one every call is a logged no-op
        if bot_token:
            self._request = HTTPXRequest(
                read_timeout=timeout, write_timeout=timeout,
                connect_timeout=timeout, pool_timeout=timeout,
            )
            self._bot = Bot(bot_token, base_url=f"{api_base.rstrip('/')}/bot",
                            request=self._request)

    @property
    def configured(self) -> bool:
        return self._bot is not None

    def _timeouts(self) -> dict:
        return {
            "read_timeout": self._timeout,
            "write_timeout": self._timeout,
            "connect_timeout": self._timeout,
            "pool_timeout": self._timeout,
        }

    async def send_message(
        self, chat_id: int, text: str, reply_markup: InlineKeyboardMarkup | None = None,
    ) -> bool:
        """sendMessage. Returns True if Telegram accepted it."""
        if self._bot is None:
            print("[Telegram] sendMessage skipped: no bot token")
            return False
        try:
            await self._bot.send_message(
                chat_id, text, reply_markup=reply_markup, **self._timeouts(),
            )
        except TelegramError as e:
            print(f"[Telegram] sendMessage to {chat_id} failed: {e!r}")
            return False
        return True

    async def answer_callback_query(self, callback_query_id: str, text: str | None = None) -> bool:
        if self._bot is None:
            return False
        try:
            return await self._bot.answer_callback_query(
                callback_query_id, text=text, **self._timeouts(),
            )
        except TelegramError as e:
            print(f"[Telegram] answerCallbackQuery failed: {e!r}")
            return False

    async def get_webhook_info(self) -> dict | None:
        """getWebhookInfo as a plain dict, or None if it could not be fetched."""
        if self._bot is None:
            return None
        try:
            info = await self._bot.get_webhook_info(**self._timeouts())
        except TelegramError as e:
            print(f"[Telegram] getWebhookInfo failed: {e!r}")
            return None
        return info.to_dict()

    async def close(self) -> None:
        """Release the underlying HTTP connection pool."""
        if self._request is not None:
            await self._request.shutdown()
