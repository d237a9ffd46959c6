import json
import time
from urllib.parse import urlencode

import pytest

from miniapp_bot.backend import BackendUnavailable
from miniapp_bot.config import Config
from miniapp_bot.web_auth import _build_data_check_string, _compute_hmac


BOT_TOKEN = "123456:ABC-DEF1234ghIkl-zyx57W2v1u123ew11"


def make_init_data(
    user_id: int = 12345,
    auth_date: int | None = None,
    extra_params: dict | None = None,
    bot_token: str = BOT_TOKEN,
    tamper_hash: str | None = None,
    user: dict | str | None = None,
) -> str:
    """Build a signed initData string the way the Telegram client does."""
    if auth_date is None:
        auth_date = int(time.time())
    if user is None:
        user = {"id": user_id, "first_name": "Test", "username": "testuser"}
    params = {
        "user": user if isinstance(user, str) else json.dumps(user),
        "auth_date": str(auth_date),
        "query_id": "AAHdF6IQAAAAAN0XohDhrOrc",
    }
    if extra_params:
        params.update(extra_params)

    data_check_string = _build_data_check_string(params)
    params["hash"] = tamper_hash or _compute_hmac(bot_token, data_check_string)
    return urlencode(params)


class FakeTelegram:
    """Records outbound Bot API calls instead of sending them."""

    def __init__(self, webhook_info: dict | None = None, fail: bool = False):
        self.sent: list[dict] = []
        self.answered: list[str] = []
        self.webhook_info = webhook_info
        self.fail = fail

    async def send_message(self, chat_id, text, reply_markup=None) -> bool:
        self.sent.append({"chat_id": chat_id, "text": text, "reply_markup": reply_markup})
        return not self.fail

    async def answer_callback_query(self, callback_query_id, text=None) -> bool:
        self.answered.append(callback_query_id)
        return True

    async def get_webhook_info(self):
        return self.webhook_info


class FakeBackend:
    """In-memory stand-in for SupabaseBackend."""

    configured = True

    def __init__(self, vip: dict | None = None, admins: set | None = None,
                 plans: list | None = None, payments: list | None = None,
                 settings: dict | None = None, kv: dict | None = None,
                 settings_down: bool = False):
        self.vip = vip or {}
        self.admins = admins or set()
        self.plans = plans or []
        self.payments = payments or []
        self.settings = settings or {}
        self.kv = kv or {}
        self.settings_down = settings_down
        self.calls: list[tuple] = []

    async def get_vip_status(self, telegram_id):
        self.calls.append(("get_vip_status", str(telegram_id)))
        return self.vip.get(str(telegram_id))

    async def is_admin_user(self, telegram_id):
        self.calls.append(("is_admin_user", str(telegram_id)))
        return str(telegram_id) in self.admins

    async def list_plans(self):
        self.calls.append(("list_plans",))
        return list(self.plans)

    async def list_pending_payments(self, limit=10):
        self.calls.append(("list_pending_payments", limit))
        return [p for p in self.payments if p.get("status") == "pending"][:limit]

    async def get_payment(self, payment_id):
        self.calls.append(("get_payment", payment_id))
        for p in self.payments:
            if p["id"] == payment_id:
                return p
        return None

    async def get_setting(self, key):
        self.calls.append(("get_setting", key))
        if self.settings_down:
            raise BackendUnavailable("bot_settings: connection refused")
        return self.settings.get(key)

    async def get_config_value(self, key):
        self.calls.append(("get_config_value", key))
        return self.kv.get(key)


def make_config(**kwargs) -> Config:
    defaults = {
        "bot_token": BOT_TOKEN,
        "webhook_secret": "test-secret",
        "admin_ids": {42},
        "mini_app_url": "https://example.com/miniapp/",
    }
    defaults.update(kwargs)
    return Config(**defaults)


@pytest.fixture
def telegram():
    return FakeTelegram()


@pytest.fixture
def backend():
    return FakeBackend(
        vip={"42": True, "7": False},
        plans=[
            {"id": "p1", "name": "Monthly", "price": 10, "currency": "USD", "duration_months": 1},
            {"id": "p2", "name": "Lifetime", "price": 99, "currency": "USD", "is_lifetime": True},
        ],
        payments=[
            {"id": "pay1", "user_id": "7", "amount": 10, "currency": "USD",
             "payment_method": "bank_transfer", "status": "pending"},
            {"id": "pay2", "user_id": "8", "amount": 99, "currency": "USD",
             "payment_method": "crypto", "status": "completed"},
        ],
        kv={"features:published": {"ts": 1, "data": {"broadcasts_enabled": True, "promo": False}}},
    )
