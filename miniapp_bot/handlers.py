from telegram import InlineKeyboardButton, InlineKeyboardMarkup, WebAppInfo

from .config import Config
from .dispatch import CommandContext, Notify


START_TEXT = "Bot activated. Welcome!\n\nOpen the Mini App to browse plans and manage your VIP access."

HELP_TEXT = """Commands:
/start - Welcome message
/app - Open the Mini App
/plans - Subscription plans
/vip - Check your VIP status
/ping - Check the bot is alive"""


def format_plan(plan: dict) -> str:
    name = plan.get("name") or "Plan"
    price = plan.get("price")
    currency = plan.get("currency") or ""
    line = f"{name}: {price} {currency}".rstrip()
    if plan.get("is_lifetime"):
        line += " (lifetime)"
    elif plan.get("duration_months"):
        months = plan["duration_months"]
        line += f" / {months} month{'s' if months != 1 else ''}"
    return line


def mini_app_keyboard(url: str, with_plans: bool = False) -> InlineKeyboardMarkup:
    """Inline keyboard with a web_app button."""
    rows = [[InlineKeyboardButton("Open Mini App", web_app=WebAppInfo(url=url))]]
    if with_plans:
        rows.append([InlineKeyboardButton("View Plans", callback_data="nav:plans")])
    return InlineKeyboardMarkup(rows)


class CoreHandlers:
    """Handlers available to every user."""

    def __init__(self, config: Config, backend):
        self.config = config
        self.backend = backend

    async def start(self, ctx: CommandContext, notify: Notify) -> None:
        markup = None
        if ctx.mini_app_url_valid:
            markup = mini_app_keyboard(self.config.mini_app_url, with_plans=True)
        await notify(ctx.chat_id, START_TEXT, reply_markup=markup)

    async def help(self, ctx: CommandContext, notify: Notify) -> None:
        await notify(ctx.chat_id, HELP_TEXT)

    async def ping(self, ctx: CommandContext, notify: Notify) -> None:
        await notify(ctx.chat_id, "pong")

    async def app(self, ctx: CommandContext, notify: Notify) -> None:
        if not ctx.mini_app_url_valid:
            await notify(ctx.chat_id, "Mini App is not configured.")
            return
        await notify(ctx.chat_id, "Tap to open the Mini App:",
                     reply_markup=mini_app_keyboard(self.config.mini_app_url))

    async def plans(self, ctx: CommandContext, notify: Notify) -> None:
        plans = await self.backend.list_plans()
        if not plans:
            await notify(ctx.chat_id, "No plans available right now.")
            return
        lines = ["Subscription plans:"] + [f"• {format_plan(p)}" for p in plans]
        await notify(ctx.chat_id, "\n".join(lines))

    async def vip(self, ctx: CommandContext, notify: Notify) -> None:
        if ctx.from_id is None:
            return
        status = await self.backend.get_vip_status(ctx.from_id)
        if status is None:
            text = "VIP status is unavailable right now."
        elif status:
            text = "You are a VIP member."
        else:
            text = "You are not a VIP member yet. Use /plans to see options."
        await notify(ctx.chat_id, text)


class HandlerLoader:
    """Provides handler sets by name, constructing each one on first use."""

    def __init__(self, config: Config, backend, telegram):
        self.config = config
        self.backend = backend
        self.telegram = telegram
        self._loaded: dict[str, object] = {}

    def __call__(self, name: str):
        if name not in self._loaded:
            self._loaded[name] = self._create(name)
        return self._loaded[name]

    def _create(self, name: str):
        if name == "core":
            return CoreHandlers(self.config, self.backend)
        if name == "admin":
            from .admin import AdminHandlers
            return AdminHandlers(self.config, self.backend, self.telegram)
        raise KeyError(f"Unknown handler set: {name}")
