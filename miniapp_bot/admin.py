"""Admin-only bot commands.

Loaded on first use of an admin route. Every handler checks the sender
against the configured admin ids and stays silent for everyone else.
"""

from .config import Config, config_status, is_admin
from .dispatch import CommandContext, Notify


REVIEW_QUEUE_LIMIT = 10


def format_payment(payment: dict) -> str:
    amount = f"{payment.get('amount')} {payment.get('currency') or ''}".rstrip()
    return (
        f"#{payment.get('id')} user {payment.get('user_id')} {amount} "
        f"via {payment.get('payment_method') or '?'}"
    )


class AdminHandlers:
    def __init__(self, config: Config, backend, telegram):
        self.config = config
        self.backend = backend
        self.telegram = telegram

    def _allowed(self, ctx: CommandContext) -> bool:
        return is_admin(self.config, ctx.from_id)

    async def dashboard(self, ctx: CommandContext, notify: Notify) -> None:
        if not self._allowed(ctx):
            return
        pending = await self.backend.list_pending_payments(REVIEW_QUEUE_LIMIT)
        lines = [
            "Admin dashboard",
            f"Pending payments: {len(pending)}",
            f"Admins: {len(self.config.admin_ids)}",
            f"Mini App URL: {'ok' if ctx.mini_app_url_valid else 'invalid'}",
        ]
        await notify(ctx.chat_id, "\n".join(lines))

    async def env(self, ctx: CommandContext, notify: Notify) -> None:
        if not self._allowed(ctx):
            return
        lines = [f"{key}: {'set' if present else 'missing'}"
                 for key, present in config_status(self.config).items()]
        await notify(ctx.chat_id, "\n".join(lines))

    async def webhook_info(self, ctx: CommandContext, notify: Notify) -> None:
        if not self._allowed(ctx):
            return
        info = await self.telegram.get_webhook_info()
        if info is None:
            await notify(ctx.chat_id, "Webhook info unavailable.")
            return
        lines = [
            f"URL: {info.get('url') or '(none)'}",
            f"Pending updates: {info.get('pending_update_count', 0)}",
        ]
        if info.get("last_error_message"):
            lines.append(f"Last error: {info['last_error_message']}")
        await notify(ctx.chat_id, "\n".join(lines))

    async def replay(self, ctx: CommandContext, notify: Notify) -> None:
        if not self._allowed(ctx) or not ctx.args:
            return
        payment = await self.backend.get_payment(ctx.args[0])
        if payment is None:
            await notify(ctx.chat_id, "Payment not found.")
            return
        status = payment.get("status") or "unknown"
        await notify(ctx.chat_id, f"Review: {format_payment(payment)} [{status}]")

    async def review_queue(self, ctx: CommandContext, notify: Notify) -> None:
        if not self._allowed(ctx):
            return
        pending = await self.backend.list_pending_payments(REVIEW_QUEUE_LIMIT)
        if not pending:
            await notify(ctx.chat_id, "Review queue is empty.")
            return
        lines = ["Pending payments:"] + [format_payment(p) for p in pending]
        await notify(ctx.chat_id, "\n".join(lines))

    async def feature_flags(self, ctx: CommandContext, notify: Notify) -> None:
        if not self._allowed(ctx):
            return
        snapshot = await self.backend.get_config_value("features:published")
        flags = snapshot.get("data") if isinstance(snapshot, dict) else None
        if not isinstance(flags, dict) or not flags:
            await notify(ctx.chat_id, "No feature flags published.")
            return
        lines = ["Feature flags:"] + [
            f"{name}: {'on' if value else 'off'}" for name, value in sorted(flags.items())
        ]
        await notify(ctx.chat_id, "\n".join(lines))
