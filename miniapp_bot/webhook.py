"""Telegram webhook gate and update routing.

Policy: non-POST is 405; when a secret is configured, a request whose
header and `secret` query parameter both fail to match is 401. With no
secret configured every POST is accepted. Accepted requests always get
200 {"ok": true}, even for malformed JSON or failing handlers, so that
Telegram does not redeliver. If the secret could not be looked up at all,
the request is acknowledged with 200 but never parsed or dispatched.
"""

import hmac
import json
from dataclasses import dataclass

from aiohttp import web

from .config import Config, is_valid_mini_app_url
from .dispatch import context_from_update


SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"
SECRET_QUERY_PARAM = "secret"
WEBHOOK_SECRET_KEY = "TELEGRAM_WEBHOOK_SECRET"

WRONG_METHOD = "wrong method"
MISSING_OR_WRONG_SECRET = "missing or wrong secret"
MALFORMED_JSON = "malformed json"
SECRET_UNAVAILABLE = "secret unavailable"


@dataclass
class GateDecision:
    status: int
    reason: str = ""

    @property
    def accepted(self) -> bool:
        """Whether the update may be parsed and dispatched."""
        return self.status == 200 and not self.reason


def _secret_matches(candidate: str | None, secret: str) -> bool:
    if not candidate:
        return False
    return hmac.compare_digest(candidate.encode(), secret.encode())


def authorize(method: str, headers, query, secret: str | None) -> GateDecision:
    """Decide whether a webhook delivery may proceed. Pure, no I/O.

    secret is "" when none is configured and None when it could not be resolved.
    """
    if method.upper() != "POST":
        return GateDecision(405, WRONG_METHOD)
    if secret is None:
        return GateDecision(200, SECRET_UNAVAILABLE)
    if not secret:
        return GateDecision(200)
    if _secret_matches(headers.get(SECRET_HEADER), secret):
        return GateDecision(200)
    if _secret_matches(query.get(SECRET_QUERY_PARAM), secret):
        return GateDecision(200)
    return GateDecision(401, MISSING_OR_WRONG_SECRET)


def _ok() -> web.Response:
    return web.json_response({"ok": True})


async def handle_webhook(request: web.Request) -> web.Response:
    """POST /telegram-bot — authenticate, parse and dispatch one update."""
    secret = await request.app["secrets"].get(WEBHOOK_SECRET_KEY)
    decision = authorize(request.method, request.headers, request.query, secret)
    if decision.status != 200:
        print(f"[Webhook] Rejected: {decision.reason}")
        return web.json_response({"ok": False, "error": decision.reason}, status=decision.status)
    if not decision.accepted:
        print(f"[Webhook] Ignored update: {decision.reason}")
        return _ok()

    try:
        update = await request.json()
    except (json.JSONDecodeError, ValueError, UnicodeDecodeError):
        print(f"[Webhook] Ignored update: {MALFORMED_JSON}")
        return _ok()

    await dispatch_update(request.app, update)
    return _ok()


async def dispatch_update(app: web.Application, update) -> None:
    """Route one parsed update through the dispatch table. Never raises."""
    config: Config = app["config"]
    ctx = context_from_update(update, is_valid_mini_app_url(config.mini_app_url))
    if ctx is None:
        return

    handler = app["dispatch"].resolve(ctx.key)
    try:
        await handler(ctx)
    except Exception as e:
        print(f"[Webhook] Handler for {ctx.key} failed: {e!r}")
        await app["alerter"].alert(f"Handler for {ctx.key} failed: {type(e).__name__}: {e}")

    if ctx.callback_query_id:
        await app["telegram"].answer_callback_query(ctx.callback_query_id)
