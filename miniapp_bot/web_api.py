"""HTTP API for the Telegram bot webhook and the Mini App.

Hosts the webhook endpoint plus the small JSON endpoints the Mini App
calls (initData verification, VIP status, admin check, plans). Uses aiohttp.
"""

import json
import time

import aiohttp
from aiohttp import web

from .alerts import AdminAlerter
from .backend import SupabaseBackend
from .config import Config, is_admin
from .dispatch import build_dispatch_table
from .handlers import HandlerLoader
from .secret_cache import SecretCache, chain_resolver
from .telegram_api import TelegramNotifier
from .web_auth import INVALID_SIGNATURE, VerificationResult, clamp_ttl, verify_init_data
from .webhook import WEBHOOK_SECRET_KEY, handle_webhook


async def _read_json_body(request: web.Request) -> dict | None:
    """Parse a JSON object body, or None if it is not one."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, ValueError, UnicodeDecodeError):
        return None
    return body if isinstance(body, dict) else None


def _verify_from_body(request: web.Request, body: dict) -> VerificationResult | None:
    """Verify body["initData"] with the configured TTL. None if no initData given."""
    config: Config = request.app["config"]
    init_data = body.get("initData")
    if not isinstance(init_data, str) or not init_data:
        return None
    if not config.bot_token:
        # Nothing can be signed with an empty token
        return VerificationResult(ok=False, error=INVALID_SIGNATURE)
    ttl = config.init_data_ttl
    requested = body.get("max_age")
    if isinstance(requested, int) and not isinstance(requested, bool):
        ttl = requested
    return verify_init_data(init_data, config.bot_token, clamp_ttl(ttl))


async def handle_verify_init_data(request: web.Request) -> web.Response:
    """POST /verify-initdata — body {"initData": "..."}."""
    body = await _read_json_body(request)
    if body is None:
        return web.json_response({"ok": False, "error": "invalid JSON body"}, status=400)

    result = _verify_from_body(request, body)
    if result is None:
        return web.json_response({"ok": False, "error": "missing initData"})
    if not result.ok:
        return web.json_response({"ok": False, "error": result.error})
    return web.json_response({"ok": True, "user": result.user.to_dict()})


async def handle_miniapp_health(request: web.Request) -> web.Response:
    """POST /miniapp-health — body {"telegram_id": "..."} or {"initData": "..."}.

    Returns {"ok": true, "vip": {"is_vip": true | false | null}}; null means unknown.
    """
    if request.method != "POST":
        return web.json_response({"ok": False, "error": "method not allowed"}, status=405)

    body = await _read_json_body(request) or {}
    telegram_id = None
    result = _verify_from_body(request, body)
    if result is not None and result.ok:
        telegram_id = result.user.id
    elif result is None:
        raw_id = body.get("telegram_id")
        if isinstance(raw_id, (str, int)) and str(raw_id).strip().isdigit():
            telegram_id = str(raw_id).strip()

    is_vip = None
    if telegram_id is not None:
        backend: SupabaseBackend = request.app["backend"]
        is_vip = await backend.get_vip_status(telegram_id)
    return web.json_response({"ok": True, "vip": {"is_vip": is_vip}})


async def handle_admin_check(request: web.Request) -> web.Response:
    """POST /admin-check — {"ok": true} only for a verified admin user."""
    body = await _read_json_body(request) or {}
    result = _verify_from_body(request, body)
    if result is None or not result.ok:
        return web.json_response({"ok": False})

    config: Config = request.app["config"]
    user_id = result.user.id
    allowed = is_admin(config, user_id)
    if not allowed:
        allowed = await request.app["backend"].is_admin_user(user_id)
    return web.json_response({"ok": allowed})


async def handle_plans(request: web.Request) -> web.Response:
    """GET /plans — subscription plans from the backend."""
    plans = await request.app["backend"].list_plans()
    return web.json_response({"ok": True, "plans": plans})


async def handle_health(request: web.Request) -> web.Response:
    """GET /api/health — simple health check, no auth required."""
    return web.json_response({"status": "ok", "time": int(time.time())})


async def handle_method_not_allowed(request: web.Request) -> web.Response:
    return web.json_response({"ok": False, "error": "method not allowed"}, status=405)


@web.middleware
async def cors_middleware(request: web.Request, handler) -> web.Response:
    """Add CORS headers for the Mini App frontend."""
    if request.method == "OPTIONS":
        response = web.Response()
    else:
        response = await handler(request)

    allowed_origin = request.app.get("cors_origin", "*")
    response.headers["Access-Control-Allow-Origin"] = allowed_origin
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = (
        "Authorization, Content-Type, X-Telegram-Bot-Api-Secret-Token"
    )
    return response


@web.middleware
async def logging_middleware(request: web.Request, handler) -> web.Response:
    """Log all incoming requests."""
    start = time.time()
    try:
        response = await handler(request)
        elapsed = (time.time() - start) * 1000
        print(f"[API] {request.method} {request.path} → {response.status} ({elapsed:.0f}ms)")
        return response
    except Exception as e:
        elapsed = (time.time() - start) * 1000
        print(f"[API] {request.method} {request.path} → ERROR: {e} ({elapsed:.0f}ms)")
        raise


async def _http_session_ctx(app: web.Application):
    """One ClientSession for backend reads, open for the app's lifetime."""
    async with aiohttp.ClientSession() as session:
        app["http"]["session"] = session
        yield
        app["http"]["session"] = None


async def _telegram_ctx(app: web.Application):
    yield
    await app["telegram"].close()


def create_web_app(
    config: Config,
    telegram: TelegramNotifier | None = None,
    backend: SupabaseBackend | None = None,
    secrets: SecretCache | None = None,
    alerter: AdminAlerter | None = None,
    loader=None,
) -> web.Application:
    """Create and configure the aiohttp web application.

    Collaborators that are not supplied are built from config. Backend reads
    share one ClientSession opened on startup; the Telegram client owns its
    own connection pool and is closed on cleanup.
    """
    app = web.Application(middlewares=[logging_middleware, cors_middleware])
    app["config"] = config
    app["cors_origin"] = config.cors_origin
    app["http"] = {"session": None}

    session_factory = lambda: app["http"]["session"]
    owns_telegram = telegram is None
    if owns_telegram:
        telegram = TelegramNotifier(config.bot_token, config.request_timeout)
    if backend is None:
        backend = SupabaseBackend(
            config.supabase_url, config.supabase_key, session_factory, config.request_timeout,
        )
    if secrets is None:
        secrets = SecretCache(chain_resolver({WEBHOOK_SECRET_KEY: config.webhook_secret}, backend))
    if alerter is None:
        alerter = AdminAlerter(telegram, config.admin_ids)
    if loader is None:
        loader = HandlerLoader(config, backend, telegram)

    app["telegram"] = telegram
    app["backend"] = backend
    app["secrets"] = secrets
    app["alerter"] = alerter
    app["loader"] = loader
    app["dispatch"] = build_dispatch_table(loader, telegram.send_message)

    app.cleanup_ctx.append(_http_session_ctx)
    if owns_telegram:
        app.cleanup_ctx.append(_telegram_ctx)

    for path in ("/", "/telegram-bot"):
        app.router.add_post(path, handle_webhook)
        app.router.add_route("*", path, handle_method_not_allowed)
    app.router.add_post("/verify-initdata", handle_verify_init_data)
    app.router.add_route("*", "/miniapp-health", handle_miniapp_health)
    app.router.add_post("/admin-check", handle_admin_check)
    app.router.add_get("/plans", handle_plans)
    app.router.add_get("/api/health", handle_health)

    return app
