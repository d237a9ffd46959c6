"""Tests for the Mini App HTTP endpoints."""

import time

import pytest

from miniapp_bot.web_api import create_web_app
from miniapp_bot.web_auth import MAX_INIT_DATA_TTL

from conftest import FakeBackend, FakeTelegram, make_config, make_init_data


@pytest.fixture
def app(backend):
    return create_web_app(make_config(), telegram=FakeTelegram(), backend=backend)


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_no_auth(self, app, aiohttp_client):
        client = await aiohttp_client(app)
        resp = await client.get("/api/health")
        assert resp.status == 200
        data = await resp.json()
        assert data["status"] == "ok"
        assert abs(data["time"] - time.time()) < 5

    @pytest.mark.asyncio
    async def test_options_answered_with_cors(self, app, aiohttp_client):
        client = await aiohttp_client(app)
        resp = await client.options("/verify-initdata")
        assert resp.status == 200
        assert resp.headers["Access-Control-Allow-Origin"] == "*"
        assert "Content-Type" in resp.headers["Access-Control-Allow-Headers"]

    @pytest.mark.asyncio
    async def test_cors_origin_from_config(self, backend, aiohttp_client):
        app = create_web_app(make_config(cors_origin="https://tg.example"),
                             telegram=FakeTelegram(), backend=backend)
        client = await aiohttp_client(app)
        resp = await client.get("/api/health")
        assert resp.headers["Access-Control-Allow-Origin"] == "https://tg.example"


class TestVerifyInitData:
    @pytest.mark.asyncio
    async def test_valid(self, app, aiohttp_client):
        client = await aiohttp_client(app)
        resp = await client.post("/verify-initdata", json={"initData": make_init_data()})
        assert resp.status == 200
        data = await resp.json()
        assert data == {
            "ok": True,
            "user": {"id": 12345, "username": "testuser", "first_name": "Test"},
        }

    @pytest.mark.asyncio
    async def test_bad_signature(self, app, aiohttp_client):
        client = await aiohttp_client(app)
        resp = await client.post("/verify-initdata",
                                 json={"initData": make_init_data(tamper_hash="f" * 64)})
        assert await resp.json() == {"ok": False, "error": "invalid signature"}

    @pytest.mark.asyncio
    async def test_expired_with_configured_ttl(self, backend, aiohttp_client):
        app = create_web_app(make_config(init_data_ttl=60), telegram=FakeTelegram(), backend=backend)
        client = await aiohttp_client(app)
        init_data = make_init_data(auth_date=int(time.time()) - 120)
        resp = await client.post("/verify-initdata", json={"initData": init_data})
        assert await resp.json() == {"ok": False, "error": "expired"}

    @pytest.mark.asyncio
    async def test_requested_max_age_cannot_exceed_ceiling(self, app, aiohttp_client):
        client = await aiohttp_client(app)
        init_data = make_init_data(auth_date=int(time.time()) - MAX_INIT_DATA_TTL - 60)
        resp = await client.post("/verify-initdata",
                                 json={"initData": init_data, "max_age": 10 ** 9})
        assert (await resp.json())["error"] == "expired"

    @pytest.mark.asyncio
    async def test_requested_max_age_can_shorten(self, app, aiohttp_client):
        client = await aiohttp_client(app)
        init_data = make_init_data(auth_date=int(time.time()) - 120)
        resp = await client.post("/verify-initdata", json={"initData": init_data, "max_age": 30})
        assert (await resp.json())["error"] == "expired"

    @pytest.mark.asyncio
    async def test_missing_init_data(self, app, aiohttp_client):
        client = await aiohttp_client(app)
        resp = await client.post("/verify-initdata", json={})
        assert await resp.json() == {"ok": False, "error": "missing initData"}

    @pytest.mark.asyncio
    async def test_invalid_json(self, app, aiohttp_client):
        client = await aiohttp_client(app)
        resp = await client.post("/verify-initdata", data="nope")
        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_get_not_allowed(self, app, aiohttp_client):
        client = await aiohttp_client(app)
        resp = await client.get("/verify-initdata")
        assert resp.status == 405


class TestMiniappHealth:
    @pytest.mark.asyncio
    async def test_get_405(self, app, aiohttp_client):
        client = await aiohttp_client(app)
        resp = await client.get("/miniapp-health")
        assert resp.status == 405

    @pytest.mark.asyncio
    async def test_vip_by_telegram_id(self, app, aiohttp_client):
        client = await aiohttp_client(app)
        resp = await client.post("/miniapp-health", json={"telegram_id": "42"})
        assert resp.status == 200
        assert await resp.json() == {"ok": True, "vip": {"is_vip": True}}

    @pytest.mark.asyncio
    async def test_not_vip(self, app, aiohttp_client):
        client = await aiohttp_client(app)
        resp = await client.post("/miniapp-health", json={"telegram_id": 7})
        assert (await resp.json())["vip"]["is_vip"] is False

    @pytest.mark.asyncio
    async def test_unknown_user_null(self, app, aiohttp_client):
        client = await aiohttp_client(app)
        resp = await client.post("/miniapp-health", json={"telegram_id": "12345"})
        assert (await resp.json())["vip"]["is_vip"] is None

    @pytest.mark.asyncio
    async def test_unconfigured_backend_null(self, aiohttp_client):
        # Real backend class with no URL configured makes no calls
        app = create_web_app(make_config(), telegram=FakeTelegram())
        client = await aiohttp_client(app)
        resp = await client.post("/miniapp-health", json={"telegram_id": "12345"})
        assert resp.status == 200
        assert await resp.json() == {"ok": True, "vip": {"is_vip": None}}

    @pytest.mark.asyncio
    async def test_garbage_telegram_id_skips_backend(self, app, backend, aiohttp_client):
        client = await aiohttp_client(app)
        resp = await client.post("/miniapp-health", json={"telegram_id": "1 or 1=1"})
        assert (await resp.json())["vip"]["is_vip"] is None
        assert not any(c[0] == "get_vip_status" for c in backend.calls)

    @pytest.mark.asyncio
    async def test_vip_by_init_data(self, app, aiohttp_client):
        client = await aiohttp_client(app)
        resp = await client.post("/miniapp-health", json={"initData": make_init_data(user_id=42)})
        assert (await resp.json())["vip"]["is_vip"] is True

    @pytest.mark.asyncio
    async def test_bad_init_data_ignores_telegram_id(self, app, aiohttp_client):
        client = await aiohttp_client(app)
        resp = await client.post("/miniapp-health", json={
            "initData": make_init_data(user_id=42, tamper_hash="0" * 64),
            "telegram_id": "42",
        })
        assert (await resp.json())["vip"]["is_vip"] is None


class TestAdminCheck:
    @pytest.mark.asyncio
    async def test_configured_admin(self, app, aiohttp_client):
        client = await aiohttp_client(app)
        resp = await client.post("/admin-check", json={"initData": make_init_data(user_id=42)})
        assert await resp.json() == {"ok": True}

    @pytest.mark.asyncio
    async def test_backend_admin(self, aiohttp_client):
        backend = FakeBackend(admins={"77"})
        app = create_web_app(make_config(), telegram=FakeTelegram(), backend=backend)
        client = await aiohttp_client(app)
        resp = await client.post("/admin-check", json={"initData": make_init_data(user_id=77)})
        assert await resp.json() == {"ok": True}

    @pytest.mark.asyncio
    async def test_regular_user(self, app, aiohttp_client):
        client = await aiohttp_client(app)
        resp = await client.post("/admin-check", json={"initData": make_init_data(user_id=7)})
        assert await resp.json() == {"ok": False}

    @pytest.mark.asyncio
    async def test_unsigned_admin_id_rejected(self, app, aiohttp_client):
        client = await aiohttp_client(app)
        resp = await client.post("/admin-check", json={
            "initData": make_init_data(user_id=42, tamper_hash="0" * 64),
        })
        assert await resp.json() == {"ok": False}

    @pytest.mark.asyncio
    async def test_no_body(self, app, aiohttp_client):
        client = await aiohttp_client(app)
        resp = await client.post("/admin-check")
        assert await resp.json() == {"ok": False}


class TestPlans:
    @pytest.mark.asyncio
    async def test_lists_plans(self, app, aiohttp_client):
        client = await aiohttp_client(app)
        resp = await client.get("/plans")
        data = await resp.json()
        assert data["ok"] is True
        assert [p["id"] for p in data["plans"]] == ["p1", "p2"]

    @pytest.mark.asyncio
    async def test_empty(self, aiohttp_client):
        app = create_web_app(make_config(), telegram=FakeTelegram(), backend=FakeBackend())
        client = await aiohttp_client(app)
        resp = await client.get("/plans")
        assert await resp.json() == {"ok": True, "plans": []}


@pytest.mark.asyncio
async def test_missing_bot_token_rejects_everything(aiohttp_client):
    app = create_web_app(make_config(bot_token=""), telegram=FakeTelegram(), backend=FakeBackend())
    client = await aiohttp_client(app)
    resp = await client.post("/verify-initdata", json={"initData": make_init_data(bot_token="")})
    assert await resp.json() == {"ok": False, "error": "invalid signature"}
