"""Read-only Supabase (PostgREST) access for VIP status, plans and admin data."""

import asyncio
from typing import Callable

import aiohttp


class BackendUnavailable(Exception):
    """The backend could not be asked, as opposed to having no matching row."""


class SupabaseBackend:
    def __init__(
        self, base_url: str, service_key: str,
        session_factory: Callable[[], aiohttp.ClientSession], timeout: float = 8.0,
    ):
        self._base_url = base_url.rstrip("/")
        self._key = service_key
        self._session_factory = session_factory
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    @property
    def configured(self) -> bool:
        return bool(self._base_url and self._key)

    def _headers(self) -> dict:
        return {
            "apikey": self._key,
            "Authorization": f"Bearer {self._key}",
            "Accept": "application/json",
        }

    async def _select(self, table: str, params: dict, strict: bool = False) -> list[dict] | None:
        """GET /rest/v1/<table>. Returns None when unconfigured or on any failure.

        With strict=True a failed request raises BackendUnavailable instead.
        """
        if not self.configured:
            return None
        url = f"{self._base_url}/rest/v1/{table}"
        session = self._session_factory()
        try:
            async with session.get(
                url, params=params, headers=self._headers(), timeout=self._timeout,
            ) as resp:
                if resp.status >= 300:
                    print(f"[Backend] {table} → HTTP {resp.status}")
                    if strict:
                        raise BackendUnavailable(f"{table}: HTTP {resp.status}")
                    return None
                rows = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            print(f"[Backend] {table} failed: {e!r}")
            if strict:
                raise BackendUnavailable(f"{table}: {e!r}") from e
            return None
        if not isinstance(rows, list):
            if strict:
                raise BackendUnavailable(f"{table}: unexpected response")
            return None
        return rows

    async def _first(self, table: str, params: dict, strict: bool = False) -> dict | None:
        rows = await self._select(table, {**params, "limit": "1"}, strict=strict)
        if not rows or not isinstance(rows[0], dict):
            return None
        return rows[0]

    async def get_vip_status(self, telegram_id: int | str) -> bool | None:
        row = await self._first("bot_users", {
            "select": "is_vip", "telegram_id": f"eq.{telegram_id}",
        })
        if row is None or not isinstance(row.get("is_vip"), bool):
            return None
        return row["is_vip"]

    async def is_admin_user(self, telegram_id: int | str) -> bool:
        row = await self._first("bot_users", {
            "select": "is_admin", "telegram_id": f"eq.{telegram_id}",
        })
        return bool(row and row.get("is_admin") is True)

    async def list_plans(self) -> list[dict]:
        rows = await self._select("subscription_plans", {
            "select": "id,name,price,currency,duration_months,is_lifetime,features",
            "order": "price.asc",
        })
        return rows or []

    async def list_pending_payments(self, limit: int = 10) -> list[dict]:
        rows = await self._select("payments", {
            "select": "id,user_id,plan_id,amount,currency,payment_method,created_at",
            "status": "eq.pending",
            "order": "created_at.asc",
            "limit": str(limit),
        })
        return rows or []

    async def get_payment(self, payment_id: str) -> dict | None:
        return await self._first("payments", {
            "select": "id,user_id,plan_id,amount,currency,payment_method,status,created_at",
            "id": f"eq.{payment_id}",
        })

    async def get_setting(self, key: str) -> str | None:
        """Active bot_settings value, or None if there is no such row.

        Raises BackendUnavailable when the lookup itself fails, so callers
        guarding on a secret can tell an outage from an unset value.
        """
        row = await self._first("bot_settings", {
            "select": "setting_value", "setting_key": f"eq.{key}", "is_active": "eq.true",
        }, strict=True)
        if row is None:
            return None
        value = row.get("setting_value")
        return value if isinstance(value, str) else None

    async def get_config_value(self, key: str):
        """Fetch a kv_config value (arbitrary JSON), or None."""
        row = await self._first("kv_config", {"select": "value", "key": f"eq.{key}"})
        if row is None:
            return None
        return row.get("value")
