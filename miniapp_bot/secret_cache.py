"""Process-lifetime secret cache.

Values are resolved once and kept until clear() or process restart;
secrets rotate out-of-band, so there is no invalidation.
"""

from typing import Awaitable, Callable


Resolver = Callable[[str], Awaitable[str | None]]


class SecretCache:
    def __init__(self, resolver: Resolver):
        self._resolver = resolver
        self._values: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        """Return the secret for key.

        "" means the secret is not set anywhere. None means the lookup failed
        and nothing is known about it; callers must not treat that as unset.
        """
        if key in self._values:
            return self._values[key]
        try:
            value = await self._resolver(key)
        except Exception as e:
            # Resolution failures are not cached so the next request retries
            print(f"[Secrets] Lookup of {key} failed: {e!r}")
            return None
        if not value:
            return ""
        self._values[key] = value
        return value

    def clear(self) -> None:
        self._values.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._values


def chain_resolver(local: dict[str, str], backend=None) -> Resolver:
    """Resolve from local config values first, then the backend bot_settings table.

    Backend failures propagate as exceptions rather than reading as "unset".
    """
    async def resolve(key: str) -> str | None:
        value = local.get(key, "")
        if value:
            return value
        if backend is not None and backend.configured:
            return await backend.get_setting(key)
        return None
    return resolve
