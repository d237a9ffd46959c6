"""Best-effort admin alerting with a process-local throttle.

The throttle is a single "last sent" timestamp shared by every caller in
the process. Separate processes throttle independently.
"""

import time
from typing import Callable


ALERT_MIN_INTERVAL = 15.0


class AlertThrottle:
    def __init__(self, min_interval: float = ALERT_MIN_INTERVAL,
                 clock: Callable[[], float] = time.monotonic):
        self.min_interval = min_interval
        self._clock = clock
        self._last_sent: float | None = None

    def try_acquire(self) -> bool:
        """Claim the next alert slot if min_interval has elapsed since the last one."""
        now = self._clock()
        if self._last_sent is not None and now - self._last_sent < self.min_interval:
            return False
        self._last_sent = now
        return True

    def reset(self) -> None:
        self._last_sent = None


class AdminAlerter:
    def __init__(self, notifier, admin_ids: set[int], throttle: AlertThrottle | None = None):
        self._notifier = notifier
        self._admin_ids = admin_ids
        self.throttle = throttle or AlertThrottle()

    async def alert(self, text: str) -> bool:
        """Send text to every admin unless throttled. Returns whether it was sent."""
        if not self._admin_ids:
            return False
        if not self.throttle.try_acquire():
            print(f"[Alert] Throttled: {text[:80]}")
            return False
        for admin_id in sorted(self._admin_ids):
            await self._notifier.send_message(admin_id, f"⚠️ {text}")
        return True
