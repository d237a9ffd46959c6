"""Telegram Mini App initData HMAC-SHA256 validation.

Validates the initData string sent by the Telegram WebApp SDK to ensure
the request is authentic and not replayed. Pure functions, no I/O.

Reference: https://core.telegram.org/bots/webapps#validating-data-received-via-the-mini-app
"""

import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from urllib.parse import parse_qsl


# Upper bound for any initData freshness window, whatever the caller asks for
MAX_INIT_DATA_TTL = 86400
DEFAULT_INIT_DATA_TTL = 3600

MALFORMED_PAYLOAD = "malformed payload"
INVALID_SIGNATURE = "invalid signature"
EXPIRED = "expired"
MALFORMED_USER = "malformed user"


@dataclass
class TelegramUser:
    id: int
    username: str | None = None
    first_name: str | None = None

    def to_dict(self) -> dict:
        d = {"id": self.id}
        if self.username is not None:
            d["username"] = self.username
        if self.first_name is not None:
            d["first_name"] = self.first_name
        return d


@dataclass
class VerificationResult:
    ok: bool
    user: TelegramUser | None = None
    error: str = ""      # one of the error kinds above if ok is False
    auth_date: int = 0


def clamp_ttl(ttl: int | float, ceiling: int = MAX_INIT_DATA_TTL) -> int:
    """Reduce a requested TTL to the server ceiling. Never expands it."""
    ttl = int(ttl)
    if ttl < 0:
        return 0
    return min(ttl, ceiling)


def verify_init_data(
    init_data: str, bot_token: str,
    max_age_seconds: int = DEFAULT_INIT_DATA_TTL, now: float | None = None,
) -> VerificationResult:
    """Validate Telegram initData and extract the embedded user.

    The freshness window is clamped to MAX_INIT_DATA_TTL before use.
    """
    try:
        params = parse_init_data(init_data)
    except (TypeError, ValueError):
        return VerificationResult(ok=False, error=MALFORMED_PAYLOAD)

    received_hash = params.pop("hash", "")
    if not received_hash:
        return VerificationResult(ok=False, error=MALFORMED_PAYLOAD)

    data_check_string = _build_data_check_string(params)
    expected_hash = _compute_hmac(bot_token, data_check_string)

    # compare_digest only accepts ASCII str; a non-ASCII hash cannot match anyway
    if not received_hash.isascii() or not hmac.compare_digest(received_hash, expected_hash):
        return VerificationResult(ok=False, error=INVALID_SIGNATURE)

    try:
        auth_date = int(params.get("auth_date", ""))
    except ValueError:
        return VerificationResult(ok=False, error=MALFORMED_PAYLOAD)

    if now is None:
        now = time.time()
    if now - auth_date > clamp_ttl(max_age_seconds):
        return VerificationResult(ok=False, error=EXPIRED, auth_date=auth_date)

    user = parse_user(params.get("user", ""))
    if user is None:
        return VerificationResult(ok=False, error=MALFORMED_USER, auth_date=auth_date)

    return VerificationResult(ok=True, user=user, auth_date=auth_date)


def parse_init_data(init_data: str) -> dict[str, str]:
    """Parse the initData query string into a flat dict (first value wins)."""
    result = {}
    for key, value in parse_qsl(init_data, keep_blank_values=True):
        result.setdefault(key, value)
    return result


def parse_user(user_json: str) -> TelegramUser | None:
    """Decode the JSON `user` field. Returns None unless it carries an integer id."""
    try:
        user = json.loads(user_json)
    except (json.JSONDecodeError, TypeError):
        return None
    if not isinstance(user, dict):
        return None
    user_id = user.get("id")
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        return None
    username = user.get("username")
    first_name = user.get("first_name")
    return TelegramUser(
        id=user_id,
        username=username if isinstance(username, str) else None,
        first_name=first_name if isinstance(first_name, str) else None,
    )


def _build_data_check_string(params: dict[str, str]) -> str:
    """Build the sorted newline-separated data-check-string for HMAC."""
    return "\n".join(f"{k}={v}" for k, v in sorted(params.items()))


def _compute_hmac(bot_token: str, data_check_string: str) -> str:
    """Compute HMAC-SHA256 using the bot token as the secret key.

    The secret key is HMAC-SHA256("WebAppData", bot_token).
    """
    secret_key = hmac.new(
        b"WebAppData", bot_token.encode(), hashlib.sha256,
    ).digest()
    return hmac.new(
        secret_key, data_check_string.encode(), hashlib.sha256,
    ).hexdigest()
