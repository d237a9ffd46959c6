import os
from dataclasses import dataclass, field
from urllib.parse import urlparse

from .web_auth import DEFAULT_INIT_DATA_TTL


@dataclass
class Config:
    bot_token: str
    webhook_secret: str = ""
    admin_ids: set[int] = field(default_factory=set)
    supabase_url: str = ""
    supabase_key: str = ""
    mini_app_url: str = ""
    api_port: int = 8080
    init_data_ttl: int = DEFAULT_INIT_DATA_TTL
    request_timeout: float = 8.0
    cors_origin: str = "*"


# (env var, section, option) in overlay order
ENV_KEYS = (
    ("TELEGRAM_BOT_TOKEN", "TELEGRAM", "bot_token"),
    ("TELEGRAM_WEBHOOK_SECRET", "TELEGRAM", "webhook_secret"),
    ("TELEGRAM_ADMIN_IDS", "TELEGRAM", "admin_ids"),
    ("SUPABASE_URL", "SUPABASE", "url"),
    ("SUPABASE_SERVICE_ROLE_KEY", "SUPABASE", "service_role_key"),
    ("MINI_APP_URL", "MINIAPP", "url"),
    ("PORT", "SERVER", "port"),
    ("INIT_DATA_TTL", "MINIAPP", "init_data_ttl"),
    ("REQUEST_TIMEOUT", "SERVER", "request_timeout"),
    ("CORS_ORIGIN", "SERVER", "cors_origin"),
)


def parse_admin_ids(raw: str) -> set[int]:
    """Parse comma-separated user IDs into a set, skipping junk entries."""
    ids = set()
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            ids.add(int(part))
        except ValueError:
            print(f"[Config] Ignoring non-numeric admin id: {part!r}")
    return ids


def _lookup(config, environ, env_name: str, section: str, option: str, default: str = "") -> str:
    value = environ.get(env_name, "").strip()
    if value:
        return value
    if config is not None and config.has_section(section):
        return config[section].get(option, default).strip()
    return default


def load_config(config=None, environ=None) -> Config:
    """Build a Config from a parsed configparser object, overlaid with the environment."""
    if environ is None:
        environ = os.environ
    values = {}
    for env_name, section, option in ENV_KEYS:
        values[f"{section}.{option}"] = _lookup(config, environ, env_name, section, option)

    port = values["SERVER.port"] or "8080"
    ttl = values["MINIAPP.init_data_ttl"] or str(DEFAULT_INIT_DATA_TTL)
    timeout = values["SERVER.request_timeout"] or "8.0"

    return Config(
        bot_token=values["TELEGRAM.bot_token"],
        webhook_secret=values["TELEGRAM.webhook_secret"],
        admin_ids=parse_admin_ids(values["TELEGRAM.admin_ids"]),
        supabase_url=values["SUPABASE.url"].rstrip("/"),
        supabase_key=values["SUPABASE.service_role_key"],
        mini_app_url=values["MINIAPP.url"],
        api_port=int(port),
        init_data_ttl=int(ttl),
        request_timeout=float(timeout),
        cors_origin=values["SERVER.cors_origin"] or "*",
    )


def config_status(config: Config) -> dict[str, bool]:
    """Which settings are present, keyed by env var name. Never exposes values."""
    return {
        "TELEGRAM_BOT_TOKEN": bool(config.bot_token),
        "TELEGRAM_WEBHOOK_SECRET": bool(config.webhook_secret),
        "TELEGRAM_ADMIN_IDS": bool(config.admin_ids),
        "SUPABASE_URL": bool(config.supabase_url),
        "SUPABASE_SERVICE_ROLE_KEY": bool(config.supabase_key),
        "MINI_APP_URL": bool(config.mini_app_url),
    }


def is_admin(config: Config, user_id: int | None) -> bool:
    """Check if user is a configured admin. No admins configured means nobody is."""
    if not config.admin_ids or user_id is None:
        return False
    return user_id in config.admin_ids


def is_valid_mini_app_url(url: str) -> bool:
    """Telegram only opens web_app buttons for absolute https URLs."""
    if not url:
        return False
    parsed = urlparse(url)
    return parsed.scheme == "https" and bool(parsed.netloc)
