"""Command / callback dispatch table for webhook updates.

The table only routes. Authorization for admin commands happens inside the
admin handler set, which sees the sender id through CommandContext.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Awaitable, Callable, Iterator, Mapping


@dataclass
class CommandContext:
    message: dict
    chat_id: int
    key: str                    # command ("/start") or callback data ("nav:plans")
    args: list[str] = field(default_factory=list)
    from_id: int | None = None
    mini_app_url_valid: bool = False
    callback_query_id: str | None = None


Handler = Callable[[CommandContext], Awaitable[None]]
Notify = Callable[..., Awaitable[bool]]


# key -> (handler set, method name)
ROUTES: dict[str, tuple[str, str]] = {
    "/start": ("core", "start"),
    "/help": ("core", "help"),
    "/ping": ("core", "ping"),
    "/app": ("core", "app"),
    "/plans": ("core", "plans"),
    "/vip": ("core", "vip"),
    "nav:home": ("core", "start"),
    "nav:plans": ("core", "plans"),
    "/admin": ("admin", "dashboard"),
    "/env": ("admin", "env"),
    "/webhookinfo": ("admin", "webhook_info"),
    "/replay": ("admin", "replay"),
    "admin_dashboard": ("admin", "dashboard"),
    "review_queue": ("admin", "review_queue"),
    "feature_flags": ("admin", "feature_flags"),
}


async def default_handler(ctx: CommandContext) -> None:
    """Unknown command or callback: nothing happens."""
    return None


class DispatchTable(Mapping):
    """Immutable exact-match mapping with a fallback handler."""

    def __init__(self, handlers: dict[str, Handler], default: Handler = default_handler):
        self._handlers = MappingProxyType(dict(handlers))
        self.default = default

    def __getitem__(self, key: str) -> Handler:
        return self._handlers[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def resolve(self, key: str) -> Handler:
        return self._handlers.get(key, self.default)


def build_dispatch_table(
    loader: Callable[[str], object], notify: Notify,
    routes: Mapping[str, tuple[str, str]] = ROUTES,
) -> DispatchTable:
    """Bind every route to a closure that loads its handler set on first use."""
    def bind(set_name: str, method: str) -> Handler:
        async def handler(ctx: CommandContext) -> None:
            handler_set = loader(set_name)
            await getattr(handler_set, method)(ctx, notify)
        handler.__name__ = f"{set_name}.{method}"
        return handler

    return DispatchTable({
        key: bind(set_name, method) for key, (set_name, method) in routes.items()
    })


def parse_command(text: str) -> tuple[str, list[str]]:
    """Split "/cmd@BotName a b" into ("/cmd", ["a", "b"]). Non-commands give ("", [])."""
    tokens = text.split()
    if not tokens or not tokens[0].startswith("/"):
        return "", []
    command = tokens[0].split("@", 1)[0]
    return command, tokens[1:]


def _is_chat_id(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _sender_id(obj: dict) -> int | None:
    sender = obj.get("from")
    if isinstance(sender, dict) and _is_chat_id(sender.get("id")):
        return sender["id"]
    return None


def context_from_update(update: dict, mini_app_url_valid: bool = False) -> CommandContext | None:
    """Build a CommandContext from a Telegram Update, or None if nothing is routable."""
    if not isinstance(update, dict):
        return None

    callback = update.get("callback_query")
    if isinstance(callback, dict):
        message = callback.get("message")
        data = callback.get("data")
        if not isinstance(message, dict) or not isinstance(data, str):
            return None
        chat = message.get("chat")
        chat_id = chat.get("id") if isinstance(chat, dict) else None
        if not _is_chat_id(chat_id):
            return None
        callback_id = callback.get("id")
        return CommandContext(
            message=message,
            chat_id=chat_id,
            key=data,
            from_id=_sender_id(callback),
            mini_app_url_valid=mini_app_url_valid,
            callback_query_id=callback_id if isinstance(callback_id, str) else None,
        )

    message = update.get("message")
    if not isinstance(message, dict):
        return None
    text = message.get("text")
    if not isinstance(text, str):
        return None
    command, args = parse_command(text)
    if not command:
        return None
    chat = message.get("chat")
    chat_id = chat.get("id") if isinstance(chat, dict) else None
    if not _is_chat_id(chat_id):
        return None
    return CommandContext(
        message=message,
        chat_id=chat_id,
        key=command,
        args=args,
        from_id=_sender_id(message),
        mini_app_url_valid=mini_app_url_valid,
    )
