"""Typed ASGI aliases.

The raw ASGI callables are plain dicts in and out; these aliases keep the
signatures readable in the handler, sender, and test client.
"""

from collections.abc import Awaitable, Callable, MutableMapping
from typing import Any, TypeAlias

Message: TypeAlias = MutableMapping[str, Any]
Scope: TypeAlias = MutableMapping[str, Any]
Receive: TypeAlias = Callable[[], Awaitable[Message]]
Send: TypeAlias = Callable[[Message], Awaitable[None]]


def is_disconnect(message: Message) -> bool:
    """True when *message* tells us the client has gone away."""
    return message.get("type") == "http.disconnect"
