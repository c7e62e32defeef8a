"""Ports (interfaces) used by the core.

Ports define the minimal contracts for chat backends and pairing renderers so
that the core can be reused with different integrations.
"""

from __future__ import annotations

from typing import Callable, Optional, Protocol

from core.events import SessionEvent

EventListener = Callable[[SessionEvent], None]


class ChatBackend(Protocol):
    """Session establishment, lifecycle events, sends and lookups."""

    def on_event(self, listener: EventListener) -> None:
        ...

    async def connect(self) -> None:
        ...

    async def disconnect(self) -> None:
        ...

    async def send_text(self, recipient: str, text: str) -> None:
        ...

    async def send_attachment(
        self,
        recipient: str,
        content: bytes,
        filename: str,
        mimetype: Optional[str],
        caption: str,
    ) -> None:
        ...

    async def check_registered(self, recipient: str) -> bool:
        ...


BackendFactory = Callable[[], ChatBackend]


class PairingRenderer(Protocol):
    """Turn a raw pairing code into a displayable image."""

    def render(self, code: str) -> str:
        ...
