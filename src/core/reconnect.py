"""Reconnect strategies for the session state machine."""

from __future__ import annotations

from typing import Iterable, Optional, Protocol

from core.events import LOGGED_OUT


class ReconnectPolicy(Protocol):
    def is_logged_out(self, reason: Optional[str]) -> bool:
        ...

    def should_reconnect(self, reason: Optional[str]) -> bool:
        ...


class _BasePolicy:
    def __init__(self, logged_out_reasons: Iterable[str] = (LOGGED_OUT,)) -> None:
        self._logged_out_reasons = frozenset(logged_out_reasons)

    def is_logged_out(self, reason: Optional[str]) -> bool:
        return reason is not None and reason in self._logged_out_reasons


class AutoReconnect(_BasePolicy):
    """Reconnect after any disconnect except an explicit logout."""

    name = "auto"

    def should_reconnect(self, reason: Optional[str]) -> bool:
        return not self.is_logged_out(reason)


class ManualReconnect(_BasePolicy):
    """Never reconnect; an operator or supervisor restarts the process."""

    name = "never"

    def should_reconnect(self, reason: Optional[str]) -> bool:
        return False


def build_reconnect_policy(name: str, logged_out_reasons: Iterable[str] = (LOGGED_OUT,)) -> ReconnectPolicy:
    """Return the strategy registered under name ("auto" or "never")."""

    if name == AutoReconnect.name:
        return AutoReconnect(logged_out_reasons)
    if name == ManualReconnect.name:
        return ManualReconnect(logged_out_reasons)
    raise ValueError(f"Unsupported reconnect policy: {name}")
