"""Session lifecycle state machine.

This module is integration-agnostic. Backends push SessionEvent variants into
the machine, which owns the current state, the pairing artifact and the loading
progress, and decides when a fresh backend has to be created.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from typing import Callable, Coroutine, Optional

from core.config import SessionConfig
from core.errors import InitializationFailure, PairingRenderFailure
from core.events import (
    AuthFailure,
    Authenticated,
    Disconnected,
    Loading,
    PairingChallenge,
    Ready,
    SessionEvent,
)
from core.models import LoadingProgress, PairingArtifact, SessionState
from core.ports import BackendFactory, ChatBackend, PairingRenderer
from core.reconnect import ReconnectPolicy

LOGGER = logging.getLogger(__name__)

StateListener = Callable[[SessionState], None]


def resolve_state(event: SessionEvent, policy: ReconnectPolicy) -> SessionState:
    """Return the state an event leads to, regardless of the current one."""

    if isinstance(event, PairingChallenge):
        return SessionState.QR
    if isinstance(event, Authenticated):
        return SessionState.AUTHENTICATED
    if isinstance(event, Ready):
        return SessionState.READY
    if isinstance(event, Loading):
        return SessionState.LOADING
    if isinstance(event, AuthFailure):
        return SessionState.FAILURE
    if isinstance(event, Disconnected):
        if policy.is_logged_out(event.reason):
            return SessionState.LOGGED_OUT
        return SessionState.DISCONNECTED
    raise TypeError(f"Unsupported session event: {event!r}")


class SessionStateMachine:
    """Single source of truth for the session lifecycle."""

    def __init__(
        self,
        backend_factory: BackendFactory,
        policy: ReconnectPolicy,
        renderer: PairingRenderer,
        config: Optional[SessionConfig] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._backend_factory = backend_factory
        self._policy = policy
        self._renderer = renderer
        self._config = config or SessionConfig()
        self._clock = clock

        self._state = SessionState.INITIALIZING
        self._last_state_change = self._now_ms()
        self._pairing: Optional[PairingArtifact] = None
        self._loading: Optional[LoadingProgress] = None
        self._loading_since: Optional[float] = None
        self._backend: Optional[ChatBackend] = None
        self._last_failure: Optional[InitializationFailure] = None
        self._tasks: set[asyncio.Task] = set()
        self._state_listeners: list[StateListener] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def last_state_change(self) -> int:
        """Epoch milliseconds of the last real state change."""
        return self._last_state_change

    @property
    def pairing(self) -> Optional[PairingArtifact]:
        return self._pairing

    @property
    def loading(self) -> Optional[LoadingProgress]:
        return self._loading

    @property
    def loading_since(self) -> Optional[float]:
        return self._loading_since

    @property
    def backend(self) -> Optional[ChatBackend]:
        return self._backend

    @property
    def last_failure(self) -> Optional[InitializationFailure]:
        return self._last_failure

    def add_state_listener(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def attach(self, backend: ChatBackend) -> None:
        """Make backend the current one; events from older backends are ignored."""

        self._backend = backend
        backend.on_event(functools.partial(self._on_backend_event, backend))

    def start(self, delay_seconds: Optional[float] = None) -> None:
        """Schedule the first backend on the running loop."""

        if delay_seconds is None:
            delay_seconds = self._config.startup_delay_seconds
        self._spawn(self._open_backend(delay_seconds))

    async def drain(self) -> None:
        """Wait until no connect or reconnect task is pending."""

        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def stop(self) -> None:
        """Cancel pending work and disconnect the current backend."""

        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        backend, self._backend = self._backend, None
        if backend is not None:
            await self._close_quietly(backend)

    def handle(self, event: SessionEvent) -> None:
        """Apply one event: side effects first, then the state transition."""

        new_state = resolve_state(event, self._policy)

        if isinstance(event, PairingChallenge):
            LOGGER.info("Pairing code generated")
            if not self._show_pairing(event.code):
                return
        elif isinstance(event, Loading):
            if self._loading_since is None:
                self._loading_since = self._clock()
            self._loading = LoadingProgress(percent=event.percent, message=event.message)
            LOGGER.info("Loading %s%% - %s", event.percent, event.message)
        elif isinstance(event, Ready):
            self._loading_since = None
            self._loading = None
        elif isinstance(event, AuthFailure):
            LOGGER.error("Auth failure: %s", event.message)
        elif isinstance(event, Disconnected):
            LOGGER.info("Disconnected: %s", event.reason)

        if new_state is not SessionState.QR:
            self._pairing = None
        self._set_state(new_state)

        if (
            isinstance(event, Disconnected)
            and new_state is SessionState.DISCONNECTED
            and self._policy.should_reconnect(event.reason)
        ):
            LOGGER.info("Reconnecting chat backend")
            previous, self._backend = self._backend, None
            self._spawn(self._open_backend(self._config.reconnect_delay_seconds, previous=previous))

    def _on_backend_event(self, source: ChatBackend, event: SessionEvent) -> None:
        if source is not self._backend:
            LOGGER.debug("Ignoring %s from a replaced backend", type(event).__name__)
            return
        try:
            self.handle(event)
        except Exception:
            LOGGER.exception("Error while handling %s", type(event).__name__)

    def _show_pairing(self, code: str) -> bool:
        try:
            image = self._renderer.render(code)
        except Exception as exc:
            failure = PairingRenderFailure(f"Pairing code could not be rendered: {exc}")
            LOGGER.error("%s", failure.message)
            self._pairing = None
            return False
        self._pairing = PairingArtifact(image=image, created_at=self._clock())
        return True

    async def _open_backend(self, delay_seconds: float, previous: Optional[ChatBackend] = None) -> None:
        if previous is not None:
            await self._close_quietly(previous)
        if delay_seconds > 0:
            await asyncio.sleep(delay_seconds)

        LOGGER.info("Initializing chat backend...")
        backend: Optional[ChatBackend] = None
        try:
            backend = self._backend_factory()
            self.attach(backend)
            await backend.connect()
        except Exception as exc:
            if backend is None or backend is self._backend:
                await self._fail_initialization(exc, backend)
            else:
                LOGGER.warning("Replaced backend failed to connect: %s", exc)

    async def _fail_initialization(self, exc: Exception, backend: Optional[ChatBackend]) -> None:
        failure = InitializationFailure(f"Initialization failed: {exc}", exc)
        LOGGER.error("%s", failure.message)
        self._last_failure = failure
        self._backend = None
        self._pairing = None
        self._set_state(SessionState.ERROR)
        if backend is not None:
            await self._close_quietly(backend)

    async def _close_quietly(self, backend: ChatBackend) -> None:
        try:
            await backend.disconnect()
        except Exception:
            LOGGER.warning("Failed to disconnect chat backend", exc_info=True)

    def _spawn(self, coro: Coroutine) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _set_state(self, new_state: SessionState) -> None:
        if new_state is self._state:
            return
        self._state = new_state
        self._last_state_change = self._now_ms()
        LOGGER.info("STATUS: %s", new_state.value)
        for listener in list(self._state_listeners):
            try:
                listener(new_state)
            except Exception:
                LOGGER.exception("State listener failed")

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)
