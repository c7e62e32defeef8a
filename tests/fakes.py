from __future__ import annotations

from typing import Optional

from core.events import SessionEvent


class FakeBackend:
    def __init__(
        self,
        events_on_connect: tuple = (),
        connect_error: Optional[Exception] = None,
        registered: bool = True,
        send_error: Optional[Exception] = None,
        lookup_error: Optional[Exception] = None,
    ) -> None:
        self._events_on_connect = events_on_connect
        self._connect_error = connect_error
        self._registered = registered
        self._send_error = send_error
        self._lookup_error = lookup_error
        self.listener = None
        self.connected = False
        self.disconnected = False
        self.sent: list[tuple] = []
        self.checked: list[str] = []

    def on_event(self, listener) -> None:
        self.listener = listener

    def emit(self, event: SessionEvent) -> None:
        self.listener(event)

    async def connect(self) -> None:
        self.connected = True
        if self._connect_error is not None:
            raise self._connect_error
        for event in self._events_on_connect:
            self.emit(event)

    async def disconnect(self) -> None:
        self.disconnected = True

    async def send_text(self, recipient: str, text: str) -> None:
        if self._send_error is not None:
            raise self._send_error
        self.sent.append(("text", recipient, text))

    async def send_attachment(self, recipient, content, filename, mimetype, caption) -> None:
        if self._send_error is not None:
            raise self._send_error
        self.sent.append(("attachment", recipient, content, filename, mimetype, caption))

    async def check_registered(self, recipient: str) -> bool:
        if self._lookup_error is not None:
            raise self._lookup_error
        self.checked.append(recipient)
        return self._registered


class FakeBackendFactory:
    """Hand out prepared backends in order and count constructions."""

    def __init__(self, *backends: FakeBackend) -> None:
        self._backends = list(backends)
        self.created: list[FakeBackend] = []

    def __call__(self) -> FakeBackend:
        backend = self._backends.pop(0) if self._backends else FakeBackend()
        self.created.append(backend)
        return backend


class FakeRenderer:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self._error = error
        self.rendered: list[str] = []

    def render(self, code: str) -> str:
        if self._error is not None:
            raise self._error
        self.rendered.append(code)
        return f"data:image/png;base64,{code}"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
