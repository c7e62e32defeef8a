from __future__ import annotations

import asyncio

import pytest

from core.config import SessionConfig
from core.events import (
    LOGGED_OUT,
    AuthFailure,
    Authenticated,
    Disconnected,
    Loading,
    PairingChallenge,
    Ready,
)
from core.models import SessionState
from core.reconnect import AutoReconnect, ManualReconnect
from core.session import SessionStateMachine, resolve_state
from fakes import FakeBackend, FakeBackendFactory, FakeClock, FakeRenderer


def _machine(factory=None, policy=None, renderer=None, clock=None) -> SessionStateMachine:
    return SessionStateMachine(
        backend_factory=factory or FakeBackendFactory(),
        policy=policy or AutoReconnect(),
        renderer=renderer or FakeRenderer(),
        config=SessionConfig(startup_delay_seconds=0, reconnect_delay_seconds=0),
        clock=clock or FakeClock(),
    )


def test_initial_state_is_initializing() -> None:
    machine = _machine()
    assert machine.state is SessionState.INITIALIZING
    assert machine.pairing is None
    assert machine.loading_since is None


@pytest.mark.parametrize(
    "event, expected",
    [
        (PairingChallenge("code"), SessionState.QR),
        (Authenticated(), SessionState.AUTHENTICATED),
        (Ready(), SessionState.READY),
        (Loading(10, "Loading chats"), SessionState.LOADING),
        (AuthFailure("bad"), SessionState.FAILURE),
        (Disconnected("connection_lost"), SessionState.DISCONNECTED),
        (Disconnected(None), SessionState.DISCONNECTED),
        (Disconnected(LOGGED_OUT), SessionState.LOGGED_OUT),
    ],
)
def test_resolve_state_covers_every_event(event, expected) -> None:
    assert resolve_state(event, ManualReconnect()) is expected


def test_resolve_state_rejects_unknown_events() -> None:
    with pytest.raises(TypeError):
        resolve_state(object(), ManualReconnect())


def test_pairing_then_ready_clears_artifact() -> None:
    renderer = FakeRenderer()
    machine = _machine(policy=ManualReconnect(), renderer=renderer)

    machine.handle(PairingChallenge("2@abc"))
    assert machine.state is SessionState.QR
    assert machine.pairing is not None
    assert machine.pairing.image == "data:image/png;base64,2@abc"

    machine.handle(Ready())
    assert machine.state is SessionState.READY
    assert machine.pairing is None


def test_new_pairing_code_replaces_artifact_without_state_change() -> None:
    clock = FakeClock()
    machine = _machine(policy=ManualReconnect(), clock=clock)

    machine.handle(PairingChallenge("first"))
    changed_at = machine.last_state_change
    clock.advance(20)
    machine.handle(PairingChallenge("second"))

    assert machine.pairing.image.endswith("second")
    assert machine.last_state_change == changed_at


def test_repeated_state_does_not_touch_timestamp() -> None:
    clock = FakeClock()
    machine = _machine(policy=ManualReconnect(), clock=clock)

    machine.handle(Ready())
    first_change = machine.last_state_change
    clock.advance(5)
    machine.handle(Ready())

    assert machine.last_state_change == first_change
    clock.advance(5)
    machine.handle(AuthFailure("expired"))
    assert machine.last_state_change == int(clock.now * 1000)


def test_loading_sets_since_once_and_ready_clears_it() -> None:
    clock = FakeClock()
    machine = _machine(policy=ManualReconnect(), clock=clock)

    machine.handle(Authenticated())
    machine.handle(Loading(10, "Loading your chats"))
    started = machine.loading_since
    clock.advance(3)
    machine.handle(Loading(55, "Still loading"))

    assert machine.state is SessionState.LOADING
    assert machine.loading_since == started
    assert machine.loading.percent == 55
    assert machine.loading.message == "Still loading"

    machine.handle(Ready())
    assert machine.loading_since is None
    assert machine.loading is None


def test_artifact_only_exists_in_qr_state() -> None:
    machine = _machine(policy=ManualReconnect())
    events = [
        PairingChallenge("a"),
        Authenticated(),
        PairingChallenge("b"),
        Loading(1, "x"),
        PairingChallenge("c"),
        AuthFailure("no"),
        PairingChallenge("d"),
        Disconnected("NAVIGATION"),
        PairingChallenge("e"),
        Disconnected(LOGGED_OUT),
        PairingChallenge("f"),
        Ready(),
    ]
    for event in events:
        machine.handle(event)
        assert (machine.pairing is not None) == (machine.state is SessionState.QR)


def test_render_failure_leaves_state_and_artifact_empty() -> None:
    machine = _machine(policy=ManualReconnect(), renderer=FakeRenderer(error=ValueError("too long")))

    machine.handle(PairingChallenge("code"))

    assert machine.state is SessionState.INITIALIZING
    assert machine.pairing is None


def test_render_failure_does_not_escape_backend_callback() -> None:
    machine = _machine(policy=ManualReconnect(), renderer=FakeRenderer(error=RuntimeError("boom")))
    backend = FakeBackend()
    machine.attach(backend)

    backend.emit(PairingChallenge("code"))

    assert machine.pairing is None


def test_auto_reconnect_builds_one_new_backend() -> None:
    first = FakeBackend(events_on_connect=(Ready(),))
    second = FakeBackend(events_on_connect=(Ready(),))
    factory = FakeBackendFactory(first, second)
    machine = _machine(factory=factory, policy=AutoReconnect())

    async def scenario() -> None:
        machine.start()
        await machine.drain()
        assert machine.state is SessionState.READY
        first.emit(Disconnected("connection_lost"))
        await machine.drain()

    asyncio.run(scenario())

    assert factory.created == [first, second]
    assert first.disconnected
    assert machine.backend is second
    assert machine.state is SessionState.READY


def test_auto_reconnect_also_covers_missing_reason() -> None:
    first = FakeBackend(events_on_connect=(Ready(),))
    factory = FakeBackendFactory(first)
    machine = _machine(factory=factory, policy=AutoReconnect())

    async def scenario() -> None:
        machine.start()
        await machine.drain()
        first.emit(Disconnected())
        await machine.drain()

    asyncio.run(scenario())

    assert len(factory.created) == 2


def test_logged_out_never_reconnects() -> None:
    first = FakeBackend(events_on_connect=(Ready(),))
    factory = FakeBackendFactory(first)
    machine = _machine(factory=factory, policy=AutoReconnect())

    async def scenario() -> None:
        machine.start()
        await machine.drain()
        first.emit(Disconnected(LOGGED_OUT))
        await machine.drain()

    asyncio.run(scenario())

    assert factory.created == [first]
    assert machine.state is SessionState.LOGGED_OUT


def test_manual_policy_never_reconnects() -> None:
    first = FakeBackend(events_on_connect=(Ready(),))
    factory = FakeBackendFactory(first)
    machine = _machine(factory=factory, policy=ManualReconnect())

    async def scenario() -> None:
        machine.start()
        await machine.drain()
        first.emit(Disconnected("NAVIGATION"))
        await machine.drain()

    asyncio.run(scenario())

    assert factory.created == [first]
    assert machine.state is SessionState.DISCONNECTED


def test_events_from_replaced_backend_are_ignored() -> None:
    first = FakeBackend(events_on_connect=(Ready(),))
    second = FakeBackend(events_on_connect=(PairingChallenge("fresh"),))
    machine = _machine(factory=FakeBackendFactory(first, second), policy=AutoReconnect())

    async def scenario() -> None:
        machine.start()
        await machine.drain()
        first.emit(Disconnected("connection_lost"))
        await machine.drain()
        first.emit(Ready())

    asyncio.run(scenario())

    assert machine.state is SessionState.QR
    assert machine.pairing is not None


def test_initialization_failure_is_terminal() -> None:
    broken = FakeBackend(connect_error=OSError("browser did not start"))
    factory = FakeBackendFactory(broken)
    machine = _machine(factory=factory, policy=AutoReconnect())

    async def scenario() -> None:
        machine.start()
        await machine.drain()

    asyncio.run(scenario())

    assert machine.state is SessionState.ERROR
    assert machine.backend is None
    assert broken.disconnected
    assert "browser did not start" in machine.last_failure.message
    assert factory.created == [broken]

    broken.emit(Ready())
    assert machine.state is SessionState.ERROR


def test_factory_failure_sets_error() -> None:
    def factory():
        raise RuntimeError("Missing API_ID or API_HASH in environment")

    machine = _machine(factory=factory)

    async def scenario() -> None:
        machine.start()
        await machine.drain()

    asyncio.run(scenario())

    assert machine.state is SessionState.ERROR


def test_state_listeners_see_each_change_once() -> None:
    machine = _machine(policy=ManualReconnect())
    seen: list[SessionState] = []
    machine.add_state_listener(seen.append)

    machine.handle(Authenticated())
    machine.handle(Authenticated())
    machine.handle(Ready())

    assert seen == [SessionState.AUTHENTICATED, SessionState.READY]


def test_stop_disconnects_current_backend() -> None:
    backend = FakeBackend(events_on_connect=(Ready(),))
    machine = _machine(factory=FakeBackendFactory(backend))

    async def scenario() -> None:
        machine.start()
        await machine.drain()
        await machine.stop()

    asyncio.run(scenario())

    assert backend.disconnected
    assert machine.backend is None
