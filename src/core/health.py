"""Read-only projections of the session for polling clients."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Callable

from core.models import HealthSnapshot, PairingSnapshot
from core.session import SessionStateMachine


class HealthReporter:
    """Derive health and pairing snapshots; never mutates the session."""

    def __init__(self, session: SessionStateMachine, clock: Callable[[], float] = time.time) -> None:
        self._session = session
        self._clock = clock

    def health(self) -> HealthSnapshot:
        now = self._clock()
        since = self._session.loading_since
        loading = self._session.loading
        return HealthSnapshot(
            status=self._session.state,
            last_state_change=self._session.last_state_change,
            loading_duration=int((now - since) * 1000) if since is not None else 0,
            loading_percent=loading.percent if loading else None,
            loading_message=loading.message if loading else None,
            pairing_available=self._session.pairing is not None,
            server_time=datetime.fromtimestamp(now, tz=timezone.utc),
        )

    def pairing(self) -> PairingSnapshot:
        artifact = self._session.pairing
        return PairingSnapshot(
            status=self._session.state,
            image=artifact.image if artifact else None,
            timestamp=datetime.fromtimestamp(self._clock(), tz=timezone.utc),
        )
