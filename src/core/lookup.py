"""Number registration lookups."""

from __future__ import annotations

import logging
from typing import Optional

from core.dispatcher import AddressBuilder
from core.errors import LookupFailure, MissingField, NotReady, NotRegistered
from core.models import SessionState
from core.session import SessionStateMachine

LOGGER = logging.getLogger(__name__)


class NumberLookup:
    """Pass-through to the backend's registration check."""

    def __init__(self, session: SessionStateMachine, address_builder: AddressBuilder) -> None:
        self._session = session
        self._address_builder = address_builder

    async def check(self, number: Optional[str]) -> bool:
        """Return True for a registered number, raise otherwise."""

        if self._session.state is not SessionState.READY:
            raise NotReady(self._session.state)
        if not number:
            raise MissingField("Phone number is required")

        backend = self._session.backend
        address = self._address_builder(number)
        try:
            if backend is None:
                raise RuntimeError("Chat backend is not attached")
            registered = await backend.check_registered(address)
        except Exception as exc:
            LOGGER.warning("Lookup failed for %s: %s", address, exc)
            raise LookupFailure() from exc

        if not registered:
            raise NotRegistered()
        return True
