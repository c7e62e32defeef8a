"""Session lifecycle events emitted by chat backends.

Backends translate their native callbacks into these variants so the state
machine consumes a single typed channel.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

# Disconnect reason reported when the account owner unlinked the session.
LOGGED_OUT = "logged_out"


@dataclass(frozen=True)
class PairingChallenge:
    """A new pairing code must be shown to the account owner."""

    code: str


@dataclass(frozen=True)
class Authenticated:
    pass


@dataclass(frozen=True)
class Ready:
    pass


@dataclass(frozen=True)
class Loading:
    percent: Optional[float]
    message: Optional[str]


@dataclass(frozen=True)
class AuthFailure:
    message: str = ""


@dataclass(frozen=True)
class Disconnected:
    """The session dropped; reason is None when the backend gave none."""

    reason: Optional[str] = None


SessionEvent = Union[PairingChallenge, Authenticated, Ready, Loading, AuthFailure, Disconnected]
