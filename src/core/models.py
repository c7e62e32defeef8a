"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class SessionState(str, Enum):
    """Lifecycle state of the chat-network session."""

    INITIALIZING = "initializing"
    QR = "qr"
    AUTHENTICATED = "authenticated"
    LOADING = "loading"
    READY = "ready"
    DISCONNECTED = "disconnected"
    LOGGED_OUT = "logged_out"
    FAILURE = "failure"
    ERROR = "error"


@dataclass(frozen=True)
class PairingArtifact:
    """Rendered pairing code shown to the account owner."""

    image: str
    created_at: float


@dataclass(frozen=True)
class LoadingProgress:
    """Latest loading progress reported by the backend."""

    percent: Optional[float]
    message: Optional[str]


@dataclass(frozen=True)
class HealthSnapshot:
    """Read-only view of the session for health polling."""

    status: SessionState
    last_state_change: int
    loading_duration: int
    loading_percent: Optional[float]
    loading_message: Optional[str]
    pairing_available: bool
    server_time: datetime


@dataclass(frozen=True)
class PairingSnapshot:
    """Read-only view of the pairing flow."""

    status: SessionState
    image: Optional[str]
    timestamp: datetime


@dataclass(frozen=True)
class SendRequest:
    """One logical outbound message as submitted by the caller."""

    message_id: Optional[str]
    recipient: Optional[str]
    text: Optional[str] = None
    attachment_path: Optional[str] = None
    caption: Optional[str] = None


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of a successful dispatch."""

    duplicate: bool = False
