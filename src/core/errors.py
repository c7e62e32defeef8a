"""Error taxonomy shared by the core and the HTTP adapter.

Each error knows the HTTP status it maps to and the JSON body returned to the
caller, so the API layer converts them with a single handler.
"""

from __future__ import annotations

from typing import Any, Optional

from core.models import SessionState


class BridgeError(Exception):
    """Base for failures surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def payload(self) -> dict[str, Any]:
        return {"error": self.message}


class NotReady(BridgeError):
    """The session is not in the ready state."""

    status_code = 400

    def __init__(self, current_status: SessionState) -> None:
        super().__init__("Chat backend is not ready")
        self.current_status = current_status

    def payload(self) -> dict[str, Any]:
        return {"error": self.message, "currentStatus": self.current_status.value}


class MissingField(BridgeError):
    """A required request field is absent."""

    status_code = 400


class NotRegistered(BridgeError):
    """The looked-up number has no account on the chat network."""

    status_code = 404

    def __init__(self, message: str = "Number is not registered on the chat network") -> None:
        super().__init__(message)

    def payload(self) -> dict[str, Any]:
        return {"registered": False, "error": self.message}


class LookupFailure(BridgeError):
    """The backend raised while checking a number."""

    def __init__(self, message: str = "Unable to verify number") -> None:
        super().__init__(message)


class SendFailure(BridgeError):
    """The backend raised while sending; the message text is surfaced."""


class InitializationFailure(BridgeError):
    """Connecting the backend failed; the session is unusable until restart."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class PairingRenderFailure(BridgeError):
    """The pairing code could not be rendered into an image."""
