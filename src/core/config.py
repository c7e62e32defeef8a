"""Core configuration dataclasses.

settings.py parses config.json; the app layer copies the values it needs into
these frozen objects before handing them to the core.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SessionConfig:
    """Lifecycle timings consumed by the session state machine."""

    startup_delay_seconds: float = 2.0
    reconnect_delay_seconds: float = 0.0
