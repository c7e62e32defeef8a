"""Chat backend factories for chatbridge.

Each call builds a fresh backend so the session state machine can replace a
dropped one. Credentials are read via python-dotenv to keep secrets out of
the repo.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from dotenv import load_dotenv
from telethon import TelegramClient

from adapters.browser_bridge import BrowserBridgeBackend
from adapters.telethon_backend import TelethonBackend
from core.addresses import build_chat_address, build_phone_address
from core.dispatcher import AddressBuilder
from core.ports import BackendFactory

LOGGER = logging.getLogger(__name__)


def build_telethon_backend(pairing_timeout: Optional[float] = None) -> TelethonBackend:
    """Create a Telethon-backed session from environment variables.

    The session name defaults to "chatbridge" to create a local .session file.
    """

    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")
    session_name = os.getenv("SESSION_NAME", "chatbridge")

    # Fail fast on missing credentials to avoid an ambiguous login prompt.
    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")

    LOGGER.info("Initializing Telegram client")
    client = TelegramClient(session_name, int(api_id), api_hash)
    return TelethonBackend(client, password=os.getenv("2FA"), pairing_timeout=pairing_timeout)


def build_browser_bridge_backend(
    url: str,
    client_id: str,
    command_timeout: float,
    init_timeout: float,
) -> BrowserBridgeBackend:
    """Create a browser bridge session; BRIDGE_TOKEN is optional."""

    load_dotenv()
    return BrowserBridgeBackend(
        url=url,
        token=os.getenv("BRIDGE_TOKEN") or None,
        client_id=client_id,
        command_timeout=command_timeout,
        init_timeout=init_timeout,
    )


def build_backend_factory(kind: str, settings) -> tuple[BackendFactory, AddressBuilder]:
    """Return (backend factory, recipient address builder) for a backend kind."""

    if kind == "telethon":
        return (
            lambda: build_telethon_backend(settings.TELETHON_PAIRING_TIMEOUT),
            build_phone_address,
        )
    if kind == "browser_bridge":
        return (
            lambda: build_browser_bridge_backend(
                settings.BRIDGE_URL,
                settings.BRIDGE_CLIENT_ID,
                settings.BRIDGE_COMMAND_TIMEOUT,
                settings.BRIDGE_INIT_TIMEOUT,
            ),
            build_chat_address,
        )
    raise ValueError(f"Unsupported backend kind: {kind}")
