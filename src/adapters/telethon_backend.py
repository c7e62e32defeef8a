"""Telethon chat backend.

Protocol-level client: links the account through QR login, reports lifecycle
events to the core and resolves phone numbers through contact imports. This
keeps Telethon-specific details out of the core.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Optional

from telethon import TelegramClient, errors, functions, types

from core.events import (
    LOGGED_OUT,
    AuthFailure,
    Authenticated,
    Disconnected,
    PairingChallenge,
    Ready,
    SessionEvent,
)
from core.ports import EventListener

LOGGER = logging.getLogger(__name__)

# Errors that mean the authorization was revoked and a new pairing is needed.
_LOGGED_OUT_ERRORS = (
    errors.AuthKeyUnregisteredError,
    errors.AuthKeyDuplicatedError,
    errors.SessionRevokedError,
    errors.SessionExpiredError,
    errors.UserDeactivatedError,
)


def disconnect_reason(error: Optional[BaseException]) -> str:
    """Map the error that ended a session to a disconnect reason."""

    if isinstance(error, _LOGGED_OUT_ERRORS):
        return LOGGED_OUT
    if error is None:
        return "connection_lost"
    return type(error).__name__


class PeerResolver:
    """Resolve phone numbers to users, with a phone cache."""

    def __init__(self, client) -> None:
        self._client = client
        self._cache: dict[str, Any] = {}

    async def resolve(self, phone: str) -> Optional[Any]:
        if phone in self._cache:
            return self._cache[phone]
        contact = types.InputPhoneContact(
            client_id=random.randrange(1, 2**62),
            phone=phone,
            first_name=phone,
            last_name="",
        )
        result = await self._client(functions.contacts.ImportContactsRequest(contacts=[contact]))
        if not result.users:
            return None
        user = result.users[0]
        self._cache[phone] = user
        return user


class TelethonBackend:
    """ChatBackend adapter around a TelegramClient."""

    def __init__(
        self,
        client: TelegramClient,
        password: Optional[str] = None,
        pairing_timeout: Optional[float] = None,
    ) -> None:
        self._client = client
        self._password = password
        self._pairing_timeout = pairing_timeout
        self._peers = PeerResolver(client)
        self._listener: Optional[EventListener] = None
        self._watch_task: Optional[asyncio.Task] = None
        self._closing = False

    def on_event(self, listener: EventListener) -> None:
        self._listener = listener

    async def connect(self) -> None:
        """Connect, pair if needed and report readiness."""

        await self._client.connect()
        if not await self._client.is_user_authorized():
            if not await self._authorize():
                return

        self._emit(Authenticated())
        me = await self._client.get_me()
        LOGGER.info("Logged in as %s", getattr(me, "first_name", None) or getattr(me, "id", "unknown"))
        self._watch_task = asyncio.create_task(self._watch_disconnect())
        self._emit(Ready())

    async def disconnect(self) -> None:
        self._closing = True
        if self._watch_task is not None:
            self._watch_task.cancel()
            self._watch_task = None
        await self._client.disconnect()

    async def send_text(self, recipient: str, text: str) -> None:
        user = await self._require_user(recipient)
        await self._call(self._client.send_message(user, text))

    async def send_attachment(
        self,
        recipient: str,
        content: bytes,
        filename: str,
        mimetype: Optional[str],
        caption: str,
    ) -> None:
        user = await self._require_user(recipient)
        await self._call(
            self._client.send_file(
                user,
                content,
                caption=caption,
                force_document=True,
                mime_type=mimetype,
                attributes=[types.DocumentAttributeFilename(file_name=filename)],
            )
        )

    async def check_registered(self, recipient: str) -> bool:
        user = await self._call(self._peers.resolve(recipient))
        return user is not None

    async def _authorize(self) -> bool:
        qr_login = await self._client.qr_login()
        while True:
            self._emit(PairingChallenge(qr_login.url))
            try:
                await qr_login.wait(timeout=self._pairing_timeout)
                return True
            except asyncio.TimeoutError:
                LOGGER.info("Pairing code expired, generating a new one")
                await qr_login.recreate()
            except errors.SessionPasswordNeededError:
                return await self._sign_in_with_password()

    async def _sign_in_with_password(self) -> bool:
        if not self._password:
            self._emit(AuthFailure("Two-step verification password is required (set 2FA)"))
            return False
        try:
            await self._client.sign_in(password=self._password)
        except errors.PasswordHashInvalidError:
            self._emit(AuthFailure("Two-step verification password is invalid"))
            return False
        return True

    async def _require_user(self, recipient: str) -> Any:
        user = await self._call(self._peers.resolve(recipient))
        if user is None:
            raise ValueError(f"{recipient} is not registered")
        return user

    async def _call(self, awaitable):
        # Revoked authorizations surface on the next request, not as a drop.
        try:
            return await awaitable
        except _LOGGED_OUT_ERRORS as exc:
            self._emit(Disconnected(disconnect_reason(exc)))
            raise

    async def _watch_disconnect(self) -> None:
        error: Optional[BaseException] = None
        try:
            await self._client.disconnected
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error = exc
        if self._closing:
            return
        self._emit(Disconnected(disconnect_reason(error)))

    def _emit(self, event: SessionEvent) -> None:
        if self._listener is not None:
            self._listener(event)
