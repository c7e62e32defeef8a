"""Idempotent outbound dispatch.

The gate checks readiness and required fields, deduplicates on the caller's
logical message identifier and then drives the current backend. It only
relies on the ChatBackend port, so any backend can sit behind it.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import os
from pathlib import Path
from typing import Callable

from core.dedup import ProcessedMessageRecord
from core.errors import MissingField, NotReady, SendFailure
from core.models import DispatchResult, SendRequest, SessionState
from core.ports import ChatBackend
from core.session import SessionStateMachine

LOGGER = logging.getLogger(__name__)

AddressBuilder = Callable[[str], str]


def _read_file(path: str) -> bytes:
    return Path(path).read_bytes()


class DispatchGate:
    """Orchestrates readiness checks, dedup and the ordered send steps."""

    def __init__(
        self,
        session: SessionStateMachine,
        record: ProcessedMessageRecord,
        address_builder: AddressBuilder,
    ) -> None:
        self._session = session
        self._record = record
        self._address_builder = address_builder

    async def dispatch(self, request: SendRequest) -> DispatchResult:
        """Send one logical message at most once."""

        if self._session.state is not SessionState.READY:
            raise NotReady(self._session.state)

        if not request.message_id:
            raise MissingField("MessageID is required")

        if self._record.is_seen(request.message_id):
            LOGGER.info("Dedup skip for %s (same messageId)", request.message_id)
            return DispatchResult(duplicate=True)

        if not request.recipient:
            raise MissingField("Phone number is required")

        # Marked before sending: a retry of a half-sent message is dropped
        # rather than delivered twice.
        self._record.mark_seen(request.message_id)

        backend = self._session.backend
        recipient = self._address_builder(request.recipient)
        try:
            if backend is None:
                raise RuntimeError("Chat backend is not attached")
            if request.text:
                await backend.send_text(recipient, request.text)
            if request.attachment_path:
                await self._send_attachment(backend, recipient, request)
        except Exception as exc:
            LOGGER.error("Send error for %s: %s", request.message_id, exc)
            raise SendFailure(str(exc)) from exc

        LOGGER.info("Message %s sent to %s", request.message_id, recipient)
        return DispatchResult()

    async def _send_attachment(self, backend: ChatBackend, recipient: str, request: SendRequest) -> None:
        path = request.attachment_path
        content = await asyncio.to_thread(_read_file, path)
        filename = os.path.basename(path)
        mimetype, _ = mimetypes.guess_type(filename)
        await backend.send_attachment(
            recipient,
            content,
            filename=filename,
            mimetype=mimetype,
            caption=request.caption or "",
        )
