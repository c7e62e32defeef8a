"""Browser-automation chat backend.

Talks to a headless-browser bridge process over a WebSocket. The bridge drives
the chat network's web client and forwards its lifecycle callbacks as frames;
commands (send, lookup) are correlated with responses through request ids.
"""

from __future__ import annotations

import asyncio
import base64
import contextlib
import json
import logging
import uuid
from typing import Any, Optional

import websockets

from core.events import (
    AuthFailure,
    Authenticated,
    Disconnected,
    Loading,
    PairingChallenge,
    Ready,
    SessionEvent,
)
from core.ports import EventListener

LOGGER = logging.getLogger(__name__)

PROTOCOL_VERSION = 1
DEFAULT_MIMETYPE = "application/octet-stream"


class BridgeCommandError(RuntimeError):
    """The bridge rejected a command."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


def _as_percent(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def parse_bridge_event(msg_type: Optional[str], payload: dict[str, Any]) -> Optional[SessionEvent]:
    """Translate a bridge frame into a session event, or None if it is not one."""

    if msg_type == "qr":
        code = payload.get("qr")
        if not isinstance(code, str) or not code:
            return None
        return PairingChallenge(code)
    if msg_type == "authenticated":
        return Authenticated()
    if msg_type == "ready":
        return Ready()
    if msg_type == "loading_screen":
        message = payload.get("message")
        return Loading(
            percent=_as_percent(payload.get("percent")),
            message=str(message) if message is not None else None,
        )
    if msg_type == "auth_failure":
        return AuthFailure(str(payload.get("message") or ""))
    if msg_type == "disconnected":
        reason = payload.get("reason")
        return Disconnected(str(reason) if reason is not None else None)
    return None


class BrowserBridgeBackend:
    """ChatBackend adapter for the browser bridge protocol."""

    def __init__(
        self,
        url: str,
        token: Optional[str] = None,
        client_id: str = "default",
        command_timeout: float = 60.0,
        init_timeout: float = 120.0,
    ) -> None:
        self._url = url
        self._token = token
        self._client_id = client_id
        self._command_timeout = command_timeout
        self._init_timeout = init_timeout
        self._ws = None
        self._reader_task: Optional[asyncio.Task] = None
        self._pending: dict[str, asyncio.Future] = {}
        self._send_lock = asyncio.Lock()
        self._listener: Optional[EventListener] = None
        self._closing = False

    def on_event(self, listener: EventListener) -> None:
        self._listener = listener

    async def connect(self) -> None:
        """Open the socket and ask the bridge to start the web client."""

        LOGGER.info("Connecting to browser bridge at %s", self._url)
        self._ws = await websockets.connect(self._url, max_size=None, ping_interval=20, ping_timeout=20)
        self._reader_task = asyncio.create_task(self._read_loop())
        await self._send_command("initialize", {"clientId": self._client_id}, timeout=self._init_timeout)

    async def disconnect(self) -> None:
        self._closing = True
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        if self._reader_task is not None:
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
            self._reader_task = None
        self._fail_pending("Bridge backend stopped")

    async def send_text(self, recipient: str, text: str) -> None:
        await self._send_command("send_text", {"chatId": recipient, "text": text})

    async def send_attachment(
        self,
        recipient: str,
        content: bytes,
        filename: str,
        mimetype: Optional[str],
        caption: str,
    ) -> None:
        await self._send_command(
            "send_document",
            {
                "chatId": recipient,
                "data": base64.b64encode(content).decode("ascii"),
                "filename": filename,
                "mimetype": mimetype or DEFAULT_MIMETYPE,
                "caption": caption,
            },
        )

    async def check_registered(self, recipient: str) -> bool:
        result = await self._send_command("is_registered", {"chatId": recipient})
        return bool(result.get("registered"))

    async def _read_loop(self) -> None:
        try:
            async for raw in self._ws:
                self.handle_frame(raw)
        except websockets.ConnectionClosed as exc:
            LOGGER.warning("Bridge connection closed: %s", exc)
        finally:
            self._fail_pending("Bridge connection closed")
        if not self._closing:
            self._emit(Disconnected())

    def handle_frame(self, raw: Any) -> None:
        """Dispatch one inbound frame to a pending command or the listener."""

        try:
            data = json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            LOGGER.warning("Invalid JSON from bridge")
            return
        if not isinstance(data, dict):
            LOGGER.warning("Invalid bridge frame shape")
            return

        msg_type = data.get("type")
        payload = data.get("payload")
        if not isinstance(payload, dict):
            payload = {}

        if msg_type == "response":
            request_id = data.get("requestId")
            if isinstance(request_id, str):
                self._resolve_pending(request_id, payload)
            return

        event = parse_bridge_event(msg_type, payload)
        if event is None:
            LOGGER.debug("Ignoring bridge frame %s", msg_type)
            return
        self._emit(event)

    async def _send_command(
        self,
        command_type: str,
        payload: dict[str, Any],
        timeout: Optional[float] = None,
    ) -> dict[str, Any]:
        if self._ws is None:
            raise RuntimeError("Bridge websocket not connected")

        request_id = uuid.uuid4().hex
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        envelope = {
            "version": PROTOCOL_VERSION,
            "type": command_type,
            "token": self._token,
            "requestId": request_id,
            "payload": payload,
        }
        try:
            async with self._send_lock:
                await self._ws.send(json.dumps(envelope))
            return await asyncio.wait_for(future, timeout=timeout or self._command_timeout)
        finally:
            self._pending.pop(request_id, None)

    def _resolve_pending(self, request_id: str, payload: dict[str, Any]) -> None:
        future = self._pending.get(request_id)
        if future is None or future.done():
            return
        if payload.get("ok"):
            result = payload.get("result")
            future.set_result(result if isinstance(result, dict) else {})
            return
        error = payload.get("error") if isinstance(payload.get("error"), dict) else {}
        future.set_exception(
            BridgeCommandError(
                str(error.get("code") or "ERR_INTERNAL"),
                str(error.get("message") or "Bridge command failed"),
            )
        )

    def _fail_pending(self, reason: str) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(RuntimeError(reason))
        self._pending.clear()

    def _emit(self, event: SessionEvent) -> None:
        if self._listener is not None:
            self._listener(event)
