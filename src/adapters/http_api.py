"""FastAPI surface for the bridge.

Routes only translate between HTTP/JSON and the core objects stored on
app.state; every failure leaves through the BridgeError handler.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.dispatcher import DispatchGate
from core.errors import BridgeError, NotReady
from core.health import HealthReporter
from core.lookup import NumberLookup
from core.models import SendRequest, SessionState
from core.session import SessionStateMachine

LOGGER = logging.getLogger(__name__)

router = APIRouter()

# Routes whose readiness check wins over body validation.
_GATED_PATHS = frozenset({"/send", "/check-number"})


def _coerce_text(value: Any) -> Any:
    # Callers sometimes post numeric ids and phone numbers.
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class CheckNumberPayload(BaseModel):
    number: Optional[str] = None

    @field_validator("number", mode="before")
    @classmethod
    def coerce_number(cls, value: Any) -> Any:
        return _coerce_text(value)


class SendPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_id: Optional[str] = Field(default=None, alias="messageId")
    number: Optional[str] = None
    message: Optional[str] = None
    pdf_path: Optional[str] = Field(default=None, alias="pdfPath")
    caption: Optional[str] = None

    @field_validator("message_id", "number", mode="before")
    @classmethod
    def coerce_ids(cls, value: Any) -> Any:
        return _coerce_text(value)


def _iso(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@router.get("/qr")
async def qr_route(request: Request) -> dict[str, Any]:
    snapshot = request.app.state.health_reporter.pairing()
    return {
        "status": snapshot.status.value,
        "qr": snapshot.image,
        "timestamp": _iso(snapshot.timestamp),
    }


@router.get("/health")
async def health_route(request: Request) -> dict[str, Any]:
    snapshot = request.app.state.health_reporter.health()
    return {
        "whatsappStatus": snapshot.status.value,
        "lastStateChange": snapshot.last_state_change,
        "loadingDuration": snapshot.loading_duration,
        "loadingPercent": snapshot.loading_percent,
        "loadingMessage": snapshot.loading_message,
        "qrAvailable": snapshot.pairing_available,
        "serverTime": _iso(snapshot.server_time),
    }


@router.post("/check-number")
async def check_number_route(request: Request, payload: Optional[CheckNumberPayload] = None) -> dict[str, Any]:
    payload = payload or CheckNumberPayload()
    await request.app.state.number_lookup.check(payload.number)
    return {"registered": True}


@router.post("/send")
async def send_route(request: Request, payload: Optional[SendPayload] = None) -> dict[str, Any]:
    payload = payload or SendPayload()
    result = await request.app.state.dispatch_gate.dispatch(
        SendRequest(
            message_id=payload.message_id,
            recipient=payload.number,
            text=payload.message,
            attachment_path=payload.pdf_path,
            caption=payload.caption,
        )
    )
    body: dict[str, Any] = {"success": True}
    if result.duplicate:
        body["duplicate"] = True
    return body


async def _bridge_error_handler(request: Request, exc: BridgeError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.payload())


async def _invalid_body_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    session: SessionStateMachine = request.app.state.session
    if request.url.path in _GATED_PATHS and session.state is not SessionState.READY:
        return await _bridge_error_handler(request, NotReady(session.state))
    LOGGER.info("Rejected request body on %s", request.url.path)
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


def create_app(
    session: SessionStateMachine,
    dispatch_gate: DispatchGate,
    number_lookup: NumberLookup,
    health_reporter: HealthReporter,
    autostart: bool = True,
    startup_delay: Optional[float] = None,
) -> FastAPI:
    """Create the FastAPI application around already-wired core objects."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # The listener comes up first; the backend starts after the delay.
        if autostart:
            session.start(startup_delay)
        try:
            yield
        finally:
            await session.stop()

    app = FastAPI(title="chatbridge", lifespan=lifespan)
    app.state.session = session
    app.state.dispatch_gate = dispatch_gate
    app.state.number_lookup = number_lookup
    app.state.health_reporter = health_reporter

    app.add_exception_handler(BridgeError, _bridge_error_handler)
    app.add_exception_handler(RequestValidationError, _invalid_body_handler)
    app.include_router(router)
    return app
