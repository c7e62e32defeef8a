"""Application entry point for the chat bridge."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

import uvicorn
from art import tprint
from dotenv import load_dotenv
from fastapi import FastAPI

import settings
from adapters.http_api import create_app
from adapters.qr_render import QrCodeRenderer
from client import build_backend_factory
from core.config import SessionConfig
from core.dedup import ProcessedMessageRecord
from core.dispatcher import DispatchGate
from core.health import HealthReporter
from core.lookup import NumberLookup
from core.models import SessionState
from core.reconnect import build_reconnect_policy
from core.session import SessionStateMachine

NAME = "CHATBRIDGE"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/chatbridge.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _build_session(print_terminal: bool) -> tuple[SessionStateMachine, DispatchGate, NumberLookup]:
    """Wire the state machine and the objects that read from it."""

    backend_factory, address_builder = build_backend_factory(settings.BACKEND_KIND, settings)
    session = SessionStateMachine(
        backend_factory=backend_factory,
        policy=build_reconnect_policy(settings.RECONNECT_POLICY),
        renderer=QrCodeRenderer(print_terminal=print_terminal),
        config=SessionConfig(
            startup_delay_seconds=settings.STARTUP_DELAY_SECONDS,
            reconnect_delay_seconds=settings.RECONNECT_DELAY_SECONDS,
        ),
    )
    gate = DispatchGate(session, ProcessedMessageRecord(settings.DEDUP_MAX_ENTRIES), address_builder)
    lookup = NumberLookup(session, address_builder)
    return session, gate, lookup


def build_app() -> FastAPI:
    session, gate, lookup = _build_session(settings.PAIRING_PRINT_TERMINAL)
    return create_app(session, gate, lookup, HealthReporter(session))


def _run() -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    logger.info(
        "Starting chatbridge: backend=%s, reconnect=%s",
        settings.BACKEND_KIND,
        settings.RECONNECT_POLICY,
    )
    app = build_app()
    logger.info("API running on http://%s:%s", settings.SERVER_HOST, settings.SERVER_PORT)
    # log_config=None keeps uvicorn on the handlers configured above.
    uvicorn.run(app, host=settings.SERVER_HOST, port=settings.SERVER_PORT, log_config=None)


async def _run_pairing() -> SessionState:
    session, _, _ = _build_session(print_terminal=True)
    final_states = {SessionState.READY, SessionState.FAILURE, SessionState.LOGGED_OUT, SessionState.ERROR}
    if settings.RECONNECT_POLICY != "auto":
        final_states.add(SessionState.DISCONNECTED)

    finished = asyncio.get_running_loop().create_future()

    def _on_state(state: SessionState) -> None:
        if state in final_states and not finished.done():
            finished.set_result(state)

    session.add_state_listener(_on_state)
    session.start(0)
    try:
        return await finished
    finally:
        await session.stop()


def _pair() -> None:
    _print_banner()
    _configure_logging()
    print("Scan the pairing code below to link the account.")
    state = asyncio.run(_run_pairing())
    if state is not SessionState.READY:
        print(f"Pairing ended with status: {state.value}")
        raise SystemExit(1)
    print("Session linked. Start the bridge with: chatbridge run")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="chatbridge")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the HTTP bridge")
    subparsers.add_parser(
        "pair",
        help="Link the account by printing the pairing code in the terminal, then exit.",
    )

    args = parser.parse_args(argv)
    if args.command == "pair":
        _pair()
        return
    _run()


if __name__ == "__main__":
    main()
