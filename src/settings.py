"""Static configuration for chatbridge.

All user-editable settings (server, backend, pairing, dedup, logging) live in
a single JSON file for quick edits without touching Python. Secrets stay in
the environment (.env).
"""

import json
import os

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _optional_float(value) -> "float | None":
    return float(value) if value is not None else None


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# HTTP listener.
_server = _CONFIG.get("server", {})
SERVER_HOST = _server.get("host", "0.0.0.0")
SERVER_PORT = int(_server.get("port", 3001))

# Backend selection. Each kind has its own reconnect default:
# - telethon: "auto" (reconnect unless logged out)
# - browser_bridge: "never" (leave restarts to the process supervisor)
_DEFAULT_RECONNECT = {"telethon": "auto", "browser_bridge": "never"}
_backend = _CONFIG.get("backend", {})
BACKEND_KIND = _backend.get("kind", "browser_bridge")
if BACKEND_KIND not in _DEFAULT_RECONNECT:
    raise ValueError(f"Unsupported backend kind: {BACKEND_KIND}")
RECONNECT_POLICY = _backend.get("reconnect") or _DEFAULT_RECONNECT[BACKEND_KIND]
STARTUP_DELAY_SECONDS = float(_backend.get("startup_delay_seconds", 2))
RECONNECT_DELAY_SECONDS = float(_backend.get("reconnect_delay_seconds", 0))

# Telethon (protocol-level) backend. None lets Telethon use the code's expiry.
_telethon = _CONFIG.get("telethon", {})
TELETHON_PAIRING_TIMEOUT = _optional_float(_telethon.get("pairing_timeout_seconds"))

# Browser bridge backend.
_bridge = _CONFIG.get("browser_bridge", {})
BRIDGE_URL = _bridge.get("url", "ws://127.0.0.1:3002")
BRIDGE_CLIENT_ID = _bridge.get("client_id", "default")
BRIDGE_COMMAND_TIMEOUT = float(_bridge.get("command_timeout_seconds", 60))
BRIDGE_INIT_TIMEOUT = float(_bridge.get("init_timeout_seconds", 120))

# Print each pairing code to the terminal in addition to serving it on /qr.
PAIRING_PRINT_TERMINAL = bool(_CONFIG.get("pairing", {}).get("print_terminal", True))

# Dedup cap for processed message ids; null keeps every id for the process lifetime.
_max_entries = _CONFIG.get("dedup", {}).get("max_entries")
DEDUP_MAX_ENTRIES = int(_max_entries) if _max_entries is not None else None

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
