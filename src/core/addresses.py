"""Helpers for turning caller-supplied numbers into chat addresses."""

from __future__ import annotations

import re

USER_SUFFIX = "@c.us"

_NON_DIGITS = re.compile(r"\D+")


def split_address(address: str) -> tuple[str, str]:
    """Split an address into (local part, "@domain" suffix or "")."""

    local, sep, domain = address.partition("@")
    if not sep:
        return address, ""
    return local, f"@{domain}"


def normalize_number(raw_number: str) -> str:
    """Strip formatting (spaces, dashes, parentheses, leading +) from a number."""

    local, _ = split_address(raw_number.strip())
    return _NON_DIGITS.sub("", local)


def build_chat_address(raw_number: str, suffix: str = USER_SUFFIX) -> str:
    """Return the chat address for a number, keeping explicit addresses as-is."""

    raw_number = raw_number.strip()
    if "@" in raw_number:
        return raw_number
    return f"{normalize_number(raw_number)}{suffix}"


def build_phone_address(raw_number: str) -> str:
    """Return an international phone string (+<digits>) for phone-based networks."""

    return f"+{normalize_number(raw_number)}"
