"""Pairing code renderer.

Renders the raw pairing payload into a PNG data URL for the HTTP surface and,
when enabled, prints it to the terminal for headless first-time linking.
"""

from __future__ import annotations

import base64
import io

import qrcode
from qrcode.constants import ERROR_CORRECT_M

DATA_URL_PREFIX = "data:image/png;base64,"


def _build_qr(code: str, box_size: int, border: int) -> qrcode.QRCode:
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=box_size, border=border)
    qr.add_data(code)
    qr.make(fit=True)
    return qr


class QrCodeRenderer:
    """PairingRenderer backed by the qrcode library (Pillow image factory)."""

    def __init__(self, print_terminal: bool = False, box_size: int = 10, border: int = 1) -> None:
        self._print_terminal = print_terminal
        self._box_size = box_size
        self._border = border

    def render(self, code: str) -> str:
        """Return the pairing code as a PNG data URL."""

        qr = _build_qr(code, self._box_size, self._border)
        if self._print_terminal:
            qr.print_ascii(invert=True)

        buffer = io.BytesIO()
        qr.make_image(fill_color="black", back_color="white").save(buffer)
        return DATA_URL_PREFIX + base64.b64encode(buffer.getvalue()).decode("ascii")
