from __future__ import annotations

import base64

from adapters.qr_render import DATA_URL_PREFIX, QrCodeRenderer


def test_render_returns_png_data_url() -> None:
    image = QrCodeRenderer().render("2@AbCdEf,key==,ref==")

    assert image.startswith(DATA_URL_PREFIX)
    png = base64.b64decode(image[len(DATA_URL_PREFIX):])
    assert png.startswith(b"\x89PNG\r\n\x1a\n")


def test_render_can_print_to_terminal(capsys) -> None:
    QrCodeRenderer(print_terminal=True).render("pairing")

    assert capsys.readouterr().out.strip()
