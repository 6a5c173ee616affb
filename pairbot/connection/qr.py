"""
QR code rendering

Turns the QR payload announced by WhatsApp into a PNG data URL the status
page can show directly in an ``<img>`` tag.
"""
from __future__ import annotations

import asyncio
import base64
import io
import logging

import qrcode
from qrcode.constants import ERROR_CORRECT_H

logger = logging.getLogger(__name__)

QR_TARGET_WIDTH = 400
QR_BORDER = 2


def render_qr_png(payload: str, width: int = QR_TARGET_WIDTH, border: int = QR_BORDER) -> bytes:
    """
    Render a QR payload to PNG bytes

    Args:
        payload: Text encoded in the QR code
        width: Approximate image width in pixels
        border: Quiet zone in modules

    Returns:
        PNG image bytes
    """
    if not payload:
        raise ValueError("QR payload is empty")

    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_H, border=border)
    qr.add_data(payload)
    qr.make(fit=True)

    # Box size chosen so the whole symbol is about `width` pixels wide
    qr.box_size = max(1, width // (qr.modules_count + 2 * border))

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def render_qr_data_url(payload: str, width: int = QR_TARGET_WIDTH) -> str:
    """Render a QR payload as a ``data:image/png;base64,...`` URL"""
    png = render_qr_png(payload, width=width)
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")


async def render_qr_data_url_async(payload: str, width: int = QR_TARGET_WIDTH) -> str:
    """Render off the event loop so handlers keep running while encoding"""
    return await asyncio.to_thread(render_qr_data_url, payload, width)
