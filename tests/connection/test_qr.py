"""Tests for QR code rendering"""
import base64

import pytest

from pairbot.connection.qr import render_qr_data_url, render_qr_data_url_async, render_qr_png

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
PAYLOAD = "2@Xb8kWq7n0hS5c1pQ,Zf3aC9uV2nLr8yT,Gm1dK4oB7wE0sJ6x,ABCDEFGH12345678"


def test_render_png():
    png = render_qr_png(PAYLOAD)
    assert png.startswith(PNG_SIGNATURE)


def test_render_data_url():
    url = render_qr_data_url(PAYLOAD)
    prefix = "data:image/png;base64,"
    assert url.startswith(prefix)
    assert base64.b64decode(url[len(prefix):]).startswith(PNG_SIGNATURE)


def test_empty_payload_rejected():
    with pytest.raises(ValueError):
        render_qr_png("")


@pytest.mark.asyncio
async def test_render_async():
    url = await render_qr_data_url_async(PAYLOAD)
    assert url == render_qr_data_url(PAYLOAD)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
