import io
from typing import Protocol

import qrcode
from qrcode.constants import ERROR_CORRECT_M
from PIL import Image


class Encoder(Protocol):
    def encode(self, data: str) -> bytes:
        ...


class QRCodeEncoder:
    """Render ``data`` as a square PNG QR code of ``size`` x ``size`` pixels."""

    def __init__(self, size: int = 256, error_correction: int = ERROR_CORRECT_M):
        self.size = size
        self.error_correction = error_correction

    def encode(self, data: str) -> bytes:
        qr = qrcode.QRCode(error_correction=self.error_correction, border=4)
        qr.add_data(data)
        qr.make(fit=True)
        image = qr.make_image(fill_color="black", back_color="white").get_image()
        image = image.convert("L").resize((self.size, self.size), Image.Resampling.NEAREST)

        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()
