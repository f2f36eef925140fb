"""
Helpers for the raw image payload handed to the backends.
"""

import base64
import io
from PIL import Image, UnidentifiedImageError


DEFAULT_MIME_TYPE = "image/png"


def detect_mime_type(image_data: bytes) -> str:
    """Sniff the MIME type of encoded image bytes, defaulting to PNG."""
    try:
        with Image.open(io.BytesIO(image_data)) as image:
            return Image.MIME.get(image.format, DEFAULT_MIME_TYPE)
    except (UnidentifiedImageError, OSError, ValueError):
        return DEFAULT_MIME_TYPE


def encode_base64(image_data: bytes) -> str:
    """Base64 text form used by the JSON backends."""
    return base64.b64encode(image_data).decode("ascii")
