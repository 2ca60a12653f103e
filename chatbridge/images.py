"""
Image helpers: MIME sniffing and base64 encoding for multimodal requests.
"""

import base64
import io

from PIL import Image, UnidentifiedImageError

DEFAULT_IMAGE_MIME = "image/png"

# Pillow formats whose MIME label the chat backends do not accept.
_MIME_OVERRIDES = {
    "MPO": "image/jpeg",  # multi-picture JPEG from phone cameras
}


def sniff_image_mime(data: bytes) -> str:
    """
    Detect the MIME type of an image from its bytes.

    Falls back to image/png when the content is not a recognizable image.
    Only the header is parsed; the image is never fully decoded.
    """
    if not data:
        return DEFAULT_IMAGE_MIME
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
    except (UnidentifiedImageError, OSError, ValueError):
        return DEFAULT_IMAGE_MIME

    mime = _MIME_OVERRIDES.get(fmt or "") or Image.MIME.get(fmt or "", "")
    if not mime.startswith("image/"):
        return DEFAULT_IMAGE_MIME
    return mime


def encode_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def encode_image_to_data_url(data: bytes) -> str:
    """Encode raw image bytes as a data URL for the OpenAI vision API."""
    return f"data:{sniff_image_mime(data)};base64,{encode_base64(data)}"
