"""Data URI encoding for uploaded images.

The remote job runner accepts images inline, so each upload is read from disk
and wrapped as ``data:<media-type>;base64,<payload>``.  The media type can be
passed explicitly; otherwise it is sniffed from the image header with Pillow,
falling back to JPEG for content Pillow cannot identify.
"""

from __future__ import annotations

import base64
import logging
from io import BytesIO
from pathlib import Path

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_TYPE = "image/jpeg"

# Formats worth sniffing.  Header-less formats such as TGA would match arbitrary bytes.
DETECTABLE_FORMATS = ("JPEG", "PNG", "WEBP", "GIF", "BMP", "TIFF")


def detect_media_type(data: bytes) -> str | None:
    """Return the MIME type of an encoded image, or ``None`` if unknown.

    Only the header is parsed; pixel data is never decoded.

    Args:
        data: Raw file bytes.

    Returns:
        A MIME type such as ``"image/png"``, or ``None``.
    """
    try:
        with Image.open(BytesIO(data), formats=DETECTABLE_FORMATS) as img:
            image_format = img.format
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError):
        return None

    if not image_format:
        return None
    return Image.MIME.get(image_format)


def encode_data_uri(path: Path | str, media_type: str | None = None) -> str:
    """Read a file and return it as a base64 data URI.

    Args:
        path: File to encode.
        media_type: MIME type to declare.  Detected from the content when
            omitted.

    Returns:
        ``data:<media_type>;base64,<payload>`` using standard base64.

    Raises:
        OSError: If the file cannot be read.
    """
    data = Path(path).read_bytes()

    if media_type is None:
        media_type = detect_media_type(data)
        if media_type is None:
            logger.debug(f"Could not identify image format of {path}, assuming {DEFAULT_MEDIA_TYPE}")
            media_type = DEFAULT_MEDIA_TYPE

    payload = base64.b64encode(data).decode("ascii")
    return f"data:{media_type};base64,{payload}"
