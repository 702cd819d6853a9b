"""Magic-byte sniffing for the image formats accepted at upload time."""

from __future__ import annotations

import logging
from typing import Iterable

from imgguardrails.schemas import FormatCheck, ImageFormat

log = logging.getLogger(__name__)

JPEG_SIGNATURE = b"\xff\xd8\xff"
PNG_SIGNATURE = b"\x89PNG"
RIFF_SIGNATURE = b"RIFF"
WEBP_SIGNATURE = b"WEBP"
GIF_SIGNATURE = b"GIF"

MIN_HEADER_BYTES = 4


def _sniff(buffer: bytes) -> ImageFormat | None:
    if buffer.startswith(JPEG_SIGNATURE):
        return ImageFormat.JPEG
    if buffer.startswith(PNG_SIGNATURE):
        return ImageFormat.PNG
    # RIFF is a generic container; only the WEBP form tag at offset 8 counts.
    if buffer.startswith(RIFF_SIGNATURE) and len(buffer) >= 12 and buffer[8:12] == WEBP_SIGNATURE:
        return ImageFormat.WEBP
    if buffer.startswith(GIF_SIGNATURE):
        return ImageFormat.GIF
    return None


def validate_image_bytes(
    buffer: bytes,
    supported: Iterable[str | ImageFormat] | None = None,
) -> FormatCheck:
    """
    Identify the image format from the leading bytes of ``buffer``.

    Returns ``valid=False`` for short buffers, unknown signatures and formats
    outside ``supported``. Never raises.
    """
    try:
        if len(buffer) < MIN_HEADER_BYTES:
            return FormatCheck(valid=False)

        detected = _sniff(bytes(buffer[:12]))
        if detected is None:
            return FormatCheck(valid=False)

        if supported is not None:
            allowed = {ImageFormat(fmt) for fmt in supported}
            if detected not in allowed:
                log.info("format %s disabled by configuration", detected.value)
                return FormatCheck(valid=False)

        return FormatCheck(valid=True, format=detected)
    except Exception:
        log.exception("image format validation error")
        return FormatCheck(valid=False)
