"""Header-level image inspection with Pillow."""

from __future__ import annotations

import io
import logging

from PIL import Image

from imgguardrails.schemas import Dimensions

log = logging.getLogger(__name__)


def read_dimensions(contents: bytes) -> Dimensions | None:
    """
    Return the pixel size stored in the image header, or ``None``.

    Only the header is parsed; pixel data is never decoded.
    """
    try:
        with Image.open(io.BytesIO(contents)) as img:
            width, height = img.size
    except Exception as exc:
        log.debug("could not read image dimensions: %s", exc)
        return None
    return Dimensions(width=width, height=height)


def exceeds_dimension(dimensions: Dimensions | None, limit: int) -> bool:
    if dimensions is None:
        return False
    return dimensions.width > limit or dimensions.height > limit
