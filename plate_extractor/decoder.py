import io
import logging

import numpy as np
from PIL import Image, UnidentifiedImageError

from .config import ALLOWED_TYPES
from .errors import DecodeError
from .models import RasterImage

logger = logging.getLogger(__name__)

# Pillow format name -> canonical media type
_FORMAT_TYPES = {
    'JPEG': 'image/jpeg',
    'MPO': 'image/jpeg',
    'PNG': 'image/png',
    'GIF': 'image/gif',
}


def is_allowed_type(media_type: str | None) -> bool:
    return bool(media_type) and media_type.lower() in ALLOWED_TYPES


def sniff_media_type(data: bytes) -> str | None:
    """Return the media type Pillow detects for ``data``, or None."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return _FORMAT_TYPES.get(img.format)
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError):
        return None


def _to_8bit(img: Image.Image) -> Image.Image:
    """Scale 16-bit and 32-bit integer grayscale down to 8-bit 'L'."""
    if img.mode.startswith("I;16"):
        samples = np.asarray(img).astype(np.uint16)
    elif img.mode == "I":
        samples = np.clip(np.asarray(img), 0, 65535).astype(np.uint16)
    else:
        return img
    return Image.fromarray((samples >> 8).astype(np.uint8), "L")


def decode_image(data: bytes, media_type: str | None = None) -> RasterImage:
    """
    Decode JPEG/PNG/GIF bytes into an RGBA raster.

    Only the first frame of animated GIFs is used. Raises DecodeError for
    empty input, media types outside the allow-list and undecodable bytes.
    """
    if not data:
        raise DecodeError("Empty image data")
    if media_type is not None and not is_allowed_type(media_type):
        raise DecodeError(f"Unsupported media type '{media_type}'. Allowed: {', '.join(ALLOWED_TYPES)}")

    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
            if fmt not in _FORMAT_TYPES:
                raise DecodeError(f"Unsupported image format '{fmt}'")
            img.seek(0)
            rgba = _to_8bit(img).convert("RGBA")
    except DecodeError:
        raise
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        ValueError,
        SyntaxError,
        EOFError,
    ) as e:
        raise DecodeError(f"Could not decode image: {e}") from e

    pixels = np.asarray(rgba, dtype=np.uint8)
    if pixels.ndim != 3 or pixels.shape[0] < 1 or pixels.shape[1] < 1:
        raise DecodeError(f"Decoded image has invalid shape {pixels.shape}")

    raster = RasterImage(pixels)
    logger.debug(f"Decoded {fmt} image: {raster.width}x{raster.height}")
    return raster
