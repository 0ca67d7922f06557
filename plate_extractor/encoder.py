import logging

import cv2
import numpy as np

from .errors import EncodeError
from .models import RasterImage

logger = logging.getLogger(__name__)


def _is_gray(pixels: np.ndarray) -> bool:
    r, g, b = pixels[:, :, 0], pixels[:, :, 1], pixels[:, :, 2]
    return bool(np.array_equal(r, g) and np.array_equal(g, b))


def encode_jpeg(raster: RasterImage, quality: float) -> bytes:
    """
    Encode ``raster`` as JPEG at ``quality`` in [0, 1].

    Alpha is dropped. Rasters with identical R, G and B channels are written
    as single-channel JPEG, which is noticeably smaller for the same quality.
    """
    if not 0.0 <= quality <= 1.0:
        raise ValueError(f"quality must be between 0.0 and 1.0, got {quality}")

    pixels = raster.pixels
    if _is_gray(pixels):
        image_np = np.ascontiguousarray(pixels[:, :, 0])
    else:
        image_np = cv2.cvtColor(pixels, cv2.COLOR_RGBA2BGR)

    params = [cv2.IMWRITE_JPEG_QUALITY, int(round(quality * 100))]
    try:
        ok, buf = cv2.imencode(".jpg", image_np, params)
    except cv2.error as e:
        raise EncodeError(f"JPEG encoding failed: {e}") from e
    if not ok or buf is None:
        raise EncodeError(f"JPEG encoding failed for {raster.width}x{raster.height} at q={quality:.2f}")

    data = buf.tobytes()
    logger.debug(f"Encoded {raster.width}x{raster.height} q={quality:.2f} -> {len(data)} bytes")
    return data
