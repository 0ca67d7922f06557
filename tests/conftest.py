"""
Pytest configuration and fixtures for plate extractor tests.
"""

import io
import struct
import zlib

import numpy as np
import pytest
from PIL import Image

from plate_extractor.errors import RecognizerError
from plate_extractor.models import RasterImage


class FakeRecognizer:
    """Recognizer double returning canned responses in order (last one repeats)."""

    name = "fake"

    def __init__(self, *responses):
        self.responses = list(responses) or [""]
        self.calls = []

    def recognize(self, data, media_type="image/jpeg", language="eng"):
        self.calls.append({"data": data, "media_type": media_type, "language": language})
        if len(self.responses) > 1:
            response = self.responses.pop(0)
        else:
            response = self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def _encode(array: np.ndarray, fmt: str) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(array).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def noise_array():
    """Factory for deterministic RGB noise arrays of shape (height, width, 3)."""

    def make(width: int, height: int, seed: int = 7) -> np.ndarray:
        rng = np.random.default_rng(seed)
        return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)

    return make


@pytest.fixture
def noise_raster(noise_array):
    """Factory for RGBA noise rasters."""

    def make(width: int, height: int, seed: int = 7) -> RasterImage:
        return RasterImage.from_array(noise_array(width, height, seed))

    return make


@pytest.fixture
def flat_raster():
    """Factory for single-colour rasters."""

    def make(width: int, height: int, value: int = 128) -> RasterImage:
        return RasterImage.from_array(np.full((height, width, 3), value, dtype=np.uint8))

    return make


@pytest.fixture
def encode_image():
    """Encode a numpy array with Pillow into PNG/JPEG/GIF/BMP bytes."""
    return _encode


@pytest.fixture
def small_png(encode_image):
    """A small, easily compressible PNG (well under every budget)."""
    array = np.full((120, 200, 3), 200, dtype=np.uint8)
    array[40:80, 20:180] = 30
    return encode_image(array, "PNG")


@pytest.fixture
def header_only_png():
    """Factory for PNG bytes that declare a size but carry no pixel data."""

    def chunk(kind, body):
        return struct.pack(">I", len(body)) + kind + body + struct.pack(">I", zlib.crc32(kind + body))

    def make(width: int, height: int) -> bytes:
        ihdr = struct.pack(">IIBBBBB", width, height, 8, 0, 0, 0, 0)
        return b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", ihdr) + chunk(b"IEND", b"")

    return make


@pytest.fixture
def fake_recognizer():
    return FakeRecognizer


@pytest.fixture
def recognizer_error():
    def make(message="service unavailable"):
        return RecognizerError(message, engine="fake")

    return make
