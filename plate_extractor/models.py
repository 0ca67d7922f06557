"""
Value types passed between the extraction stages.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from .config import (
    MAX_FILE_SIZE,
    MAX_DIMENSION,
    MIN_DIMENSION,
    COMPRESSION_GRAYSCALE,
    COMPRESSION_CONTRAST,
    COMPRESSION_SHARPEN,
    OCR_LANGUAGE,
)


@dataclass(frozen=True, eq=False)
class RasterImage:
    """
    Decoded RGBA pixel grid.

    ``pixels`` is a read-only ``uint8`` array of shape (height, width, 4).
    Stages never modify a raster; they build a new one.
    """

    pixels: np.ndarray

    def __post_init__(self):
        pixels = self.pixels
        if pixels.dtype != np.uint8 or pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(
                f"RasterImage needs a uint8 (h, w, 4) array, got {pixels.dtype} {pixels.shape}"
            )
        if pixels.shape[0] < 1 or pixels.shape[1] < 1:
            raise ValueError(f"RasterImage dimensions must be >= 1, got {pixels.shape[1]}x{pixels.shape[0]}")
        if pixels.flags.writeable:
            pixels = pixels.copy()
            pixels.flags.writeable = False
            object.__setattr__(self, "pixels", pixels)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def area(self) -> int:
        return self.width * self.height

    @classmethod
    def from_array(cls, array: np.ndarray) -> "RasterImage":
        """Build a raster from a gray (h, w), RGB (h, w, 3) or RGBA (h, w, 4) array."""
        array = np.asarray(array, dtype=np.uint8)
        if array.ndim == 2:
            alpha = np.full(array.shape, 255, dtype=np.uint8)
            array = np.dstack([array, array, array, alpha])
        elif array.ndim == 3 and array.shape[2] == 3:
            alpha = np.full(array.shape[:2], 255, dtype=np.uint8)
            array = np.dstack([array, alpha])
        return cls(np.ascontiguousarray(array))


@dataclass(frozen=True)
class FilterOptions:
    """Render options for the filter pipeline. ``contrast`` of 1.0 is a no-op."""

    grayscale: bool = False
    contrast: float = 1.0
    sharpen: bool = False

    def __post_init__(self):
        if self.contrast < 0.0:
            raise ValueError(f"contrast must be >= 0.0, got {self.contrast}")


# Profile used by the compression loop on oversized images
OCR_PROFILE = FilterOptions(
    grayscale=COMPRESSION_GRAYSCALE,
    contrast=COMPRESSION_CONTRAST,
    sharpen=COMPRESSION_SHARPEN,
)


@dataclass(frozen=True)
class EncodedCandidate:
    width: int
    height: int
    quality: float
    score: float
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class CompressionAttempt:
    """One entry of the compression trace. Holds no image bytes."""

    attempt: int
    width: int
    height: int
    quality: float
    size: int
    score: float
    within_budget: bool


@dataclass(frozen=True)
class CompressionResult:
    chosen: EncodedCandidate
    attempts: tuple[CompressionAttempt, ...]
    budget: int
    original_width: int
    original_height: int

    @property
    def within_budget(self) -> bool:
        return self.chosen.size <= self.budget

    @property
    def compression_ratio(self) -> float:
        """Rendered pixel area of the winner relative to the source."""
        return (self.chosen.width * self.chosen.height) / float(self.original_width * self.original_height)


class TokenShape(Enum):
    """Closed set of token shapes the plate reconstructor reasons about."""

    FULL_PLATE = "full_plate"            # KA51AK4247
    DISTRICT_SERIES = "district_series"  # KA51AK
    DISTRICT = "district"                # KA51
    KA_LITERAL = "ka"                    # KA
    SERIES_NUMBER = "series_number"      # AK4247
    SERIES = "series"                    # AK
    TWO_DIGITS = "two_digits"            # 51
    FOUR_DIGITS = "four_digits"          # 4247
    OTHER = "other"


@dataclass(frozen=True)
class Token:
    """
    A normalized token with its position and shape readings.

    ``shape`` is the tag of the raw text. ``readings`` maps every shape the
    token can be read as (directly or through a confusion variant) to the
    string that has that shape.
    """

    text: str
    index: int
    shape: TokenShape
    readings: dict = field(default_factory=dict, compare=False)

    def reading(self, shape: TokenShape) -> str | None:
        return self.readings.get(shape)


@dataclass(frozen=True)
class PlateMatch:
    plate: str
    source_indices: tuple[int, ...]


class Outcome(Enum):
    FOUND = "found"
    NO_PLATE = "no_plate"
    NO_TEXT = "no_text"
    RECOGNIZER_ERROR = "recognizer_error"


def _new_request_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class ExtractionContext:
    """
    Per-request settings and diagnostics, owned by the caller.

    The pipeline reads its knobs from here and appends human-readable
    progress lines to ``notes``.
    """

    byte_budget: int = MAX_FILE_SIZE
    max_dimension: int = MAX_DIMENSION
    min_dimension: int = MIN_DIMENSION
    profile: FilterOptions = OCR_PROFILE
    language: str = OCR_LANGUAGE
    dual_pass: bool = True
    request_id: str = field(default_factory=_new_request_id)
    notes: list = field(default_factory=list)

    def __post_init__(self):
        if self.byte_budget <= 0:
            raise ValueError(f"byte_budget must be > 0, got {self.byte_budget}")
        if self.min_dimension < 1:
            raise ValueError(f"min_dimension must be >= 1, got {self.min_dimension}")
        if self.max_dimension < self.min_dimension:
            raise ValueError(
                f"max_dimension ({self.max_dimension}) must be >= min_dimension ({self.min_dimension})"
            )

    def note(self, message: str) -> None:
        self.notes.append(message)


@dataclass
class ExtractionResult:
    outcome: Outcome
    match: PlateMatch | None = None
    raw_text: str = ""
    normalized_text: str = ""
    tokens: list = field(default_factory=list)
    compression: CompressionResult | None = None
    preparation: str = "original"
    prepared_data: bytes = field(default=b"", repr=False)
    prepared_media_type: str = ""
    warnings: list = field(default_factory=list)
    error: str | None = None

    @property
    def found(self) -> bool:
        return self.outcome is Outcome.FOUND

    @property
    def plate(self) -> str | None:
        return self.match.plate if self.match else None
