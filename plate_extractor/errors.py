"""
Exception classes for the plate extractor.

All errors inherit from PlateExtractorError. Only DecodeError and
EncodeError escape the pipeline; RecognizerError is caught there and
reported as an outcome.
"""


class PlateExtractorError(Exception):
    """Base exception for all plate extractor errors."""

    pass


class DecodeError(PlateExtractorError):
    """
    Raised when input bytes are empty, of a disallowed type, or cannot be
    decoded into a raster.
    """

    pass


class EncodeError(PlateExtractorError):
    """Raised when the JPEG encoder fails to produce output."""

    pass


class RecognizerError(PlateExtractorError):
    """
    Raised by text recognizers on transport failures, timeouts, oversized
    payloads or error payloads from the service.
    """

    def __init__(self, message: str, engine: str | None = None):
        super().__init__(message)
        self.engine = engine

    def __str__(self) -> str:
        message = super().__str__()
        return f"{self.engine}: {message}" if self.engine else message
