import logging
import threading
from typing import Protocol, Sequence, runtime_checkable

import cv2
import numpy as np
import requests

from .config import (
    MAX_FILE_SIZE,
    OCR_SPACE_URL,
    OCR_SPACE_API_KEY,
    OCR_SPACE_ENGINE,
    OCR_LANGUAGE,
    OCR_TIMEOUT_SECONDS,
    EASYOCR_LANG,
)
from .errors import RecognizerError

logger = logging.getLogger(__name__)

# Global shared EasyOCR reader (loaded once, reused across engine instances)
_GLOBAL_EASYOCR_READER = None
_EASYOCR_READER_LOCK = threading.Lock()

# OCR.Space language codes -> EasyOCR language codes
_EASYOCR_LANGS = {'eng': 'en'}


@runtime_checkable
class TextRecognizer(Protocol):
    """Anything that turns encoded image bytes into text."""

    name: str

    def recognize(self, data: bytes, media_type: str = "image/jpeg", language: str = OCR_LANGUAGE) -> str:
        """Return the recognized text, or an empty string when none was found."""
        ...


class OCRSpaceEngine:
    """Client for the OCR.Space parse/image endpoint."""

    name = "ocrspace"

    def __init__(
        self,
        api_key: str = OCR_SPACE_API_KEY,
        url: str = OCR_SPACE_URL,
        timeout: float = OCR_TIMEOUT_SECONDS,
        max_payload_bytes: int = MAX_FILE_SIZE,
        session: requests.Session | None = None,
    ):
        if not api_key or not api_key.strip():
            raise RecognizerError("OCR.Space API key is not configured", engine=self.name)
        self.api_key = api_key.strip()
        self.url = url
        self.timeout = timeout
        self.max_payload_bytes = max_payload_bytes
        self.session = session or requests.Session()

    @staticmethod
    def _filename(media_type: str) -> str:
        ext = media_type.split("/")[-1].lower()
        return f"upload.{'jpg' if ext in ('jpeg', 'jpg') else ext}"

    @staticmethod
    def _parse_response(payload: dict) -> str:
        """
        Extract text from an OCR.Space JSON payload.
        Parsed segments are stripped, empty ones dropped, and the rest joined
        with a blank line.
        """
        if payload.get("IsErroredOnProcessing"):
            err = payload.get("ErrorMessage") or payload.get("ErrorDetails") or "Unknown OCR.Space error"
            if isinstance(err, (list, tuple)):
                err = "; ".join(str(e) for e in err)
            raise RecognizerError(str(err), engine=OCRSpaceEngine.name)

        segments = []
        for result in payload.get("ParsedResults") or []:
            text = (result.get("ParsedText") or "").strip()
            if text:
                segments.append(text)
        return "\n\n".join(segments)

    def recognize(self, data: bytes, media_type: str = "image/jpeg", language: str = OCR_LANGUAGE) -> str:
        if not data:
            raise RecognizerError("Refusing to upload empty image", engine=self.name)
        if len(data) > self.max_payload_bytes:
            raise RecognizerError(
                f"Payload of {len(data)} bytes exceeds the {self.max_payload_bytes} byte limit",
                engine=self.name,
            )

        logger.info(f"Uploading {round(len(data) / 1024)}KB image to OCR.Space")
        form = {
            "apikey": self.api_key,
            "language": language,
            "isOverlayRequired": "false",
            "scale": "true",
            "OCREngine": OCR_SPACE_ENGINE,
        }
        files = {"file": (self._filename(media_type), data, media_type)}
        try:
            resp = self.session.post(self.url, data=form, files=files, timeout=self.timeout)
        except requests.RequestException as e:
            raise RecognizerError(f"Request failed: {e}", engine=self.name) from e

        if not resp.ok:
            raise RecognizerError(f"HTTP {resp.status_code}: {resp.reason}", engine=self.name)
        try:
            payload = resp.json()
        except ValueError as e:
            raise RecognizerError(f"Invalid JSON response: {e}", engine=self.name) from e
        if not isinstance(payload, dict):
            raise RecognizerError(f"Unexpected response payload: {payload!r}", engine=self.name)

        text = self._parse_response(payload)
        logger.info(f"OCR.Space returned {len(text)} chars")
        return text


class EasyOCREngine:
    """
    Local recognizer backed by EasyOCR. The reader is created on first use
    and shared by every instance in the process.
    """

    name = "easyocr"

    def __init__(self, use_gpu: bool = False, reader=None):
        self.use_gpu = use_gpu
        self._reader = reader

    @property
    def reader(self):
        global _GLOBAL_EASYOCR_READER
        if self._reader is not None:
            return self._reader
        # Worker threads may ask for the reader at the same time; load it once
        with _EASYOCR_READER_LOCK:
            if _GLOBAL_EASYOCR_READER is None:
                try:
                    import easyocr
                except ImportError as e:
                    raise RecognizerError(
                        "easyocr is not installed (pip install 'ka-plate-extractor[local]')",
                        engine=self.name,
                    ) from e
                try:
                    _GLOBAL_EASYOCR_READER = easyocr.Reader([EASYOCR_LANG], gpu=self.use_gpu, verbose=False)
                except Exception as e:
                    raise RecognizerError(f"EasyOCR initialization failed: {e}", engine=self.name) from e
                logger.info("EasyOCR reader loaded")
            self._reader = _GLOBAL_EASYOCR_READER
        return self._reader

    def recognize(self, data: bytes, media_type: str = "image/jpeg", language: str = OCR_LANGUAGE) -> str:
        if _EASYOCR_LANGS.get(language, language) != EASYOCR_LANG:
            raise RecognizerError(f"Unsupported language '{language}'", engine=self.name)

        image_np = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
        if image_np is None:
            raise RecognizerError("Could not decode image for local recognition", engine=self.name)

        logger.info("Running EasyOCR locally")
        try:
            lines = self.reader.readtext(image_np, detail=0, paragraph=False)
        except RecognizerError:
            raise
        except Exception as e:
            raise RecognizerError(f"EasyOCR recognition failed: {e}", engine=self.name) from e

        text = "\n".join(str(line).strip() for line in lines if str(line).strip())
        logger.info(f"EasyOCR extracted {len(text)} chars")
        return text


class FallbackRecognizer:
    """Try each recognizer in order; the first one that does not raise wins."""

    def __init__(self, engines: Sequence[TextRecognizer]):
        if not engines:
            raise ValueError("FallbackRecognizer needs at least one engine")
        self.engines = list(engines)
        self.name = "+".join(e.name for e in self.engines)

    def recognize(self, data: bytes, media_type: str = "image/jpeg", language: str = OCR_LANGUAGE) -> str:
        errors = []
        for engine in self.engines:
            try:
                return engine.recognize(data, media_type, language)
            except RecognizerError as e:
                logger.warning(f"{engine.name} failed: {e}")
                errors.append(str(e))
        raise RecognizerError("All recognizers failed: " + " | ".join(errors))


def build_recognizer(engine: str = "auto", api_key: str = OCR_SPACE_API_KEY,
                     timeout: float = OCR_TIMEOUT_SECONDS) -> TextRecognizer:
    """
    Create the recognizer for ``engine``:
    - "ocrspace": OCR.Space only
    - "easyocr": local EasyOCR only
    - "auto": OCR.Space with EasyOCR fallback, or EasyOCR alone without an API key
    """
    engine = (engine or "auto").lower()
    if engine == "ocrspace":
        return OCRSpaceEngine(api_key=api_key, timeout=timeout)
    if engine == "easyocr":
        return EasyOCREngine()
    if engine != "auto":
        raise ValueError(f"Unknown engine '{engine}'. Choose from: auto, ocrspace, easyocr")
    if api_key and api_key.strip():
        return FallbackRecognizer([OCRSpaceEngine(api_key=api_key, timeout=timeout), EasyOCREngine()])
    logger.info("No OCR.Space API key configured; using EasyOCR only")
    return EasyOCREngine()
