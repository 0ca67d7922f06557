import asyncio
import logging
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path

from .compression import compress_to_budget, describe_attempts, light_preprocess
from .config import LIGHT_PREPROCESS_THRESHOLD, LIGHT_MIN_SAVING
from .decoder import decode_image, sniff_media_type, is_allowed_type
from .errors import DecodeError, RecognizerError
from .models import (
    CompressionResult,
    ExtractionContext,
    ExtractionResult,
    Outcome,
)
from .ocr_engine import TextRecognizer
from .reconstructor import PlateReconstructor
from .text import normalize_text, tokenize

logger = logging.getLogger(__name__)


@dataclass
class PreparedImage:
    data: bytes = field(repr=False)
    media_type: str
    preparation: str  # "original", "light" or "compressed"
    compression: CompressionResult | None = None
    warnings: list = field(default_factory=list)


class PlateExtractionPipeline:
    """
    bytes -> decode -> fit the recognizer budget -> recognize -> normalize
    -> reconstruct plate.

    The pipeline keeps no per-request state; everything a request needs
    travels in its ExtractionContext.
    """

    def __init__(self, recognizer: TextRecognizer, reconstructor: PlateReconstructor | None = None):
        self.recognizer = recognizer
        self.reconstructor = reconstructor or PlateReconstructor()

    @staticmethod
    def _note(context: ExtractionContext, message: str, level: int = logging.INFO) -> None:
        logger.log(level, f"[{context.request_id}] {message}")
        context.note(message)

    # ------------------------------------------------------------------
    # Image preparation
    # ------------------------------------------------------------------

    def prepare_image(self, data: bytes, media_type: str | None, context: ExtractionContext) -> PreparedImage:
        """
        Get the image under the byte budget.

        - over budget: bounded compression search (may end over budget)
        - under budget but large: one light re-render, kept if clearly smaller
        - small: sent as-is
        """
        if not data:
            raise DecodeError("Empty image data")
        if media_type is None:
            media_type = sniff_media_type(data)
            if media_type is None:
                raise DecodeError("Could not determine image type")
        if not is_allowed_type(media_type):
            raise DecodeError(f"Unsupported media type '{media_type}'")

        raster = decode_image(data, media_type)
        size = len(data)
        self._note(context, f"Image {raster.width}x{raster.height}, {round(size / 1024)}KB ({media_type})")

        if size > context.byte_budget:
            self._note(context, f"Image exceeds {round(context.byte_budget / 1024)}KB budget, compressing")
            compression = compress_to_budget(
                raster,
                context.byte_budget,
                context.max_dimension,
                context.min_dimension,
                context.profile,
            )
            for line in describe_attempts(compression):
                self._note(context, line, logging.DEBUG)

            warnings = []
            if not compression.within_budget:
                warning = (
                    f"Budget unmet: best candidate is {compression.chosen.size} bytes "
                    f"(budget {compression.budget}); recognizer may reject it"
                )
                self._note(context, warning, logging.WARNING)
                warnings.append(warning)
            else:
                self._note(context, f"Processed image ready: {round(compression.chosen.size / 1024)}KB")
            return PreparedImage(compression.chosen.data, "image/jpeg", "compressed", compression, warnings)

        if size > LIGHT_PREPROCESS_THRESHOLD:
            candidate = light_preprocess(raster)
            if candidate.size <= size * LIGHT_MIN_SAVING:
                self._note(
                    context,
                    f"Light preprocess applied: {raster.width}x{raster.height} -> "
                    f"{candidate.width}x{candidate.height}, "
                    f"{round(size / 1024)}KB -> {round(candidate.size / 1024)}KB",
                )
                return PreparedImage(candidate.data, "image/jpeg", "light")
            self._note(context, "Light preprocess not beneficial, using original")
        else:
            self._note(context, "Small file, skipping preprocessing", logging.DEBUG)

        return PreparedImage(data, media_type, "original")

    # ------------------------------------------------------------------
    # Recognition
    # ------------------------------------------------------------------

    def recognize(
        self,
        prepared: PreparedImage,
        original: bytes,
        original_type: str,
        context: ExtractionContext,
    ) -> tuple[str, str | None]:
        """
        Run the recognizer on the prepared image and, in dual-pass mode, on
        the original too. Returns (merged_text, error). ``error`` is set only
        when every pass failed.
        """
        passes = [("processed", prepared.data, prepared.media_type)]
        if context.dual_pass and prepared.preparation != "original":
            if len(original) <= context.byte_budget:
                passes.append(("original", original, original_type))
            else:
                self._note(context, "Original image over budget, skipping original pass", logging.DEBUG)

        texts = []
        errors = []
        for label, payload, payload_type in passes:
            self._note(context, f"Starting OCR on {label} image")
            try:
                text = self.recognizer.recognize(payload, payload_type, context.language)
            except RecognizerError as e:
                self._note(context, f"{label.capitalize()} OCR failed: {e}", logging.WARNING)
                errors.append(f"{label}: {e}")
                continue
            texts.append((text or "").strip())

        if not texts:
            return "", "; ".join(errors)

        pieces = []
        for text in texts:
            if text and text not in pieces:
                pieces.append(text)
        combined = "\n\n".join(pieces)
        self._note(context, f"Combined OCR length: {len(combined)}")
        return combined, None

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def process_bytes(
        self,
        data: bytes,
        media_type: str | None = None,
        context: ExtractionContext | None = None,
    ) -> ExtractionResult:
        """
        Extract a KA plate from encoded image bytes.

        Raises DecodeError/EncodeError for unusable input; every other
        failure is reported through ``result.outcome``.
        """
        context = context or ExtractionContext()
        if data and media_type is None:
            media_type = sniff_media_type(data)
        prepared = self.prepare_image(data, media_type, context)

        result = ExtractionResult(
            outcome=Outcome.NO_TEXT,
            compression=prepared.compression,
            preparation=prepared.preparation,
            prepared_data=prepared.data,
            prepared_media_type=prepared.media_type,
            warnings=list(prepared.warnings),
        )

        text, error = self.recognize(prepared, data, media_type, context)
        if error is not None:
            result.outcome = Outcome.RECOGNIZER_ERROR
            result.error = error
            return result
        if not text:
            self._note(context, "No text extracted from image", logging.WARNING)
            return result

        result.raw_text = text
        result.normalized_text = normalize_text(text)
        result.tokens = tokenize(text)
        sample = ", ".join(result.tokens[:40])
        self._note(context, f"Tokens (sample): {sample}{'...' if len(result.tokens) > 40 else ''}", logging.DEBUG)

        match = self.reconstructor.find_plate(result.tokens)
        if match:
            result.outcome = Outcome.FOUND
            result.match = match
            self._note(context, f"Found Karnataka vehicle number: {match.plate}")
        else:
            result.outcome = Outcome.NO_PLATE
            self._note(context, "No Karnataka vehicle number found", logging.WARNING)
        return result

    def process_image(self, image_path: str | Path, context: ExtractionContext | None = None) -> ExtractionResult:
        """Read ``image_path`` and run :meth:`process_bytes` on its contents."""
        path = Path(image_path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise DecodeError(f"Could not read image path {path}: {e}") from e
        media_type, _ = mimetypes.guess_type(path.name)
        if not is_allowed_type(media_type):
            media_type = None
        return self.process_bytes(data, media_type, context)

    async def process_bytes_async(
        self,
        data: bytes,
        media_type: str | None = None,
        context: ExtractionContext | None = None,
    ) -> ExtractionResult:
        """Run :meth:`process_bytes` in a worker thread so the event loop stays free."""
        return await asyncio.to_thread(self.process_bytes, data, media_type, context)
