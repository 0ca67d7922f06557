import sys
import argparse
import logging
from pathlib import Path

from plate_extractor.config import MAX_FILE_SIZE, OCR_SPACE_API_KEY
from plate_extractor.errors import PlateExtractorError
from plate_extractor.models import ExtractionContext, Outcome
from plate_extractor.ocr_engine import build_recognizer
from plate_extractor.pipeline import PlateExtractionPipeline
from plate_extractor.compression import describe_attempts

# Configure minimal logging for production
logging.basicConfig(level=logging.ERROR, format='%(message)s')


def print_report(result) -> None:
    print("\n" + "=" * 40)
    print("KA PLATE EXTRACTION RESULTS")
    print("=" * 40)
    if result.outcome is Outcome.FOUND:
        print(f"Plate: {result.plate}")
        print(f"Source tokens: {list(result.match.source_indices)}")
    elif result.outcome is Outcome.NO_PLATE:
        print("No KA vehicle number found")
    elif result.outcome is Outcome.NO_TEXT:
        print("No text found in the image.")
    else:
        print(f"OCR failed: {result.error}")

    print(f"Preparation: {result.preparation} ({round(len(result.prepared_data) / 1024)}KB)")
    for warning in result.warnings:
        print(f"Warning: {warning}")
    if result.normalized_text:
        print(f"Normalized text: {' '.join(result.normalized_text.split())}")
    if result.compression:
        print("\nCompression attempts:")
        for line in describe_attempts(result.compression):
            print(f"- {line}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Karnataka vehicle number extraction from photos")
    parser.add_argument("image_path", help="Path to the input image (JPEG/PNG/GIF)")
    parser.add_argument("--engine", choices=["auto", "ocrspace", "easyocr"], default="auto",
                        help="Text recognizer to use (default: OCR.Space with EasyOCR fallback)")
    parser.add_argument("--api-key", default=OCR_SPACE_API_KEY,
                        help="OCR.Space API key (default: $OCR_SPACE_API_KEY)")
    parser.add_argument("--budget", type=int, default=MAX_FILE_SIZE,
                        help="Maximum size in bytes of the image sent to the recognizer")
    parser.add_argument("--no-dual-pass", action="store_true",
                        help="Only recognize the processed image, not the original as well")
    parser.add_argument("--save-processed", metavar="PATH",
                        help="Write the image sent to the recognizer to PATH")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Show progress (-v) or full debug output (-vv)")

    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG if args.verbose > 1 else logging.INFO)

    try:
        context = ExtractionContext(byte_budget=args.budget, dual_pass=not args.no_dual_pass)
        recognizer = build_recognizer(args.engine, api_key=args.api_key)
        pipeline = PlateExtractionPipeline(recognizer)
        result = pipeline.process_image(args.image_path, context)
    except (PlateExtractorError, ValueError) as e:
        print(f"Error: {e}")
        return 2

    if args.save_processed:
        Path(args.save_processed).write_bytes(result.prepared_data)
        print(f"Processed image written to {args.save_processed}")

    print_report(result)
    return 0 if result.found else 1


if __name__ == "__main__":
    sys.exit(main())
