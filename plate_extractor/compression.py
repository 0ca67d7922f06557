"""
Budget-bounded re-encoding of rasters for the text recognizer.

compress_to_budget() searches over (scale, quality) with a fixed attempt
bound and returns the chosen candidate together with the attempt trace.
It does not log: callers turn the trace into log lines with
describe_attempts().
"""

from .config import (
    MAX_ATTEMPTS,
    INITIAL_QUALITY,
    QUALITY_STEP,
    QUALITY_FLOOR,
    LAST_RESORT_QUALITY,
    SCALE_STEP,
    SCORE_WEIGHTS,
    LIGHT_MAX_DIMENSION,
    LIGHT_CONTRAST,
    LIGHT_QUALITY,
)
from .encoder import encode_jpeg
from .models import (
    CompressionAttempt,
    CompressionResult,
    EncodedCandidate,
    FilterOptions,
    RasterImage,
)
from .preprocessing import PreProcessor

LIGHT_PROFILE = FilterOptions(grayscale=True, contrast=LIGHT_CONTRAST, sharpen=False)


def initial_scale(width: int, height: int, max_dimension: int, min_dimension: int) -> float:
    """
    Scale that fits the long side within ``max_dimension``, raised again if
    that would push the short side under ``min_dimension``. Never above 1.
    """
    scale = min(max_dimension / width, max_dimension / height, 1.0)
    short_side = min(width, height)
    if scale * short_side < min_dimension:
        scale = min(min_dimension / short_side, 1.0)
    return scale


def scaled_size(width: int, height: int, scale: float) -> tuple[int, int]:
    return max(int(round(width * scale)), 1), max(int(round(height * scale)), 1)


def score_candidate(size: int, budget: int, rendered_area: int, original_area: int, quality: float) -> float:
    """Higher is better: headroom under the budget, pixels kept, and quality."""
    w_size, w_area, w_quality = SCORE_WEIGHTS
    size_score = max(0.0, 1.0 - size / budget)
    area_score = min(1.0, rendered_area / original_area)
    return size_score * w_size + area_score * w_area + quality * w_quality


def compress_to_budget(
    raster: RasterImage,
    budget: int,
    max_dimension: int,
    min_dimension: int,
    options: FilterOptions,
    max_attempts: int = MAX_ATTEMPTS,
    initial_quality: float = INITIAL_QUALITY,
) -> CompressionResult:
    """
    Render and encode ``raster`` until the JPEG fits ``budget`` bytes or the
    attempt bound is hit.

    Progression after an over-budget attempt:
    1. lower quality by QUALITY_STEP down to QUALITY_FLOOR;
    2. at the floor, shrink by SCALE_STEP while the short side stays
       >= ``min_dimension``;
    3. at the dimension floor, one last drop to LAST_RESORT_QUALITY;
    4. stop.

    The first under-budget candidate wins. If none fits, the best scoring
    candidate is returned and ``result.within_budget`` is False.
    """
    if budget <= 0:
        raise ValueError(f"budget must be > 0, got {budget}")
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    orig_w, orig_h = raster.width, raster.height
    original_area = orig_w * orig_h
    scale = initial_scale(orig_w, orig_h, max_dimension, min_dimension)
    quality = initial_quality
    last_resort_used = False

    attempts = []
    best = None

    for attempt in range(1, max_attempts + 1):
        target_w, target_h = scaled_size(orig_w, orig_h, scale)

        rendered = PreProcessor.render(raster, target_w, target_h, options)
        data = encode_jpeg(rendered, quality)
        # Only the source and the current render stay alive
        del rendered

        size = len(data)
        score = score_candidate(size, budget, target_w * target_h, original_area, quality)
        fits = size <= budget
        attempts.append(CompressionAttempt(attempt, target_w, target_h, quality, size, score, fits))

        if fits:
            best = EncodedCandidate(target_w, target_h, quality, score, data)
            break
        if best is None or score > best.score:
            best = EncodedCandidate(target_w, target_h, quality, score, data)

        if quality > QUALITY_FLOOR:
            quality = round(max(QUALITY_FLOOR, quality - QUALITY_STEP), 2)
            continue

        next_w, next_h = scaled_size(orig_w, orig_h, scale * SCALE_STEP)
        if min(next_w, next_h) >= min_dimension:
            scale *= SCALE_STEP
        elif not last_resort_used and quality > LAST_RESORT_QUALITY:
            quality = LAST_RESORT_QUALITY
            last_resort_used = True
        else:
            break

    return CompressionResult(
        chosen=best,
        attempts=tuple(attempts),
        budget=budget,
        original_width=orig_w,
        original_height=orig_h,
    )


def light_preprocess(raster: RasterImage) -> EncodedCandidate:
    """
    Single re-render for images that already fit the budget: long side
    capped at LIGHT_MAX_DIMENSION, grayscale, mild contrast, no sharpening.
    """
    target_w, target_h = PreProcessor.fit_within(raster.width, raster.height, LIGHT_MAX_DIMENSION)
    rendered = PreProcessor.render(raster, target_w, target_h, LIGHT_PROFILE)
    data = encode_jpeg(rendered, LIGHT_QUALITY)
    return EncodedCandidate(target_w, target_h, LIGHT_QUALITY, 0.0, data)


def describe_attempts(result: CompressionResult) -> list[str]:
    """Human-readable lines for the compression trace."""
    lines = []
    for a in result.attempts:
        lines.append(
            f"Attempt {a.attempt}: {a.width}x{a.height}, q={a.quality:.2f}, "
            f"size={round(a.size / 1024)}KB, score={a.score:.3f}"
        )
    chosen = result.chosen
    if result.within_budget:
        lines.append(f"Target size achieved: {round(chosen.size / 1024)}KB")
    else:
        lines.append(
            f"Best processed image still over budget ({round(chosen.size / 1024)}KB > "
            f"{round(result.budget / 1024)}KB), best score {chosen.score:.3f}"
        )
    lines.append(
        f"Final quality: {chosen.quality:.2f}, dimensions: {chosen.width}x{chosen.height} "
        f"({result.compression_ratio * 100:.1f}% of original pixels)"
    )
    return lines
