import cv2
import numpy as np

from .models import FilterOptions, RasterImage


class PreProcessor:
    """
    Renders rasters for recognition: resample, desaturate, stretch contrast
    and sharpen. Every step works on 8-bit RGBA and clamps to [0, 255];
    the alpha channel is carried through untouched.
    """

    @staticmethod
    def resample(pixels: np.ndarray, width: int, height: int) -> np.ndarray:
        """Resize to (width, height). Area filter when shrinking, Lanczos when enlarging."""
        h, w = pixels.shape[:2]
        if (w, h) == (width, height):
            return pixels.copy()
        if width * height < w * h:
            interpolation = cv2.INTER_AREA
        else:
            interpolation = cv2.INTER_LANCZOS4
        return cv2.resize(pixels, (width, height), interpolation=interpolation)

    @staticmethod
    def grayscale(pixels: np.ndarray) -> np.ndarray:
        """Replace R, G and B with the pixel luminance."""
        luma = cv2.cvtColor(pixels, cv2.COLOR_RGBA2GRAY)
        out = pixels.copy()
        out[:, :, 0] = luma
        out[:, :, 1] = luma
        out[:, :, 2] = luma
        return out

    @staticmethod
    def adjust_contrast(pixels: np.ndarray, contrast: float) -> np.ndarray:
        """
        Stretch around mid-gray.
        Formula: v' = clamp((v - 128) * contrast + 128, 0, 255)
        """
        out = pixels.copy()
        rgb = pixels[:, :, :3].astype(np.float32)
        stretched = (rgb - 128.0) * np.float32(contrast) + 128.0
        out[:, :, :3] = np.clip(np.rint(stretched), 0, 255).astype(np.uint8)
        return out

    @staticmethod
    def sharpen(pixels: np.ndarray) -> np.ndarray:
        """
        Convolve interior pixels with [[0,-1,0],[-1,5,-1],[0,-1,0]].
        Border pixels and alpha are left as they are.
        """
        out = pixels.copy()
        h, w = pixels.shape[:2]
        if h < 3 or w < 3:
            return out
        src = pixels[:, :, :3].astype(np.int32)
        center = src[1:-1, 1:-1]
        sharpened = (
            5 * center
            - src[:-2, 1:-1]
            - src[2:, 1:-1]
            - src[1:-1, :-2]
            - src[1:-1, 2:]
        )
        out[1:-1, 1:-1, :3] = np.clip(sharpened, 0, 255).astype(np.uint8)
        return out

    @staticmethod
    def render(raster: RasterImage, width: int, height: int, options: FilterOptions) -> RasterImage:
        """Produce a new raster of size width x height with ``options`` applied."""
        if width < 1 or height < 1:
            raise ValueError(f"Target dimensions must be >= 1, got {width}x{height}")

        pixels = PreProcessor.resample(raster.pixels, width, height)
        if options.grayscale:
            pixels = PreProcessor.grayscale(pixels)
        if options.contrast != 1.0:
            pixels = PreProcessor.adjust_contrast(pixels, options.contrast)
        if options.sharpen:
            pixels = PreProcessor.sharpen(pixels)
        # Hand the buffer over without another copy
        pixels.flags.writeable = False
        return RasterImage(pixels)

    @staticmethod
    def fit_within(width: int, height: int, max_dim: int) -> tuple[int, int]:
        """Scale (width, height) down so the long side is at most ``max_dim``."""
        longest = max(width, height)
        if longest <= max_dim:
            return width, height
        scale = max_dim / float(longest)
        return max(1, int(round(width * scale))), max(1, int(round(height * scale)))
