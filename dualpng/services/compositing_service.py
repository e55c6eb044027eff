from typing import Optional, Sequence, Tuple
import math

import numpy as np

from ..models.image import Image


def _round_half_up(values: np.ndarray) -> np.ndarray:
    return np.floor(values + 0.5)


class CompositingService:
    """
    Pixel transforms that build the dual-gamma image.

    • Pure functions on Image objects: inputs are never modified and each
      call returns a new Image.
    • Alpha is carried through unchanged by the per-channel transforms.
    • Masks use continuous weights: each matrix value is clamped to [0, 1]
      and scaled to an 8-bit alpha, so 0/1 matrices act as on/off masks and
      negative values are fully transparent.
    """

    @staticmethod
    def level_image(img: Image, low: int, high: int) -> Image:
        """
        Squeeze the R, G and B channels from [0, 255] into [low, high]:
        out = round(in / 255 * (high - low)) + low.

        Raises ValueError for bounds outside 0-255 or an inverted range.
        """
        if not (0 <= low <= 255 and 0 <= high <= 255):
            raise ValueError(f"Level bounds must be within 0-255, got {low}-{high}")
        if low > high:
            raise ValueError(f"Level range is inverted: low {low} > high {high}")

        out = img.pixels.copy()
        rgb = img.pixels[..., :3].astype(np.float64)
        leveled = _round_half_up(rgb / 255.0 * (high - low)) + low
        out[..., :3] = np.clip(leveled, 0, 255).astype(np.uint8)
        return Image(out)

    @staticmethod
    def scale_brightness(img: Image, scale: float) -> Image:
        """Multiply R, G and B by `scale`, truncating and clamping to [0, 255]."""
        if not math.isfinite(scale) or scale < 0:
            raise ValueError(f"Brightness scale must be a finite, non-negative number, got {scale}")

        out = img.pixels.copy()
        rgb = img.pixels[..., :3].astype(np.float64) * scale
        out[..., :3] = np.clip(np.floor(rgb), 0, 255).astype(np.uint8)
        return Image(out)

    @staticmethod
    def _mask_weights(matrix: Sequence[Sequence[float]]) -> np.ndarray:
        try:
            weights = np.asarray(matrix, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Mask matrix must be a rectangular 2D array of numbers: {e}") from e
        if weights.ndim != 2 or weights.size == 0:
            raise ValueError(f"Mask matrix must be a non-empty 2D array, got shape {weights.shape}")
        if not np.all(np.isfinite(weights)):
            raise ValueError("Mask matrix values must be finite")
        return weights

    @staticmethod
    def create_mask(matrix: Sequence[Sequence[float]], bounds: Tuple[int, int]) -> Image:
        """
        Repeat `matrix` over a (width, height) rectangle starting at the
        origin. Tiles that overrun the right or bottom edge are cut off.
        Only the alpha channel carries information.
        """
        width, height = bounds
        weights = CompositingService._mask_weights(matrix)
        rows, cols = weights.shape

        alpha = _round_half_up(np.clip(weights, 0.0, 1.0) * 255.0).astype(np.uint8)
        reps = (max(1, math.ceil(height / rows)), max(1, math.ceil(width / cols)))
        tiled = np.tile(alpha, reps)[:height, :width]

        pixels = np.zeros((height, width, 4), dtype=np.uint8)
        pixels[..., 3] = tiled
        return Image(pixels)

    @staticmethod
    def _pad_to(img: Image, width: int, height: int) -> np.ndarray:
        """Place img at the origin of a transparent width x height canvas."""
        if img.size == (width, height):
            return img.pixels
        canvas = np.zeros((height, width, 4), dtype=np.uint8)
        canvas[:img.height, :img.width] = img.pixels
        return canvas

    @staticmethod
    def merge_images(
            img1: Image,
            img2: Image,
            mask: Optional[Sequence[Sequence[float]]] = None,
    ) -> Image:
        """
        Combine two images on a canvas as large as the larger of each side.

        Without a mask, pixel (x, y) comes from img1 when x or y is even and
        from img2 otherwise: three of every four pixels belong to img1.

        With a mask, img2 is the base layer and img1 is composited over it
        using the tiled mask as per-pixel coverage.

        Areas outside a source's own bounds count as transparent for it.
        Mask compositing is Porter-Duff "over", so a fully opaque mask
        reproduces img1 exactly only where img1 itself is opaque.
        """
        width = max(img1.width, img2.width)
        height = max(img1.height, img2.height)
        p1 = CompositingService._pad_to(img1, width, height)
        p2 = CompositingService._pad_to(img2, width, height)

        if mask is None:
            ys, xs = np.indices((height, width))
            take_first = (xs % 2 == 0) | (ys % 2 == 0)
            return Image(np.where(take_first[..., None], p1, p2).astype(np.uint8))

        coverage = CompositingService.create_mask(mask, (width, height)).pixels[..., 3] / 255.0
        return Image(CompositingService._over(p1, p2, coverage))

    @staticmethod
    def _over(src: np.ndarray, dst: np.ndarray, coverage: np.ndarray) -> np.ndarray:
        """Porter-Duff "over" of src onto dst with extra per-pixel coverage."""
        src_f = src.astype(np.float64) / 255.0
        dst_f = dst.astype(np.float64) / 255.0

        src_a = src_f[..., 3] * coverage
        dst_a = dst_f[..., 3]
        out_a = src_a + dst_a * (1.0 - src_a)

        # premultiplied colour
        out_rgb = (src_f[..., :3] * src_a[..., None] +
                   dst_f[..., :3] * (dst_a * (1.0 - src_a))[..., None])
        safe_a = np.where(out_a > 0, out_a, 1.0)
        out_rgb = np.where(out_a[..., None] > 0, out_rgb / safe_a[..., None], 0.0)

        out = np.empty(src.shape, dtype=np.uint8)
        out[..., :3] = np.clip(_round_half_up(out_rgb * 255.0), 0, 255)
        out[..., 3] = np.clip(_round_half_up(out_a * 255.0), 0, 255)
        return out
