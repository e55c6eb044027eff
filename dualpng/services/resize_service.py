import logging
import os

import cv2
from dotenv import load_dotenv

from ..models.image import Image

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

INTERPOLATIONS = {
    "lanczos": cv2.INTER_LANCZOS4,
    "cubic": cv2.INTER_CUBIC,
    "linear": cv2.INTER_LINEAR,
    "area": cv2.INTER_AREA,
    "nearest": cv2.INTER_NEAREST,
}


class ResizeService:
    """
    Resampling for source images ahead of a merge.
    Defaults to a windowed-sinc (Lanczos) filter.
    """

    def __init__(self, interpolation: str = None):
        name = (interpolation or os.getenv("RESIZE_INTERPOLATION", "lanczos")).lower()
        if name not in INTERPOLATIONS:
            raise ValueError(f"Unknown interpolation {name!r}; expected one of {sorted(INTERPOLATIONS)}")
        self.interpolation_name = name
        self.interpolation = INTERPOLATIONS[name]

    @staticmethod
    def target_size(img: Image, width: int, height: int) -> tuple[int, int]:
        """
        Resolve the output (width, height). A 0 on one side follows the
        aspect ratio of the other; 0 on both keeps the original size.
        """
        if width < 0 or height < 0:
            raise ValueError(f"Target size must not be negative, got {width}x{height}")
        if width == 0 and height == 0:
            return img.width, img.height
        if width == 0:
            width = max(1, round(img.width * height / img.height))
        elif height == 0:
            height = max(1, round(img.height * width / img.width))
        return width, height

    def resize(self, img: Image, width: int, height: int) -> Image:
        size = self.target_size(img, width, height)
        if size == img.size:
            return img
        pixels = cv2.resize(img.pixels, size, interpolation=self.interpolation)
        logger.debug(f"Resized {img.width}x{img.height} -> {size[0]}x{size[1]} ({self.interpolation_name})")
        return Image(pixels)
