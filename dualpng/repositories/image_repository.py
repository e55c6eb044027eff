from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Iterable, Optional, Tuple, Union
import logging
import os
import struct

import numpy as np
from PIL import Image as PILImage
from PIL import PngImagePlugin, UnidentifiedImageError
from dotenv import load_dotenv

from ..models.errors import DecodeFailureError
from ..models.image import Image

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

GAMMA_CHUNK = b"gAMA"


class ImageRepository:
    """
    Decoding, PNG encoding and file I/O for Image entities.
    Pixels are always held as RGBA uint8.
    """
    def __init__(self, formats: Iterable[str] = None):
        if formats is None:
            formats = os.getenv("SUPPORTED_FORMATS", "PNG,JPEG,GIF,BMP,WEBP").split(",")
        self.SUPPORTED_FORMATS = {f.strip().upper() for f in formats if f.strip()}

    @staticmethod
    def create_image(pixels: np.ndarray, path: Union[str, Path] = None) -> Image:
        if path is None:
            return Image(pixels)
        return Image(pixels=pixels, path=Path(path))

    @staticmethod
    def create_uniform(color: Tuple[int, ...], width: int, height: int) -> Image:
        """Solid-colour image; an RGB colour gets full opacity."""
        if len(color) == 3:
            color = (*color, 255)
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[:, :] = color
        return Image(pixels)

    @staticmethod
    def from_pil(pil_img: PILImage.Image, path: Union[str, Path] = None) -> Image:
        pixels = np.array(pil_img.convert("RGBA"), dtype=np.uint8)
        return ImageRepository.create_image(pixels, path)

    @staticmethod
    def to_pil(image: Image) -> PILImage.Image:
        np_img = image.pixels
        if not np_img.flags['C_CONTIGUOUS']:
            np_img = np.ascontiguousarray(np_img)
        return PILImage.fromarray(np_img)

    def _open(self, source, path: Union[str, Path] = None) -> Image:
        try:
            with PILImage.open(source) as pil_img:
                fmt = pil_img.format
                if fmt not in self.SUPPORTED_FORMATS:
                    raise DecodeFailureError(f"Unsupported image format: {fmt}")
                pil_img.load()
                image = self.from_pil(pil_img, path)
        except (UnidentifiedImageError, PILImage.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
            raise DecodeFailureError(f"Could not decode image: {e}") from e
        logger.debug(f"Decoded {fmt} image {image.width}x{image.height}")
        return image

    def decode(self, data: Union[bytes, BinaryIO]) -> Image:
        """Decode an uploaded byte string or stream into an RGBA Image."""
        if isinstance(data, (bytes, bytearray)):
            data = BytesIO(data)
        return self._open(data)

    def load(self, path: Union[str, Path]) -> Image:
        """Load a single image from disk."""
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Image not found or unreadable: {path}")
        return self._open(path, path)

    @staticmethod
    def write_png(stream: BinaryIO, image: Image, gamma: Optional[int] = None) -> None:
        """
        Write `image` as PNG. When `gamma` is given a gAMA chunk carrying it
        (gamma x 100,000, e.g. 2300 for 0.023) is written ahead of the pixel data.
        """
        pnginfo = None
        if gamma is not None:
            if not 0 <= gamma <= 2 ** 32 - 1:
                raise ValueError(f"gAMA value out of range: {gamma}")
            pnginfo = PngImagePlugin.PngInfo()
            pnginfo.add(GAMMA_CHUNK, struct.pack(">I", gamma))
        ImageRepository.to_pil(image).save(stream, format="PNG", pnginfo=pnginfo)

    @staticmethod
    def encode_png(image: Image, gamma: Optional[int] = None) -> bytes:
        buffer = BytesIO()
        ImageRepository.write_png(buffer, image, gamma)
        return buffer.getvalue()

    @staticmethod
    def save(image: Image, path: Union[str, Path] = None, gamma: Optional[int] = None) -> Path:
        path = Path(path or image.path)
        with open(path, "wb") as fh:
            ImageRepository.write_png(fh, image, gamma)
        return path
