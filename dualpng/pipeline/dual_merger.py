# pipeline/dual_merger.py
import logging

from ..models.image import Image
from ..models.merge_params import MergeParams
from ..services.compositing_service import CompositingService
from ..services.resize_service import ResizeService

logger = logging.getLogger(__name__)


def merge_sources(
    img1: Image,
    img2: Image,
    params: MergeParams,
    *,
    compositing_service: CompositingService = CompositingService(),
    resize_service: ResizeService = ResizeService(),
) -> Image:
    """
    Full merge pipeline for one pair of sources:
        • resize both to the requested size (if any)
        • scale brightness of each (if its factor is not 1)
        • level each into its own channel range
        • merge, by checkerboard or by the tiled mask
    Returns a new Image; the sources are left as they were.
    """
    if params.wants_resize:
        img1 = resize_service.resize(img1, params.width, params.height)
        img2 = resize_service.resize(img2, params.width, params.height)

    if params.brightness1 != 1:
        img1 = compositing_service.scale_brightness(img1, params.brightness1)
    if params.brightness2 != 1:
        img2 = compositing_service.scale_brightness(img2, params.brightness2)

    leveled1 = compositing_service.level_image(img1, *params.range1)
    leveled2 = compositing_service.level_image(img2, *params.range2)

    logger.debug(
        f"Merging {leveled1.width}x{leveled1.height} with {leveled2.width}x{leveled2.height} "
        f"({'mask' if params.mask is not None else 'checkerboard'})"
    )
    return compositing_service.merge_images(leveled1, leveled2, params.mask)
