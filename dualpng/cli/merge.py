"""
Merge two images into a single PNG that shows img1 in viewers that ignore
gAMA and img2 in viewers that honour it.

Example:
    dualpng -g 1000 -w 1024 -m "[[1,1],[1,0]]" front.jpeg back.png
    -w 1024            resize both images to a width of 1024
    -m "[[1,1],[1,0]]" tile this mask instead of the default checkerboard
"""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from ..models.errors import DualPngError, MalformedInputError
from ..models.merge_params import MergeParams, parse_mask, parse_range
from ..pipeline.dual_merger import merge_sources
from ..repositories.image_repository import ImageRepository

logger = logging.getLogger(__name__)

WHITE = (255, 255, 255)
BLACK = (0, 0, 0)
DEFAULT_SIZE = 500


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="dualpng", description="Muxes two images together behind a gAMA chunk")
    p.add_argument("-w", "--width", type=int, default=0, help="Width to resize both images to")
    p.add_argument("-H", "--height", type=int, default=0, help="Height to resize both images to")
    p.add_argument("-r1", "--range1", default="0-230", help="RGB colour range for the first image")
    p.add_argument("-r2", "--range2", default="230-255", help="RGB colour range for the second image")
    p.add_argument("-g", "--gamma", type=int, default=2300, help="gAMA value (gamma x 100,000)")
    p.add_argument("-b1", "--brightness1", type=float, default=1.0, help="Brightness factor for the first image")
    p.add_argument("-b2", "--brightness2", type=float, default=1.0, help="Brightness factor for the second image")
    p.add_argument("-o", "--output", default="output.png", help="Output file name")
    p.add_argument("-m", "--mask", default="",
                   help="Mask matrix, e.g. [[1, 1],[1, 0]]. Defaults to the checkerboard pattern")
    p.add_argument("img1", nargs="?", help="Image shown when gamma is ignored (default: white)")
    p.add_argument("img2", nargs="?", help="Image shown when gamma is applied (default: black)")
    return p


def params_from_args(args: argparse.Namespace) -> MergeParams:
    problems = []

    def range_arg(name: str, raw: str):
        try:
            return parse_range(raw)
        except ValueError as e:
            problems.append(f"{name}: {e}")
            return 0, 255

    range1 = range_arg("range1", args.range1)
    range2 = range_arg("range2", args.range2)
    mask, mask_error = parse_mask(args.mask)
    if mask_error:
        problems.append(f"mask: {mask_error}")
    if problems:
        raise MalformedInputError(problems)

    return MergeParams(
        range1=range1,
        range2=range2,
        gamma=args.gamma,
        width=args.width,
        height=args.height,
        brightness1=args.brightness1,
        brightness2=args.brightness2,
        mask=mask,
    ).validate()


def run(args: argparse.Namespace, image_repository: ImageRepository = None) -> Path:
    image_repository = image_repository or ImageRepository()
    params = params_from_args(args)

    # If no image path is provided use a uniformly coloured background.
    if args.img1:
        img1 = image_repository.load(args.img1)
    else:
        img1 = image_repository.create_uniform(WHITE, DEFAULT_SIZE, DEFAULT_SIZE)
    if args.img2:
        img2 = image_repository.load(args.img2)
    else:
        img2 = image_repository.create_uniform(BLACK, img1.width, img1.height)

    merged = merge_sources(img1, img2, params)
    out = image_repository.save(merged, args.output, gamma=params.gamma)
    logger.info(f"Wrote {merged.width}x{merged.height} image with gAMA {params.gamma} to {out}")
    return out


def main(argv=None) -> int:
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )
    args = build_parser().parse_args(argv)
    try:
        run(args)
    except (DualPngError, OSError) as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
