"""
Command line entry point: rectify a quadrilateral region of an image file.

Example:
    quad-rectify page.jpg --corners 100,50 300,60 90,250 310,240 -o flat.png
    quad-rectify frame.png --normalized --corners 0.1,0.9 0.9,0.9 0.1,0.1 0.9,0.1 \\
        -o flat.png --report report.json --viewport 375 812
"""

import argparse
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.common.types import Point2D, Quadrilateral, RasterImage
from src.rectification.config_loader import DEFAULT_CONFIG_PATH, load_config
from src.rectification.coordinates import (
    normalized_to_pixel,
    quad_normalized_to_display,
    quad_pixel_to_normalized,
)
from src.rectification.errors import InvalidImageError, RectificationError
from src.rectification.geometry import order_points
from src.rectification.pixel_format import prepare_for_encoding
from src.rectification.rectifier import QuadRectifier
from src.rectification.types import (
    BorderMode,
    DetectorOrigin,
    RectificationConfig,
    RectificationResult,
)
from src.utils.io import read_image, save_json, write_image
from src.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def _parse_point(text: str) -> Point2D:
    try:
        x, y = (float(v) for v in text.split(","))
    except ValueError as e:
        raise argparse.ArgumentTypeError(
            f"Expected a point as 'x,y', got '{text}'"
        ) from e
    return Point2D(x=x, y=y)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quad-rectify",
        description="Rectify (deskew) a quadrilateral region of an image",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument("image", type=Path, help="Source image file")
    parser.add_argument(
        "--corners",
        type=_parse_point,
        nargs=4,
        required=True,
        metavar="X,Y",
        help="Corners in top-left, top-right, bottom-left, bottom-right order",
    )
    parser.add_argument(
        "-o", "--output", type=Path, required=True, help="Rectified image file"
    )
    parser.add_argument(
        "--normalized",
        action="store_true",
        help="Corners are normalized detector coordinates in [0, 1]",
    )
    parser.add_argument(
        "--origin",
        choices=[o.value for o in DetectorOrigin],
        default=None,
        help="Origin of normalized coordinates (default: from config)",
    )
    parser.add_argument(
        "--auto-order",
        action="store_true",
        help="Corners are unordered; assign labels geometrically",
    )
    parser.add_argument(
        "--border-mode",
        choices=[b.value for b in BorderMode],
        default=None,
        help="Fill policy outside the source (default: from config)",
    )
    parser.add_argument(
        "--workers", type=int, default=None, help="Sampling threads (default: from config)"
    )
    parser.add_argument(
        "--max-side", type=int, default=None, help="Cap on the longest output side"
    )
    parser.add_argument(
        "--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Configuration YAML"
    )
    parser.add_argument(
        "--report", type=Path, default=None, help="Write a JSON report to this path"
    )
    parser.add_argument(
        "--viewport",
        type=float,
        nargs=2,
        default=None,
        metavar=("WIDTH", "HEIGHT"),
        help="Add overlay corners for this display size to the report",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    parser.add_argument("--log-file", type=Path, default=None, help="Log file")

    return parser


def _build_report(
    args: argparse.Namespace,
    result: RectificationResult,
    quad: Quadrilateral,
    image: RasterImage,
    config: RectificationConfig,
) -> Dict[str, Any]:
    report = {
        "source": str(args.image),
        "output": str(args.output),
        "width": result.width,
        "height": result.height,
        "coverage": result.coverage,
        "border_mode": result.border_mode.value,
        "corners_px": quad.to_numpy().tolist(),
        "homography": result.homography.tolist(),
    }

    if args.viewport is not None:
        origin = config.coordinates.detector_origin
        normalized = quad_pixel_to_normalized(quad, image.width, image.height, origin)
        overlay = quad_normalized_to_display(
            normalized,
            viewport=tuple(args.viewport),
            content_size=(image.width, image.height),
            gravity=config.display.gravity,
            origin=origin,
        )
        report["overlay"] = {
            "gravity": config.display.gravity.value,
            "viewport": list(args.viewport),
            "corners": overlay.to_numpy().tolist(),
        }

    return report


def _apply_overrides(
    config: RectificationConfig, args: argparse.Namespace
) -> RectificationConfig:
    """Command line flags take precedence over the config file."""
    rectifier = config.rectifier
    if args.border_mode is not None:
        rectifier = replace(rectifier, border_mode=BorderMode(args.border_mode))
    if args.workers is not None:
        rectifier = replace(rectifier, max_workers=args.workers)
    if args.max_side is not None:
        rectifier = replace(rectifier, max_output_side=args.max_side)

    coordinates = config.coordinates
    if args.origin is not None:
        coordinates = replace(coordinates, detector_origin=DetectorOrigin(args.origin))

    return replace(config, rectifier=rectifier, coordinates=coordinates)


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI. Returns the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.viewport is not None and not args.normalized:
        parser.error("--viewport requires --normalized corners")
    if args.workers is not None and args.workers < 1:
        parser.error("--workers must be at least 1")
    if args.max_side is not None and args.max_side < 1:
        parser.error("--max-side must be at least 1")

    setup_logging(args.log_level, args.log_file)

    try:
        config = _apply_overrides(load_config(args.config), args)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Failed to load configuration: {e}")
        return 1

    try:
        image = read_image(args.image)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Failed to read source image: {e}")
        return 1

    points = list(args.corners)
    if args.normalized:
        origin = config.coordinates.detector_origin
        points = [
            normalized_to_pixel(p, image.width, image.height, origin) for p in points
        ]

    try:
        if args.auto_order:
            quad = order_points([p.to_tuple() for p in points])
        else:
            quad = Quadrilateral(
                top_left=points[0],
                top_right=points[1],
                bottom_left=points[2],
                bottom_right=points[3],
            )
        result = QuadRectifier(config=config).rectify(image, quad)
    except RectificationError as e:
        logger.error(f"Rectification failed: {e}")
        return 1

    try:
        write_image(prepare_for_encoding(result.image, args.output), args.output)
    except (InvalidImageError, OSError) as e:
        logger.error(f"Failed to save rectified image: {e}")
        return 1
    logger.info(f"Saved rectified image to {args.output}")

    if args.report is not None:
        try:
            save_json(_build_report(args, result, quad, image, config), args.report)
        except OSError as e:
            logger.error(f"Failed to save report: {e}")
            return 1
        logger.info(f"Report saved to {args.report}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
