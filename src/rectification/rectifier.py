"""
Main rectifier for the Rectification module.

Maps the interior of a quadrilateral within a source image onto a rectangular
output image, undoing the perspective distortion of a planar surface viewed
at an angle.

Pipeline:
1. Geometric validation (collinear or coincident corners)
2. Bounds check (quadrilateral must overlap the source)
3. Output dimensions (longest opposite edges)
4. Homography solve (unit square -> quadrilateral)
5. Bilinear resampling, row band by row band

The rectifier is stateless apart from its configuration and never writes into
the source image, so one instance can serve several threads.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Tuple, Union

import cv2
import numpy as np

from src.common.types import Quadrilateral, RasterImage
from src.rectification.config_loader import load_config
from src.rectification.coordinates import observation_to_pixel_quad
from src.rectification.errors import InvalidImageError, OutOfBoundsError
from src.rectification.geometry import (
    calculate_output_dimensions,
    validate_quadrilateral,
)
from src.rectification.homography import apply_homography, unit_square_to_quad
from src.rectification.types import (
    BorderMode,
    QuadObservation,
    RectificationConfig,
    RectificationResult,
)

logger = logging.getLogger(__name__)

# cv2.remap requires every side of the source and of the maps to be below SHRT_MAX
REMAP_MAX_SIDE = 32767


def _as_raster(image: Union[RasterImage, np.ndarray]) -> RasterImage:
    if isinstance(image, RasterImage):
        return image
    if image is None:
        raise InvalidImageError("Invalid input image: image is None")
    try:
        return RasterImage(data=image)
    except ValueError as e:
        raise InvalidImageError(f"Invalid input image: {e}") from e


def split_rows(height: int, max_workers: int, min_rows_per_band: int) -> List[Tuple[int, int]]:
    """
    Partition output rows into disjoint [start, stop) bands.

    At most ``max_workers`` bands are produced and, except when the image is
    shorter than ``min_rows_per_band``, no band is shorter than that.
    """
    band_count = max(1, min(max_workers, height // max(min_rows_per_band, 1)))
    bounds = np.linspace(0, height, band_count + 1).round().astype(int)
    return [(int(bounds[i]), int(bounds[i + 1])) for i in range(band_count)]


def sample_band(
    source: np.ndarray,
    matrix: np.ndarray,
    out_size: Tuple[int, int],
    rows: Tuple[int, int],
    border_mode: BorderMode,
) -> Tuple[np.ndarray, int]:
    """
    Resample one band of output rows.

    Output pixel (u, v) is normalized to (u / W, v / H), mapped through the
    homography and sampled bilinearly from the source.

    Args:
        source: Source pixels, shape (h, w) or (h, w, C).
        matrix: Homography from the unit square to source pixel space.
        out_size: Output (width, height).
        rows: Output row range [start, stop) owned by this band.
        border_mode: Fill policy for samples outside the source.

    Returns:
        Tuple of (band pixels, number of samples inside the source).
    """
    out_width, out_height = out_size
    row_start, row_stop = rows
    src_height, src_width = source.shape[:2]

    s = np.arange(out_width, dtype=np.float64) / out_width
    t = np.arange(row_start, row_stop, dtype=np.float64) / out_height
    x, y = apply_homography(matrix, s[np.newaxis, :], t[:, np.newaxis])

    inside = (x >= 0) & (x < src_width) & (y >= 0) & (y < src_height)

    # Points beyond the horizon line of the homography are not finite
    x = np.nan_to_num(x, nan=-1.0, posinf=-1.0, neginf=-1.0)
    y = np.nan_to_num(y, nan=-1.0, posinf=-1.0, neginf=-1.0)

    band = _remap_tiled(source, x, y, border_mode)
    return band, int(np.count_nonzero(inside))


def _reflect_101(coords: np.ndarray, size: int) -> np.ndarray:
    """Fold coordinates into [0, size - 1] by mirroring about the edge pixels."""
    if size == 1:
        return np.zeros_like(coords)
    period = 2.0 * (size - 1)
    folded = np.mod(np.abs(coords), period)
    return np.where(folded > size - 1, period - folded, folded)


def _remap(
    source: np.ndarray, map_x: np.ndarray, map_y: np.ndarray, border_mode: BorderMode
) -> np.ndarray:
    result = cv2.remap(
        source,
        map_x.astype(np.float32),
        map_y.astype(np.float32),
        interpolation=cv2.INTER_LINEAR,
        borderMode=border_mode.cv2_flag,
        borderValue=0,
    )

    # OpenCV drops a trailing singleton channel
    if source.ndim == 3 and result.ndim == 2:
        result = result[:, :, np.newaxis]
    return result


def _remap_tiled(
    source: np.ndarray, x: np.ndarray, y: np.ndarray, border_mode: BorderMode
) -> np.ndarray:
    """
    Bilinearly sample ``source`` at float64 coordinates (x, y).

    ``cv2.remap`` only accepts maps and sources whose sides are below
    REMAP_MAX_SIDE. Larger maps are split in halves; larger sources are
    cropped to the window the tile actually reads, with coordinates folded
    through the border policy first so the window stays small.
    """
    src_height, src_width = source.shape[:2]
    map_height, map_width = x.shape

    if map_height >= REMAP_MAX_SIDE or map_width >= REMAP_MAX_SIDE:
        return _split_and_remap(source, x, y, border_mode)

    if src_height < REMAP_MAX_SIDE and src_width < REMAP_MAX_SIDE:
        return _remap(source, x, y, border_mode)

    if border_mode == BorderMode.REFLECT:
        x = _reflect_101(x, src_width)
        y = _reflect_101(y, src_height)
        reach_x, reach_y = x, y
    else:
        reach_x = np.clip(x, 0, src_width - 1)
        reach_y = np.clip(y, 0, src_height - 1)

    # Bilinear taps need the pixel after floor(max) as well
    x0 = int(np.floor(reach_x.min()))
    y0 = int(np.floor(reach_y.min()))
    x1 = min(int(np.floor(reach_x.max())) + 2, src_width)
    y1 = min(int(np.floor(reach_y.max())) + 2, src_height)

    if x1 - x0 >= REMAP_MAX_SIDE or y1 - y0 >= REMAP_MAX_SIDE:
        return _split_and_remap(source, x, y, border_mode)

    window = np.ascontiguousarray(source[y0:y1, x0:x1])
    logger.debug(
        f"Remapping {map_width}x{map_height} tile from source window "
        f"[{x0}:{x1}, {y0}:{y1}]"
    )
    return _remap(window, x - x0, y - y0, border_mode)


def _split_and_remap(
    source: np.ndarray, x: np.ndarray, y: np.ndarray, border_mode: BorderMode
) -> np.ndarray:
    axis = 0 if x.shape[0] >= x.shape[1] else 1
    middle = x.shape[axis] // 2
    first, second = np.split(np.arange(x.shape[axis]), [middle])
    halves = [
        _remap_tiled(
            source,
            np.take(x, part, axis=axis),
            np.take(y, part, axis=axis),
            border_mode,
        )
        for part in (first, second)
    ]
    return np.concatenate(halves, axis=axis)


class QuadRectifier:
    """
    Perspective rectifier for detected quadrilaterals.

    Example:
        >>> rectifier = QuadRectifier()
        >>> image = RasterImage(data=cv2.imread("page.jpg"))
        >>> quad = Quadrilateral.from_points(
        ...     [[100, 50], [300, 60], [90, 250], [310, 240]]
        ... )
        >>> result = rectifier.rectify(image, quad)
        >>> result.width, result.height
        (220, 200)
    """

    def __init__(
        self,
        config: Optional[RectificationConfig] = None,
        config_path: Optional[Path] = None,
    ):
        """
        Initialize the rectifier.

        Args:
            config: Pre-loaded configuration object. If None, will load from file.
            config_path: Path to config file. If None, uses default location.
        """
        if config is not None:
            self.config = config
            logger.debug("Using provided configuration")
        else:
            self.config = load_config(config_path) if config_path else load_config()
            logger.debug("Loaded configuration from file")

    def rectify(
        self,
        image: Union[RasterImage, np.ndarray],
        quad: Quadrilateral,
        border_mode: Optional[BorderMode] = None,
    ) -> RectificationResult:
        """
        Rectify the region bounded by ``quad`` into an axis-aligned image.

        TL maps exactly to output (0, 0). Output (W-1, 0), (0, H-1) and
        (W-1, H-1) sample the source within one source pixel of TR, BL and
        BR, since output pixel u is taken at u / W along the edge. Corners lie
        on the pixel grid: an axis-aligned quad from (10, 10) to (110, 60)
        yields exactly source columns 10..109 and rows 10..59.

        Sources and outputs wider or taller than ``cv2.remap`` accepts are
        sampled tile by tile.

        Args:
            image: Source raster (borrowed, never modified).
            quad: Corners in source pixel space.
            border_mode: Override of the configured border policy.

        Returns:
            RectificationResult with a newly allocated image.

        Raises:
            InvalidImageError: If the source is not a usable raster.
            DegenerateQuadrilateralError: If the corners cannot define a
                nonzero-area target.
            OutOfBoundsError: If no sample falls within the source image.
        """
        source = _as_raster(image)
        settings = self.config.rectifier
        border = border_mode or settings.border_mode

        validate_quadrilateral(quad)
        self._check_overlap(source, quad)

        out_width, out_height = calculate_output_dimensions(
            quad, settings.max_output_side
        )
        matrix = unit_square_to_quad(quad)

        bands = split_rows(out_height, settings.max_workers, settings.min_rows_per_band)
        out_shape = (out_height, out_width) + source.shape[2:]
        pixels = np.empty(out_shape, dtype=source.data.dtype)

        if len(bands) == 1:
            results = [
                sample_band(
                    source.data, matrix, (out_width, out_height), bands[0], border
                )
            ]
        else:
            logger.debug(f"Sampling {len(bands)} row bands on {len(bands)} threads")
            with ThreadPoolExecutor(max_workers=len(bands)) as pool:
                futures = [
                    pool.submit(
                        sample_band,
                        source.data,
                        matrix,
                        (out_width, out_height),
                        rows,
                        border,
                    )
                    for rows in bands
                ]
                results = [future.result() for future in futures]

        inside_total = 0
        for (row_start, row_stop), (band, inside) in zip(bands, results):
            pixels[row_start:row_stop] = band
            inside_total += inside

        if inside_total == 0:
            raise OutOfBoundsError(
                f"No sampled pixel of quadrilateral {quad.to_numpy().tolist()} "
                f"falls within the {source.width}x{source.height} source image"
            )

        coverage = inside_total / float(out_width * out_height)
        if coverage < 1.0:
            logger.warning(
                f"Quadrilateral only partially overlaps the source "
                f"({coverage:.1%} coverage), filling the rest with {border.value} border"
            )

        logger.info(
            f"Rectified quadrilateral from {source.width}x{source.height} source "
            f"to {out_width}x{out_height} image"
        )

        return RectificationResult(
            image=RasterImage(data=pixels),
            homography=matrix,
            border_mode=border,
            coverage=coverage,
        )

    def rectify_observation(
        self,
        image: Union[RasterImage, np.ndarray],
        observation: QuadObservation,
        border_mode: Optional[BorderMode] = None,
    ) -> RectificationResult:
        """
        Rectify a detector observation given in normalized coordinates.

        The corners are first converted to the image's pixel space using the
        configured detector origin convention.
        """
        source = _as_raster(image)
        quad = observation_to_pixel_quad(
            observation,
            source.width,
            source.height,
            self.config.coordinates.detector_origin,
        )
        return self.rectify(source, quad, border_mode=border_mode)

    @staticmethod
    def _check_overlap(source: RasterImage, quad: Quadrilateral) -> None:
        """Fail fast when the quadrilateral's bounding box misses the image."""
        x_min, y_min, x_max, y_max = quad.bounding_box()
        if x_max < 0 or y_max < 0 or x_min >= source.width or y_min >= source.height:
            raise OutOfBoundsError(
                f"Quadrilateral bounds ({x_min:.1f}, {y_min:.1f}, {x_max:.1f}, "
                f"{y_max:.1f}) lie entirely outside the "
                f"{source.width}x{source.height} source image"
            )


def rectify_quadrilateral(
    image: Union[RasterImage, np.ndarray],
    quad: Union[Quadrilateral, np.ndarray, list],
    config: Optional[RectificationConfig] = None,
) -> RectificationResult:
    """
    Convenience function for one-shot rectification.

    Args:
        image: Source raster or numpy array.
        quad: Quadrilateral, or array-like of 4 pixel-space points in
            TL, TR, BL, BR order.
        config: Optional custom configuration. Uses default if None.

    Returns:
        RectificationResult object.

    Example:
        >>> result = rectify_quadrilateral(
        ...     image, [[10, 10], [110, 10], [10, 60], [110, 60]]
        ... )
        >>> result.image.shape[:2]
        (50, 100)
    """
    if not isinstance(quad, Quadrilateral):
        quad = Quadrilateral.from_points(quad)
    rectifier = QuadRectifier(config=config)
    return rectifier.rectify(image, quad)
