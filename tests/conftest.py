"""
Pytest Configuration and Shared Fixtures

This file contains pytest configuration and fixtures that are available
to all test modules.
"""

import logging

import numpy as np
import pytest

from src.common.types import Quadrilateral, RasterImage
from src.rectification.types import RectificationConfig, RectifierConfig


@pytest.fixture
def gradient_image():
    """400x300 BGR image whose channels vary linearly with x and y."""
    height, width = 300, 400
    ys, xs = np.mgrid[0:height, 0:width]
    data = np.empty((height, width, 3), dtype=np.uint8)
    data[:, :, 0] = np.round(xs * 255.0 / (width - 1)).astype(np.uint8)
    data[:, :, 1] = np.round(ys * 255.0 / (height - 1)).astype(np.uint8)
    data[:, :, 2] = 128
    return RasterImage(data=data)


@pytest.fixture
def noise_image():
    """Random 120x200 BGR image (fixed seed)."""
    rng = np.random.default_rng(1234)
    data = rng.integers(0, 256, size=(120, 200, 3), dtype=np.uint8)
    return RasterImage(data=data)


@pytest.fixture
def axis_aligned_quad():
    """Axis-aligned 100x50 rectangle."""
    return Quadrilateral.from_points([[10, 10], [110, 10], [10, 60], [110, 60]])


@pytest.fixture
def skewed_quad():
    """Near-rectangular, perspective-skewed region of a 400x300 image."""
    return Quadrilateral.from_points([[100, 50], [300, 60], [90, 250], [310, 240]])


@pytest.fixture
def default_config():
    """Configuration with dataclass defaults (no file access)."""
    return RectificationConfig()


@pytest.fixture
def threaded_config():
    """Configuration sampling on several threads with small bands."""
    return RectificationConfig(
        rectifier=RectifierConfig(max_workers=4, min_rows_per_band=16)
    )


@pytest.fixture
def restore_root_logging():
    """Restore root logger handlers and level after a test reconfigures them."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)
