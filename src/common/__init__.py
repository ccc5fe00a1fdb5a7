"""
Common types shared across all modules.

This module provides the standardized value types of the toolkit, ensuring
consistency between coordinate conversion, rectification and the CLI.
"""

from src.common.types import Point2D, Quadrilateral, RasterImage

__all__ = ["Point2D", "Quadrilateral", "RasterImage"]
