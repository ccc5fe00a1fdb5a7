"""
I/O Utilities

File input/output operations.
"""

import json
from pathlib import Path
from typing import Any, Dict

import cv2
import yaml

from src.common.types import RasterImage


def load_json(file_path: Path) -> Dict[str, Any]:
    """Load JSON file."""
    with open(file_path, "r", encoding="utf-8") as f:
        return json.load(f)


def save_json(data: Dict[str, Any], file_path: Path, indent: int = 2):
    """Save data to JSON file."""
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    with open(file_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent)


def load_yaml(file_path: Path) -> Dict[str, Any]:
    """Load YAML file."""
    with open(file_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def read_image(file_path: Path) -> RasterImage:
    """
    Read an image file, keeping its channels and bit depth.

    Raises:
        FileNotFoundError: If the file is missing or cannot be decoded.
    """
    file_path = Path(file_path)
    data = cv2.imread(str(file_path), cv2.IMREAD_UNCHANGED)
    if data is None:
        raise FileNotFoundError(f"Could not read image: {file_path}")
    return RasterImage(data=data)


def write_image(image: RasterImage, file_path: Path) -> None:
    """
    Encode an image; the format follows the file extension.

    Raises:
        IOError: If OpenCV cannot encode or write the file (unknown
            extension included).
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        written = cv2.imwrite(str(file_path), image.data)
    except cv2.error as e:
        raise IOError(f"Failed to encode image {file_path}: {e}") from e
    if not written:
        raise IOError(f"Failed to write image: {file_path}")
