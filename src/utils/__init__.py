"""
Shared Utilities

Common functions used across all modules.
"""

from src.utils.io import load_json, load_yaml, read_image, save_json, write_image
from src.utils.logging_config import setup_logging

__all__ = [
    "load_json",
    "load_yaml",
    "read_image",
    "save_json",
    "write_image",
    "setup_logging",
]
