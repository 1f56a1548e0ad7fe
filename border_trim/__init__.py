"""Trim uniform-color or transparent image borders and erase small corner watermarks."""

from .buffer_ops import detect_background, detect_watermark, find_trim_bounds, inpaint_watermark
from .exceptions import ImageDecodeError, InvalidInputError
from .models.background import BackgroundModel
from .models.trim_bounds import TrimBounds
from .models.watermark_blob import WatermarkBlob

__version__ = "1.0.0"

__all__ = [
    "BackgroundModel",
    "ImageDecodeError",
    "InvalidInputError",
    "TrimBounds",
    "WatermarkBlob",
    "detect_background",
    "detect_watermark",
    "find_trim_bounds",
    "inpaint_watermark",
]
