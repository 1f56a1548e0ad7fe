"""
Flat-buffer entry points.

These take a packed R,G,B,A byte sequence plus its dimensions, view it (without
copying) as an (H, W, 4) array and hand it to the services. Malformed input fails
fast with InvalidInputError; "no content" and "no watermark" are ``None`` results.
"""
from __future__ import annotations
from numbers import Integral
from typing import Optional

import numpy as np

from .exceptions import InvalidInputError
from .models.background import BackgroundModel
from .models.image import Image
from .models.trim_bounds import TrimBounds
from .models.watermark_blob import WatermarkBlob
from .services.background_service import BackgroundService
from .services.bounds_service import BoundsService
from .services.watermark_service import WatermarkService

ALPHA_THRESHOLD = 8


def _check_dimension(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise InvalidInputError(f"{name} must be an integer, got {value!r}")
    if value <= 0:
        raise InvalidInputError(f"{name} must be positive, got {value}")
    return int(value)


def pixel_view(buffer, width: int, height: int, *, writable: bool = False) -> np.ndarray:
    """
    View *buffer* as an (height, width, 4) uint8 array sharing its memory.
    """
    width = _check_dimension("width", width)
    height = _check_dimension("height", height)

    if isinstance(buffer, np.ndarray):
        if buffer.dtype != np.uint8:
            raise InvalidInputError(f"Expected uint8 samples, got {buffer.dtype}")
        if not buffer.flags["C_CONTIGUOUS"]:
            raise InvalidInputError("Pixel array must be C-contiguous")
        flat = buffer.reshape(-1)
    else:
        try:
            flat = np.frombuffer(buffer, dtype=np.uint8)
        except (TypeError, ValueError):
            raise InvalidInputError(
                f"Expected a bytes-like pixel buffer, got {type(buffer).__name__}") from None

    expected = width * height * 4
    if flat.size != expected:
        raise InvalidInputError(
            f"Buffer holds {flat.size} bytes, expected {expected} for {width}x{height} RGBA")
    if writable and not flat.flags.writeable:
        raise InvalidInputError("Buffer is read-only; pass a bytearray or a writable array")

    return flat.reshape(height, width, 4)


def detect_background(buffer, width: int, height: int,
                      alpha_threshold: int = ALPHA_THRESHOLD) -> BackgroundModel:
    img = Image(pixel_view(buffer, width, height))
    return BackgroundService(alpha_threshold=alpha_threshold).detect_background(img)


def find_trim_bounds(buffer, width: int, height: int, background: BackgroundModel,
                     tolerance: float, alpha_threshold: int = ALPHA_THRESHOLD) -> Optional[TrimBounds]:
    img = Image(pixel_view(buffer, width, height))
    return BoundsService(alpha_threshold=alpha_threshold).find_trim_bounds(img, background, tolerance)


def detect_watermark(buffer, width: int, height: int) -> Optional[WatermarkBlob]:
    img = Image(pixel_view(buffer, width, height))
    return WatermarkService().detect_watermark(img)


def inpaint_watermark(buffer, width: int, height: int, blob: WatermarkBlob) -> None:
    img = Image(pixel_view(buffer, width, height, writable=True))
    WatermarkService().inpaint_watermark(img, blob)
