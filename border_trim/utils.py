from numbers import Integral
import math
import numpy as np

from .exceptions import InvalidInputError


def clamp(value, lower, upper):
    return min(upper, max(lower, value))


def validate_alpha_threshold(value) -> int:
    """Alpha at or below this counts as transparent; must be an int in 0-255."""
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise InvalidInputError(f"Alpha threshold must be an integer, got {value!r}")
    if not 0 <= value <= 255:
        raise InvalidInputError(f"Alpha threshold must be within 0-255, got {value}")
    return int(value)


def round_half_up(value: float) -> int:
    """Round .5 upwards (2.5 -> 3), unlike Python's banker's rounding."""
    return int(math.floor(value + 0.5))


def round_half_up_array(values: np.ndarray) -> np.ndarray:
    return np.floor(values + 0.5)


def luma(rgb: np.ndarray) -> np.ndarray:
    """
    BT.709 luma of an (..., 3) RGB array, as float64.
    """
    rgb = rgb.astype(np.float64)
    return 0.2126 * rgb[..., 0] + 0.7152 * rgb[..., 1] + 0.0722 * rgb[..., 2]
