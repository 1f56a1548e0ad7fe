from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import numpy as np


@dataclass
class Image:
    """
    Simple data object: RGBA pixels (+ optional source path for bookkeeping).
    No OpenCV logic outside the repository layer.
    """
    pixels: np.ndarray # Shape (H, W, 4), dtype uint8, RGBA order.
    path: Path | None = None # Source of the image.
    original_pixels: np.ndarray | None = None # Untrimmed pixels for comparison

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def width(self) -> int:
        return self.pixels.shape[1]
