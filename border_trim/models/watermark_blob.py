from __future__ import annotations
from dataclasses import dataclass
from typing import Iterator, List, Tuple
import numpy as np


@dataclass(frozen=True)
class WatermarkBlob:
    """
    One 4-connected component of watermark candidate pixels.

    `indices` are linear positions (y * width + x) in the image the blob was found in,
    kept in flood-fill visiting order, without duplicates.
    """
    indices: Tuple[int, ...]
    width: int               # Width of the image the indices refer to.
    height: int
    patch_x: int             # Top-left corner of the searched bottom-right patch.
    patch_y: int
    patch_size: int
    median_luma: int         # Patch median luma and threshold offset used for detection.
    delta: int

    def __len__(self) -> int:
        return len(self.indices)

    def __iter__(self) -> Iterator[int]:
        return iter(self.indices)

    def coordinates(self) -> List[Tuple[int, int]]:
        """(x, y) pairs in blob order."""
        return [(idx % self.width, idx // self.width) for idx in self.indices]

    def mask(self) -> np.ndarray:
        """Boolean (H, W) mask that is True on blob pixels."""
        flat = np.zeros(self.width * self.height, dtype=bool)
        flat[np.asarray(self.indices, dtype=np.intp)] = True
        return flat.reshape(self.height, self.width)
