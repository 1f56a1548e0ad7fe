from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple

from ..utils import round_half_up

RGB = Tuple[int, int, int]
WHITE: RGB = (255, 255, 255)


@dataclass(frozen=True)
class BackgroundModel:
    """
    Inferred image background: either transparent or a solid RGB color.
    Transparent models carry white as their color.
    """
    transparent: bool
    color: RGB = WHITE

    @classmethod
    def make_transparent(cls) -> "BackgroundModel":
        return cls(transparent=True, color=WHITE)

    @classmethod
    def solid(cls, color: RGB) -> "BackgroundModel":
        return cls(transparent=False, color=tuple(int(c) for c in color))

    def to_dict(self) -> dict:
        return {"transparent": self.transparent, "color": list(self.color)}


@dataclass
class ColorBucket:
    """Running count and channel sums for one quantized border color."""
    count: int = 0
    sum_r: int = 0
    sum_g: int = 0
    sum_b: int = 0

    @staticmethod
    def key_for(r: int, g: int, b: int) -> int:
        # 4 most significant bits per channel -> 12-bit key
        return ((r >> 4) << 8) | ((g >> 4) << 4) | (b >> 4)

    def add(self, r: int, g: int, b: int) -> None:
        self.count += 1
        self.sum_r += r
        self.sum_g += g
        self.sum_b += b

    def mean(self) -> RGB:
        return (
            round_half_up(self.sum_r / self.count),
            round_half_up(self.sum_g / self.count),
            round_half_up(self.sum_b / self.count),
        )
