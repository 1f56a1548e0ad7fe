from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple

from .background import BackgroundModel
from .image import Image
from .trim_bounds import TrimBounds


@dataclass
class TrimResult:
    """
    Outcome of one trim run.
    `image` and `bounds` are None when every pixel was classified as background.
    """
    image: Image | None
    bounds: TrimBounds | None
    background: BackgroundModel
    source_size: Tuple[int, int] # (width, height) of the untrimmed image
    watermark_removed: bool = False
    message: str = ""

    @property
    def found_content(self) -> bool:
        return self.bounds is not None
