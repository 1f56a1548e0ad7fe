from numbers import Real
from typing import Optional
import logging
import math

import numpy as np

from ..config import env_int
from ..exceptions import InvalidInputError
from ..models.background import BackgroundModel
from ..models.image import Image
from ..models.trim_bounds import TrimBounds
from ..utils import validate_alpha_threshold
from .image_service import ImageService

logger = logging.getLogger(__name__)


class BoundsService:
    """
    Finds the smallest rectangle holding every non-background pixel.
    """

    def __init__(self, alpha_threshold: Optional[int] = None):
        self.alpha_threshold = validate_alpha_threshold(
            env_int("ALPHA_THRESHOLD", 8) if alpha_threshold is None else alpha_threshold)

    @staticmethod
    def validate_tolerance(tolerance) -> float:
        if isinstance(tolerance, bool) or not isinstance(tolerance, Real):
            raise InvalidInputError(f"Tolerance must be a number, got {tolerance!r}")
        tolerance = float(tolerance)
        if not math.isfinite(tolerance) or tolerance < 0:
            raise InvalidInputError(f"Tolerance must be a non-negative number, got {tolerance}")
        return tolerance

    def background_mask(self, img: Image, background: BackgroundModel, tolerance: float) -> np.ndarray:
        """
        Boolean (H, W) mask, True where a pixel counts as background.

        Near-invisible pixels are background under either model. For solid
        backgrounds the squared RGB distance is compared against tolerance² × 3,
        which avoids a square root per pixel.
        """
        pixels = ImageService.validate_pixels(img.pixels)
        tolerance = self.validate_tolerance(tolerance)

        mask = pixels[..., 3] <= self.alpha_threshold
        if background.transparent:
            return mask

        diff = pixels[..., :3].astype(np.int32) - np.asarray(background.color, dtype=np.int32)
        distance_sq = np.einsum("ijk,ijk->ij", diff, diff)
        return mask | (distance_sq <= tolerance * tolerance * 3)

    def find_trim_bounds(
            self,
            img: Image,
            background: BackgroundModel,
            tolerance: float,
    ) -> Optional[TrimBounds]:
        """
        Returns the inclusive content rectangle, or None if the whole image is background.
        """
        content = ~self.background_mask(img, background, tolerance)

        rows = np.flatnonzero(content.any(axis=1))
        if rows.size == 0:
            logger.debug("No content pixels at tolerance %s", tolerance)
            return None
        cols = np.flatnonzero(content.any(axis=0))

        min_y, max_y = int(rows[0]), int(rows[-1])
        min_x, max_x = int(cols[0]), int(cols[-1])
        return TrimBounds(
            x=min_x,
            y=min_y,
            width=max_x - min_x + 1,
            height=max_y - min_y + 1,
        )
