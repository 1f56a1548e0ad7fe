from typing import Dict, Optional
import logging

import numpy as np

from ..config import env_int
from ..models.background import BackgroundModel, ColorBucket
from ..models.image import Image
from ..utils import validate_alpha_threshold
from .image_service import ImageService

logger = logging.getLogger(__name__)


class BackgroundService:
    """
    Business‑level helper for background inference.

    • Looks only at the four border lines of the image.
    • Returns a BackgroundModel: transparent, or the dominant solid border color.
    """

    TRANSPARENT_RATIO = 0.5

    def __init__(self, alpha_threshold: Optional[int] = None):
        self.alpha_threshold = validate_alpha_threshold(
            env_int("ALPHA_THRESHOLD", 8) if alpha_threshold is None else alpha_threshold)

    @staticmethod
    def border_samples(pixels: np.ndarray) -> np.ndarray:
        """
        RGBA border samples in scan order, shape (N, 4).

        Top and bottom rows are walked together column by column, then the left and
        right columns row by row, so corner pixels show up twice.
        """
        h, w = pixels.shape[:2]
        if h == 0 or w == 0:
            return np.empty((0, 4), dtype=np.uint8)

        rows = np.stack([pixels[0], pixels[h - 1]], axis=1).reshape(-1, 4)
        cols = np.stack([pixels[:, 0], pixels[:, w - 1]], axis=1).reshape(-1, 4)
        return np.concatenate([rows, cols])

    def detect_background(self, img: Image) -> BackgroundModel:
        pixels = ImageService.validate_pixels(img.pixels)
        samples = self.border_samples(pixels)

        border_count = len(samples)
        is_transparent = samples[:, 3] <= self.alpha_threshold
        transparent_count = int(np.count_nonzero(is_transparent))
        transparent_ratio = 1.0 if border_count == 0 else transparent_count / border_count

        opaque = samples[~is_transparent, :3]
        if transparent_ratio > self.TRANSPARENT_RATIO or len(opaque) == 0:
            logger.debug("Transparent background (%d/%d border samples)",
                         transparent_count, border_count)
            return BackgroundModel.make_transparent()

        # dicts keep insertion order, so ties go to the first bucket seen
        buckets: Dict[int, ColorBucket] = {}
        for r, g, b in opaque.tolist():
            key = ColorBucket.key_for(r, g, b)
            bucket = buckets.get(key)
            if bucket is None:
                bucket = buckets[key] = ColorBucket()
            bucket.add(r, g, b)

        best = None
        for bucket in buckets.values():
            if best is None or bucket.count > best.count:
                best = bucket

        color = best.mean()
        logger.debug("Solid background %s (%d of %d border samples, %d buckets)",
                     color, best.count, border_count, len(buckets))
        return BackgroundModel.solid(color)
