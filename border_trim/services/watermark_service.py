from typing import List, Optional, Tuple
import logging

import cv2
import numpy as np

from ..exceptions import InvalidInputError
from ..models.image import Image
from ..models.watermark_blob import WatermarkBlob
from ..utils import clamp, luma, round_half_up, round_half_up_array
from .image_service import ImageService

logger = logging.getLogger(__name__)


class WatermarkService:
    """
    Finds and erases a small bright, near-gray mark in the bottom-right corner.

    Detection works on a square patch in that corner: pixels clearly brighter than
    the patch median and low in saturation are candidates, and the largest
    4-connected group of candidates is the watermark if its size is plausible.
    Removal replaces each watermark pixel with the mean of the surrounding
    non-watermark pixels.
    """

    MIN_DIMENSION = 40          # below this no detection is attempted
    PATCH_RATIO = 0.18
    PATCH_MIN, PATCH_MAX = 40, 140
    OPAQUE_ALPHA = 16           # pixels below this alpha are ignored by detection
    DELTA_RATIO = 0.18
    DELTA_MIN, DELTA_MAX = 10, 42
    NEUTRAL_SPREAD = 70         # max(RGB) - min(RGB) must stay below this
    MIN_BLOB = 40
    MAX_BLOB_RATIO = 0.35       # of the patch area
    RADIUS_RATIO = 0.01
    RADIUS_MIN, RADIUS_MAX = 3, 8
    NEIGHBOR_ALPHA = 8          # neighbours below this alpha are not averaged

    # ─── Geometry ────────────────────────────────────────────────────
    def patch_size(self, width: int, height: int) -> int:
        return clamp(round_half_up(min(width, height) * self.PATCH_RATIO),
                     self.PATCH_MIN, self.PATCH_MAX)

    def patch_origin(self, width: int, height: int, patch_size: int) -> Tuple[int, int]:
        return max(0, width - patch_size), max(0, height - patch_size)

    def inpaint_radius(self, width: int, height: int) -> int:
        return clamp(round_half_up(min(width, height) * self.RADIUS_RATIO),
                     self.RADIUS_MIN, self.RADIUS_MAX)

    # ─── Detection ───────────────────────────────────────────────────
    @staticmethod
    def _median_luma(histogram: np.ndarray, sample_count: int) -> int:
        """Smallest bin whose cumulative count reaches half the samples."""
        cumulative = np.cumsum(histogram)
        return int(np.argmax(cumulative >= sample_count / 2))

    def threshold_delta(self, median: int) -> int:
        return clamp(round_half_up((255 - median) * self.DELTA_RATIO),
                     self.DELTA_MIN, self.DELTA_MAX)

    @staticmethod
    def _largest_component(candidates: np.ndarray) -> List[int]:
        """
        Largest 4-connected group of True cells in a 2-D mask, as flat indices in
        visiting order. Uses an explicit stack, so blob size is not bounded by the
        recursion limit. Earlier components (raster order of their first cell) win ties.
        """
        rows, cols = candidates.shape
        is_candidate = candidates.ravel().tolist()
        visited = bytearray(rows * cols)
        best: List[int] = []

        for seed in np.flatnonzero(candidates).tolist():
            if visited[seed]:
                continue

            component = []
            stack = [seed]
            visited[seed] = 1
            while stack:
                current = stack.pop()
                component.append(current)
                cy, cx = divmod(current, cols)

                neighbors = []
                if cx > 0:
                    neighbors.append(current - 1)
                if cx < cols - 1:
                    neighbors.append(current + 1)
                if cy > 0:
                    neighbors.append(current - cols)
                if cy < rows - 1:
                    neighbors.append(current + cols)

                for n in neighbors:
                    if is_candidate[n] and not visited[n]:
                        visited[n] = 1
                        stack.append(n)

            if len(component) > len(best):
                best = component

        return best

    def detect_watermark(self, img: Image) -> Optional[WatermarkBlob]:
        pixels = ImageService.validate_pixels(img.pixels)
        height, width = pixels.shape[:2]
        if min(width, height) < self.MIN_DIMENSION:
            return None

        patch_size = self.patch_size(width, height)
        start_x, start_y = self.patch_origin(width, height, patch_size)
        patch = pixels[start_y:, start_x:]

        opaque = patch[..., 3] >= self.OPAQUE_ALPHA
        sample_count = int(np.count_nonzero(opaque))
        if sample_count == 0:
            return None

        patch_luma = luma(patch[..., :3])
        rounded = np.clip(round_half_up_array(patch_luma[opaque]), 0, 255).astype(np.intp)
        histogram = np.bincount(rounded, minlength=256)
        median = self._median_luma(histogram, sample_count)
        delta = self.threshold_delta(median)

        rgb = patch[..., :3]
        spread = rgb.max(axis=2).astype(np.int16) - rgb.min(axis=2).astype(np.int16)
        candidates = opaque & (spread < self.NEUTRAL_SPREAD) & (patch_luma >= median + delta)

        component = self._largest_component(candidates)
        max_size = patch_size * patch_size * self.MAX_BLOB_RATIO
        if not component or len(component) < self.MIN_BLOB or len(component) > max_size:
            logger.debug("No watermark: largest blob %d px (median luma %d, delta %d)",
                         len(component), median, delta)
            return None

        # patch-local flat index -> image flat index
        patch_cols = width - start_x
        indices = tuple((start_y + i // patch_cols) * width + start_x + i % patch_cols
                        for i in component)
        logger.info("Watermark blob of %d px found in %dx%d corner patch",
                    len(indices), patch_size, patch_size)
        return WatermarkBlob(
            indices=indices,
            width=width,
            height=height,
            patch_x=start_x,
            patch_y=start_y,
            patch_size=patch_size,
            median_luma=median,
            delta=delta,
        )

    # ─── Removal ─────────────────────────────────────────────────────
    def inpaint_watermark(self, img: Image, blob: WatermarkBlob) -> None:
        """
        Overwrite every blob pixel (in place) with the rounded RGBA mean of the
        non-blob pixels with alpha >= 8 in its (2r+1)² window. Pixels without any
        such neighbour are left as they are.

        Blob pixels are never read as neighbours, so the pixels written here never
        feed into another blob pixel's mean and the result does not depend on blob order.
        """
        pixels = ImageService.validate_pixels(img.pixels)
        height, width = pixels.shape[:2]
        if len(blob) == 0:
            return
        if (blob.width, blob.height) != (width, height):
            raise InvalidInputError(f"Blob was found in a {blob.width}x{blob.height} image, "
                                    f"not {width}x{height}")

        radius = self.inpaint_radius(width, height)
        usable = ~blob.mask() & (pixels[..., 3] >= self.NEIGHBOR_ALPHA)

        usable_pixels = np.where(usable[..., None], pixels, 0).astype(np.uint8)
        channel_sums = cv2.integral(usable_pixels, sdepth=cv2.CV_64F)
        counts = cv2.integral(usable.astype(np.uint8), sdepth=cv2.CV_64F)

        index = np.asarray(blob.indices, dtype=np.intp)
        ys, xs = np.divmod(index, width)
        y0 = np.maximum(ys - radius, 0)
        y1 = np.minimum(ys + radius + 1, height)
        x0 = np.maximum(xs - radius, 0)
        x1 = np.minimum(xs + radius + 1, width)

        def window_sum(table):
            return table[y1, x1] - table[y0, x1] - table[y1, x0] + table[y0, x0]

        count = np.rint(window_sum(counts)).astype(np.int64)
        sums = np.rint(window_sum(channel_sums))
        filled = count > 0
        if not filled.any():
            return

        means = round_half_up_array(sums[filled] / count[filled][:, None])
        pixels[ys[filled], xs[filled]] = np.clip(means, 0, 255).astype(np.uint8)
        logger.debug("Inpainted %d of %d watermark pixels (radius %d)",
                     int(filled.sum()), len(blob), radius)

    def remove_watermark(self, img: Image) -> bool:
        """Detect and erase in one step. Returns True if a watermark was removed."""
        blob = self.detect_watermark(img)
        if blob is None:
            return False
        self.inpaint_watermark(img, blob)
        return True
