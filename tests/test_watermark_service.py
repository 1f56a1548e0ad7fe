"""
Unit tests for corner watermark detection and inpainting.
"""

import numpy as np
import pytest

from border_trim.exceptions import InvalidInputError
from border_trim.models.image import Image
from border_trim.models.watermark_blob import WatermarkBlob
from border_trim.services.watermark_service import WatermarkService
from border_trim.utils import luma

GRAY = (80, 80, 80)
WATERMARK_GRAY = (230, 230, 230)


@pytest.fixture
def service():
    return WatermarkService()


def reference_inpaint(pixels, blob, radius):
    """Straightforward per-pixel version: blob order, reading the live buffer."""
    height, width = pixels.shape[:2]
    mask = blob.mask()
    for idx in blob.indices:
        y, x = divmod(idx, width)
        sums = [0, 0, 0, 0]
        count = 0
        for ny in range(max(0, y - radius), min(height, y + radius + 1)):
            for nx in range(max(0, x - radius), min(width, x + radius + 1)):
                if mask[ny, nx] or pixels[ny, nx, 3] < 8:
                    continue
                for c in range(4):
                    sums[c] += int(pixels[ny, nx, c])
                count += 1
        if count:
            pixels[y, x] = [int(np.floor(s / count + 0.5)) for s in sums]


class TestGeometry:
    """Test patch, threshold and radius sizing."""

    @pytest.mark.parametrize("size,expected", [(40, 40), (222, 40), (300, 54), (1000, 140)])
    def test_patch_size(self, service, size, expected):
        assert service.patch_size(size, size * 2) == expected

    def test_patch_origin_clamped(self, service):
        assert service.patch_origin(30, 100, 40) == (0, 60)

    @pytest.mark.parametrize("median,expected", [(0, 42), (200, 10), (255, 10), (150, 19)])
    def test_threshold_delta(self, service, median, expected):
        assert service.threshold_delta(median) == expected

    @pytest.mark.parametrize("size,expected", [(40, 3), (480, 5), (2000, 8)])
    def test_inpaint_radius(self, service, size, expected):
        assert service.inpaint_radius(size, size) == expected

    def test_median_luma(self):
        histogram = np.zeros(256, dtype=np.int64)
        histogram[[10, 20, 30]] = [2, 1, 1]
        # half of 4 samples is reached in the first bin
        assert WatermarkService._median_luma(histogram, 4) == 10
        histogram[10] = 1
        assert WatermarkService._median_luma(histogram, 3) == 20


class TestLargestComponent:
    """Test the explicit-stack flood fill."""

    def test_diagonal_cells_are_not_connected(self):
        mask = np.array([
            [1, 0, 0],
            [0, 1, 0],
            [0, 0, 1],
        ], dtype=bool)
        assert WatermarkService._largest_component(mask) == [0]

    def test_largest_wins_and_indices_are_unique(self):
        mask = np.array([
            [1, 1, 0, 0],
            [0, 0, 0, 1],
            [0, 1, 1, 1],
        ], dtype=bool)
        component = WatermarkService._largest_component(mask)
        assert sorted(component) == [7, 9, 10, 11]
        assert len(set(component)) == len(component)

    def test_first_component_wins_ties(self):
        mask = np.array([
            [0, 0, 1, 1],
            [1, 1, 0, 0],
        ], dtype=bool)
        assert sorted(WatermarkService._largest_component(mask)) == [2, 3]

    def test_large_blob_does_not_recurse(self):
        mask = np.ones((300, 300), dtype=bool)
        assert len(WatermarkService._largest_component(mask)) == 90000

    def test_empty_mask(self):
        assert WatermarkService._largest_component(np.zeros((5, 5), dtype=bool)) == []


class TestDetectWatermark:
    """Test watermark detection."""

    def test_bright_bar_detected_inside_patch(self, service, watermarked_pixels):
        blob = service.detect_watermark(Image(watermarked_pixels))
        assert blob is not None
        assert len(blob) == 60
        assert blob.patch_size == 40
        assert (blob.patch_x, blob.patch_y) == (160, 160)
        assert blob.median_luma == 80
        coords = set(blob.coordinates())
        assert coords == {(x, y) for x in range(170, 190) for y in range(185, 188)}
        assert all(x >= blob.patch_x and y >= blob.patch_y for x, y in coords)

    def test_small_images_are_skipped(self, service, pixels_factory):
        pixels = pixels_factory(39, 200, GRAY)
        pixels[185:188, 5:35, :3] = WATERMARK_GRAY
        assert service.detect_watermark(Image(pixels)) is None

    def test_uniform_patch_has_no_watermark(self, service, pixels_factory):
        assert service.detect_watermark(Image(pixels_factory(100, 100, GRAY))) is None

    def test_blob_below_minimum_size(self, service, pixels_factory):
        pixels = pixels_factory(200, 200, GRAY)
        pixels[185:188, 170:183, :3] = WATERMARK_GRAY   # 39 pixels
        assert service.detect_watermark(Image(pixels)) is None

    def test_blob_above_maximum_size(self, service, pixels_factory):
        pixels = pixels_factory(200, 200, GRAY)
        pixels[170:200, 175:200, :3] = WATERMARK_GRAY   # 750 > 0.35 × 1600
        assert service.detect_watermark(Image(pixels)) is None

    def test_saturated_marks_are_ignored(self, service, pixels_factory):
        pixels = pixels_factory(200, 200, GRAY)
        pixels[185:188, 170:190, :3] = (250, 250, 120)
        assert service.detect_watermark(Image(pixels)) is None

    def test_transparent_patch(self, service, pixels_factory):
        pixels = pixels_factory(200, 200, GRAY)
        pixels[150:, 150:, 3] = 0
        assert service.detect_watermark(Image(pixels)) is None

    def test_marks_outside_patch_are_ignored(self, service, pixels_factory):
        pixels = pixels_factory(200, 200, GRAY)
        pixels[10:13, 10:30, :3] = WATERMARK_GRAY
        assert service.detect_watermark(Image(pixels)) is None

    def test_non_square_image_indices(self, service, pixels_factory):
        pixels = pixels_factory(300, 120, GRAY)
        pixels[110:113, 270:290, :3] = WATERMARK_GRAY
        blob = service.detect_watermark(Image(pixels))
        assert blob is not None
        assert (blob.width, blob.height) == (300, 120)
        assert set(blob.coordinates()) == {(x, y) for x in range(270, 290) for y in range(110, 113)}


class TestInpaintWatermark:
    """Test watermark removal."""

    def test_watermark_luma_is_gone(self, service, watermarked_pixels):
        img = Image(watermarked_pixels)
        blob = service.detect_watermark(img)
        service.inpaint_watermark(img, blob)

        ys, xs = np.divmod(np.asarray(blob.indices), blob.width)
        restored = img.pixels[ys, xs]
        assert np.all(restored == (*GRAY, 255))
        assert np.all(luma(restored[:, :3]) < luma(np.array(WATERMARK_GRAY)))
        assert service.detect_watermark(img) is None

    def test_only_blob_pixels_change(self, service, watermarked_pixels):
        before = watermarked_pixels.copy()
        img = Image(watermarked_pixels)
        blob = service.detect_watermark(img)
        service.inpaint_watermark(img, blob)
        changed = np.any(img.pixels != before, axis=2)
        assert np.array_equal(changed, blob.mask())

    def test_matches_per_pixel_reference(self, service):
        rng = np.random.default_rng(5)
        pixels = rng.integers(0, 256, size=(60, 70, 4), dtype=np.uint8)
        pixels[rng.random((60, 70)) < 0.1, 3] = 3     # some near-transparent neighbours
        indices = tuple(y * 70 + x for y in range(30, 60) for x in range(50, 70) if (x + y) % 3)
        blob = WatermarkBlob(indices=indices, width=70, height=60, patch_x=30, patch_y=20,
                             patch_size=40, median_luma=0, delta=0)

        expected = pixels.copy()
        reference_inpaint(expected, blob, service.inpaint_radius(70, 60))
        service.inpaint_watermark(Image(pixels), blob)
        assert np.array_equal(pixels, expected)

    def test_pixels_without_usable_neighbours_are_kept(self, service, pixels_factory):
        pixels = pixels_factory(50, 50, (0, 0, 0), alpha=0)
        pixels[45, 40:45] = (255, 255, 255, 255)
        blob = WatermarkBlob(indices=tuple(45 * 50 + x for x in range(40, 45)), width=50,
                             height=50, patch_x=10, patch_y=10, patch_size=40,
                             median_luma=0, delta=0)
        before = pixels.copy()
        service.inpaint_watermark(Image(pixels), blob)
        assert np.array_equal(pixels, before)

    def test_blob_from_another_image_rejected(self, service, pixels_factory):
        blob = WatermarkBlob(indices=(0,), width=10, height=10, patch_x=0, patch_y=0,
                             patch_size=40, median_luma=0, delta=0)
        with pytest.raises(InvalidInputError):
            service.inpaint_watermark(Image(pixels_factory(20, 20)), blob)

    def test_remove_watermark(self, service, watermarked_pixels, pixels_factory):
        assert service.remove_watermark(Image(watermarked_pixels)) is True
        assert service.remove_watermark(Image(pixels_factory(100, 100, GRAY))) is False
