"""
Shared fixtures: small synthetic RGBA images built with numpy.
"""

from io import BytesIO

import numpy as np
import pytest
from PIL import Image as PILImage

from border_trim.models.image import Image

GRAY = (80, 80, 80)
WATERMARK_GRAY = (230, 230, 230)


def make_pixels(width, height, color=(255, 255, 255), alpha=255):
    pixels = np.empty((height, width, 4), dtype=np.uint8)
    pixels[..., :3] = color
    pixels[..., 3] = alpha
    return pixels


@pytest.fixture
def pixels_factory():
    """make(width, height, color=(255, 255, 255), alpha=255) -> (H, W, 4) uint8 array."""
    return make_pixels


@pytest.fixture
def padded_image():
    """60x40 white image holding a 20x10 dark-blue block at (15, 12)."""
    pixels = make_pixels(60, 40, (255, 255, 255))
    pixels[12:22, 15:35, :3] = (20, 30, 120)
    return Image(pixels)


@pytest.fixture
def watermarked_pixels():
    """
    200x200 neutral gray image with a 20x3 bright gray bar in the bottom-right
    corner (inside the 40x40 search patch at (160, 160)).
    """
    pixels = make_pixels(200, 200, GRAY)
    pixels[185:188, 170:190, :3] = WATERMARK_GRAY
    return pixels


@pytest.fixture
def png_bytes():
    """encode(pixels) -> PNG bytes of an RGBA array."""
    def encode(pixels):
        buffer = BytesIO()
        PILImage.fromarray(pixels, "RGBA").save(buffer, format="PNG")
        return buffer.getvalue()
    return encode
