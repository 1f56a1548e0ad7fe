from __future__ import annotations
from pathlib import Path
from typing import Iterable, Union, Iterator
import base64
import logging
import re

import numpy as np

from ..exceptions import InvalidInputError
from ..models.image import Image
from ..models.trim_bounds import TrimBounds
from ..repositories.image_repository import ImageRepository

logger = logging.getLogger(__name__)

TRIM_SUFFIX = "--trim.png"
DEFAULT_TRIM_NAME = "trimmed.png"
_EXTENSION = re.compile(r"\.[^/.]+$")


class ImageService:
    """I/O and pixel-level helpers.  No background or watermark logic."""
    def __init__(self):
        self.image_repository = ImageRepository()

    def create_image(self, pixels: np.ndarray, path: Union[str, Path] = None) -> Image:
        return self.image_repository.create_image(pixels, path)

    def load(self, path: str | Path) -> Image:
        """Load a single image from disk into an RGBA Image object."""
        return self.image_repository.load(path)

    def decode(self, data: bytes, filename: str | None = None) -> Image:
        """Decode uploaded bytes into an RGBA Image object."""
        return self.image_repository.decode(data, filename)

    def stream_gallery(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Image]:
        """
        Yield images lazily instead of returning a gigantic list.
        """
        return self.image_repository.iter_dir(folder,
                                              recursive=recursive,
                                              exts=exts)

    @staticmethod
    def validate_pixels(pixels: np.ndarray) -> np.ndarray:
        """
        Check that *pixels* is an (H, W, 4) uint8 RGBA array and return it unchanged.
        """
        if not isinstance(pixels, np.ndarray):
            raise InvalidInputError(f"Expected a numpy array, got {type(pixels).__name__}")
        if pixels.dtype != np.uint8:
            raise InvalidInputError(f"Expected uint8 samples, got {pixels.dtype}")
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise InvalidInputError(f"Expected an (H, W, 4) RGBA array, got shape {pixels.shape}")
        return pixels

    def save(self, image: Image) -> None:
        """
        Business-level method to save the image (as PNG) to its path.
        """
        if image.path is None:
            raise InvalidInputError("Image has no output path")
        self.image_repository.save(image)

    def encode_png(self, image: Image) -> bytes:
        return self.image_repository.encode_png(image)

    def to_data_url(self, image: Image) -> str:
        """Encode the image as a PNG data URL for JSON responses."""
        encoded = base64.b64encode(self.encode_png(image)).decode("utf-8")
        return f"data:image/png;base64,{encoded}"

    def crop_pixels(self, img: Image, bound_r, bound_l, bound_t, bound_b):
        width = bound_r - bound_l
        height = bound_b - bound_t
        logger.debug("Crop bounds=(%d,%d,%d,%d) -> %dx%d",
                     bound_l, bound_t, bound_r, bound_b, width, height)

        img_h, img_w = img.pixels.shape[:2]
        if bound_l >= bound_r or bound_t >= bound_b or bound_l < 0 or bound_t < 0 \
                or bound_r > img_w or bound_b > img_h:
            raise InvalidInputError(
                f"Invalid crop bounds ({bound_l},{bound_t},{bound_r},{bound_b}) "
                f"for a {img_w}x{img_h} image")

        return img.pixels[bound_t:bound_b, bound_l:bound_r].copy()

    def crop_to_bounds(self, img: Image, bounds: TrimBounds) -> np.ndarray:
        left, top, right, bottom = bounds.as_box()
        return self.crop_pixels(img, bound_r=right, bound_l=left,
                                bound_t=top, bound_b=bottom)

    def get_image_dimensions(self, img: Image):
        return self.image_repository.retrieve_image_dimensions(img)

    @staticmethod
    def trimmed_filename(name: str | None) -> str:
        """photo.jpg -> photo--trim.png; falls back to trimmed.png."""
        if not name:
            return DEFAULT_TRIM_NAME
        stem = _EXTENSION.sub("", Path(name).name)
        return f"{stem}{TRIM_SUFFIX}" if stem else DEFAULT_TRIM_NAME

    @staticmethod
    def format_size(width: int, height: int) -> str:
        return f"{width} × {height}px"
