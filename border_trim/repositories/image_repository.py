from __future__ import annotations
from io import BytesIO
from pathlib import Path
from typing import Union, Iterable, Iterator
import logging
import signal
import threading

import numpy as np
import cv2
from PIL import Image as PILImage

from ..config import env_int, env_list
from ..exceptions import ImageDecodeError
from ..models.image import Image

logger = logging.getLogger(__name__)

_TO_RGBA = {
    3: cv2.COLOR_BGR2RGBA,
    4: cv2.COLOR_BGRA2RGBA,
}


class ImageRepository:
    """
    Handles file I/O and codec work for Image entities.
    """
    def __init__(self):
        self.VALID_EXTS = {ext.lower() for ext in env_list(
            "VALID_IMAGE_EXTENSIONS", ".png,.jpg,.jpeg,.gif,.bmp,.webp")}
        self.LOAD_TIMEOUT = env_int("IMAGE_LOAD_TIMEOUT", 5)

    @staticmethod
    def create_image(pixels: np.ndarray, path: Union[str, Path] = None) -> Image:
        if path is None:
            return Image(pixels)
        return Image(pixels=pixels, path=Path(path))

    def retrieve_image_dimensions(self, img: Image):
        return img.pixels.shape[:2]

    @staticmethod
    def _to_rgba(arr: np.ndarray) -> np.ndarray:
        """OpenCV decode output (gray / BGR / BGRA, 8 or 16 bit) -> RGBA uint8."""
        if arr.dtype == np.uint16:
            arr = (arr >> 8).astype(np.uint8)
        elif arr.dtype != np.uint8:
            raise ImageDecodeError(f"Unsupported sample type: {arr.dtype}")

        if arr.ndim == 2:
            return cv2.cvtColor(arr, cv2.COLOR_GRAY2RGBA)
        channels = arr.shape[2]
        if channels == 1:
            return cv2.cvtColor(arr[:, :, 0], cv2.COLOR_GRAY2RGBA)
        if channels not in _TO_RGBA:
            raise ImageDecodeError(f"Unsupported channel count: {channels}")
        return cv2.cvtColor(arr, _TO_RGBA[channels])

    def load(self, path: Union[str, Path], timeout: int | None = None) -> Image:
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Image not found: {path}")
        timeout = self.LOAD_TIMEOUT if timeout is None else timeout

        # SIGALRM only exists on POSIX and only fires in the main thread
        use_alarm = (hasattr(signal, "SIGALRM") and timeout > 0
                     and threading.current_thread() is threading.main_thread())

        # ─── timeout wrapper ──────────────────────────────────────────────
        def _handler(signum, frame):
            raise TimeoutError(f"cv2.imread timed-out after {timeout}s: {path}")

        if use_alarm:
            previous = signal.signal(signal.SIGALRM, _handler)
            signal.alarm(timeout)
        try:
            arr = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        finally:
            if use_alarm:
                signal.alarm(0)  # always disarm
                signal.signal(signal.SIGALRM, previous)
        # ──────────────────────────────────────────────────────────────────

        if arr is None:
            raise ImageDecodeError(f"Image unreadable: {path}")

        return Image(pixels=self._to_rgba(arr), path=path)

    def decode(self, data: bytes, path: Union[str, Path] = None) -> Image:
        """Decode an in-memory encoded image (e.g. an upload)."""
        if not data:
            raise ImageDecodeError("Empty image data")
        arr = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
        if arr is None:
            raise ImageDecodeError("Image data could not be decoded")
        return self.create_image(self._to_rgba(arr), path)

    @staticmethod
    def encode_png(image: Image) -> bytes:
        buffer = BytesIO()
        PILImage.fromarray(np.ascontiguousarray(image.pixels), "RGBA").save(buffer, format="PNG")
        return buffer.getvalue()

    @staticmethod
    def save(image: Image) -> None:
        PILImage.fromarray(np.ascontiguousarray(image.pixels), "RGBA").save(image.path, format="PNG")

    def iter_dir(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Image]:
        """
        Yield Image objects one at a time.  Nothing accumulates in memory.
        Unreadable files are logged and skipped.
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise NotADirectoryError(folder)

        allowed = {e.lower() for e in (exts or self.VALID_EXTS)}
        pattern = "**/*" if recursive else "*"

        for p in sorted(folder.glob(pattern)):
            if p.suffix.lower() not in allowed:
                logger.debug("Skipping due to extension: %s", p)
                continue
            if not p.is_file():
                logger.debug("Skipping because not file: %s", p)
                continue
            try:
                yield self.load(p)
            except (ImageDecodeError, TimeoutError) as err:
                logger.warning("Skipping %s: %s", p.name, err)
