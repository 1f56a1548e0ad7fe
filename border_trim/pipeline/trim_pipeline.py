# pipeline/trim_pipeline.py
from __future__ import annotations
from pathlib import Path
from typing import Iterator, Tuple
import logging

from ..config import env_bool, env_float
from ..models.image import Image
from ..models.trim_result import TrimResult
from ..services.background_service import BackgroundService
from ..services.bounds_service import BoundsService
from ..services.image_service import TRIM_SUFFIX, ImageService
from ..services.watermark_service import WatermarkService

logger = logging.getLogger(__name__)

# ------------------------------------------------------------------
# env‑vars
DEFAULT_TOLERANCE = env_float("DEFAULT_TOLERANCE", 12)
REMOVE_WATERMARK = env_bool("REMOVE_WATERMARK", True)
NO_CONTENT_MESSAGE = "No content found outside the margins. Try adjusting the tolerance."


# ------------------------------------------------------------------
def trim_image(
    img: Image,
    tolerance: float = DEFAULT_TOLERANCE,
    remove_watermark: bool = REMOVE_WATERMARK,
    *,
    background_service: BackgroundService | None = None,
    bounds_service: BoundsService | None = None,
    watermark_service: WatermarkService | None = None,
    image_service: ImageService | None = None,
) -> TrimResult:
    """
    Trim one image:
        • infer the background from the border
        • find the content rectangle for *tolerance*
        • crop to it (a new Image, the input is left untouched)
        • optionally erase a corner watermark from the crop
    """
    background_service = background_service or BackgroundService()
    bounds_service = bounds_service or BoundsService()
    watermark_service = watermark_service or WatermarkService()
    image_service = image_service or ImageService()

    height, width = image_service.get_image_dimensions(img)
    background = background_service.detect_background(img)
    bounds = bounds_service.find_trim_bounds(img, background, tolerance)

    if bounds is None:
        logger.info("%s: entirely background at tolerance %s", img.path or "image", tolerance)
        return TrimResult(
            image=None,
            bounds=None,
            background=background,
            source_size=(width, height),
            message=NO_CONTENT_MESSAGE,
        )

    trimmed = image_service.create_image(image_service.crop_to_bounds(img, bounds))
    trimmed.original_pixels = img.pixels

    watermark_removed = False
    if remove_watermark:
        watermark_removed = watermark_service.remove_watermark(trimmed)

    logger.info("%s: %dx%d -> %dx%d (watermark removed: %s)", img.path or "image",
                width, height, bounds.width, bounds.height, watermark_removed)
    return TrimResult(
        image=trimmed,
        bounds=bounds,
        background=background,
        source_size=(width, height),
        watermark_removed=watermark_removed,
    )


def trim_file(
    src: str | Path,
    dst: str | Path | None = None,
    tolerance: float = DEFAULT_TOLERANCE,
    remove_watermark: bool = REMOVE_WATERMARK,
    *,
    image_service: ImageService | None = None,
) -> TrimResult:
    """
    Load *src*, trim it and save the PNG to *dst* (default: ``<stem>--trim.png``
    next to the source). Nothing is written when the image is entirely background.
    """
    image_service = image_service or ImageService()
    src = Path(src)
    img = image_service.load(src)

    result = trim_image(img, tolerance, remove_watermark, image_service=image_service)
    if result.image is None:
        return result

    result.image.path = Path(dst) if dst else src.with_name(image_service.trimmed_filename(src.name))
    image_service.save(result.image)
    return result


def trim_directory(
    folder: str | Path,
    out_dir: str | Path | None = None,
    tolerance: float = DEFAULT_TOLERANCE,
    remove_watermark: bool = REMOVE_WATERMARK,
    *,
    recursive: bool = False,
    image_service: ImageService | None = None,
) -> Iterator[Tuple[Path, TrimResult]]:
    """
    Trim every readable image in *folder*, one at a time, saving each as
    ``<stem>--trim.png`` in *out_dir* (default: next to the source).

    Files that already carry the ``--trim.png`` suffix are skipped. (source, result)
    pairs are yielded for every image, including the ones that were entirely background.
    """
    image_service = image_service or ImageService()
    out_dir = Path(out_dir) if out_dir else None
    if out_dir is not None:
        out_dir.mkdir(parents=True, exist_ok=True)

    for img in image_service.stream_gallery(folder, recursive=recursive):
        if img.path.name.endswith(TRIM_SUFFIX):
            logger.debug("Skipping already trimmed %s", img.path)
            continue

        result = trim_image(img, tolerance, remove_watermark, image_service=image_service)
        if result.image is not None:
            target_dir = out_dir or img.path.parent
            result.image.path = target_dir / image_service.trimmed_filename(img.path.name)
            image_service.save(result.image)
        yield img.path, result
