"""Image normalization for transmission to the recognition model.

The pipeline mirrors what a browser canvas does with
``filter: contrast(1.2) brightness(1.05)`` followed by ``toDataURL('image/jpeg', 0.9)``:
the image is scaled so its longer edge is at most 1000px, the filtered pixels
are composited over an opaque white background, and the result is re-encoded
as JPEG.
"""
import io
import logging
from typing import Tuple

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from ..config.defaults import (
    BACKGROUND_COLOR, BRIGHTNESS_FACTOR, CONTRAST_FACTOR, JPEG_QUALITY, MAX_IMAGE_EDGE,
)
from ..core.entities import NormalizedImage, RawImage
from ..core.exceptions import DecodeError

logger = logging.getLogger(__name__)


def target_size(width: int, height: int, max_edge: int = MAX_IMAGE_EDGE) -> Tuple[int, int]:
    """Scale (width, height) down so the longer edge equals ``max_edge``.

    Images that already fit are returned unchanged; nothing is upscaled.
    Fractional sizes are truncated, as canvas dimensions are.
    """
    if width > height:
        if width > max_edge:
            height = height * max_edge / width
            width = max_edge
    elif height > max_edge:
        width = width * max_edge / height
        height = max_edge
    return max(1, int(width)), max(1, int(height))


def _decode(file: RawImage) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(file.content))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise DecodeError(f"Failed to load image for compression: {e}") from e

    # Browsers render <img> with EXIF orientation applied.
    return ImageOps.exif_transpose(image)


def _enhance(rgba: np.ndarray) -> np.ndarray:
    """Apply contrast then brightness to the colour channels, CSS filter style."""
    rgb = rgba[..., :3].astype(np.float32) / 255.0
    rgb = (rgb - 0.5) * CONTRAST_FACTOR + 0.5
    rgb = np.clip(rgb, 0.0, 1.0) * BRIGHTNESS_FACTOR
    rgba = rgba.astype(np.float32) / 255.0
    rgba[..., :3] = np.clip(rgb, 0.0, 1.0)
    return rgba


def _flatten_on_white(rgba: np.ndarray) -> np.ndarray:
    """Composite a float RGBA array over opaque white, returning uint8 RGB."""
    background = np.asarray(BACKGROUND_COLOR, dtype=np.float32) / 255.0
    alpha = rgba[..., 3:4]
    rgb = rgba[..., :3] * alpha + background * (1.0 - alpha)
    return np.round(rgb * 255.0).astype(np.uint8)


def normalize(file: RawImage) -> NormalizedImage:
    """Decode, resize, enhance and re-encode ``file`` as JPEG.

    Raises:
        DecodeError: If the bytes are not a decodable raster image
    """
    image = _decode(file)
    source_width, source_height = image.size

    width, height = target_size(source_width, source_height)
    image = image.convert("RGBA")
    if (width, height) != image.size:
        image = image.resize((width, height), Image.Resampling.LANCZOS)

    pixels = _flatten_on_white(_enhance(np.asarray(image)))
    flattened = Image.fromarray(pixels)

    buffer = io.BytesIO()
    flattened.save(buffer, format="JPEG", quality=JPEG_QUALITY)
    data = buffer.getvalue()

    logger.debug(f"Normalized {source_width}x{source_height} {file.mime_type} "
                 f"to {width}x{height} JPEG ({len(data)} bytes)")
    return NormalizedImage(data=data, width=width, height=height)
