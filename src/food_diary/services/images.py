"""Photo preparation before upload."""

import io
import logging
from typing import Protocol

from PIL import Image, UnidentifiedImageError

_logger = logging.getLogger(__name__)


class ImageProcessor(Protocol):
    """Turns raw photo bytes into upload-ready JPEG bytes."""

    def __call__(self, image_data: bytes) -> bytes | None:
        """Return compressed JPEG bytes, or None if the data is not an image."""


def process_for_upload(
    image_data: bytes, max_size: int = 500, quality: int = 70
) -> bytes | None:
    """Scale the longest side to max_size and re-encode as JPEG."""
    if not image_data:
        return None
    try:
        img: Image.Image = Image.open(io.BytesIO(image_data))
        img.load()
    except (UnidentifiedImageError, OSError):
        _logger.warning("Photo bytes could not be decoded (%s bytes)", len(image_data))
        return None

    width, height = img.size
    scale = max_size / max(width, height)
    resized = img.resize((max(1, round(width * scale)), max(1, round(height * scale))))

    rgb_img: Image.Image
    if resized.mode in ("RGBA", "LA", "P"):
        rgba = resized.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        rgb_img = background
    elif resized.mode != "RGB":
        rgb_img = resized.convert("RGB")
    else:
        rgb_img = resized

    output = io.BytesIO()
    rgb_img.save(output, format="JPEG", quality=quality, optimize=True)
    return output.getvalue()
