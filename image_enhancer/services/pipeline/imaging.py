"""
Pillow/numpy helpers shared by the pipeline stages.

All helpers return new images; inputs are never modified in place.
"""

import io
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from image_enhancer.models.enhancement import RawImage
from image_enhancer.services.exceptions import DecodeError

# Common raster formats only
SUPPORTED_FORMATS = ("JPEG", "PNG", "WEBP", "GIF", "BMP", "TIFF")

RESAMPLE = Image.Resampling.LANCZOS

Size = Tuple[int, int]


@dataclass(frozen=True)
class DecodedImage:
    """A decoded source image in RGB or RGBA mode."""
    image: Image.Image
    format: str

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height


def has_alpha(image: Image.Image) -> bool:
    return image.mode in ("RGBA", "LA", "PA") or (
        image.mode == "P" and "transparency" in image.info
    )


def decode(raw: RawImage) -> DecodedImage:
    """Decode fetched bytes, normalizing to RGB/RGBA with EXIF orientation applied."""
    if not raw.data:
        raise DecodeError("Fetched image is empty", context={'url': raw.url[:100]})

    try:
        with Image.open(io.BytesIO(raw.data), formats=SUPPORTED_FORMATS) as opened:
            fmt = (opened.format or "unknown").lower()
            opened.load()
            image = ImageOps.exif_transpose(opened)
            mode = "RGBA" if has_alpha(image) else "RGB"
            image = image.convert(mode)
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError(
            "Could not decode fetched image",
            cause=e,
            context={'url': raw.url[:100], 'bytes': raw.size}
        ) from e

    return DecodedImage(image=image, format=fmt)


def fit_inside(size: Size, box: Size) -> Size:
    """Largest size with the same aspect as ``size`` that fits in ``box``."""
    width, height = size
    box_width, box_height = box
    scale = min(box_width / width, box_height / height)
    return max(1, round(width * scale)), max(1, round(height * scale))


def cover(size: Size, box: Size) -> Size:
    """Smallest size with the same aspect as ``size`` that covers ``box``."""
    width, height = size
    box_width, box_height = box
    scale = max(box_width / width, box_height / height)
    return max(box_width, round(width * scale)), max(box_height, round(height * scale))


def resize_inside(image: Image.Image, box: Size) -> Image.Image:
    target = fit_inside(image.size, box)
    if target == image.size:
        return image.copy()
    return image.resize(target, RESAMPLE)


def resize_cover(image: Image.Image, box: Size) -> Image.Image:
    target = cover(image.size, box)
    if target == image.size:
        return image.copy()
    return image.resize(target, RESAMPLE)


def paste_centered(canvas: Image.Image, image: Image.Image) -> Image.Image:
    """Composite ``image`` onto a copy of ``canvas`` at its center."""
    result = canvas.copy()
    offset = ((result.width - image.width) // 2, (result.height - image.height) // 2)
    if image.mode == "RGBA":
        result.paste(image, offset, image)
    else:
        result.paste(image, offset)
    return result


def transparent_canvas(size: Size) -> Image.Image:
    return Image.new("RGBA", size, (255, 255, 255, 0))


def radial_mask(size: Size, radius: float, solid_until: float = 0.7) -> Image.Image:
    """Center-weighted 'L' mask: 255 inside, linear fade to 0 at the edge.

    ``radius`` is a fraction of the normalized diagonal
    (``sqrt((w^2 + h^2) / 2)``), matching SVG percentage radii.
    ``solid_until`` is the fraction of the radius that stays fully opaque.
    """
    width, height = size
    reference = np.sqrt((width ** 2 + height ** 2) / 2.0)
    outer = max(radius * reference, 1e-6)

    ys, xs = np.mgrid[0:height, 0:width].astype(np.float32)
    cx, cy = (width - 1) / 2.0, (height - 1) / 2.0
    distance = np.sqrt((xs - cx) ** 2 + (ys - cy) ** 2) / outer

    fade = (1.0 - distance) / (1.0 - solid_until)
    alpha = np.clip(fade, 0.0, 1.0)
    return Image.fromarray((alpha * 255).round().astype(np.uint8))


def flatten(image: Image.Image, background=(255, 255, 255)) -> Image.Image:
    """Drop transparency by compositing onto a solid background."""
    if image.mode == "RGB":
        return image
    rgba = image.convert("RGBA")
    base = Image.new("RGB", rgba.size, background)
    base.paste(rgba, (0, 0), rgba)
    return base


def encode_jpeg(image: Image.Image, quality: int) -> bytes:
    buffer = io.BytesIO()
    flatten(image).save(buffer, format="JPEG", quality=quality, progressive=True, optimize=True)
    return buffer.getvalue()
