"""
Transform stages: Upscale -> Aspect Ratio -> Background -> Color -> Encode.

Each stage takes a WorkingImage and returns one. A stage that decides it has
nothing to do returns its input unchanged; a stage that changes pixels
returns a new WorkingImage carrying its tag.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple

from PIL import Image, ImageChops, ImageEnhance, ImageFilter

from image_enhancer.models.enhancement import (
    AspectRatio,
    CropStrategy,
    EnhancementConfig,
    EnhancementTag,
)
from image_enhancer.services.pipeline import imaging
from image_enhancer.services.pipeline.strategies import (
    EntropySaliency,
    MattingBackend,
    RadialGradientMatte,
    SaliencyStrategy,
)

ASPECT_TOLERANCE = 0.01
EXTENSION_BLUR_RADIUS = 20
EXTENSION_BRIGHTNESS = 0.7
EXTENSION_SATURATION = 0.5
BACKGROUND_BLUR_RADIUS = 10


@dataclass(frozen=True)
class WorkingImage:
    """Image flowing between stages plus the tags of stages that changed it."""
    image: Image.Image
    enhancements: Tuple[str, ...] = ()

    def updated(self, image: Image.Image, tag: EnhancementTag) -> 'WorkingImage':
        tags = self.enhancements if tag.value in self.enhancements else self.enhancements + (tag.value,)
        return WorkingImage(image=image, enhancements=tags)


@dataclass(frozen=True)
class EncodedImage:
    data: bytes
    width: int
    height: int
    format: str


class Stage(ABC):
    """One ordered step of the transform pipeline."""

    name: str = ""

    @abstractmethod
    def apply(self, work: WorkingImage, config: EnhancementConfig) -> WorkingImage:
        pass


class UpscaleStage(Stage):
    """Lanczos upscale when the image is smaller than the target box."""

    name = "upscale"

    def apply(self, work: WorkingImage, config: EnhancementConfig) -> WorkingImage:
        if not config.upscale_enabled:
            return work

        width, height = work.image.size
        if width >= config.target_width and height >= config.target_height:
            return work

        box = (
            max(round(width * config.upscale_factor), config.target_width),
            max(round(height * config.upscale_factor), config.target_height),
        )
        target = imaging.fit_inside((width, height), box)
        if target == (width, height):
            return work

        return work.updated(work.image.resize(target, imaging.RESAMPLE), EnhancementTag.UPSCALED)


class AspectRatioStage(Stage):
    """Normalize to the configured aspect ratio with the configured crop strategy."""

    name = "aspect_ratio"

    def __init__(self, saliency: Optional[SaliencyStrategy] = None):
        self.saliency = saliency or EntropySaliency()

    @staticmethod
    def target_box(config: EnhancementConfig) -> Optional[imaging.Size]:
        """Target dimensions for the configured ratio, or None for 'auto'."""
        if config.aspect_ratio == AspectRatio.WIDESCREEN:
            return config.target_width, round(config.target_width * 9 / 16)
        if config.aspect_ratio == AspectRatio.STANDARD:
            return config.target_width, round(config.target_width * 3 / 4)
        if config.aspect_ratio == AspectRatio.SQUARE:
            side = min(config.target_width, config.target_height)
            return side, side
        return None

    def apply(self, work: WorkingImage, config: EnhancementConfig) -> WorkingImage:
        box = self.target_box(config)
        if box is None:
            return work

        image = work.image
        current_aspect = image.width / image.height
        target_aspect = box[0] / box[1]
        if abs(current_aspect / target_aspect - 1.0) < ASPECT_TOLERANCE:
            return work

        strategy = config.crop_strategy
        if strategy == CropStrategy.CENTER:
            result = self._center_crop(image, box)
        elif strategy == CropStrategy.SMART:
            result = self._smart_crop(image, box)
        elif strategy == CropStrategy.FILL:
            result = self._fill(image, box, config.background_extension)
        else:
            result = self._fit(image, box)

        return work.updated(result, EnhancementTag.ASPECT_ADJUSTED)

    def _center_crop(self, image: Image.Image, box: imaging.Size) -> Image.Image:
        resized = imaging.resize_cover(image, box)
        left = (resized.width - box[0]) // 2
        top = (resized.height - box[1]) // 2
        return resized.crop((left, top, left + box[0], top + box[1]))

    def _smart_crop(self, image: Image.Image, box: imaging.Size) -> Image.Image:
        resized = imaging.resize_cover(image, box)
        left, top = self.saliency.select_window(resized, box)
        return resized.crop((left, top, left + box[0], top + box[1]))

    def _fill(self, image: Image.Image, box: imaging.Size, extend: bool) -> Image.Image:
        inner = imaging.resize_inside(image, box)
        if inner.size == box:
            return inner
        if not extend:
            return imaging.paste_centered(imaging.transparent_canvas(box), inner.convert("RGBA"))

        # Soft backdrop made from the image itself instead of letterbox bars
        backdrop = self._center_crop(image, box)
        backdrop = backdrop.filter(ImageFilter.GaussianBlur(EXTENSION_BLUR_RADIUS))
        backdrop = ImageEnhance.Brightness(backdrop).enhance(EXTENSION_BRIGHTNESS)
        backdrop = ImageEnhance.Color(backdrop).enhance(EXTENSION_SATURATION)
        return imaging.paste_centered(backdrop, inner)

    def _fit(self, image: Image.Image, box: imaging.Size) -> Image.Image:
        inner = imaging.resize_inside(image, box).convert("RGBA")
        return imaging.paste_centered(imaging.transparent_canvas(box), inner)


class BackgroundStage(Stage):
    """Cut out or blur the background using the configured matting backend."""

    name = "background"

    def __init__(self, matting: Optional[MattingBackend] = None):
        self.matting = matting or RadialGradientMatte()

    def apply(self, work: WorkingImage, config: EnhancementConfig) -> WorkingImage:
        if not config.needs_background_processing:
            return work

        image = work.image
        if config.remove_background:
            cutout = image.convert("RGBA")
            alpha = ImageChops.multiply(cutout.getchannel("A"), self.matting.matte(image))
            cutout.putalpha(alpha)
            return work.updated(cutout, EnhancementTag.BACKGROUND_PROCESSED)

        blurred = image.filter(ImageFilter.GaussianBlur(BACKGROUND_BLUR_RADIUS))
        focused = Image.composite(image, blurred, self.matting.focus_mask(image))
        return work.updated(focused, EnhancementTag.BACKGROUND_PROCESSED)


class ColorEnhanceStage(Stage):
    """Brightness, contrast and saturation modulation plus optional sharpening."""

    name = "color_enhance"

    def apply(self, work: WorkingImage, config: EnhancementConfig) -> WorkingImage:
        if not config.needs_color_enhancement:
            return work

        image = work.image
        alpha = image.getchannel("A") if image.mode == "RGBA" else None
        rgb = image.convert("RGB")

        if config.brightness:
            rgb = ImageEnhance.Brightness(rgb).enhance(1 + config.brightness / 100)
        if config.contrast:
            rgb = ImageEnhance.Contrast(rgb).enhance(1 + config.contrast / 100)
        if config.saturation:
            rgb = ImageEnhance.Color(rgb).enhance(1 + config.saturation / 100)
        if config.sharpness > 0:
            rgb = rgb.filter(ImageFilter.UnsharpMask(radius=config.sharpness, percent=100, threshold=2))

        if alpha is not None:
            rgb.putalpha(alpha)
        return work.updated(rgb, EnhancementTag.COLOR_ENHANCED)


class EncodeStage:
    """Final progressive JPEG encode. Transparency is flattened onto white."""

    name = "encode"

    def apply(self, work: WorkingImage, config: EnhancementConfig) -> EncodedImage:
        data = imaging.encode_jpeg(work.image, config.quality)
        return EncodedImage(
            data=data,
            width=work.image.width,
            height=work.image.height,
            format="jpeg",
        )
