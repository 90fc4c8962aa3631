"""
Domain models for the image enhancement pipeline.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class AspectRatio(str, Enum):
    """Target aspect ratio for normalization."""
    WIDESCREEN = "16:9"
    STANDARD = "4:3"
    SQUARE = "1:1"
    AUTO = "auto"


class CropStrategy(str, Enum):
    """How the aspect-ratio stage reaches the target box."""
    CENTER = "center"
    SMART = "smart"
    FILL = "fill"
    FIT = "fit"


class EnhancementTag(str, Enum):
    """Tags recorded in metadata for stages that changed the image."""
    UPSCALED = "upscaled"
    ASPECT_ADJUSTED = "aspect-adjusted"
    BACKGROUND_PROCESSED = "background-processed"
    COLOR_ENHANCED = "color-enhanced"


def _clamp(value, low, high):
    return max(low, min(high, value))


class EnhancementConfig(BaseModel):
    """Complete, immutable option set for one enhancer instance.

    Accepts camelCase (``targetWidth``) or snake_case (``target_width``)
    names. Numeric adjustments are clamped into range; unknown options and
    unknown enum values are rejected.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    # Resolution
    target_width: int = Field(default=1920, gt=0)
    target_height: int = Field(default=1080, gt=0)
    upscale_enabled: bool = True
    upscale_factor: float = 2.0

    # Aspect ratio
    aspect_ratio: AspectRatio = AspectRatio.WIDESCREEN
    crop_strategy: CropStrategy = CropStrategy.SMART
    background_extension: bool = True

    # Background processing
    remove_background: bool = False
    background_blur: bool = False
    transparent_background: bool = False

    # Color (percent adjustments, -100..100)
    brightness: int = 0
    contrast: int = 10
    saturation: int = 5
    sharpness: float = 1.0

    # Caching / output
    enable_caching: bool = True
    cache_directory: str = "./cache/images"
    quality: int = 90

    @field_validator("brightness", "contrast", "saturation")
    @classmethod
    def _clamp_percent(cls, value: int) -> int:
        return _clamp(value, -100, 100)

    @field_validator("sharpness")
    @classmethod
    def _clamp_sharpness(cls, value: float) -> float:
        return _clamp(value, 0.0, 10.0)

    @field_validator("upscale_factor")
    @classmethod
    def _clamp_upscale_factor(cls, value: float) -> float:
        return _clamp(value, 1.0, 8.0)

    @field_validator("quality")
    @classmethod
    def _clamp_quality(cls, value: int) -> int:
        return _clamp(value, 1, 100)

    @property
    def needs_color_enhancement(self) -> bool:
        return (
            self.brightness != 0
            or self.contrast != 0
            or self.saturation != 0
            or self.sharpness > 0
        )

    @property
    def needs_background_processing(self) -> bool:
        return self.remove_background or self.background_blur


class SlideContext(BaseModel):
    """Where the image will be placed; used for logging and prompt hints."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    layout: str = ""
    index: int = 0


@dataclass(frozen=True)
class RawImage:
    """Fetched source bytes. Dimensions and format come from decoding."""
    url: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class ImageMetadata(BaseModel):
    """Metadata persisted next to every enhanced image."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    width: int
    height: int
    format: str
    size: int
    original_size: int
    processing_time_ms: int = Field(alias="processingTime")
    enhancements: Tuple[str, ...] = ()


class EnhancedImage(BaseModel):
    """Final encoded image plus metadata and the cache key it was stored under."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    buffer: bytes = Field(repr=False)
    metadata: ImageMetadata
    cache_key: Optional[str] = None
