"""
Slide image enhancer.

Turns arbitrary source images into slide-ready JPEGs: upscaled, normalized
to a target aspect ratio, optionally background-processed, color-tuned and
cached by content fingerprint.
"""

from image_enhancer.config import derive_style_prompt_suffix, get_settings, resolve
from image_enhancer.models import (
    AspectRatio,
    CropStrategy,
    EnhancedImage,
    EnhancementConfig,
    ImageMetadata,
    SlideContext,
    StyleSettings,
)
from image_enhancer.services.exceptions import (
    DecodeError,
    EnhancementCancelledError,
    EnhancementError,
    FetchError,
    InvalidConfigError,
    StageError,
)
from image_enhancer.services.image_enhancement_service import ImageEnhancementService

__version__ = "1.0.0"

__all__ = [
    "AspectRatio",
    "CropStrategy",
    "DecodeError",
    "EnhancedImage",
    "EnhancementCancelledError",
    "EnhancementConfig",
    "EnhancementError",
    "FetchError",
    "ImageEnhancementService",
    "ImageMetadata",
    "InvalidConfigError",
    "SlideContext",
    "StageError",
    "StyleSettings",
    "derive_style_prompt_suffix",
    "get_settings",
    "resolve",
]
