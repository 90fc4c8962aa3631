from image_enhancer.models.enhancement import (
    AspectRatio,
    CropStrategy,
    EnhancedImage,
    EnhancementConfig,
    EnhancementTag,
    ImageMetadata,
    RawImage,
    SlideContext,
)
from image_enhancer.models.style import (
    BackgroundPreference,
    ColorScheme,
    PresentationType,
    StyleSettings,
    VisualStyle,
)

__all__ = [
    "AspectRatio",
    "BackgroundPreference",
    "ColorScheme",
    "CropStrategy",
    "EnhancedImage",
    "EnhancementConfig",
    "EnhancementTag",
    "ImageMetadata",
    "PresentationType",
    "RawImage",
    "SlideContext",
    "StyleSettings",
    "VisualStyle",
]
