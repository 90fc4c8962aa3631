"""
Prompt optimizer for slide images.

Appends presentation-wide style, background, quality and orientation
modifiers to a caller-supplied prompt so every generated image in a deck
shares the same look.
"""

from typing import List, Optional

from image_enhancer.config.resolver import derive_style_prompt_suffix
from image_enhancer.models.enhancement import AspectRatio, EnhancementConfig, SlideContext
from image_enhancer.models.style import StyleSettings
from image_enhancer.setup_logging import get_logger

logger = get_logger(__name__)

BACKGROUND_MODIFIERS = "no background, transparent background, isolated subject"
QUALITY_MODIFIERS = "high quality, professional, clean, modern"
NEGATIVE_MODIFIERS = "no text in image, no watermarks, no signatures"
WIDESCREEN_MODIFIERS = "widescreen composition, horizontal layout"


class ImagePromptOptimizer:
    """Build consistent image generation prompts for one presentation."""

    def __init__(self, config: EnhancementConfig, style_settings: Optional[StyleSettings] = None):
        self.config = config
        self.style_suffix = derive_style_prompt_suffix(style_settings) if style_settings else ""

    def build(self, base_prompt: str, slide_context: Optional[SlideContext] = None) -> str:
        """Return ``base_prompt`` with the modifiers for this configuration appended."""
        parts: List[str] = [base_prompt]

        if self.style_suffix:
            parts.append(self.style_suffix)

        if self.config.transparent_background or self.config.remove_background:
            parts.append(BACKGROUND_MODIFIERS)

        parts.append(QUALITY_MODIFIERS)
        parts.append(NEGATIVE_MODIFIERS)

        if self.config.aspect_ratio == AspectRatio.WIDESCREEN:
            parts.append(WIDESCREEN_MODIFIERS)

        prompt = ", ".join(parts)
        if slide_context is not None:
            logger.debug(f"Optimized prompt for slide {slide_context.index} ({slide_context.layout}): {prompt[:100]}")
        else:
            logger.debug(f"Optimized prompt: {prompt[:100]}")
        return prompt
