"""
Resolve enhancer options and derive style prompt suffixes.
"""

from typing import Any, Dict, Mapping, Optional, Union

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from image_enhancer.models.enhancement import EnhancementConfig
from image_enhancer.models.style import ColorScheme, StyleSettings, VisualStyle
from image_enhancer.services.exceptions import InvalidConfigError


VISUAL_STYLE_PHRASES: Dict[VisualStyle, str] = {
    VisualStyle.PHOTOGRAPHIC: "photorealistic, professional photography style",
    VisualStyle.ILLUSTRATION: "digital illustration, vector art style",
    VisualStyle.ICON: "flat icon style, minimalist, simple shapes",
    VisualStyle.MINIMAL: "minimal design, clean lines, simple composition",
    VisualStyle.ARTISTIC: "artistic rendering, creative interpretation",
}

COLOR_SCHEME_PHRASES: Dict[ColorScheme, str] = {
    ColorScheme.CORPORATE: "corporate colors, professional palette, blue and gray tones",
    ColorScheme.VIBRANT: "vibrant colors, bright palette, energetic tones",
    ColorScheme.MONOCHROME: "monochrome, black and white, grayscale",
    ColorScheme.PASTEL: "pastel colors, soft tones, muted palette",
    ColorScheme.BOLD: "bold colors, high contrast, striking palette",
}


def _normalize_keys(options: Mapping[str, Any]) -> Dict[str, Any]:
    """Map camelCase option names onto field names; unknown keys pass through."""
    aliases = {to_camel(name): name for name in EnhancementConfig.model_fields}
    return {aliases.get(key, key): value for key, value in options.items()}


def resolve(
    overrides: Optional[Union[Mapping[str, Any], EnhancementConfig]] = None,
    **kwargs: Any,
) -> EnhancementConfig:
    """Merge user overrides onto the enumerated defaults.

    Args:
        overrides: Mapping of option names (camelCase or snake_case), or an
            existing config to extend.
        **kwargs: Additional overrides, applied after ``overrides``.

    Returns:
        Validated, immutable EnhancementConfig.

    Raises:
        InvalidConfigError: Unknown option, bad enum value or bad dimension.
    """
    if isinstance(overrides, EnhancementConfig):
        if not kwargs:
            return overrides
        base: Dict[str, Any] = overrides.model_dump()
    else:
        base = _normalize_keys(overrides or {})

    merged = {**base, **_normalize_keys(kwargs)}
    try:
        return EnhancementConfig.model_validate(merged)
    except ValidationError as e:
        raise InvalidConfigError(
            f"Invalid enhancement options: {e.error_count()} error(s)",
            cause=e,
            context={'options': sorted(merged.keys())}
        ) from e


def derive_style_prompt_suffix(settings: StyleSettings) -> str:
    """Map style settings to the phrase appended to image prompts."""
    suffixes = [
        VISUAL_STYLE_PHRASES[settings.visual_style],
        COLOR_SCHEME_PHRASES[settings.color_scheme],
    ]
    return ", ".join(suffixes)
