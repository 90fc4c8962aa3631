"""
Presentation-wide style settings used to keep generated images consistent.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class PresentationType(str, Enum):
    BUSINESS = "business"
    CREATIVE = "creative"
    ACADEMIC = "academic"
    TECHNICAL = "technical"
    CASUAL = "casual"


class VisualStyle(str, Enum):
    PHOTOGRAPHIC = "photographic"
    ILLUSTRATION = "illustration"
    ICON = "icon"
    MINIMAL = "minimal"
    ARTISTIC = "artistic"


class ColorScheme(str, Enum):
    CORPORATE = "corporate"
    VIBRANT = "vibrant"
    MONOCHROME = "monochrome"
    PASTEL = "pastel"
    BOLD = "bold"


class BackgroundPreference(str, Enum):
    TRANSPARENT = "transparent"
    SOLID = "solid"
    GRADIENT = "gradient"
    TEXTURED = "textured"


class StyleSettings(BaseModel):
    """Declarative style choices for one presentation."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    presentation_type: PresentationType = PresentationType.BUSINESS
    visual_style: VisualStyle = VisualStyle.PHOTOGRAPHIC
    color_scheme: ColorScheme = ColorScheme.CORPORATE
    background_preference: BackgroundPreference = BackgroundPreference.SOLID
