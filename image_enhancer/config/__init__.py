from image_enhancer.config.resolver import derive_style_prompt_suffix, resolve
from image_enhancer.config.settings import EnhancerSettings, get_settings

__all__ = ["EnhancerSettings", "derive_style_prompt_suffix", "get_settings", "resolve"]
