"""
Service-level settings for the image enhancer.

Per-image pipeline options live in EnhancementConfig. These settings cover
the process-wide concerns around it:
- Network fetch limits
- Batch concurrency
- Memory cache bound
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from image_enhancer.services.exceptions import InvalidConfigError

load_dotenv()


def _optional_int(value: Optional[str]) -> Optional[int]:
    if value is None or value.strip() in ("", "0"):
        return None
    return int(value)


@dataclass
class EnhancerSettings:
    """Environment-backed settings shared by enhancer service instances."""

    fetch_timeout_ms: int = field(default_factory=lambda: int(os.getenv('IMAGE_FETCH_TIMEOUT_MS', '30000')))
    max_image_size_mb: int = field(default_factory=lambda: int(os.getenv('MAX_IMAGE_SIZE_MB', '25')))
    user_agent: str = field(default_factory=lambda: os.getenv('IMAGE_FETCH_USER_AGENT', 'Slide-Image-Enhancer/1.0'))
    batch_concurrency: int = field(default_factory=lambda: int(os.getenv('IMAGE_BATCH_CONCURRENCY', '4')))
    # None keeps the memory tier unbounded
    memory_cache_max_entries: Optional[int] = field(
        default_factory=lambda: _optional_int(os.getenv('IMAGE_CACHE_MAX_ENTRIES'))
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/diagnostics"""
        return {
            'fetch_timeout_ms': self.fetch_timeout_ms,
            'max_image_size_mb': self.max_image_size_mb,
            'user_agent': self.user_agent,
            'batch_concurrency': self.batch_concurrency,
            'memory_cache_max_entries': self.memory_cache_max_entries,
        }

    def validate(self) -> None:
        """Validate configuration values"""
        if self.fetch_timeout_ms < 1:
            raise InvalidConfigError(f"fetch_timeout_ms must be positive, got {self.fetch_timeout_ms}")

        if self.max_image_size_mb < 1:
            raise InvalidConfigError(f"max_image_size_mb must be at least 1, got {self.max_image_size_mb}")

        if self.batch_concurrency < 1:
            raise InvalidConfigError(f"batch_concurrency must be at least 1, got {self.batch_concurrency}")

        if self.memory_cache_max_entries is not None and self.memory_cache_max_entries < 1:
            raise InvalidConfigError(
                f"memory_cache_max_entries must be at least 1, got {self.memory_cache_max_entries}"
            )


@lru_cache(maxsize=1)
def get_settings() -> EnhancerSettings:
    """Get the validated settings for this process"""
    settings = EnhancerSettings()
    settings.validate()
    return settings
