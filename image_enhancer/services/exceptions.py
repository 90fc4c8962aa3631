"""
Exception hierarchy for the image enhancement pipeline.

Every failure of a single enhance call surfaces as exactly one
EnhancementError subclass so callers can fall back to the original image.
"""

from typing import Optional, Dict, Any


class ImagingError(Exception):
    """Base exception for all image enhancer errors"""

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.context = context or {}

    def __str__(self):
        parts = [self.message]
        if self.cause:
            parts.append(f" (caused by: {type(self.cause).__name__}: {str(self.cause)})")
        if self.context:
            parts.append(f" Context: {self.context}")
        return "".join(parts)


# === Pipeline exceptions ===

class EnhancementError(ImagingError):
    """An enhance call failed; no partial result was produced"""

    @classmethod
    def wrap(cls, error: BaseException, **context) -> 'EnhancementError':
        """Wrap an unexpected failure in the top-level error."""
        return cls(f"Image enhancement failed: {error}", cause=error, context=context)


class FetchError(EnhancementError):
    """Source image could not be downloaded (timeout, non-2xx, transport)"""

    def __init__(self, url: str, message: str, status: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.url = url
        self.status = status
        self.context.update({'url': url[:100]})
        if status is not None:
            self.context['status'] = status


class DecodeError(EnhancementError):
    """Fetched bytes are not a readable raster image"""
    pass


class StageError(EnhancementError):
    """A pipeline stage failed"""

    def __init__(self, stage: str, cause: BaseException, **kwargs):
        super().__init__(f"Stage '{stage}' failed", cause=cause, **kwargs)
        self.stage = stage
        self.context['stage'] = stage


class EnhancementCancelledError(EnhancementError):
    """Enhancement was cancelled before it finished"""

    def __init__(self, stage: Optional[str] = None, **kwargs):
        message = f"Image enhancement cancelled before stage '{stage}'" if stage else "Image enhancement cancelled"
        super().__init__(message, **kwargs)
        self.stage = stage


# === Configuration exceptions ===

class ConfigurationError(ImagingError):
    """Configuration error"""
    pass


class InvalidConfigError(ConfigurationError):
    """Invalid configuration value"""
    pass
