import time
from typing import Optional, Sequence

from image_enhancer.models.enhancement import EnhancedImage, ImageMetadata
from image_enhancer.services.pipeline.stages import EncodedImage


class ResultAssembler:
    """Package an encoded image with its metadata and cache key."""

    def __init__(self, clock=time.perf_counter):
        self._clock = clock

    def assemble(
        self,
        encoded: EncodedImage,
        original_size: int,
        enhancements: Sequence[str],
        started_at: float,
        cache_key: Optional[str] = None,
    ) -> EnhancedImage:
        # started_at must come from the same clock
        elapsed_ms = max(0, round((self._clock() - started_at) * 1000))
        metadata = ImageMetadata(
            width=encoded.width,
            height=encoded.height,
            format=encoded.format,
            size=len(encoded.data),
            original_size=original_size,
            processing_time_ms=elapsed_ms,
            enhancements=tuple(enhancements),
        )
        return EnhancedImage(buffer=encoded.data, metadata=metadata, cache_key=cache_key)

    def now(self) -> float:
        return self._clock()
