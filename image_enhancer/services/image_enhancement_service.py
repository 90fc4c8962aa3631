"""
Image enhancement service.

Entry point that turns an image URL into a slide-ready JPEG:
fetch -> decode -> upscale -> aspect ratio -> background -> color -> encode,
memoized in a two-tier cache keyed by the URL and the full option set.
"""

import asyncio
import threading
from typing import Any, List, Mapping, Optional, Sequence, Union

from image_enhancer.config.resolver import resolve
from image_enhancer.config.settings import EnhancerSettings, get_settings
from image_enhancer.models.enhancement import (
    EnhancedImage,
    EnhancementConfig,
    RawImage,
    SlideContext,
)
from image_enhancer.models.style import StyleSettings
from image_enhancer.services.exceptions import EnhancementCancelledError, EnhancementError
from image_enhancer.services.image_cache import ImageCache
from image_enhancer.services.image_fetcher import ImageFetcher
from image_enhancer.services.pipeline import TransformPipeline
from image_enhancer.services.prompt_optimizer import ImagePromptOptimizer
from image_enhancer.services.result_assembler import ResultAssembler
from image_enhancer.setup_logging import get_logger

logger = get_logger(__name__)


class ImageEnhancementService:
    """Enhance slide images with one fixed configuration.

    Collaborators are injected; anything not supplied is built from the
    config and process settings. The service owns (and closes) only the
    collaborators it created.
    """

    def __init__(
        self,
        config: Optional[Union[EnhancementConfig, Mapping[str, Any]]] = None,
        *,
        fetcher: Optional[ImageFetcher] = None,
        cache: Optional[ImageCache] = None,
        pipeline: Optional[TransformPipeline] = None,
        style_settings: Optional[StyleSettings] = None,
        settings: Optional[EnhancerSettings] = None,
        assembler: Optional[ResultAssembler] = None,
    ):
        self.settings = settings or get_settings()
        self.config = resolve(config)

        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or ImageFetcher(settings=self.settings)

        if cache is None and self.config.enable_caching:
            cache = ImageCache(
                self.config.cache_directory,
                max_entries=self.settings.memory_cache_max_entries,
            )
        self.cache = cache if self.config.enable_caching else None

        self.pipeline = pipeline or TransformPipeline()
        self.assembler = assembler or ResultAssembler()
        self.prompt_optimizer = ImagePromptOptimizer(self.config, style_settings)

        logger.info(
            f"Image enhancer ready: {self.config.target_width}x{self.config.target_height} "
            f"{self.config.aspect_ratio.value} ({self.config.crop_strategy.value}), "
            f"caching {'on' if self.cache is not None else 'off'}"
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def generate_optimized_prompt(self, prompt: str, slide_context: Optional[SlideContext] = None) -> str:
        """Append style, background, quality and orientation hints to ``prompt``."""
        return self.prompt_optimizer.build(prompt, slide_context)

    async def enhance_image(
        self,
        image_url: str,
        prompt: Optional[str] = None,
        slide_context: Optional[SlideContext] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> EnhancedImage:
        """
        Enhance one image.

        Args:
            image_url: Source image URL
            prompt: Prompt the image was generated from (logged only)
            slide_context: Target slide, for logging
            cancel_event: Setting it aborts the computation before the next stage.
                Only the caller that starts the computation for a key can cancel
                it. A caller that joins an in-flight computation has its own
                event ignored; it shares the owner's result or cancellation.

        Returns:
            EnhancedImage with JPEG buffer and metadata

        Raises:
            FetchError, DecodeError, StageError, EnhancementCancelledError,
            or EnhancementError for anything unexpected.
        """
        where = f" for slide {slide_context.index} '{slide_context.title}'" if slide_context else ""
        logger.info(f"🖼️ Enhancing image{where}: {image_url[:100]}")
        if prompt:
            logger.debug(f"Source prompt: {prompt[:100]}")

        if self.cache is None:
            return await self._enhance(image_url, None, cancel_event)

        cache_key = self.cache.key(image_url, self.config)
        return await self.cache.get_or_compute(
            cache_key,
            lambda: self._enhance(image_url, cache_key, cancel_event),
        )

    async def _enhance(
        self,
        image_url: str,
        cache_key: Optional[str],
        cancel_event: Optional[asyncio.Event],
    ) -> EnhancedImage:
        started_at = self.assembler.now()
        abort = threading.Event()

        def should_cancel() -> bool:
            return abort.is_set() or (cancel_event is not None and cancel_event.is_set())

        try:
            data = await self.fetcher.fetch(image_url)
            raw = RawImage(url=image_url, data=data)
            if should_cancel():
                raise EnhancementCancelledError(stage="decode")

            try:
                output = await asyncio.to_thread(self.pipeline.run, raw, self.config, should_cancel)
            except asyncio.CancelledError:
                # The worker thread keeps running until its next stage check
                abort.set()
                raise

            result = self.assembler.assemble(
                output.encoded,
                original_size=raw.size,
                enhancements=output.enhancements,
                started_at=started_at,
                cache_key=cache_key,
            )
        except EnhancementError as e:
            logger.warning(f"Image enhancement failed for {image_url[:100]}: {e}")
            raise
        except Exception as e:
            logger.error(f"Unexpected error enhancing {image_url[:100]}: {e}", exc_info=True)
            raise EnhancementError.wrap(e, url=image_url[:100]) from e

        meta = result.metadata
        logger.info(
            f"✅ Enhanced {output.source_width}x{output.source_height} {output.source_format} -> "
            f"{meta.width}x{meta.height} in {meta.processing_time_ms}ms "
            f"[{', '.join(meta.enhancements) or 'unchanged'}]"
        )
        return result

    async def enhance_images(
        self,
        image_urls: Sequence[str],
        slide_contexts: Optional[Sequence[Optional[SlideContext]]] = None,
    ) -> List[EnhancedImage]:
        """
        Enhance several images with bounded concurrency.

        Failures are logged and skipped; the successful results are returned
        in input order.
        """
        logger.info(f"Starting batch image enhancement: {len(image_urls)} images")
        semaphore = asyncio.Semaphore(self.settings.batch_concurrency)
        contexts = list(slide_contexts or [])

        async def _one(index: int, url: str) -> EnhancedImage:
            context = contexts[index] if index < len(contexts) else None
            async with semaphore:
                return await self.enhance_image(url, slide_context=context)

        results = await asyncio.gather(
            *(_one(i, url) for i, url in enumerate(image_urls)),
            return_exceptions=True,
        )

        successful: List[EnhancedImage] = []
        for url, result in zip(image_urls, results):
            if isinstance(result, BaseException):
                logger.warning(f"Skipping {url[:100]}: {result}")
            else:
                successful.append(result)

        logger.info(
            f"Batch image enhancement completed: {len(successful)} successful, "
            f"{len(image_urls) - len(successful)} failed, {len(image_urls)} total"
        )
        return successful

    async def close(self) -> None:
        """Flush pending cache writes and close the fetcher if we created it."""
        if self.cache is not None:
            await self.cache.flush()
        if self._owns_fetcher:
            await self.fetcher.close()
