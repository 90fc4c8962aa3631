"""
Sequential transform pipeline.

Stage N consumes stage N-1's output. The first failure aborts the run with
a StageError naming the stage; nothing partial is returned.
"""

import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from image_enhancer.models.enhancement import EnhancementConfig, RawImage
from image_enhancer.services.exceptions import EnhancementCancelledError, StageError
from image_enhancer.services.pipeline import imaging
from image_enhancer.services.pipeline.stages import (
    AspectRatioStage,
    BackgroundStage,
    ColorEnhanceStage,
    EncodedImage,
    EncodeStage,
    Stage,
    UpscaleStage,
    WorkingImage,
)
from image_enhancer.services.pipeline.strategies import MattingBackend, SaliencyStrategy
from image_enhancer.setup_logging import get_logger

logger = get_logger(__name__)

CancelCheck = Callable[[], bool]


@dataclass(frozen=True)
class PipelineOutput:
    encoded: EncodedImage
    enhancements: List[str]
    source_format: str
    source_width: int
    source_height: int


class TransformPipeline:
    """Runs decode, the transform stages and the final encode for one image."""

    def __init__(
        self,
        saliency: Optional[SaliencyStrategy] = None,
        matting: Optional[MattingBackend] = None,
        stages: Optional[Sequence[Stage]] = None,
        encoder: Optional[EncodeStage] = None,
    ):
        self.stages: List[Stage] = list(stages) if stages is not None else [
            UpscaleStage(),
            AspectRatioStage(saliency),
            BackgroundStage(matting),
            ColorEnhanceStage(),
        ]
        self.encoder = encoder or EncodeStage()

    @staticmethod
    def _check_cancelled(should_cancel: Optional[CancelCheck], stage: str) -> None:
        if should_cancel is not None and should_cancel():
            raise EnhancementCancelledError(stage=stage)

    def run(
        self,
        raw: RawImage,
        config: EnhancementConfig,
        should_cancel: Optional[CancelCheck] = None,
    ) -> PipelineOutput:
        """Transform raw bytes according to ``config``.

        Args:
            raw: Fetched source bytes.
            config: Resolved enhancement options.
            should_cancel: Polled before every stage; returning True aborts
                the run with EnhancementCancelledError.

        Raises:
            DecodeError: Source bytes are not a supported raster image.
            StageError: A stage failed.
            EnhancementCancelledError: Cancellation was requested.
        """
        self._check_cancelled(should_cancel, "decode")
        decoded = imaging.decode(raw)
        logger.debug(
            f"Decoded {decoded.format} source {decoded.width}x{decoded.height} ({raw.size // 1024}KB)"
        )

        work = WorkingImage(image=decoded.image)
        for stage in self.stages:
            self._check_cancelled(should_cancel, stage.name)
            started = time.perf_counter()
            try:
                work = stage.apply(work, config)
            except Exception as e:
                logger.error(f"Stage {stage.name} failed: {e}")
                raise StageError(stage.name, e, context={'url': raw.url[:100]}) from e
            logger.debug(
                f"Stage {stage.name} done in {(time.perf_counter() - started) * 1000:.1f}ms "
                f"-> {work.image.width}x{work.image.height}"
            )

        self._check_cancelled(should_cancel, self.encoder.name)
        try:
            encoded = self.encoder.apply(work, config)
        except Exception as e:
            logger.error(f"Stage {self.encoder.name} failed: {e}")
            raise StageError(self.encoder.name, e, context={'url': raw.url[:100]}) from e

        return PipelineOutput(
            encoded=encoded,
            enhancements=list(work.enhancements),
            source_format=decoded.format,
            source_width=decoded.width,
            source_height=decoded.height,
        )
