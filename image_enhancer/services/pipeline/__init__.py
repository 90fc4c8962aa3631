from image_enhancer.services.pipeline.orchestrator import PipelineOutput, TransformPipeline
from image_enhancer.services.pipeline.stages import (
    AspectRatioStage,
    BackgroundStage,
    ColorEnhanceStage,
    EncodeStage,
    UpscaleStage,
    WorkingImage,
)
from image_enhancer.services.pipeline.strategies import (
    EntropySaliency,
    MattingBackend,
    RadialGradientMatte,
    SaliencyStrategy,
)

__all__ = [
    "AspectRatioStage",
    "BackgroundStage",
    "ColorEnhanceStage",
    "EncodeStage",
    "EntropySaliency",
    "MattingBackend",
    "PipelineOutput",
    "RadialGradientMatte",
    "SaliencyStrategy",
    "TransformPipeline",
    "UpscaleStage",
    "WorkingImage",
]
