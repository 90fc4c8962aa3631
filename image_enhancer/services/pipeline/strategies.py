"""
Pluggable heuristics used by the pipeline.

Smart crop placement and background matting are heuristic stand-ins. Both
sit behind small interfaces so a real saliency or matting model can be
swapped in without touching stage orchestration.
"""

from abc import ABC, abstractmethod
from typing import List, Tuple

from PIL import Image

from image_enhancer.services.pipeline.imaging import Size, radial_mask


class SaliencyStrategy(ABC):
    """Chooses where a crop window sits inside a larger image."""

    @abstractmethod
    def select_window(self, image: Image.Image, size: Size) -> Tuple[int, int]:
        """Return the (left, top) offset of a ``size`` window inside ``image``."""
        pass


class MattingBackend(ABC):
    """Produces subject masks ('L' mode, 255 = subject)."""

    @abstractmethod
    def matte(self, image: Image.Image) -> Image.Image:
        """Alpha matte used to cut the subject out of its background."""
        pass

    @abstractmethod
    def focus_mask(self, image: Image.Image) -> Image.Image:
        """Mask of the region kept sharp when the background is blurred."""
        pass


class EntropySaliency(SaliencyStrategy):
    """Pick the window with the highest grayscale histogram entropy.

    Candidates are evenly spaced along the overflowing axis. Scoring runs
    on a downsampled copy; ties go to the window closest to center so the
    result is deterministic.
    """

    def __init__(self, steps: int = 24, analysis_size: int = 256):
        self.steps = max(1, steps)
        self.analysis_size = analysis_size

    def _candidates(self, excess: int) -> List[int]:
        if excess <= 0:
            return [0]
        offsets = {round(excess * i / self.steps) for i in range(self.steps + 1)}
        offsets.add(excess // 2)
        return sorted(offsets)

    def select_window(self, image: Image.Image, size: Size) -> Tuple[int, int]:
        width, height = size
        excess_x = image.width - width
        excess_y = image.height - height
        if excess_x <= 0 and excess_y <= 0:
            return 0, 0

        scale = min(1.0, self.analysis_size / max(image.size))
        gray = image.convert("L")
        if scale < 1.0:
            gray = gray.resize(
                (max(1, round(image.width * scale)), max(1, round(image.height * scale))),
                Image.Resampling.BILINEAR,
            )

        center = (excess_x / 2.0, excess_y / 2.0)

        def score(offset: Tuple[int, int]):
            left, top = offset
            box = (
                round(left * scale),
                round(top * scale),
                max(round(left * scale) + 1, round((left + width) * scale)),
                max(round(top * scale) + 1, round((top + height) * scale)),
            )
            entropy = round(gray.crop(box).entropy(), 6)
            distance = abs(left - center[0]) + abs(top - center[1])
            return entropy, -distance

        candidates = [
            (left, top)
            for left in self._candidates(excess_x)
            for top in self._candidates(excess_y)
        ]
        return max(candidates, key=score)


class RadialGradientMatte(MattingBackend):
    """Center-weighted radial masks instead of real segmentation."""

    def __init__(self, matte_radius: float = 0.4, focus_radius: float = 0.3, solid_until: float = 0.7):
        self.matte_radius = matte_radius
        self.focus_radius = focus_radius
        self.solid_until = solid_until

    def matte(self, image: Image.Image) -> Image.Image:
        return radial_mask(image.size, self.matte_radius, self.solid_until)

    def focus_mask(self, image: Image.Image) -> Image.Image:
        return radial_mask(image.size, self.focus_radius, self.solid_until)
