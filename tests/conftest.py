"""Shared fixtures for image enhancer tests."""

# Standard library imports
import asyncio
import io
from typing import Dict, Optional

# Third-party imports
import numpy as np
import pytest
from PIL import Image

# Package imports
from image_enhancer.config.settings import EnhancerSettings
from image_enhancer.models.enhancement import EnhancedImage, ImageMetadata
from image_enhancer.services.exceptions import FetchError


def make_image_bytes(width: int, height: int, color=(200, 60, 40), fmt: str = "PNG", mode: str = "RGB") -> bytes:
    """Encode a solid-color image."""
    image = Image.new(mode, (width, height), color)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def make_noise_bytes(width: int, height: int, seed: int = 7) -> bytes:
    """Encode a deterministic noisy RGB image."""
    rng = np.random.RandomState(seed)
    pixels = rng.randint(0, 256, size=(height, width, 3), dtype=np.uint8)
    buffer = io.BytesIO()
    Image.fromarray(pixels).save(buffer, format="PNG")
    return buffer.getvalue()


def open_jpeg(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def make_enhanced(payload: bytes = b"\xff\xd8fake-jpeg\xff\xd9", cache_key: Optional[str] = None) -> EnhancedImage:
    metadata = ImageMetadata(
        width=10,
        height=10,
        format="jpeg",
        size=len(payload),
        original_size=100,
        processing_time_ms=5,
        enhancements=("upscaled",),
    )
    return EnhancedImage(buffer=payload, metadata=metadata, cache_key=cache_key)


class FakeFetcher:
    """In-memory fetcher that counts calls and can be held open with a gate."""

    def __init__(self, images: Dict[str, bytes], gate: Optional[asyncio.Event] = None):
        self.images = images
        self.gate = gate
        self.calls = 0
        self.started = asyncio.Event()
        self.closed = False

    async def fetch(self, url: str, timeout_ms: Optional[int] = None) -> bytes:
        self.calls += 1
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if url not in self.images:
            raise FetchError(url, "HTTP 404 fetching image", status=404)
        return self.images[url]

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def settings():
    """Settings independent of the process environment."""
    return EnhancerSettings(
        fetch_timeout_ms=2000,
        max_image_size_mb=1,
        user_agent="Slide-Image-Enhancer/test",
        batch_concurrency=2,
        memory_cache_max_entries=None,
    )


@pytest.fixture
def cache_dir(tmp_path):
    """Directory for disk cache entries (created lazily by the cache)."""
    return tmp_path / "cache" / "images"


@pytest.fixture
def sample_images():
    return {
        "https://img.example.com/landscape.png": make_image_bytes(800, 600),
        "https://img.example.com/wide.png": make_image_bytes(800, 450, color=(20, 120, 220)),
        "https://img.example.com/hd.jpg": make_image_bytes(1920, 1080, fmt="JPEG"),
        "https://img.example.com/broken.png": b"definitely not an image",
    }
