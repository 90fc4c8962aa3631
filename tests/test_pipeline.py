"""Tests for the transform pipeline and its stages."""

import io

import pytest
from PIL import Image

from conftest import make_image_bytes, make_noise_bytes, open_jpeg
from image_enhancer.config.resolver import resolve
from image_enhancer.models.enhancement import RawImage
from image_enhancer.services.exceptions import DecodeError, EnhancementCancelledError, StageError
from image_enhancer.services.pipeline import (
    AspectRatioStage,
    EntropySaliency,
    TransformPipeline,
    WorkingImage,
)
from image_enhancer.services.pipeline.stages import Stage

NEUTRAL = {"contrast": 0, "saturation": 0, "sharpness": 0}


def run(data: bytes, **overrides):
    raw = RawImage(url="https://img.example.com/source.png", data=data)
    return TransformPipeline().run(raw, resolve(overrides))


def aspect(output) -> float:
    return output.encoded.width / output.encoded.height


def test_defaults_upscale_crop_and_color():
    output = run(make_image_bytes(800, 600))

    assert (output.encoded.width, output.encoded.height) == (1920, 1080)
    assert output.enhancements == ["upscaled", "aspect-adjusted", "color-enhanced"]
    assert output.source_format == "png"
    assert (output.source_width, output.source_height) == (800, 600)


def test_widescreen_example_omits_aspect_tag_when_upscale_already_conforms():
    """800x450 upscales straight to 1920x1080, so the aspect stage changes nothing.

    Tags list only stages that mutated the image; 'aspect-adjusted' is absent
    even though a 16:9 ratio was requested.
    """
    output = run(
        make_image_bytes(800, 450),
        aspect_ratio="16:9",
        target_width=1920,
        upscale_enabled=True,
        crop_strategy="center",
    )

    assert (output.encoded.width, output.encoded.height) == (1920, 1080)
    assert output.enhancements == ["upscaled", "color-enhanced"]

    neutral = run(make_image_bytes(800, 450), crop_strategy="center", **NEUTRAL)
    assert neutral.enhancements == ["upscaled"]


def test_conforming_input_with_neutral_color_is_untouched():
    output = run(make_image_bytes(1920, 1080, fmt="JPEG"), **NEUTRAL)

    assert (output.encoded.width, output.encoded.height) == (1920, 1080)
    assert output.enhancements == []


def test_upscale_disabled_keeps_small_image():
    output = run(make_image_bytes(800, 600), upscale_enabled=False, aspect_ratio="4:3", **NEUTRAL)

    assert (output.encoded.width, output.encoded.height) == (800, 600)
    assert output.enhancements == []


def test_upscale_factor_bounded_by_target_box():
    output = run(make_image_bytes(200, 150), aspect_ratio="auto", upscale_factor=2, **NEUTRAL)

    # Target box wins over the factor when the factor alone is too small
    assert output.encoded.height == 1080
    assert output.enhancements == ["upscaled"]


def test_auto_aspect_keeps_post_upscale_dimensions():
    output = run(make_image_bytes(800, 600), aspect_ratio="auto", **NEUTRAL)

    assert (output.encoded.width, output.encoded.height) == (1600, 1200)
    assert "aspect-adjusted" not in output.enhancements


@pytest.mark.parametrize("strategy", ["center", "smart", "fill", "fit"])
@pytest.mark.parametrize("ratio,expected", [("16:9", 16 / 9), ("4:3", 4 / 3), ("1:1", 1.0)])
def test_aspect_conformance(strategy, ratio, expected):
    output = run(make_image_bytes(700, 900), crop_strategy=strategy, aspect_ratio=ratio, **NEUTRAL)

    assert abs(aspect(output) / expected - 1) < 0.01
    assert "aspect-adjusted" in output.enhancements


def test_square_uses_smaller_target_side():
    output = run(make_image_bytes(800, 600), aspect_ratio="1:1", crop_strategy="center", **NEUTRAL)

    assert (output.encoded.width, output.encoded.height) == (1080, 1080)


def test_fit_pads_with_white_after_flatten():
    output = run(make_image_bytes(1000, 1000, color=(200, 0, 0)), crop_strategy="fit", **NEUTRAL)
    image = open_jpeg(output.encoded.data)

    assert image.size == (1920, 1080)
    left_edge = image.getpixel((5, 540))
    center = image.getpixel((960, 540))
    assert min(left_edge) > 240
    assert center[0] > 180 and center[1] < 40


def test_fill_without_extension_pads_transparent():
    output = run(
        make_image_bytes(1000, 1000, color=(200, 0, 0)),
        crop_strategy="fill",
        background_extension=False,
        **NEUTRAL,
    )
    image = open_jpeg(output.encoded.data)

    assert min(image.getpixel((5, 540))) > 240


def test_fill_with_extension_uses_darkened_backdrop():
    output = run(make_image_bytes(1000, 1000, color=(200, 0, 0)), crop_strategy="fill", **NEUTRAL)
    image = open_jpeg(output.encoded.data)

    r, g, b = image.getpixel((5, 540))
    # Backdrop is the source blurred and darkened, never the white pad
    assert r < 200 and g < 120 and b < 120
    assert r > g


def test_remove_background_clears_corners():
    output = run(
        make_image_bytes(1920, 1080, color=(0, 0, 255), fmt="JPEG"),
        remove_background=True,
        **NEUTRAL,
    )
    image = open_jpeg(output.encoded.data)

    assert output.enhancements == ["background-processed"]
    assert min(image.getpixel((0, 0))) > 240
    r, g, b = image.getpixel((960, 540))
    assert b > 200 and r < 40


def test_background_blur_tags_once():
    output = run(make_image_bytes(1920, 1080), background_blur=True, remove_background=True, **NEUTRAL)

    assert output.enhancements.count("background-processed") == 1


def test_color_adjustments_change_pixels():
    plain = run(make_image_bytes(1920, 1080, color=(100, 100, 100)), **NEUTRAL)
    bright = run(make_image_bytes(1920, 1080, color=(100, 100, 100)), brightness=50, contrast=0, saturation=0, sharpness=0)

    assert bright.enhancements == ["color-enhanced"]
    assert open_jpeg(bright.encoded.data).getpixel((10, 10))[0] > open_jpeg(plain.encoded.data).getpixel((10, 10))[0]


def test_output_is_progressive_jpeg_without_alpha():
    data = make_image_bytes(800, 600, color=(10, 200, 10, 128), mode="RGBA")
    output = run(data, crop_strategy="fit")
    image = open_jpeg(output.encoded.data)

    assert output.encoded.data[:2] == b"\xff\xd8"
    assert output.encoded.format == "jpeg"
    assert image.mode == "RGB"
    assert image.info.get("progressive") or image.info.get("progression")


def test_quality_changes_size():
    data = make_noise_bytes(640, 360)
    low = run(data, quality=20, aspect_ratio="auto", upscale_enabled=False, **NEUTRAL)
    high = run(data, quality=95, aspect_ratio="auto", upscale_enabled=False, **NEUTRAL)

    assert len(low.encoded.data) < len(high.encoded.data)


def test_output_is_deterministic():
    data = make_noise_bytes(500, 400)
    first = run(data)
    second = run(data)

    assert first.encoded.data == second.encoded.data
    assert first.enhancements == second.enhancements


def test_undecodable_bytes_raise_decode_error():
    with pytest.raises(DecodeError):
        run(b"definitely not an image")

    with pytest.raises(DecodeError):
        run(b"")


def test_failing_stage_is_named():
    class ExplodingStage(Stage):
        name = "explode"

        def apply(self, work, config):
            raise RuntimeError("kaboom")

    pipeline = TransformPipeline(stages=[ExplodingStage()])
    raw = RawImage(url="https://img.example.com/x.png", data=make_image_bytes(50, 50))

    with pytest.raises(StageError) as exc_info:
        pipeline.run(raw, resolve())

    assert exc_info.value.stage == "explode"
    assert isinstance(exc_info.value.cause, RuntimeError)


def test_cancellation_checked_before_stages():
    seen = []

    def should_cancel():
        seen.append(True)
        return len(seen) > 2

    raw = RawImage(url="https://img.example.com/x.png", data=make_image_bytes(800, 600))
    with pytest.raises(EnhancementCancelledError) as exc_info:
        TransformPipeline().run(raw, resolve(), should_cancel)

    # decode and upscale passed; cancelled before the aspect stage
    assert exc_info.value.stage == "aspect_ratio"


def test_entropy_saliency_prefers_detailed_region():
    flat = Image.new("RGB", (1000, 1000), (128, 128, 128))
    noisy = Image.open(io.BytesIO(make_noise_bytes(1000, 1000)))
    canvas = Image.new("RGB", (2000, 1000))
    canvas.paste(flat, (0, 0))
    canvas.paste(noisy, (1000, 0))

    left, top = EntropySaliency().select_window(canvas, (1000, 1000))

    assert top == 0
    assert left > 500


def test_entropy_saliency_ties_go_to_center():
    canvas = Image.new("RGB", (2000, 1000), (50, 50, 50))

    assert EntropySaliency().select_window(canvas, (1000, 1000)) == (500, 0)


def test_target_box_per_ratio():
    assert AspectRatioStage.target_box(resolve(aspect_ratio="16:9")) == (1920, 1080)
    assert AspectRatioStage.target_box(resolve(aspect_ratio="4:3")) == (1920, 1440)
    assert AspectRatioStage.target_box(resolve(aspect_ratio="1:1")) == (1080, 1080)
    assert AspectRatioStage.target_box(resolve(aspect_ratio="auto")) is None


def test_working_image_tags_are_unique():
    from image_enhancer.models.enhancement import EnhancementTag

    work = WorkingImage(image=Image.new("RGB", (4, 4)))
    work = work.updated(work.image, EnhancementTag.UPSCALED)
    work = work.updated(work.image, EnhancementTag.UPSCALED)

    assert work.enhancements == ("upscaled",)
