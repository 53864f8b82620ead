import pytest

pytest.importorskip("PIL.ImageFont")

from fluent_image.engine import text  # noqa: E402
from fluent_image.engine.buffer import PixelBuffer  # noqa: E402
from fluent_image.errors import TextMeasurementFailure  # noqa: E402
from fluent_image.settings import TextOptions  # noqa: E402


def test_measure_text_grows_with_size():
    small = text.measure_text("Hello", TextOptions(size=12))
    large = text.measure_text("Hello", TextOptions(size=40))
    assert small["width"] > 0 and small["height"] > 0
    assert large["width"] > small["width"]
    assert large["height"] > small["height"]


def test_measure_text_quarter_turn_swaps_axes():
    flat = text.measure_text("Hello", TextOptions(size=30))
    upright = text.measure_text("Hello", TextOptions(size=30, angle=90))
    assert upright["width"] == flat["height"]
    assert upright["height"] == flat["width"]


def test_measure_text_failures(tmp_path):
    with pytest.raises(TextMeasurementFailure):
        text.measure_text("", TextOptions())
    with pytest.raises(TextMeasurementFailure):
        text.measure_text("Hi", TextOptions(font=str(tmp_path / "missing.ttf")))


def test_draw_text_marks_pixels_near_baseline():
    buf = PixelBuffer.allocate(200, 60, (255, 255, 255))
    text.draw_text(buf, "Hello", TextOptions(size=24, x=10, y=40, color=(0, 0, 0)))
    dark = buf.pixels[:, :, :3].min(axis=2) < 128
    ys, xs = dark.nonzero()
    assert len(xs) > 0
    assert xs.min() >= 8
    assert ys.max() <= 42
    assert not buf.alpha_blending
    assert (buf.pixels[:, :, 3] == 0).all()


def test_draw_empty_text_is_noop():
    buf = PixelBuffer.allocate(10, 10, (255, 255, 255))
    text.draw_text(buf, "", TextOptions())
    assert (buf.pixels[:, :, :3] == 255).all()


def test_image_text_api_merges_defaults():
    pytest.importorskip("pyvips")
    from fluent_image import Image, ImageConfig

    config = ImageConfig(text_options=TextOptions(size=18, color=(200, 0, 0)))
    image = Image.from_buffer(PixelBuffer.allocate(120, 40, (255, 255, 255)), config=config)
    size = image.get_text_size("Sample")
    assert size == text.measure_text("Sample", TextOptions(size=18))
    image.add_text("Sample", x=4, y=30)
    reds = (image.buffer.pixels[:, :, 0] > 150) & (image.buffer.pixels[:, :, 1] < 100)
    assert reds.any()
    with pytest.raises(TypeError):
        image.add_text("x", colour=(1, 2, 3))
