import numpy as np
import pytest

from fluent_image.engine import compositor
from fluent_image.engine.buffer import PixelBuffer
from fluent_image.engine.compositor import Absolute, Anchor, resolve_position
from fluent_image.engine.geometry import Rect, plan_resize


def _marked(width: int, height: int) -> PixelBuffer:
    buf = PixelBuffer.allocate(width, height, (255, 255, 255))
    buf.set_pixel(0, 0, (255, 0, 0))
    return buf


def test_resolve_named_positions():
    assert resolve_position("right", 100, 40) == 60
    assert resolve_position("bottom", 100, 40) == 60
    assert resolve_position("left", 100, 40) == 0
    assert resolve_position(Anchor.TOP, 100, 40) == 0
    assert resolve_position("center", 100, 40) == 30
    assert resolve_position("CENTER", 101, 40) == 31


def test_resolve_absolute_positions():
    assert resolve_position(7, 100, 40) == 7
    assert resolve_position(Absolute(-5), 100, 40) == -5
    assert resolve_position("12", 100, 40) == 12


def test_resolve_rejects_unknown_names():
    with pytest.raises(ValueError):
        resolve_position("middle", 100, 40)
    with pytest.raises(TypeError):
        resolve_position(True, 100, 40)


def test_overlay_right_bottom():
    base = PixelBuffer.allocate(100, 100, (0, 0, 0))
    base.alpha_blending = True
    top = PixelBuffer.allocate(40, 40, (255, 0, 0))
    x = resolve_position("right", base.width, top.width)
    y = resolve_position("bottom", base.height, top.height)
    compositor.overlay(base, top, x, y)
    assert (x, y) == (60, 60)
    assert base.get_pixel(59, 59) == (0, 0, 0, 0)
    assert base.get_pixel(60, 60) == (255, 0, 0, 0)
    assert base.get_pixel(99, 99) == (255, 0, 0, 0)


def test_overlay_clips_out_of_bounds():
    base = PixelBuffer.allocate(10, 10, (0, 0, 0))
    base.alpha_blending = True
    top = PixelBuffer.allocate(8, 8, (0, 255, 0))
    compositor.overlay(base, top, -5, 7)
    assert base.get_pixel(0, 7) == (0, 255, 0, 0)
    assert base.get_pixel(2, 9) == (0, 255, 0, 0)
    assert base.get_pixel(3, 7) == (0, 0, 0, 0)
    assert base.get_pixel(0, 6) == (0, 0, 0, 0)
    # entirely outside is a no-op
    compositor.overlay(base, top, 50, 50)


def test_blend_partial_alpha_over_opaque():
    base = PixelBuffer.allocate(1, 1, (0, 0, 0))
    base.alpha_blending = True
    top = PixelBuffer.allocate(1, 1, (200, 100, 50, 63))
    before = top.pixels.copy()
    compositor.overlay(base, top, 0, 0)
    assert base.get_pixel(0, 0) == (100, 50, 25, 0)
    assert np.array_equal(top.pixels, before)


def test_blend_transparent_cases():
    base = PixelBuffer.allocate(1, 1, (10, 20, 30))
    base.alpha_blending = True
    compositor.overlay(base, PixelBuffer.allocate(1, 1, (200, 200, 200, 127)), 0, 0)
    assert base.get_pixel(0, 0) == (10, 20, 30, 0)

    clear = PixelBuffer.allocate(1, 1, (0, 0, 0, 127))
    clear.alpha_blending = True
    compositor.overlay(clear, PixelBuffer.allocate(1, 1, (200, 100, 50, 63)), 0, 0)
    assert clear.get_pixel(0, 0) == (200, 100, 50, 63)


def test_overlay_without_blending_copies():
    base = PixelBuffer.allocate(2, 2, (10, 20, 30))
    compositor.overlay(base, PixelBuffer.allocate(1, 1, (200, 100, 50, 100)), 1, 1)
    assert base.get_pixel(1, 1) == (200, 100, 50, 100)


@pytest.mark.parametrize(
    ("alpha", "percent", "expected"),
    [(0, 50, 63), (0, 100, 0), (0, 0, 127), (127, 50, 127), (27, 50, 77), (0, 30, 88)],
)
def test_apply_opacity(alpha, percent, expected):
    buf = PixelBuffer.allocate(3, 2, (1, 2, 3, alpha))
    compositor.apply_opacity(buf, percent)
    assert buf.get_pixel(2, 1) == (1, 2, 3, expected)


def test_copy_plain_clips():
    dst = PixelBuffer.allocate(5, 5, (0, 0, 0))
    src = PixelBuffer.allocate(10, 10, (9, 9, 9))
    compositor.copy_plain(dst, src, 2, 2)
    assert dst.get_pixel(1, 1) == (0, 0, 0, 0)
    assert dst.get_pixel(2, 2) == (9, 9, 9, 0)
    assert dst.get_pixel(4, 4) == (9, 9, 9, 0)


def test_copy_plain_source_rect():
    src = PixelBuffer.allocate(4, 4, (0, 0, 0))
    src.set_pixel(3, 3, (50, 60, 70))
    dst = PixelBuffer.allocate(2, 2, (1, 1, 1))
    compositor.copy_plain(dst, src, 0, 0, Rect(2, 2, 2, 2))
    assert dst.get_pixel(1, 1) == (50, 60, 70, 0)
    assert dst.get_pixel(0, 0) == (0, 0, 0, 0)


def test_new_canvas_fill_policy():
    filled = compositor.new_canvas(3, 3, (0, 0, 255), transparent=False)
    assert filled.get_pixel(1, 1) == (0, 0, 255, 0)
    clear = compositor.new_canvas(3, 3, (0, 0, 255), transparent=True)
    assert clear.get_pixel(1, 1)[3] == 127


def test_execute_plan_pad_copy_fills_margins():
    src = PixelBuffer.allocate(100, 200, (255, 0, 0))
    out = compositor.execute_plan(src, plan_resize(100, 200, 200, 200), fill_color=(0, 0, 255))
    assert out.size == (200, 200)
    assert out.get_pixel(49, 100) == (0, 0, 255, 0)
    assert out.get_pixel(50, 100) == (255, 0, 0, 0)
    assert out.get_pixel(149, 100) == (255, 0, 0, 0)
    assert out.get_pixel(150, 100) == (0, 0, 255, 0)


def test_execute_plan_identity_returns_same_buffer():
    src = PixelBuffer.allocate(3, 3)
    assert compositor.execute_plan(src, plan_resize(3, 3, 3, 3)) is src


def test_fill_rect_clamped():
    buf = PixelBuffer.allocate(5, 5, (0, 0, 0))
    compositor.fill_rect(buf, Rect(3, 3, 10, 10), (1, 2, 3))
    assert buf.get_pixel(4, 4) == (1, 2, 3, 0)
    assert buf.get_pixel(2, 2) == (0, 0, 0, 0)


def test_flip():
    buf = _marked(3, 2)
    compositor.flip(buf, horizontal=True)
    assert buf.get_pixel(2, 0) == (255, 0, 0, 0)
    compositor.flip(buf, horizontal=False)
    assert buf.get_pixel(2, 1) == (255, 0, 0, 0)


def test_rotate_quarter_turns_are_counter_clockwise():
    turned = compositor.rotate(_marked(3, 2), 90)
    assert turned.size == (2, 3)
    assert turned.get_pixel(0, 2) == (255, 0, 0, 0)

    turned = compositor.rotate(_marked(3, 2), 270)
    assert turned.size == (2, 3)
    assert turned.get_pixel(1, 0) == (255, 0, 0, 0)

    turned = compositor.rotate(_marked(3, 2), -180)
    assert turned.size == (3, 2)
    assert turned.get_pixel(2, 1) == (255, 0, 0, 0)


def test_rotate_keeps_alpha_flags_and_ignores_transparency():
    buf = PixelBuffer.allocate(2, 2, (5, 5, 5, 127))
    buf.save_alpha = False
    turned = compositor.rotate(buf, 90, ignore_transparent=True)
    assert turned.save_alpha is False
    assert turned.get_pixel(0, 0)[3] == 0


def test_rotate_free_angle_grows_canvas():
    pytest.importorskip("pyvips")
    buf = PixelBuffer.allocate(100, 100, (255, 0, 0))
    turned = compositor.rotate(buf, 45)
    assert turned.width > 130 and turned.height > 130
    assert turned.get_pixel(0, 0)[3] == 127
    cx, cy = turned.width // 2, turned.height // 2
    assert turned.get_pixel(cx, cy)[3] == 0


def test_rotate_free_angle_background_colour():
    pytest.importorskip("pyvips")
    buf = PixelBuffer.allocate(50, 50, (255, 0, 0))
    turned = compositor.rotate(buf, 30, bg_color=(0, 0, 255))
    r, g, b, a = turned.get_pixel(0, 0)
    assert a == 0
    assert b > 200 and r < 50


def test_copy_resampled_scales():
    pytest.importorskip("pyvips")
    src = PixelBuffer.allocate(40, 20, (0, 200, 0))
    dst = PixelBuffer.allocate(30, 30, (0, 0, 0))
    compositor.copy_resampled(dst, src, Rect(5, 10, 20, 10), Rect(0, 0, 40, 20))
    r, g, b, a = dst.get_pixel(15, 15)
    assert g >= 195 and a == 0
    assert dst.get_pixel(4, 15) == (0, 0, 0, 0)
    assert dst.get_pixel(15, 9) == (0, 0, 0, 0)
