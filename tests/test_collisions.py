from __future__ import annotations

from smart_format.engine.collisions import resolve_collisions
from tests.conftest import SQUARE, make_element


def test_lower_priority_value_is_moved_below():
    body = make_element("b", x=0, y=0, width=200, height=100, role="body")
    caption = make_element("c", x=0, y=50, width=200, height=100, role="caption")
    out = resolve_collisions([body, caption], SQUARE)
    assert out[0].y == 160
    assert out[1].y == 50


def test_equal_priority_moves_the_later_element():
    a = make_element("a", x=0, y=0, width=200, height=100, role="body")
    b = make_element("b", x=50, y=50, width=200, height=100, role="body")
    out = resolve_collisions([a, b], SQUARE, gutter=4)
    assert out[0].y == 0
    assert out[1].y == 104


def test_moved_element_is_clamped_to_the_canvas():
    a = make_element("a", x=0, y=900, width=200, height=150, role="body")
    b = make_element("b", x=0, y=950, width=200, height=100, role="body")
    out = resolve_collisions([a, b], SQUARE)
    assert out[1].y == 980


def test_background_never_collides():
    bg = make_element("bg", kind="image", x=0, y=0, width=1080, height=1080, role="background")
    body = make_element("b", x=10, y=10, width=100, height=100, role="body")
    out = resolve_collisions([bg, body], SQUARE)
    assert out == [bg, body]


def test_non_overlapping_layout_is_untouched():
    a = make_element("a", x=0, y=0, width=100, height=100, role="body")
    b = make_element("b", x=0, y=100, width=100, height=100, role="body")
    assert resolve_collisions([a, b], SQUARE) == [a, b]
