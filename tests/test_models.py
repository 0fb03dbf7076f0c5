from __future__ import annotations

from dataclasses import replace

import pytest

from smart_format.models import (
    Element,
    FormatOverrideSet,
    LayoutContext,
    ProjectLayout,
    apply_user_edit,
    create_element,
    ensure_pristine,
    with_override,
)
from smart_format.roles import infer_role
from tests.conftest import SQUARE, make_element


def test_element_from_dict_upgrades_old_records():
    el = Element.from_dict(
        {"id": "t1", "type": "text", "x": 10, "y": 20, "width": 300, "height": 60, "fontSize": 48, "fill": "#fff"},
        canvas=(1080, 1080),
    )
    assert el.role == "heading"
    assert el.responsive.mode == "adaptive"
    assert el.responsive.anchor == "top-center"
    assert el.style == {"fill": "#fff"}
    assert el.pristine_box == (10, 20, 300, 60)
    assert el.original_font_size == 48
    assert (el.original_canvas_width, el.original_canvas_height) == (1080, 1080)


def test_element_from_dict_requires_id():
    with pytest.raises(ValueError):
        Element.from_dict({"type": "text", "x": 0, "y": 0, "width": 10, "height": 10})


def test_element_wire_record_uses_camel_case():
    data = make_element(font_size=24, z_index=3).to_dict()
    assert data["type"] == "text"
    assert data["fontSize"] == 24
    assert data["zIndex"] == 3
    assert "groupId" not in data
    assert Element.from_dict(data).font_size == 24


def test_create_element_rejects_bad_geometry():
    with pytest.raises(ValueError):
        create_element("e", "shape", 0, 0, 0, 10)
    with pytest.raises(ValueError):
        create_element("e", "shape", -1, 0, 10, 10)
    with pytest.raises(ValueError):
        create_element("e", "shape", 0, 0, 10, 10, role="hero")


def test_create_element_records_pristine_geometry():
    el = create_element("logo", "image", 20, 30, 120, 120, context=SQUARE)
    assert el.role == "logo"
    assert el.responsive.mode == "fixed"
    assert el.pristine_box == (20, 30, 120, 120)
    assert el.original_canvas_width == 1080


def test_user_edit_refreshes_pristine_and_clears_cached_percentages():
    el = ensure_pristine(make_element(mode="relative"))
    el = replace(el, responsive=replace(el.responsive, x_percent=50.0))

    edited = apply_user_edit(el, SQUARE, x=300)
    assert edited.original_x == 300
    assert edited.responsive.x_percent is None
    assert edited.original_canvas_width == 1080

    restyled = apply_user_edit(edited, style={"color": "red"})
    assert restyled.original_x == 300
    assert restyled.style == {"color": "red"}


def test_with_override_patches_fields_and_style():
    el = make_element(style={"color": "#000", "weight": 700})
    out = with_override(el, {"elementId": "h1", "x": 5, "style": {"color": None, "shadow": True}})
    assert out.x == 5
    assert out.style == {"weight": 700, "shadow": True}
    assert with_override(el, {"elementId": "h1"}) is el


def test_context_orientation_and_format_key():
    assert SQUARE.orientation == "square"
    assert LayoutContext(1080, 1920).orientation == "portrait"
    assert LayoutContext(1200, 627).orientation == "landscape"
    assert LayoutContext(1080, 1920, "instagram", "Story").format_key == "instagram_story_1080x1920"
    with pytest.raises(ValueError):
        LayoutContext(0, 100)


def test_context_from_dict_accepts_short_keys():
    ctx = LayoutContext.from_dict({"width": 1200, "height": 675, "platform": "twitter", "formatName": "Landscape"})
    assert ctx.container_width == 1200
    assert ctx.format_key == "twitter_landscape_1200x675"


def test_override_set_round_trip_adds_element_ids():
    override = FormatOverrideSet.from_dict({"elementOverrides": {"h1": {"x": 4}}, "canvasBackground": "#000"})
    assert override.element_overrides["h1"] == {"x": 4, "elementId": "h1"}
    assert not override.is_empty
    assert FormatOverrideSet().is_empty


def test_project_from_dict_rejects_malformed_master():
    with pytest.raises(ValueError):
        ProjectLayout.from_dict({"id": "p", "name": "n", "masterLayout": "nope"})


@pytest.mark.parametrize(
    "kind,width,height,font_size,expected",
    [
        ("text", 100, 20, 40, "heading"),
        ("text", 100, 20, 24, "subheading"),
        ("text", 100, 20, 16, "body"),
        ("text", 100, 20, 10, "caption"),
        ("button", 200, 60, None, "cta"),
        ("image", 1080, 1080, None, "background"),
        ("image", 150, 150, None, "logo"),
        ("image", 600, 400, None, "image"),
        ("line", 500, 2, None, "divider"),
        ("shape", 300, 300, None, "decoration"),
    ],
)
def test_infer_role(kind, width, height, font_size, expected):
    assert infer_role(kind, width, height, font_size, canvas=(1080, 1080)) == expected
