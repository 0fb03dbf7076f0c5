"""Shared test fixtures."""

from __future__ import annotations

import pytest

from smart_format.engine.presets import PresetRegistry
from smart_format.models import Element, LayoutContext, ResponsiveProperties
from smart_format.storage import KeyValueStore, ProjectManager


SQUARE = LayoutContext(1080, 1080, platform="instagram", format_name="Square")
STORY = LayoutContext(1080, 1920, platform="instagram", format_name="Story")
LANDSCAPE = LayoutContext(1200, 627, platform="linkedin", format_name="Landscape")


def make_element(
    element_id: str = "h1",
    kind: str = "text",
    x: float = 100,
    y: float = 100,
    width: float = 200,
    height: float = 50,
    role: str = "heading",
    mode: str = "fluid",
    anchor: str = "top-left",
    **fields,
) -> Element:
    return Element(
        id=element_id,
        kind=kind,
        x=x,
        y=y,
        width=width,
        height=height,
        role=role,
        responsive=ResponsiveProperties(mode=mode, anchor=anchor),
        **fields,
    )


@pytest.fixture
def square() -> LayoutContext:
    return SQUARE


@pytest.fixture
def story() -> LayoutContext:
    return STORY


@pytest.fixture
def registry() -> PresetRegistry:
    return PresetRegistry.default()


@pytest.fixture
def manager(tmp_path) -> ProjectManager:
    return ProjectManager(KeyValueStore(tmp_path))


@pytest.fixture
def master_elements() -> list[Element]:
    return [
        make_element("h1", font_size=48, style={"color": "#111111"}),
        make_element("cta", kind="button", x=390, y=900, width=300, height=80, role="cta", mode="adaptive"),
    ]
