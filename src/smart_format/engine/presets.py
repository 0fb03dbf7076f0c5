from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

from smart_format.models import FlowSpec, LayoutContext, LayoutPreset, PresetRule

STORY_PRESET_ID = "story-vertical"
LANDSCAPE_PRESET_ID = "landscape-horizontal"


def story_preset() -> LayoutPreset:
    return LayoutPreset(
        id=STORY_PRESET_ID,
        name="Story Vertical Layout",
        description="Optimized for vertical story formats",
        target_formats=("story", "reel", "vertical"),
        aspect_ratios=(9 / 16, 4 / 5),
        rules=MappingProxyType(
            {
                "heading": PresetRule(x="50%", y="15%", width="80%", height="10%", anchor="top-center"),
                "subheading": PresetRule(x="50%", y="25%", width="75%", height="8%", anchor="top-center"),
                "image": PresetRule(x="50%", y="50%", width="85%", height="40%", anchor="center", mode="fluid"),
                "cta": PresetRule(x="50%", y="85%", width="70%", height="8%", anchor="bottom-center"),
            }
        ),
        flow=FlowSpec(direction="vertical", spacing="5%", alignment="center"),
    )


def landscape_preset() -> LayoutPreset:
    return LayoutPreset(
        id=LANDSCAPE_PRESET_ID,
        name="Landscape Horizontal Layout",
        description="Optimized for landscape formats",
        target_formats=("landscape",),
        aspect_ratios=(16 / 9, 1.91),
        rules=MappingProxyType(
            {
                "heading": PresetRule(x="10%", y="15%", width="40%", height="12%", anchor="top-left"),
                "image": PresetRule(x="55%", y="50%", width="40%", height="60%", anchor="center", mode="fluid"),
                "body": PresetRule(x="10%", y="35%", width="40%", height="40%", anchor="top-left", mode="relative"),
                "cta": PresetRule(x="10%", y="80%", width="30%", height="10%", anchor="bottom-left"),
            }
        ),
        flow=FlowSpec(direction="horizontal", spacing="5%", alignment="start"),
    )


class PresetRegistry:
    """
    Immutable catalogue of layout presets.

    Selection prefers a preset that targets the destination's format name or
    platform and lists a compatible aspect ratio; otherwise the orientation
    default is used (square formats get no preset).
    """

    def __init__(
        self,
        presets: Iterable[LayoutPreset] = (),
        orientation_defaults: Mapping[str, str] | None = None,
        ratio_tolerance: float = 0.1,
    ) -> None:
        self._presets: tuple[LayoutPreset, ...] = tuple(presets)
        self._by_id = MappingProxyType({p.id: p for p in self._presets})
        self._orientation_defaults = MappingProxyType(dict(orientation_defaults or {}))
        self._ratio_tolerance = ratio_tolerance

    @classmethod
    def default(cls, ratio_tolerance: float = 0.1) -> "PresetRegistry":
        return cls(
            presets=(story_preset(), landscape_preset()),
            orientation_defaults={"portrait": STORY_PRESET_ID, "landscape": LANDSCAPE_PRESET_ID},
            ratio_tolerance=ratio_tolerance,
        )

    def __iter__(self) -> Iterator[LayoutPreset]:
        return iter(self._presets)

    def __len__(self) -> int:
        return len(self._presets)

    def ids(self) -> list[str]:
        return [p.id for p in self._presets]

    def get(self, preset_id: str) -> LayoutPreset | None:
        return self._by_id.get(preset_id)

    def with_preset(self, preset: LayoutPreset) -> "PresetRegistry":
        """A new registry with `preset` added (or replacing one with the same id)."""
        kept = [p for p in self._presets if p.id != preset.id]
        return PresetRegistry(
            presets=(*kept, preset),
            orientation_defaults=self._orientation_defaults,
            ratio_tolerance=self._ratio_tolerance,
        )

    def select(self, context: LayoutContext) -> LayoutPreset | None:
        for preset in self._presets:
            if preset.targets(context) and preset.fits_ratio(context.aspect_ratio, self._ratio_tolerance):
                return preset
        return self.default_for(context.orientation)

    def default_for(self, orientation: str) -> LayoutPreset | None:
        preset_id = self._orientation_defaults.get(orientation)
        return self._by_id.get(preset_id) if preset_id else None
