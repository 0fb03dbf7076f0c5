from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from smart_format.models import LayoutContext


@dataclass(frozen=True)
class FormatSpec:
    name: str
    width: int
    height: int


@dataclass(frozen=True)
class PlatformSpec:
    key: str
    name: str
    formats: tuple[FormatSpec, ...]
    safe_zone_margin: float  # fraction of each side kept clear of critical content
    safe_zone_color: str


PLATFORMS: dict[str, PlatformSpec] = {
    "instagram": PlatformSpec(
        key="instagram",
        name="Instagram",
        formats=(
            FormatSpec("Square", 1080, 1080),
            FormatSpec("Portrait", 1080, 1350),
            FormatSpec("Story", 1080, 1920),
            FormatSpec("Reel", 1080, 1920),
        ),
        safe_zone_margin=0.1,
        safe_zone_color="#ff4940",
    ),
    "linkedin": PlatformSpec(
        key="linkedin",
        name="LinkedIn",
        formats=(
            FormatSpec("Landscape", 1200, 627),
            FormatSpec("Square", 1080, 1080),
            FormatSpec("Vertical", 1080, 1350),
        ),
        safe_zone_margin=0.08,
        safe_zone_color="#0077b5",
    ),
    "twitter": PlatformSpec(
        key="twitter",
        name="Twitter/X",
        formats=(
            FormatSpec("Landscape", 1200, 675),
            FormatSpec("Square", 1080, 1080),
            FormatSpec("Portrait", 1080, 1350),
        ),
        safe_zone_margin=0.12,
        safe_zone_color="#1da1f2",
    ),
    "tiktok": PlatformSpec(
        key="tiktok",
        name="TikTok",
        formats=(
            FormatSpec("Vertical", 1080, 1920),
            FormatSpec("Square", 1080, 1080),
        ),
        safe_zone_margin=0.15,
        safe_zone_color="#fe2c55",
    ),
}


def get_format(platform: str, format_name: str) -> FormatSpec:
    spec = PLATFORMS.get(platform.lower())
    if spec is None:
        raise KeyError(f"unknown platform '{platform}'")
    for fmt in spec.formats:
        if fmt.name.lower() == format_name.lower():
            return fmt
    raise KeyError(f"platform '{platform}' has no format '{format_name}'")


def context_for(platform: str, format_name: str) -> LayoutContext:
    """LayoutContext for a platform + format selection made in the editor."""
    fmt = get_format(platform, format_name)
    return LayoutContext(
        container_width=fmt.width,
        container_height=fmt.height,
        platform=platform.lower(),
        format_name=fmt.name,
    )


def optimal_format(platform: str, content: str = "single") -> FormatSpec:
    """Most commonly used format for a platform (Instagram carousels stay square)."""
    spec = PLATFORMS.get(platform.lower())
    if spec is None:
        return PLATFORMS["instagram"].formats[0]
    if spec.key == "instagram":
        return spec.formats[0] if content == "carousel" else spec.formats[1]
    return spec.formats[0]


def safe_zone(context: LayoutContext) -> tuple[int, int, int, int]:
    """(left, top, right, bottom) of the platform's safe area; whole canvas for unknown platforms."""
    spec = PLATFORMS.get(context.platform.lower())
    margin = spec.safe_zone_margin if spec else 0.0
    mx = int(context.container_width * margin)
    my = int(context.container_height * margin)
    return mx, my, int(context.container_width) - mx, int(context.container_height) - my


def platforms_payload() -> list[dict[str, Any]]:
    payload = []
    for spec in PLATFORMS.values():
        formats = []
        for fmt in spec.formats:
            ctx = context_for(spec.key, fmt.name)
            left, top, right, bottom = safe_zone(ctx)
            formats.append(
                {
                    "name": fmt.name,
                    "width": fmt.width,
                    "height": fmt.height,
                    "formatKey": ctx.format_key,
                    "safeArea": {"left": left, "top": top, "right": right, "bottom": bottom},
                }
            )
        payload.append(
            {
                "key": spec.key,
                "name": spec.name,
                "safeZone": {"marginPercentage": spec.safe_zone_margin, "color": spec.safe_zone_color},
                "optimalFormat": optimal_format(spec.key).name,
                "formats": formats,
            }
        )
    return payload
