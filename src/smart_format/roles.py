from __future__ import annotations

ROLES: tuple[str, ...] = (
    "heading",
    "subheading",
    "body",
    "caption",
    "image",
    "logo",
    "cta",
    "background",
    "decoration",
    "divider",
)

# Flow order and collision precedence; lower values come first in a flow.
ROLE_PRIORITY: dict[str, int] = {
    "background": 0,
    "decoration": 1,
    "image": 2,
    "logo": 3,
    "heading": 4,
    "subheading": 5,
    "body": 6,
    "caption": 7,
    "cta": 8,
    "divider": 9,
}

FONT_MULTIPLIERS: dict[str, float] = {
    "heading": 1.2,
    "cta": 1.1,
    "subheading": 1.0,
    "body": 0.9,
    "caption": 0.8,
}

# Weight given to each role when describing a layout to an advisor model.
ROLE_IMPORTANCE: dict[str, float] = {
    "logo": 0.9,
    "heading": 0.85,
    "cta": 0.8,
    "subheading": 0.7,
    "image": 0.6,
    "body": 0.5,
    "caption": 0.4,
    "divider": 0.3,
    "decoration": 0.2,
    "background": 0.1,
}

# role -> (responsive mode, anchor)
DEFAULT_RESPONSIVE: dict[str, tuple[str, str]] = {
    "heading": ("adaptive", "top-center"),
    "subheading": ("adaptive", "top-center"),
    "body": ("relative", "top-left"),
    "caption": ("relative", "bottom-left"),
    "image": ("fluid", "center"),
    "logo": ("fixed", "top-left"),
    "cta": ("adaptive", "bottom-center"),
    "background": ("fixed", "top-left"),
    "decoration": ("fluid", "center"),
    "divider": ("relative", "center"),
}

CRITICAL_ROLES = frozenset({"heading", "cta", "logo"})

# Roles that keep their own position when a flow re-arranges the canvas.
PINNED_FLOW_ROLES = frozenset({"background", "decoration"})

TEXT_KINDS = frozenset({"text"})
CTA_KINDS = frozenset({"button", "cta"})
IMAGE_KINDS = frozenset({"image", "photo", "icon"})


def role_priority(role: str) -> int:
    return ROLE_PRIORITY.get(role, 5)


def font_multiplier(role: str) -> float:
    return FONT_MULTIPLIERS.get(role, 1.0)


def default_responsive(role: str) -> tuple[str, str]:
    return DEFAULT_RESPONSIVE.get(role, ("fluid", "top-left"))


def is_role(value: object) -> bool:
    return isinstance(value, str) and value in ROLE_PRIORITY


def infer_role(
    kind: str,
    width: float,
    height: float,
    font_size: float | None = None,
    canvas: tuple[float, float] | None = None,
) -> str:
    """
    Best-effort role for an element that was created without one.

    Text is classified by font size, images by how much of the canvas they
    cover, and thin shapes are treated as dividers.
    """
    kind = (kind or "").lower()

    if kind in TEXT_KINDS:
        size = font_size or 16
        if size >= 40:
            return "heading"
        if size >= 24:
            return "subheading"
        if size < 14:
            return "caption"
        return "body"

    if kind in CTA_KINDS:
        return "cta"

    if kind in IMAGE_KINDS:
        if canvas and canvas[0] > 0 and canvas[1] > 0:
            coverage = (width * height) / (canvas[0] * canvas[1])
            if coverage >= 0.9:
                return "background"
        if width * height <= 200 * 200:
            return "logo"
        return "image"

    if kind == "line" or min(width, height) <= 4:
        return "divider"
    return "decoration"
