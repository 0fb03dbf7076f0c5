from __future__ import annotations

import math
from typing import Protocol

# anchor -> fraction of (width, height) between the top-left corner and the anchor point
ANCHOR_FACTORS: dict[str, tuple[float, float]] = {
    "top-left": (0.0, 0.0),
    "top-center": (0.5, 0.0),
    "top-right": (1.0, 0.0),
    "center-left": (0.0, 0.5),
    "center": (0.5, 0.5),
    "center-right": (1.0, 0.5),
    "bottom-left": (0.0, 1.0),
    "bottom-center": (0.5, 1.0),
    "bottom-right": (1.0, 1.0),
}


class Box(Protocol):
    x: float
    y: float
    width: float
    height: float


def round_half_up(value: float) -> int:
    # Python's round() is banker's rounding; layouts expect .5 to go up.
    return int(math.floor(value + 0.5))


def anchor_factors(anchor: str) -> tuple[float, float]:
    return ANCHOR_FACTORS.get(anchor, (0.0, 0.0))


def apply_anchor(x: float, y: float, width: float, height: float, anchor: str) -> tuple[float, float]:
    """Turn an anchor-point position into the top-left corner of a box of the given size."""
    fx, fy = anchor_factors(anchor)
    return x - width * fx, y - height * fy


def resolve_value(value: float | str, container_size: float) -> float:
    """Resolve a pixel number or a "NN%" string against a container dimension."""
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("%"):
            try:
                return round_half_up(float(text[:-1]) / 100 * container_size)
            except ValueError:
                return 0
        try:
            return int(float(text))
        except ValueError:
            return 0
    return value


def apply_constraints(value: float, minimum: float | None = None, maximum: float | None = None) -> int:
    if minimum is not None:
        value = max(value, minimum)
    if maximum is not None:
        value = min(value, maximum)
    return round_half_up(value)


def contain(
    x: float,
    y: float,
    width: float,
    height: float,
    container_width: float,
    container_height: float,
) -> tuple[int, int, int, int]:
    """Clamp a box so it lies fully inside the container (shrinking it first if it is larger)."""
    w = max(1, min(round_half_up(width), int(container_width)))
    h = max(1, min(round_half_up(height), int(container_height)))
    cx = max(0, min(round_half_up(x), int(container_width) - w))
    cy = max(0, min(round_half_up(y), int(container_height) - h))
    return cx, cy, w, h


def overlaps(a: Box, b: Box) -> bool:
    return not (
        a.x + a.width <= b.x
        or b.x + b.width <= a.x
        or a.y + a.height <= b.y
        or b.y + b.height <= a.y
    )
