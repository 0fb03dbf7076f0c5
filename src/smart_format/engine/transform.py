"""
Pure layout transformation shared by the inline and offloaded paths.

Nothing in here does I/O or keeps state: every function takes elements and
contexts and returns new elements.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Mapping

from smart_format.engine.collisions import resolve_collisions
from smart_format.engine.flow import compose_flow
from smart_format.engine.geometry import (
    anchor_factors,
    apply_anchor,
    apply_constraints,
    contain,
    resolve_value,
    round_half_up,
)
from smart_format.engine.presets import PresetRegistry
from smart_format.models import Element, LayoutContext, LayoutPreset, ensure_pristine
from smart_format.roles import font_multiplier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransformOptions:
    use_presets: bool = True
    preserve_overrides: bool = True
    use_offload: bool = True
    gutter: int = 10
    reference_width: int = 1080

    def to_dict(self) -> dict[str, Any]:
        return {
            "usePresets": self.use_presets,
            "preserveOverrides": self.preserve_overrides,
            "useOffload": self.use_offload,
            "gutter": self.gutter,
            "referenceWidth": self.reference_width,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "TransformOptions":
        data = data or {}
        defaults = cls()
        return cls(
            use_presets=bool(data.get("usePresets", defaults.use_presets)),
            preserve_overrides=bool(data.get("preserveOverrides", defaults.preserve_overrides)),
            use_offload=bool(data.get("useOffload", defaults.use_offload)),
            gutter=int(data.get("gutter", defaults.gutter)),
            reference_width=int(data.get("referenceWidth", defaults.reference_width)),
        )


def transform_elements(
    elements: Iterable[Element],
    from_context: LayoutContext,
    to_context: LayoutContext,
    options: TransformOptions,
    registry: PresetRegistry,
) -> list[Element]:
    preset = registry.select(to_context) if options.use_presets else None
    logger.debug(
        "Transforming %s -> %s (preset=%s)",
        from_context.format_key,
        to_context.format_key,
        preset.id if preset else None,
    )

    transformed = [transform_element(el, from_context, to_context, preset, options) for el in elements]

    if preset is not None:
        return compose_flow(transformed, to_context, preset.flow)
    return resolve_collisions(transformed, to_context, gutter=options.gutter)


def transform_element(
    element: Element,
    from_context: LayoutContext,
    to_context: LayoutContext,
    preset: LayoutPreset | None = None,
    options: TransformOptions | None = None,
) -> Element:
    options = options or TransformOptions()
    element = _with_reference(element, from_context)
    mode = element.responsive.mode
    if mode == "adaptive":
        return transform_adaptive(element, from_context, to_context, preset, options.reference_width)
    handler = _MODE_HANDLERS.get(mode, transform_fluid)
    return handler(element, from_context, to_context)


def _with_reference(element: Element, from_context: LayoutContext) -> Element:
    """
    Pin down what the pristine geometry is relative to. Elements that arrive
    without pristine values get the current geometry on the source canvas;
    existing pristine values are never changed.
    """
    element = ensure_pristine(element)
    if element.original_canvas_width is not None and element.original_canvas_height is not None:
        return element
    return replace(
        element,
        original_canvas_width=from_context.container_width,
        original_canvas_height=from_context.container_height,
    )


def _reference_canvas(element: Element, from_context: LayoutContext) -> tuple[float, float]:
    # Pristine geometry is scaled from the canvas it was authored on.
    width = element.original_canvas_width or from_context.container_width
    height = element.original_canvas_height or from_context.container_height
    return width, height


def _placed(
    element: Element,
    context: LayoutContext,
    x: float,
    y: float,
    width: float,
    height: float,
    **changes: Any,
) -> Element:
    cx, cy, cw, ch = contain(x, y, width, height, context.container_width, context.container_height)
    return replace(element, x=cx, y=cy, width=cw, height=ch, **changes)


def transform_fixed(element: Element, from_context: LayoutContext, to_context: LayoutContext) -> Element:
    """
    Uniform scale of the current geometry that may shrink to fit but never
    grows. A logo shrunk for a small canvas stays that size on the way back.
    """
    scale = min(
        1.0,
        to_context.container_width / from_context.container_width,
        to_context.container_height / from_context.container_height,
    )

    font_size = element.font_size
    if font_size is not None:
        font_size = round_half_up(font_size * scale)
    return _placed(
        element,
        to_context,
        round_half_up(element.x * scale),
        round_half_up(element.y * scale),
        round_half_up(element.width * scale),
        round_half_up(element.height * scale),
        font_size=font_size,
    )


def transform_fluid(element: Element, from_context: LayoutContext, to_context: LayoutContext) -> Element:
    """Independent x/y scaling of the pristine geometry."""
    ref_w, ref_h = _reference_canvas(element, from_context)
    scale_x = to_context.container_width / ref_w
    scale_y = to_context.container_height / ref_h

    px, py, pw, ph = element.pristine_box
    responsive = element.responsive
    width = apply_constraints(round_half_up(pw * scale_x), responsive.min_width, responsive.max_width)
    height = apply_constraints(round_half_up(ph * scale_y), responsive.min_height, responsive.max_height)

    font = element.pristine_font_size
    font_size = element.font_size
    if font_size is not None and font is not None:
        font_size = round_half_up(font * min(scale_x, scale_y))

    return _placed(
        element,
        to_context,
        round_half_up(px * scale_x),
        round_half_up(py * scale_y),
        width,
        height,
        font_size=font_size,
    )


def transform_relative(element: Element, from_context: LayoutContext, to_context: LayoutContext) -> Element:
    """
    Percentage placement of the element's anchor point.

    Percentages are derived from the source geometry the first time and then
    cached on the element, so repeated conversions reuse the same numbers.
    """
    responsive = element.responsive
    fx, fy = anchor_factors(responsive.anchor)
    src_w, src_h = from_context.container_width, from_context.container_height

    x_pct = responsive.x_percent
    if x_pct is None:
        x_pct = (element.x + element.width * fx) / src_w * 100
    y_pct = responsive.y_percent
    if y_pct is None:
        y_pct = (element.y + element.height * fy) / src_h * 100
    w_pct = responsive.width_percent
    if w_pct is None:
        w_pct = element.width / src_w * 100
    h_pct = responsive.height_percent
    if h_pct is None:
        h_pct = element.height / src_h * 100

    dst_w, dst_h = to_context.container_width, to_context.container_height
    width = apply_constraints(w_pct / 100 * dst_w, responsive.min_width, responsive.max_width)
    height = apply_constraints(h_pct / 100 * dst_h, responsive.min_height, responsive.max_height)
    x, y = apply_anchor(x_pct / 100 * dst_w, y_pct / 100 * dst_h, width, height, responsive.anchor)

    cached = replace(responsive, x_percent=x_pct, y_percent=y_pct, width_percent=w_pct, height_percent=h_pct)
    return _placed(element, to_context, x, y, width, height, responsive=cached)


def transform_adaptive(
    element: Element,
    from_context: LayoutContext,
    to_context: LayoutContext,
    preset: LayoutPreset | None,
    reference_width: int = 1080,
) -> Element:
    """Role-driven placement from the preset; elements without a rule fall back to fluid."""
    rule = preset.rules.get(element.role) if preset is not None else None
    if rule is None:
        return transform_fluid(element, from_context, to_context)

    dst_w, dst_h = to_context.container_width, to_context.container_height
    width = resolve_value(rule.width, dst_w)
    height = resolve_value(rule.height, dst_h)
    _, _, pw, ph = element.pristine_box
    if rule.maintain_aspect_ratio and pw > 0:
        # The rule's width wins; height follows the authored proportions.
        height = width * ph / pw
    x, y = apply_anchor(resolve_value(rule.x, dst_w), resolve_value(rule.y, dst_h), width, height, rule.anchor)

    font_size = element.font_size
    if element.is_text and element.font_size is not None:
        base = element.pristine_font_size or element.font_size
        font_size = round_half_up(base * (dst_w / reference_width) * font_multiplier(element.role))

    return _placed(
        element,
        to_context,
        x,
        y,
        apply_constraints(width, rule.min_size, rule.max_size),
        apply_constraints(height, rule.min_size, rule.max_size),
        font_size=font_size,
    )


_MODE_HANDLERS: dict[str, Callable[[Element, LayoutContext, LayoutContext], Element]] = {
    "fixed": transform_fixed,
    "fluid": transform_fluid,
    "relative": transform_relative,
}


def fallback_transform(
    elements: Iterable[Element],
    from_context: LayoutContext,
    to_context: LayoutContext,
) -> list[Element]:
    """Plain proportional resize used when the smart transform fails."""
    scale_x = to_context.container_width / from_context.container_width
    scale_y = to_context.container_height / from_context.container_height

    out: list[Element] = []
    for el in elements:
        font_size = el.font_size
        if font_size is not None:
            font_size = round_half_up(font_size * min(scale_x, scale_y))
        out.append(
            replace(
                el,
                x=round_half_up(el.x * scale_x),
                y=round_half_up(el.y * scale_y),
                width=max(1, round_half_up(el.width * scale_x)),
                height=max(1, round_half_up(el.height * scale_y)),
                font_size=font_size,
            )
        )
    return out
