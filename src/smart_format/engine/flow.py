from __future__ import annotations

import logging
import math
from dataclasses import replace

from smart_format.engine.geometry import contain, resolve_value
from smart_format.models import Element, FlowSpec, LayoutContext
from smart_format.roles import PINNED_FLOW_ROLES, role_priority

logger = logging.getLogger(__name__)


def flow_order(element: Element) -> int:
    return element.layout_order if element.layout_order is not None else role_priority(element.role)


def compose_flow(elements: list[Element], context: LayoutContext, flow: FlowSpec) -> list[Element]:
    """
    Re-arrange elements along the flow axis of a preset.

    Only positions change. Background and decoration elements keep their
    place; everything else is ordered by layout order (or role priority) and
    stacked with the preset's spacing. The result keeps the input order.
    """
    movable = [i for i, el in enumerate(elements) if el.role not in PINNED_FLOW_ROLES]
    movable.sort(key=lambda i: flow_order(elements[i]))

    if flow.direction == "vertical":
        placed = _vertical(elements, movable, context, flow)
    elif flow.direction == "horizontal":
        placed = _horizontal(elements, movable, context, flow)
    elif flow.direction == "grid":
        placed = _grid(elements, movable, context, flow)
    else:
        logger.debug("Unknown flow direction %r; keeping positions", flow.direction)
        placed = {}

    out: list[Element] = []
    for i, el in enumerate(elements):
        moved = placed.get(i, el)
        x, y, w, h = contain(moved.x, moved.y, moved.width, moved.height, context.container_width, context.container_height)
        out.append(replace(moved, x=x, y=y, width=w, height=h))
    return out


def _cross_axis(position: float, size: float, container: float, alignment: str) -> float:
    if alignment == "center":
        return (container - size) / 2
    if alignment == "end":
        return container - size
    return position


def _vertical(elements: list[Element], order: list[int], context: LayoutContext, flow: FlowSpec) -> dict[int, Element]:
    spacing = resolve_value(flow.spacing, context.container_height)
    cursor = spacing
    # With wrap, elements start a new column when the next one would run off the bottom.
    column, column_width = spacing, 0.0
    placed: dict[int, Element] = {}
    for i in order:
        el = elements[i]
        if flow.wrap:
            if column_width and cursor + el.height + spacing > context.container_height:
                cursor = spacing
                column += column_width + spacing
                column_width = 0.0
            x = column
            column_width = max(column_width, el.width)
        else:
            x = _cross_axis(el.x, el.width, context.container_width, flow.alignment)
        placed[i] = replace(el, x=x, y=cursor)
        cursor += el.height + spacing
    return placed


def _horizontal(elements: list[Element], order: list[int], context: LayoutContext, flow: FlowSpec) -> dict[int, Element]:
    spacing = resolve_value(flow.spacing, context.container_width)
    cursor = spacing
    row, row_height = spacing, 0.0
    placed: dict[int, Element] = {}
    for i in order:
        el = elements[i]
        if flow.wrap:
            if row_height and cursor + el.width + spacing > context.container_width:
                cursor = spacing
                row += row_height + spacing
                row_height = 0.0
            y = row
            row_height = max(row_height, el.height)
        else:
            y = _cross_axis(el.y, el.height, context.container_height, flow.alignment)
        placed[i] = replace(el, x=cursor, y=y)
        cursor += el.width + spacing
    return placed


def _grid(elements: list[Element], order: list[int], context: LayoutContext, flow: FlowSpec) -> dict[int, Element]:
    if not order:
        return {}
    spacing = resolve_value(flow.spacing, context.container_width)
    cols = max(1, math.isqrt(len(order)))
    cell_w = max(elements[i].width for i in order)
    cell_h = max(elements[i].height for i in order)

    placed: dict[int, Element] = {}
    for n, i in enumerate(order):
        el = elements[i]
        row, col = divmod(n, cols)
        x = spacing + col * (cell_w + spacing)
        y = spacing + row * (cell_h + spacing)
        if flow.alignment == "center":
            x += (cell_w - el.width) / 2
            y += (cell_h - el.height) / 2
        elif flow.alignment == "end":
            x += cell_w - el.width
            y += cell_h - el.height
        placed[i] = replace(el, x=x, y=y)
    return placed
