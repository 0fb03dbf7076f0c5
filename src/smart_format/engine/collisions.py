from __future__ import annotations

from dataclasses import replace

from smart_format.engine.geometry import overlaps, round_half_up
from smart_format.models import Element, LayoutContext
from smart_format.roles import role_priority


def resolve_collisions(elements: list[Element], context: LayoutContext, gutter: int = 10) -> list[Element]:
    """
    Single pass over every pair: when two elements overlap, the one with the
    lower role priority is pushed below the other.

    Two rules are chosen on purpose:

    * On a priority tie the later element in the list moves, so the element
      the user placed first keeps its spot.
    * Any pair involving a background is skipped. A full-canvas background
      overlaps everything, and pushing it (or pushing everything below it)
      would wreck the layout.

    A moved element can end up overlapping a third element that was already
    checked; that pair is not revisited.
    """
    resolved = list(elements)
    for i in range(len(resolved)):
        for j in range(i + 1, len(resolved)):
            a, b = resolved[i], resolved[j]
            if a.role == "background" or b.role == "background":
                continue
            if not overlaps(a, b):
                continue
            if role_priority(a.role) < role_priority(b.role):
                resolved[i] = _move_below(a, b, context, gutter)
            else:
                resolved[j] = _move_below(b, a, context, gutter)
    return resolved


def _move_below(element: Element, obstacle: Element, context: LayoutContext, gutter: int) -> Element:
    y = min(obstacle.y + obstacle.height + gutter, context.container_height - element.height)
    return replace(element, y=max(0, round_half_up(y)))
