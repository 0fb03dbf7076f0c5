from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from smart_format.engine.geometry import overlaps
from smart_format.models import Element, LayoutContext
from smart_format.roles import CRITICAL_ROLES


@dataclass(frozen=True)
class ValidationIssue:
    code: str  # out_of_bounds|exceeds_bounds|too_small|small_font|critical_overlap
    message: str
    element_ids: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "elementIds": list(self.element_ids)}


@dataclass
class ValidationResult:
    issues: list[ValidationIssue] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.issues

    def codes(self) -> set[str]:
        return {issue.code for issue in self.issues}

    def to_dict(self) -> dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "issues": [issue.to_dict() for issue in self.issues],
            "suggestions": list(self.suggestions),
        }


def validate_elements(
    elements: Iterable[Element],
    context: LayoutContext,
    min_element_size: float = 10,
    min_font_size: float = 12,
) -> ValidationResult:
    """Inspect a layout for quality problems. Never modifies the elements."""
    elements = list(elements)
    result = ValidationResult()
    width, height = context.container_width, context.container_height

    for el in elements:
        if el.x < 0 or el.y < 0:
            result.issues.append(
                ValidationIssue("out_of_bounds", f"Element {el.id} is positioned outside canvas bounds", (el.id,))
            )
        if el.x + el.width > width or el.y + el.height > height:
            result.issues.append(
                ValidationIssue("exceeds_bounds", f"Element {el.id} extends beyond canvas boundaries", (el.id,))
            )
        if el.width < min_element_size or el.height < min_element_size:
            result.issues.append(
                ValidationIssue("too_small", f"Element {el.id} may be too small to be visible", (el.id,))
            )
            result.suggestions.append(f"Consider increasing minimum size constraints for element {el.id}")
        if el.is_text and el.font_size is not None and el.font_size < min_font_size:
            result.issues.append(
                ValidationIssue(
                    "small_font",
                    f"Element {el.id} has very small font size ({el.font_size:g}px)",
                    (el.id,),
                )
            )
            result.suggestions.append(f"Increase font size of element {el.id} to at least {min_font_size:g}px for readability")

    critical = [el for el in elements if el.role in CRITICAL_ROLES]
    for i, a in enumerate(critical):
        for b in critical[i + 1 :]:
            if overlaps(a, b):
                result.issues.append(
                    ValidationIssue(
                        "critical_overlap",
                        f"Critical elements overlap: {a.role} ({a.id}) and {b.role} ({b.id})",
                        (a.id, b.id),
                    )
                )
                result.suggestions.append("Adjust positioning to prevent overlap of important elements")

    return result
