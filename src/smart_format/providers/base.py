from __future__ import annotations

import json
from dataclasses import dataclass, replace
from typing import Any, Protocol, Sequence

from smart_format.models import Element, LayoutContext
from smart_format.roles import ROLE_IMPORTANCE

MIN_SUGGESTED_SIZE = 10
MIN_SUGGESTED_FONT = 8
MAX_SUGGESTED_FONT = 200


@dataclass(frozen=True)
class AdvisorSuggestion:
    elements: list[Element]
    reasoning: str
    confidence: float
    provider: str
    model: str
    raw_text: str | None


@dataclass(frozen=True)
class LayoutAnalysis:
    score: int  # 0-100
    issues: list[str]
    suggestions: list[str]
    provider: str
    model: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "issues": list(self.issues),
            "suggestions": list(self.suggestions),
            "provider": self.provider,
            "model": self.model,
        }


class LayoutAdvisor(Protocol):
    name: str

    async def suggest_layout(
        self,
        elements: Sequence[Element],
        source: LayoutContext,
        target: LayoutContext,
    ) -> AdvisorSuggestion: ...

    async def analyze_layout(self, elements: Sequence[Element], context: LayoutContext) -> LayoutAnalysis: ...


_PLATFORM_GUIDELINES: dict[str, dict[str, list[str]]] = {
    "instagram": {
        "portrait": [
            "Instagram Stories: focus on vertical hierarchy, use the upper and lower thirds",
            "Keep CTAs in the lower third for thumb reach",
        ],
        "other": ["Instagram posts: center important content and leave breathing room"],
    },
    "linkedin": {
        "any": [
            "Professional tone: emphasise text readability and a clean layout",
            "Business focus: keep logos and headlines prominent",
        ],
    },
    "twitter": {
        "any": [
            "Concise content: prioritise visibility of the key message",
            "Mobile first: elements must work on small screens",
        ],
    },
    "tiktok": {
        "any": [
            "Vertical video format: use the full height",
            "Young audience: bold, dynamic layouts work well",
        ],
    },
}

_ORIENTATION_GUIDELINES: dict[str, list[str]] = {
    "landscape": [
        "Horizontal layout: consider side-by-side arrangements",
        "Use the extra width for multi-column layouts",
    ],
    "portrait": [
        "Vertical layout: stack elements with a clear hierarchy",
        "Use the height for a top-to-bottom reading flow",
    ],
}


def format_guidelines(context: LayoutContext) -> list[str]:
    """Design hints for the target platform and orientation."""
    by_orientation = _PLATFORM_GUIDELINES.get(context.platform.lower(), {})
    if "any" in by_orientation:
        lines = list(by_orientation["any"])
    elif context.orientation == "portrait":
        lines = list(by_orientation.get("portrait", []))
    else:
        lines = list(by_orientation.get("other", []))
    lines.extend(_ORIENTATION_GUIDELINES.get(context.orientation, []))
    return lines


def _guidelines_block(context: LayoutContext) -> str:
    lines = format_guidelines(context)
    if not lines:
        return "- No specific guidelines for this format\n"
    return "".join(f"- {line}\n" for line in lines)


def build_layout_prompt(elements: Sequence[Element], source: LayoutContext, target: LayoutContext) -> str:
    described = [
        {
            "id": el.id,
            "type": el.kind,
            "role": el.role,
            "importance": ROLE_IMPORTANCE.get(el.role, 0.5),
            "x": el.x,
            "y": el.y,
            "width": el.width,
            "height": el.height,
            "fontSize": el.font_size,
            "content": (el.content or "")[:80],
        }
        for el in elements
    ]
    return (
        "You are adapting a social media ad layout to a new canvas size.\n"
        f"Source canvas: {int(source.container_width)}x{int(source.container_height)} ({source.orientation}).\n"
        f"Target canvas: {int(target.container_width)}x{int(target.container_height)} ({target.orientation}).\n"
        "Keep every element inside the target canvas, keep important elements large and readable,\n"
        "and avoid overlapping heading, cta and logo elements.\n"
        f"Guidelines for {target.platform} {target.format_name}:\n"
        f"{_guidelines_block(target)}"
        "Return STRICT JSON only (no markdown) with keys:\n"
        "- elements: [{id, x, y, width, height, fontSize?, visible?}]\n"
        "- reasoning: string\n"
        "- confidence: number between 0 and 1\n"
        f"\nElements:\n{json.dumps(described)}\n"
    )


def _strip_code_fences(text: str) -> str:
    s = text.strip()
    if s.startswith("```"):
        first_nl = s.find("\n")
        if first_nl != -1:
            s = s[first_nl + 1 :]
        if s.rstrip().endswith("```"):
            s = s.rstrip()[:-3]
    return s.strip()


def _parse_jsonish(raw_text: str | None) -> dict[str, Any] | None:
    if not raw_text:
        return None
    s = _strip_code_fences(raw_text)
    try:
        data = json.loads(s)
    except ValueError:
        # Models sometimes wrap the object in prose; try the outermost braces.
        start, end = s.find("{"), s.rfind("}")
        if start == -1 or end <= start:
            return None
        try:
            data = json.loads(s[start : end + 1])
        except ValueError:
            return None
    return data if isinstance(data, dict) else None


def _clamped_number(value: Any, low: float, high: float | None = None) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = max(low, float(value))
    if high is not None:
        value = min(high, value)
    return value


def merge_suggestion(element: Element, suggested: dict[str, Any]) -> Element:
    """Apply one suggested element record, keeping values inside sane limits."""
    changes: dict[str, Any] = {}
    for key, low in (("x", 0), ("y", 0), ("width", MIN_SUGGESTED_SIZE), ("height", MIN_SUGGESTED_SIZE)):
        value = _clamped_number(suggested.get(key), low)
        if value is not None:
            changes[key] = value

    if element.is_text:
        font = _clamped_number(suggested.get("fontSize"), MIN_SUGGESTED_FONT, MAX_SUGGESTED_FONT)
        if font is not None:
            changes["font_size"] = font

    if isinstance(suggested.get("visible"), bool):
        changes["visible"] = suggested["visible"]
    return replace(element, **changes) if changes else element


def parse_layout_response(
    raw_text: str | None,
    elements: Sequence[Element],
    provider: str,
    model: str,
) -> AdvisorSuggestion:
    parsed = _parse_jsonish(raw_text) or {}
    by_id = {
        str(item["id"]): item
        for item in parsed.get("elements") or []
        if isinstance(item, dict) and "id" in item
    }
    merged = [merge_suggestion(el, by_id[el.id]) if el.id in by_id else el for el in elements]

    confidence = _clamped_number(parsed.get("confidence"), 0.0, 1.0)
    return AdvisorSuggestion(
        elements=merged,
        reasoning=str(parsed.get("reasoning") or ""),
        confidence=0.0 if confidence is None else confidence,
        provider=provider,
        model=model,
        raw_text=raw_text,
    )


def build_analysis_prompt(elements: Sequence[Element], context: LayoutContext) -> str:
    described = [
        {
            "type": el.kind,
            "role": el.role,
            "position": [el.x, el.y],
            "size": [el.width, el.height],
            "fontSize": el.font_size,
        }
        for el in elements
    ]
    return (
        "Analyze this social media layout for design quality. Give a score out of 100\n"
        "plus specific issues and suggestions.\n"
        f"Canvas: {int(context.container_width)}x{int(context.container_height)} "
        f"({context.platform} {context.format_name}).\n"
        f"Elements: {json.dumps(described)}\n"
        "Evaluate visual hierarchy, spacing and alignment, readability, balance and\n"
        "platform fit. Guidelines for this format:\n"
        f"{_guidelines_block(context)}"
        'Return STRICT JSON only (no markdown): {"score": number, "issues": [string], "suggestions": [string]}\n'
    )


def _strings(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if isinstance(item, (str, int, float)) and not isinstance(item, bool)]


def parse_analysis_response(raw_text: str | None, provider: str, model: str) -> LayoutAnalysis:
    """Raises ValueError when the reply carries no usable JSON object."""
    parsed = _parse_jsonish(raw_text)
    if parsed is None:
        raise ValueError(f"{provider} returned no JSON analysis")
    score = _clamped_number(parsed.get("score"), 0.0, 100.0)
    return LayoutAnalysis(
        score=50 if score is None else int(round(score)),
        issues=_strings(parsed.get("issues")),
        suggestions=_strings(parsed.get("suggestions")),
        provider=provider,
        model=model,
    )
