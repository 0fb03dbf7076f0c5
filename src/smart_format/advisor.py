from __future__ import annotations

import logging
from typing import Sequence

from smart_format.config import settings
from smart_format.engine.validate import validate_elements
from smart_format.models import Element, LayoutContext
from smart_format.providers.base import AdvisorSuggestion, LayoutAdvisor, LayoutAnalysis

logger = logging.getLogger(__name__)

# Points taken off the basic score per finding.
_BOUNDS_PENALTY = 10
_OVERLAP_PENALTY = 10
_SMALL_PENALTY = 5


class AdvisorNotConfigured(RuntimeError):
    """No API key is set for the requested advisor provider."""


def get_advisor(provider: str | None = None) -> LayoutAdvisor:
    provider = (provider or settings.advisor_provider).lower()
    if provider == "gemini":
        if not settings.gemini_api_key:
            raise AdvisorNotConfigured("GEMINI_API_KEY is not set")
        from smart_format.providers.gemini_provider import GeminiLayoutAdvisor

        return GeminiLayoutAdvisor(api_key=settings.gemini_api_key)
    if provider == "openai":
        if not settings.openai_api_key:
            raise AdvisorNotConfigured("OPENAI_API_KEY is not set")
        from smart_format.providers.openai_provider import OpenAILayoutAdvisor

        return OpenAILayoutAdvisor(api_key=settings.openai_api_key)
    raise ValueError(f"unknown advisor provider '{provider}'")


async def advise(
    advisor: LayoutAdvisor,
    elements: Sequence[Element],
    source: LayoutContext,
    target: LayoutContext,
) -> AdvisorSuggestion | None:
    """Ask the advisor for a layout; any provider failure is logged and yields None."""
    try:
        suggestion = await advisor.suggest_layout(elements, source, target)
    except Exception:
        logger.exception("Layout advisor %s failed", getattr(advisor, "name", "?"))
        return None
    logger.info(
        "Advisor %s suggested %s -> %s (confidence %.2f)",
        suggestion.provider,
        source.format_key,
        target.format_key,
        suggestion.confidence,
    )
    return suggestion


def basic_layout_analysis(elements: Sequence[Element], context: LayoutContext) -> LayoutAnalysis:
    """
    Deterministic score out of 100 built on the layout validator.

    Each element outside the canvas costs 10 points (once, however many edges
    it crosses), each overlap of critical elements 10, and each element that
    is too small or has a too-small font 5. The score never drops below 0.
    """
    result = validate_elements(
        elements,
        context,
        min_element_size=settings.min_element_size,
        min_font_size=settings.min_font_size,
    )
    outside: set[str] = set()
    penalty = 0
    for issue in result.issues:
        if issue.code in ("out_of_bounds", "exceeds_bounds"):
            outside.update(issue.element_ids)
        elif issue.code == "critical_overlap":
            penalty += _OVERLAP_PENALTY
        else:
            penalty += _SMALL_PENALTY
    penalty += _BOUNDS_PENALTY * len(outside)

    suggestions = list(result.suggestions)
    if outside:
        suggestions.insert(0, "Reposition elements to fit within the canvas")
    return LayoutAnalysis(
        score=max(0, 100 - penalty),
        issues=[issue.message for issue in result.issues],
        suggestions=list(dict.fromkeys(suggestions)),
        provider="basic",
    )


async def analyze(
    advisor: LayoutAdvisor | None,
    elements: Sequence[Element],
    context: LayoutContext,
) -> LayoutAnalysis:
    """Score a layout with the advisor, or with the basic analysis when there is none or it fails."""
    if advisor is None:
        return basic_layout_analysis(elements, context)
    try:
        analysis = await advisor.analyze_layout(elements, context)
    except Exception:
        logger.exception("Layout analysis by %s failed; using basic analysis", getattr(advisor, "name", "?"))
        return basic_layout_analysis(elements, context)
    logger.info("Advisor %s scored %s at %d", analysis.provider, context.format_key, analysis.score)
    return analysis
