from __future__ import annotations

from typing import Sequence

from smart_format.config import settings
from smart_format.models import Element, LayoutContext
from smart_format.providers.base import (
    AdvisorSuggestion,
    LayoutAnalysis,
    build_analysis_prompt,
    build_layout_prompt,
    parse_analysis_response,
    parse_layout_response,
)


class GeminiLayoutAdvisor:
    name = "gemini"

    def __init__(self, api_key: str) -> None:
        # Imported lazily so the app can start without the dependency installed.
        from google import genai  # type: ignore

        self.client = genai.Client(api_key=api_key)

    def _complete(self, prompt: str) -> str | None:
        resp = self.client.models.generate_content(model=settings.gemini_text_model, contents=[prompt])
        return getattr(resp, "text", None)

    async def suggest_layout(
        self,
        elements: Sequence[Element],
        source: LayoutContext,
        target: LayoutContext,
    ) -> AdvisorSuggestion:
        raw_text = self._complete(build_layout_prompt(elements, source, target))
        return parse_layout_response(raw_text, elements, provider=self.name, model=settings.gemini_text_model)

    async def analyze_layout(self, elements: Sequence[Element], context: LayoutContext) -> LayoutAnalysis:
        raw_text = self._complete(build_analysis_prompt(elements, context))
        return parse_analysis_response(raw_text, provider=self.name, model=settings.gemini_text_model)
