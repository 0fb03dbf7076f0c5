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


class OpenAILayoutAdvisor:
    name = "openai"

    def __init__(self, api_key: str) -> None:
        from openai import OpenAI  # type: ignore

        self.client = OpenAI(api_key=api_key)

    def _complete(self, prompt: str) -> str:
        resp = self.client.responses.create(model=settings.openai_text_model, input=prompt)
        return getattr(resp, "output_text", None) or ""

    async def suggest_layout(
        self,
        elements: Sequence[Element],
        source: LayoutContext,
        target: LayoutContext,
    ) -> AdvisorSuggestion:
        text = self._complete(build_layout_prompt(elements, source, target))
        return parse_layout_response(text, elements, provider=self.name, model=settings.openai_text_model)

    async def analyze_layout(self, elements: Sequence[Element], context: LayoutContext) -> LayoutAnalysis:
        text = self._complete(build_analysis_prompt(elements, context))
        return parse_analysis_response(text, provider=self.name, model=settings.openai_text_model)
