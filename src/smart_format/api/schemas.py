"""
Request models for the HTTP endpoints.

Element records stay plain dicts: they carry an open-ended style payload and
are parsed by `Element.from_dict`, which also upgrades older shapes.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from smart_format.models import LayoutContext


class ContextModel(BaseModel):
    containerWidth: float = Field(gt=0)
    containerHeight: float = Field(gt=0)
    platform: str = "custom"
    formatName: str = "custom"

    def to_context(self) -> LayoutContext:
        return LayoutContext(
            container_width=self.containerWidth,
            container_height=self.containerHeight,
            platform=self.platform,
            format_name=self.formatName,
        )


class OptionsModel(BaseModel):
    usePresets: bool = True
    preserveOverrides: bool = True
    useOffload: bool = True


class TransformRequest(BaseModel):
    elements: list[dict[str, Any]]
    fromContext: ContextModel
    toContext: ContextModel
    options: OptionsModel = OptionsModel()
    # elementId -> sparse override, layered on the result when preserveOverrides is set
    overrides: Optional[dict[str, dict[str, Any]]] = None


class BatchTransformRequest(BaseModel):
    batches: list[TransformRequest]


class ValidateRequest(BaseModel):
    elements: list[dict[str, Any]]
    context: ContextModel


class AdviseRequest(BaseModel):
    elements: list[dict[str, Any]]
    fromContext: ContextModel
    toContext: ContextModel
    provider: Optional[str] = None  # openai | gemini; defaults to ADVISOR_PROVIDER


class AnalyzeRequest(BaseModel):
    elements: list[dict[str, Any]]
    context: ContextModel
    provider: Optional[str] = None  # falls back to the basic analysis when no key is set


class CreateProjectRequest(BaseModel):
    name: str = Field(min_length=1)
    elements: list[dict[str, Any]] = []
    canvasBackground: str = "#ffffff"
    context: Optional[ContextModel] = None  # canvas the master layout was authored on


class UpdateMasterRequest(BaseModel):
    elements: list[dict[str, Any]]
    canvasBackground: Optional[str] = None
    context: Optional[ContextModel] = None


class SetOverrideRequest(BaseModel):
    elements: list[dict[str, Any]]
    canvasBackground: Optional[str] = None
    layoutPreset: Optional[str] = None


class ImportProjectRequest(BaseModel):
    data: str


class DuplicateProjectRequest(BaseModel):
    name: Optional[str] = None
