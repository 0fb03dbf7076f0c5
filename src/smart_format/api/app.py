from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Iterable

from fastapi import FastAPI, HTTPException

from smart_format.advisor import AdvisorNotConfigured, advise, analyze, get_advisor
from smart_format.api.schemas import (
    AdviseRequest,
    AnalyzeRequest,
    BatchTransformRequest,
    ContextModel,
    CreateProjectRequest,
    DuplicateProjectRequest,
    ImportProjectRequest,
    SetOverrideRequest,
    TransformRequest,
    UpdateMasterRequest,
    ValidateRequest,
)
from smart_format.config import settings
from smart_format.engine.engine import SmartFormatEngine
from smart_format.formats import platforms_payload
from smart_format.models import Element, ProjectLayout
from smart_format.storage import ProjectManager

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)

engine = SmartFormatEngine.with_offload() if settings.offload_enabled else SmartFormatEngine()
projects = ProjectManager()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    engine.close()


app = FastAPI(title="smart_format", lifespan=lifespan)


def _parse_elements(records: Iterable[dict[str, Any]], context: ContextModel | None = None) -> list[Element]:
    canvas = (context.containerWidth, context.containerHeight) if context else None
    try:
        return [Element.from_dict(record, canvas=canvas) for record in records]
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"invalid element: {exc}") from exc


def _load_project(project_id: str) -> ProjectLayout:
    project = projects.load(project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="project not found")
    return project


def _dump(elements: Iterable[Element]) -> list[dict[str, Any]]:
    return [el.to_dict() for el in elements]


@app.get("/api/health")
def health() -> dict[str, Any]:
    return {"status": "ok", "offload": bool(engine.offload and engine.offload.available)}


@app.get("/api/formats")
def list_formats() -> dict[str, Any]:
    return {"platforms": platforms_payload(), "presets": engine.registry.ids()}


async def _transform(body: TransformRequest) -> dict[str, Any]:
    source = body.fromContext.to_context()
    target = body.toContext.to_context()
    options = engine.options(
        use_presets=body.options.usePresets,
        preserve_overrides=body.options.preserveOverrides,
        use_offload=body.options.useOffload,
    )
    elements = _parse_elements(body.elements, body.fromContext)
    result = await engine.transform(elements, source, target, options, overrides=body.overrides)
    return {"elements": _dump(result), "formatKey": target.format_key}


@app.post("/api/transform")
async def transform(body: TransformRequest) -> dict[str, Any]:
    return await _transform(body)


@app.post("/api/transform/batch")
async def transform_batch(body: BatchTransformRequest) -> dict[str, Any]:
    # Each batch keeps its own overrides, so they run as individual transforms.
    return {"results": [await _transform(batch) for batch in body.batches]}


@app.post("/api/validate")
def validate(body: ValidateRequest) -> dict[str, Any]:
    elements = _parse_elements(body.elements, body.context)
    return engine.validate(elements, body.context.to_context()).to_dict()


@app.post("/api/advise")
async def advise_layout(body: AdviseRequest) -> dict[str, Any]:
    try:
        advisor = get_advisor(body.provider)
    except (AdvisorNotConfigured, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    elements = _parse_elements(body.elements, body.fromContext)
    suggestion = await advise(advisor, elements, body.fromContext.to_context(), body.toContext.to_context())
    if suggestion is None:
        raise HTTPException(status_code=502, detail="layout advisor failed")
    return {
        "elements": _dump(suggestion.elements),
        "reasoning": suggestion.reasoning,
        "confidence": suggestion.confidence,
        "provider": suggestion.provider,
        "model": suggestion.model,
    }


@app.post("/api/analyze")
async def analyze_layout(body: AnalyzeRequest) -> dict[str, Any]:
    try:
        advisor = get_advisor(body.provider)
    except AdvisorNotConfigured:
        advisor = None
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    elements = _parse_elements(body.elements, body.context)
    analysis = await analyze(advisor, elements, body.context.to_context())
    return analysis.to_dict()


@app.get("/api/projects")
def list_projects() -> dict[str, Any]:
    return {
        "currentProjectId": projects.current_project_id(),
        "projects": [
            {"id": p.id, "name": p.name, "updatedAt": p.updated_at, "formatCount": len(p.overrides)}
            for p in projects.list_projects()
        ],
    }


@app.post("/api/projects")
def create_project(body: CreateProjectRequest) -> dict[str, Any]:
    elements = _parse_elements(body.elements, body.context)
    project = projects.create(body.name, elements, canvas_background=body.canvasBackground)
    return project.to_dict()


@app.post("/api/projects/import")
def import_project(body: ImportProjectRequest) -> dict[str, Any]:
    project = projects.import_project(body.data)
    if project is None:
        raise HTTPException(status_code=400, detail="invalid project data")
    return project.to_dict()


@app.post("/api/projects/migrate-legacy")
def migrate_legacy() -> dict[str, Any]:
    project = projects.migrate_legacy()
    if project is None:
        raise HTTPException(status_code=404, detail="no legacy designs found")
    return project.to_dict()


@app.get("/api/projects/{project_id}")
def get_project(project_id: str) -> dict[str, Any]:
    return _load_project(project_id).to_dict()


@app.delete("/api/projects/{project_id}")
def delete_project(project_id: str) -> dict[str, Any]:
    if not projects.delete(project_id):
        raise HTTPException(status_code=404, detail="project not found")
    return {"deleted": project_id}


@app.put("/api/projects/{project_id}/master")
def update_master(project_id: str, body: UpdateMasterRequest) -> dict[str, Any]:
    elements = _parse_elements(body.elements, body.context)
    project = projects.update_master(project_id, elements, canvas_background=body.canvasBackground)
    if project is None:
        raise HTTPException(status_code=404, detail="project not found")
    return project.to_dict()


@app.post("/api/projects/{project_id}/overrides/{format_key}")
def set_override(project_id: str, format_key: str, body: SetOverrideRequest) -> dict[str, Any]:
    project = _load_project(project_id)
    if body.layoutPreset is not None and engine.registry.get(body.layoutPreset) is None:
        raise HTTPException(status_code=400, detail=f"unknown layout preset '{body.layoutPreset}'")
    override = projects.set_override(
        project,
        format_key,
        _parse_elements(body.elements),
        canvas_background=body.canvasBackground,
        preset_id=body.layoutPreset,
    )
    return {"formatKey": format_key, "override": override.to_dict(), "stored": format_key in project.overrides}


@app.delete("/api/projects/{project_id}/overrides/{format_key}")
def remove_override(project_id: str, format_key: str) -> dict[str, Any]:
    project = _load_project(project_id)
    if not projects.remove_override(project, format_key):
        raise HTTPException(status_code=404, detail="override not found")
    return {"removed": format_key}


@app.get("/api/projects/{project_id}/formats/{format_key}")
def resolve_format(project_id: str, format_key: str) -> dict[str, Any]:
    project = _load_project(project_id)
    elements, background = projects.resolve(project, format_key)
    return {
        "formatKey": format_key,
        "elements": _dump(elements),
        "canvasBackground": background,
        "hasOverride": format_key in project.overrides,
    }


@app.get("/api/projects/{project_id}/export")
def export_project(project_id: str) -> dict[str, Any]:
    data = projects.export_project(project_id)
    if data is None:
        raise HTTPException(status_code=404, detail="project not found")
    return {"data": data}


@app.post("/api/projects/{project_id}/duplicate")
def duplicate_project(project_id: str, body: DuplicateProjectRequest | None = None) -> dict[str, Any]:
    project = projects.duplicate(project_id, new_name=body.name if body else None)
    if project is None:
        raise HTTPException(status_code=404, detail="project not found")
    return project.to_dict()


@app.get("/api/projects/{project_id}/stats")
def project_stats(project_id: str) -> dict[str, Any]:
    stats = projects.stats(project_id)
    if stats is None:
        raise HTTPException(status_code=404, detail="project not found")
    return stats
