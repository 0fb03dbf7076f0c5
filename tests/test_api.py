"""Tests for API endpoints (no model calls)."""

from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from smart_format.api import app as app_module
from smart_format.config import settings
from smart_format.storage import LEGACY_STORAGE_KEY, KeyValueStore, ProjectManager


client = TestClient(app_module.app)

SQUARE = {"containerWidth": 1080, "containerHeight": 1080, "platform": "instagram", "formatName": "Square"}
STORY = {"containerWidth": 1080, "containerHeight": 1920, "platform": "instagram", "formatName": "Story"}
HEADING = {
    "id": "h1",
    "type": "text",
    "x": 100,
    "y": 100,
    "width": 200,
    "height": 50,
    "fontSize": 24,
    "role": "heading",
    "responsive": {"mode": "fluid", "anchor": "top-left"},
}
CTA = {"id": "cta", "type": "button", "x": 390, "y": 900, "width": 300, "height": 80, "content": "Shop now"}


@pytest.fixture(autouse=True)
def projects(tmp_path, monkeypatch) -> ProjectManager:
    manager = ProjectManager(KeyValueStore(tmp_path))
    monkeypatch.setattr(app_module, "projects", manager)
    return manager


def _create_project() -> dict:
    response = client.post("/api/projects", json={"name": "Launch", "elements": [HEADING, CTA], "context": SQUARE})
    assert response.status_code == 200
    return response.json()


def test_health():
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_formats_lists_platforms_and_presets():
    data = client.get("/api/formats").json()
    assert {p["key"] for p in data["platforms"]} == {"instagram", "linkedin", "twitter", "tiktok"}
    assert "story-vertical" in data["presets"]


def test_transform_fluid_heading():
    response = client.post(
        "/api/transform",
        json={"elements": [HEADING], "fromContext": SQUARE, "toContext": STORY, "options": {"usePresets": False}},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["formatKey"] == "instagram_story_1080x1920"
    [el] = data["elements"]
    assert (el["x"], el["y"], el["width"], el["height"], el["fontSize"]) == (100, 178, 200, 89, 24)


def test_transform_batch():
    batch = {"elements": [HEADING], "fromContext": SQUARE, "options": {"usePresets": False}}
    response = client.post(
        "/api/transform/batch",
        json={"batches": [{**batch, "toContext": STORY}, {**batch, "toContext": {"containerWidth": 540, "containerHeight": 540}}]},
    )
    assert response.status_code == 200
    results = response.json()["results"]
    assert [r["elements"][0]["width"] for r in results] == [200, 100]


def test_transform_rejects_bad_context():
    response = client.post(
        "/api/transform",
        json={"elements": [HEADING], "fromContext": SQUARE, "toContext": {"containerWidth": 0, "containerHeight": 10}},
    )
    assert response.status_code == 422


def test_transform_rejects_element_without_id():
    response = client.post(
        "/api/transform",
        json={"elements": [{"type": "text", "x": 0, "y": 0}], "fromContext": SQUARE, "toContext": STORY},
    )
    assert response.status_code == 400


def test_validate_reports_out_of_bounds():
    element = {"id": "e", "type": "shape", "x": -5, "y": 0, "width": 50, "height": 50}
    data = client.post("/api/validate", json={"elements": [element], "context": SQUARE}).json()
    assert data["isValid"] is False
    assert "out_of_bounds" in [issue["code"] for issue in data["issues"]]


def test_advise_without_api_key(monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", None)
    response = client.post(
        "/api/advise",
        json={"elements": [HEADING], "fromContext": SQUARE, "toContext": STORY, "provider": "openai"},
    )
    assert response.status_code == 400
    assert "OPENAI_API_KEY" in response.json()["detail"]


def test_project_lifecycle():
    project = _create_project()
    project_id = project["id"]
    assert project["masterLayout"][1]["role"] == "cta"

    listing = client.get("/api/projects").json()
    assert listing["currentProjectId"] == project_id
    assert [p["id"] for p in listing["projects"]] == [project_id]

    assert client.get(f"/api/projects/{project_id}").json()["name"] == "Launch"
    assert client.delete(f"/api/projects/{project_id}").status_code == 200
    assert client.get(f"/api/projects/{project_id}").status_code == 404
    assert client.delete(f"/api/projects/{project_id}").status_code == 404


def test_override_and_resolve():
    project_id = _create_project()["id"]
    key = "instagram_story_1080x1920"

    unchanged = client.post(f"/api/projects/{project_id}/overrides/{key}", json={"elements": [HEADING, CTA]}).json()
    assert unchanged["stored"] is False
    assert unchanged["override"]["elementOverrides"] == {}

    moved = client.post(
        f"/api/projects/{project_id}/overrides/{key}",
        json={"elements": [{**HEADING, "y": 400}, CTA], "layoutPreset": "story-vertical"},
    ).json()
    assert moved["stored"] is True
    assert moved["override"]["elementOverrides"]["h1"] == {"elementId": "h1", "y": 400}

    resolved = client.get(f"/api/projects/{project_id}/formats/{key}").json()
    assert resolved["hasOverride"] is True
    assert resolved["elements"][0]["y"] == 400

    stats = client.get(f"/api/projects/{project_id}/stats").json()
    assert stats["formatCount"] == 1

    assert client.delete(f"/api/projects/{project_id}/overrides/{key}").status_code == 200
    assert client.delete(f"/api/projects/{project_id}/overrides/{key}").status_code == 404
    master = client.get(f"/api/projects/{project_id}/formats/{key}").json()
    assert master["elements"][0]["y"] == 100


def test_override_rejects_unknown_preset():
    project_id = _create_project()["id"]
    response = client.post(
        f"/api/projects/{project_id}/overrides/some_key",
        json={"elements": [HEADING], "layoutPreset": "nope"},
    )
    assert response.status_code == 400


def test_update_master():
    project_id = _create_project()["id"]
    response = client.put(f"/api/projects/{project_id}/master", json={"elements": [HEADING], "canvasBackground": "#000"})
    assert response.status_code == 200
    assert len(response.json()["masterLayout"]) == 1
    assert response.json()["canvasBackground"] == "#000"
    assert client.put("/api/projects/project_missing/master", json={"elements": []}).status_code == 404


def test_export_import_and_duplicate():
    project_id = _create_project()["id"]
    exported = client.get(f"/api/projects/{project_id}/export").json()["data"]

    imported = client.post("/api/projects/import", json={"data": exported}).json()
    assert imported["name"] == "Launch (Imported)"

    duplicate = client.post(f"/api/projects/{project_id}/duplicate", json={"name": "Launch B"}).json()
    assert duplicate["name"] == "Launch B"

    assert client.post("/api/projects/import", json={"data": "{broken"}).status_code == 400
    assert client.get("/api/projects/project_missing/export").status_code == 404


def test_migrate_legacy(projects):
    assert client.post("/api/projects/migrate-legacy").status_code == 404

    legacy = {"instagram": {"square_1080x1080": {"elements": [HEADING], "lastModified": 1}}}
    projects.store.set(LEGACY_STORAGE_KEY, json.loads(json.dumps(legacy)))
    response = client.post("/api/projects/migrate-legacy")
    assert response.status_code == 200
    assert response.json()["masterLayout"][0]["id"] == "h1"


def test_migrate_legacy_with_bad_timestamps_is_not_an_error(projects):
    legacy = {"instagram": {"square_1080x1080": {"elements": [HEADING], "lastModified": "yesterday"}}}
    projects.store.set(LEGACY_STORAGE_KEY, legacy)
    assert client.post("/api/projects/migrate-legacy").status_code == 404


def test_analyze_without_api_key_uses_basic_analysis(monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", None)
    element = {"id": "e", "type": "shape", "x": -5, "y": 0, "width": 50, "height": 50}
    response = client.post("/api/analyze", json={"elements": [HEADING, element], "context": SQUARE, "provider": "openai"})
    assert response.status_code == 200
    data = response.json()
    assert data["provider"] == "basic"
    assert data["score"] == 90
    assert data["suggestions"][0] == "Reposition elements to fit within the canvas"


def test_analyze_rejects_unknown_provider():
    response = client.post("/api/analyze", json={"elements": [HEADING], "context": SQUARE, "provider": "clippy"})
    assert response.status_code == 400
