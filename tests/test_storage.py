from __future__ import annotations

import json
from dataclasses import replace

from smart_format.storage import (
    LEGACY_STORAGE_KEY,
    PROJECTS_KEY,
    KeyValueStore,
    ProjectManager,
    element_diff,
)
from tests.conftest import make_element

STORY_KEY = "instagram_story_1080x1920"


def test_create_persists_and_becomes_current(manager, master_elements):
    project = manager.create("Launch", master_elements)
    assert project.id.startswith("project_")
    assert manager.current_project_id() == project.id

    loaded = manager.load(project.id)
    assert loaded.name == "Launch"
    assert [el.id for el in loaded.master_layout] == ["h1", "cta"]
    # Pristine geometry is recorded on save.
    assert loaded.master_layout[0].original_x == 100


def test_override_identical_to_master_is_empty(manager, master_elements):
    project = manager.create("Launch", master_elements)
    override = manager.set_override(project, STORY_KEY, list(project.master_layout))
    assert override.element_overrides == {}
    assert STORY_KEY not in project.overrides
    assert not any(el.has_overrides for el in project.master_layout)


def test_override_stores_only_changed_fields(manager, master_elements):
    project = manager.create("Launch", master_elements)
    current = list(project.master_layout)
    current[0] = replace(current[0], y=400, style={})

    override = manager.set_override(project, STORY_KEY, current, canvas_background="#000000")
    assert override.element_overrides == {"h1": {"elementId": "h1", "y": 400, "style": {"color": None}}}
    assert override.canvas_background == "#000000"

    reloaded = manager.load(project.id)
    heading, cta = reloaded.master_layout
    assert heading.has_overrides and heading.override_formats == (STORY_KEY,)
    assert not cta.has_overrides


def test_resolve_merges_at_read_time(manager, master_elements):
    project = manager.create("Launch", master_elements, canvas_background="#ffffff")
    current = [replace(project.master_layout[0], y=400), project.master_layout[1]]
    manager.set_override(project, STORY_KEY, current, canvas_background="#000000")

    elements, background = manager.resolve(project, STORY_KEY)
    assert elements[0].y == 400
    assert background == "#000000"
    # The master itself is untouched.
    assert project.master_layout[0].y == 100


def test_resolve_without_override_is_the_master(manager, master_elements):
    project = manager.create("Launch", master_elements)
    elements, background = manager.resolve(project, "linkedin_square_1080x1080")
    assert elements == project.master_layout
    assert background == project.canvas_background


def test_remove_override_restores_inheritance(manager, master_elements):
    project = manager.create("Launch", master_elements)
    manager.set_override(project, STORY_KEY, [replace(project.master_layout[0], x=5), project.master_layout[1]])
    assert manager.remove_override(project, STORY_KEY)
    assert not manager.remove_override(project, STORY_KEY)
    assert not manager.load(project.id).master_layout[0].has_overrides


def test_update_master_keeps_override_flags(manager, master_elements):
    project = manager.create("Launch", master_elements)
    manager.set_override(project, STORY_KEY, [replace(project.master_layout[0], x=5), project.master_layout[1]])
    updated = manager.update_master(project.id, [make_element("h1", x=20), make_element("new", role="body")])
    assert updated.master_layout[0].override_formats == (STORY_KEY,)
    assert not updated.master_layout[1].has_overrides
    assert manager.update_master("project_missing", []) is None


def test_element_diff_tracks_responsive_and_content():
    master = make_element(content="Hello")
    current = replace(master, content="Hi", responsive=replace(master.responsive, anchor="center"))
    diff = element_diff(master, current)
    assert diff["content"] == "Hi"
    assert diff["responsive"]["anchor"] == "center"


def test_missing_and_corrupt_projects_load_as_none(manager, tmp_path):
    assert manager.load("project_missing") is None

    manager.store.set(PROJECTS_KEY, [{"id": "bad", "name": "Broken", "masterLayout": "nope"}])
    assert manager.load("bad") is None
    assert manager.list_projects() == []

    (tmp_path / "kv" / f"{PROJECTS_KEY}.json").write_text("{not json", encoding="utf-8")
    assert manager.list_projects() == []


def test_delete_clears_current_project(manager, master_elements):
    project = manager.create("Launch", master_elements)
    assert manager.delete(project.id)
    assert manager.current_project_id() is None
    assert manager.current_project() is None
    assert not manager.delete(project.id)


def test_export_then_import_creates_a_copy(manager, master_elements):
    project = manager.create("Launch", master_elements)
    manager.set_override(project, STORY_KEY, [replace(project.master_layout[0], x=5), project.master_layout[1]])

    imported = manager.import_project(manager.export_project(project.id))
    assert imported.id != project.id
    assert imported.name == "Launch (Imported)"
    assert STORY_KEY in imported.overrides
    assert len(manager.list_projects()) == 2


def test_malformed_import_is_rejected(manager):
    assert manager.import_project("not json") is None
    assert manager.import_project(json.dumps({"name": "No id", "masterLayout": []})) is None
    assert manager.import_project(json.dumps({"id": "p", "name": "Bad", "masterLayout": {}})) is None
    assert manager.list_projects() == []


def test_duplicate_and_stats(manager, master_elements):
    project = manager.create("Launch", master_elements)
    manager.set_override(project, STORY_KEY, [replace(project.master_layout[0], x=5), project.master_layout[1]])

    copy = manager.duplicate(project.id)
    assert copy.name == "Launch (Copy)"
    assert copy.id != project.id

    stats = manager.stats(copy.id)
    assert stats["elementCount"] == 2
    assert stats["overrideCount"] == 1
    assert stats["formatCount"] == 1
    assert manager.stats("project_missing") is None


def test_cleanup_drops_stale_projects(manager, master_elements):
    keep = manager.create("Fresh", master_elements)
    stale = manager.create("Stale", master_elements)
    records = manager.store.get(PROJECTS_KEY)
    for record in records:
        if record["id"] == stale.id:
            record["updatedAt"] = 0
    manager.store.set(PROJECTS_KEY, records)

    assert manager.cleanup(max_age_days=30) == 1
    assert [p.id for p in manager.list_projects()] == [keep.id]


def test_legacy_designs_migrate_into_master_plus_overrides(tmp_path):
    store = KeyValueStore(tmp_path)
    heading = {"id": "t1", "type": "text", "x": 10, "y": 10, "width": 400, "height": 60, "fontSize": 48}
    store.set(
        LEGACY_STORAGE_KEY,
        {
            "instagram": {
                "square_1080x1080": {"elements": [heading], "canvasBackground": "#fafafa", "lastModified": 200},
                "story_1080x1920": {"elements": [{**heading, "y": 300}], "lastModified": 100},
            }
        },
    )
    manager = ProjectManager(store)

    project = manager.migrate_legacy()
    assert project.canvas_background == "#fafafa"
    assert project.master_layout[0].role == "heading"
    assert project.master_layout[0].original_canvas_width == 1080
    assert set(project.overrides) == {STORY_KEY}

    elements, background = manager.resolve(manager.load(project.id), STORY_KEY)
    assert elements[0].y == 300
    assert background == "#ffffff"


def test_legacy_design_with_unreadable_timestamp_is_skipped(tmp_path):
    store = KeyValueStore(tmp_path)
    heading = {"id": "t1", "type": "text", "x": 10, "y": 10, "width": 400, "height": 60, "fontSize": 48}
    store.set(
        LEGACY_STORAGE_KEY,
        {
            "instagram": {
                "square_1080x1080": {"elements": [heading], "lastModified": 5},
                "story_1080x1920": {"elements": [{**heading, "y": 300}], "lastModified": "2024-01-01"},
                "portrait_1080x1350": {"elements": [heading], "lastModified": {"ts": 1}},
            }
        },
    )
    manager = ProjectManager(store)

    project = manager.migrate_legacy()
    assert project is not None
    assert project.master_layout[0].y == 10
    assert project.overrides == {}


def test_no_legacy_data_means_nothing_to_migrate(manager):
    assert manager.load_legacy() is None
    assert manager.migrate_legacy() is None
