from __future__ import annotations

import json
import logging
import os
import re
import time
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Any, Iterable

from smart_format.config import settings
from smart_format.models import (
    Element,
    FormatOverride,
    FormatOverrideSet,
    ProjectLayout,
    apply_overrides,
    ensure_pristine,
)

logger = logging.getLogger(__name__)

PROJECTS_KEY = "design-projects"
CURRENT_PROJECT_KEY = "current-project-id"
LEGACY_STORAGE_KEY = "canvas-platform-format-storage"

# Element fields compared when computing a per-format override (wire name, attribute).
_DIFF_FIELDS = (
    ("x", "x"),
    ("y", "y"),
    ("width", "width"),
    ("height", "height"),
    ("fontSize", "font_size"),
    ("visible", "visible"),
    ("content", "content"),
)

_LEGACY_DIMENSIONS = re.compile(r"_(\d+)x(\d+)$")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _safe_key(key: str) -> str:
    # Keys map to file names; keep them to a conservative character set.
    return re.sub(r"[^A-Za-z0-9_.-]", "_", os.path.basename(key))


class KeyValueStore:
    """Simple JSON document store, one file per key under `<data_dir>/kv`."""

    def __init__(self, root_dir: Path | None = None) -> None:
        self.root_dir = Path(root_dir or settings.data_dir).resolve() / "kv"
        self.root_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.root_dir / f"{_safe_key(key)}.json"

    def get(self, key: str, default: Any = None) -> Any:
        path = self._path(key)
        if not path.exists():
            return default
        return json.loads(path.read_text("utf-8"))

    def set(self, key: str, value: Any) -> None:
        self._path(key).write_text(json.dumps(value, indent=2), encoding="utf-8")

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.exists():
            return False
        path.unlink()
        return True


def element_diff(master: Element, current: Element) -> FormatOverride:
    """Fields of `current` that differ from `master`, keyed by wire name."""
    override: FormatOverride = {"elementId": current.id}
    for wire, attr in _DIFF_FIELDS:
        value = getattr(current, attr)
        if getattr(master, attr) != value:
            override[wire] = value

    if master.responsive != current.responsive:
        override["responsive"] = current.responsive.to_dict()

    style: dict[str, Any] = {}
    for key in master.style.keys() | current.style.keys():
        if master.style.get(key) != current.style.get(key):
            # None marks a key that was removed for this format.
            style[key] = current.style.get(key)
    if style:
        override["style"] = style
    return override


def diff_layouts(
    master_elements: Iterable[Element],
    current_elements: Iterable[Element],
    master_background: str,
    current_background: str,
) -> FormatOverrideSet:
    by_id = {el.id: el for el in master_elements}
    overrides: dict[str, FormatOverride] = {}
    for current in current_elements:
        master = by_id.get(current.id)
        if master is None:
            continue
        diff = element_diff(master, current)
        if len(diff) > 1:
            overrides[current.id] = diff
    return FormatOverrideSet(
        element_overrides=overrides,
        canvas_background=current_background if current_background != master_background else None,
    )


def _refresh_override_flags(project: ProjectLayout) -> None:
    refreshed: list[Element] = []
    for el in project.master_layout:
        formats = tuple(
            key for key, override in project.overrides.items() if el.id in override.element_overrides
        )
        refreshed.append(replace(el, has_overrides=bool(formats), override_formats=formats))
    project.master_layout = refreshed


class ProjectManager:
    """
    Master layout + sparse per-format overrides, persisted as one list of
    project records under a well-known key.
    """

    def __init__(self, store: KeyValueStore | None = None) -> None:
        self.store = store or KeyValueStore()

    # --- records -------------------------------------------------------

    def _read_records(self) -> list[dict[str, Any]]:
        try:
            data = self.store.get(PROJECTS_KEY, [])
        except ValueError:
            logger.error("Project storage is corrupt; treating it as empty", exc_info=True)
            return []
        if not isinstance(data, list):
            logger.error("Project storage has unexpected shape %s", type(data).__name__)
            return []
        return [r for r in data if isinstance(r, dict)]

    def _write_records(self, records: list[dict[str, Any]]) -> None:
        self.store.set(PROJECTS_KEY, records)

    def list_projects(self) -> list[ProjectLayout]:
        out: list[ProjectLayout] = []
        for record in self._read_records():
            try:
                out.append(ProjectLayout.from_dict(record))
            except (KeyError, TypeError, ValueError):
                # Skip corrupted projects.
                logger.warning("Skipping unreadable project record %r", record.get("id"))
                continue
        return out

    # --- lifecycle -----------------------------------------------------

    def create(
        self,
        name: str,
        master_layout: Iterable[Element],
        canvas_background: str = "#ffffff",
    ) -> ProjectLayout:
        now = _now_ms()
        project = ProjectLayout(
            id=f"project_{uuid.uuid4().hex[:12]}",
            name=name,
            master_layout=[ensure_pristine(el) for el in master_layout],
            canvas_background=canvas_background,
            overrides={},
            created_at=now,
            updated_at=now,
        )
        self.save(project)
        self.set_current(project.id)
        logger.info("Created project %s (%s)", name, project.id)
        return project

    def load(self, project_id: str) -> ProjectLayout | None:
        """Missing or unreadable projects load as None."""
        record = next((r for r in self._read_records() if r.get("id") == project_id), None)
        if record is None:
            return None
        try:
            project = ProjectLayout.from_dict(record)
        except (KeyError, TypeError, ValueError):
            logger.warning("Project %s could not be read", project_id, exc_info=True)
            return None
        self.set_current(project_id)
        return project

    def save(self, project: ProjectLayout) -> None:
        project.updated_at = _now_ms()
        records = self._read_records()
        data = project.to_dict()
        for i, record in enumerate(records):
            if record.get("id") == project.id:
                records[i] = data
                break
        else:
            records.append(data)
        self._write_records(records)

    def delete(self, project_id: str) -> bool:
        records = self._read_records()
        remaining = [r for r in records if r.get("id") != project_id]
        if len(remaining) == len(records):
            return False
        self._write_records(remaining)
        if self.current_project_id() == project_id:
            self.store.delete(CURRENT_PROJECT_KEY)
        logger.info("Deleted project %s", project_id)
        return True

    def current_project_id(self) -> str | None:
        try:
            value = self.store.get(CURRENT_PROJECT_KEY)
        except ValueError:
            return None
        return value if isinstance(value, str) else None

    def set_current(self, project_id: str) -> None:
        self.store.set(CURRENT_PROJECT_KEY, project_id)

    def current_project(self) -> ProjectLayout | None:
        project_id = self.current_project_id()
        return self.load(project_id) if project_id else None

    def update_master(
        self,
        project_id: str,
        elements: Iterable[Element],
        canvas_background: str | None = None,
    ) -> ProjectLayout | None:
        project = self.load(project_id)
        if project is None:
            return None
        project.master_layout = [ensure_pristine(el) for el in elements]
        if canvas_background:
            project.canvas_background = canvas_background
        _refresh_override_flags(project)
        self.save(project)
        logger.info("Updated master layout for %s", project.name)
        return project

    # --- overrides -----------------------------------------------------

    diff = staticmethod(diff_layouts)

    def set_override(
        self,
        project: ProjectLayout,
        format_key: str,
        current_elements: Iterable[Element],
        canvas_background: str | None = None,
        preset_id: str | None = None,
    ) -> FormatOverrideSet:
        """
        Store what `current_elements` changes relative to the master for one
        format. An override with nothing in it is not stored, so the format
        keeps inheriting the master.
        """
        override = diff_layouts(
            project.master_layout,
            current_elements,
            project.canvas_background,
            canvas_background if canvas_background is not None else project.canvas_background,
        )
        override.layout_preset = preset_id
        if override.is_empty:
            project.overrides.pop(format_key, None)
        else:
            project.overrides[format_key] = override
        _refresh_override_flags(project)
        self.save(project)
        logger.info(
            "Stored override for %s in %s (%d elements)",
            format_key,
            project.name,
            len(override.element_overrides),
        )
        return override

    def remove_override(self, project: ProjectLayout, format_key: str) -> bool:
        if format_key not in project.overrides:
            return False
        del project.overrides[format_key]
        _refresh_override_flags(project)
        self.save(project)
        logger.info("Removed override for %s from %s", format_key, project.name)
        return True

    @staticmethod
    def resolve(project: ProjectLayout, format_key: str) -> tuple[list[Element], str]:
        """Master layout with the format's override merged in, built fresh on every call."""
        override = project.overrides.get(format_key)
        if override is None:
            return list(project.master_layout), project.canvas_background
        return (
            apply_overrides(project.master_layout, override.element_overrides),
            override.canvas_background or project.canvas_background,
        )

    # --- sharing -------------------------------------------------------

    def export_project(self, project_id: str) -> str | None:
        project = self.load(project_id)
        if project is None:
            return None
        return json.dumps(project.to_dict(), indent=2)

    def import_project(self, json_data: str) -> ProjectLayout | None:
        """Imports a copy under a fresh id; malformed input is rejected with None."""
        try:
            data = json.loads(json_data)
            if not isinstance(data, dict) or not data.get("id") or not data.get("name"):
                raise ValueError("Invalid project structure")
            if not isinstance(data.get("masterLayout"), list):
                raise ValueError("Invalid project structure")
            project = ProjectLayout.from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Rejected project import: %s", exc)
            return None

        project.id = f"project_{uuid.uuid4().hex[:12]}"
        project.name = f"{project.name} (Imported)"
        self.save(project)
        logger.info("Imported project %s", project.name)
        return project

    def duplicate(self, project_id: str, new_name: str | None = None) -> ProjectLayout | None:
        original = self.load(project_id)
        if original is None:
            return None
        now = _now_ms()
        copy = replace(
            original,
            id=f"project_{uuid.uuid4().hex[:12]}",
            name=new_name or f"{original.name} (Copy)",
            master_layout=list(original.master_layout),
            overrides=dict(original.overrides),
            created_at=now,
            updated_at=now,
        )
        self.save(copy)
        return copy

    def stats(self, project_id: str) -> dict[str, int] | None:
        project = self.load(project_id)
        if project is None:
            return None
        return {
            "elementCount": len(project.master_layout),
            "overrideCount": sum(len(o.element_overrides) for o in project.overrides.values()),
            "formatCount": len(project.overrides),
            "lastModified": project.updated_at,
        }

    def cleanup(self, max_age_days: int | None = None) -> int:
        """Drop projects not modified within `max_age_days`; returns how many were removed."""
        days = settings.project_max_age_days if max_age_days is None else max_age_days
        cutoff = _now_ms() - days * 24 * 60 * 60 * 1000
        records = self._read_records()
        active = [r for r in records if int(r.get("updatedAt") or 0) > cutoff]
        removed = len(records) - len(active)
        if removed:
            self._write_records(active)
            logger.info("Cleaned up %d old projects", removed)
        return removed

    # --- legacy --------------------------------------------------------

    def load_legacy(self, name: str = "Imported designs") -> ProjectLayout | None:
        """
        Read the older flat `platform -> format -> elements` record and upgrade
        it: the most recently edited design becomes the master layout and every
        other design becomes an override keyed `<platform>_<format>`.
        """
        try:
            storage = self.store.get(LEGACY_STORAGE_KEY)
        except ValueError:
            logger.warning("Legacy storage is corrupt; ignoring it")
            return None
        if not isinstance(storage, dict) or not storage:
            return None

        designs: list[tuple[int, str, list[Element], str]] = []
        for platform, formats in storage.items():
            if not isinstance(formats, dict):
                continue
            for legacy_key, entry in formats.items():
                if not isinstance(entry, dict) or not isinstance(entry.get("elements"), list):
                    continue
                match = _LEGACY_DIMENSIONS.search(legacy_key)
                canvas = (float(match.group(1)), float(match.group(2))) if match else None
                try:
                    elements = [Element.from_dict(el, canvas=canvas) for el in entry["elements"]]
                    last_modified = int(entry.get("lastModified") or 0)
                except (KeyError, TypeError, ValueError):
                    logger.warning("Skipping unreadable legacy design %s/%s", platform, legacy_key)
                    continue
                designs.append(
                    (
                        last_modified,
                        f"{platform}_{legacy_key}".lower(),
                        elements,
                        str(entry.get("canvasBackground") or "#ffffff"),
                    )
                )

        if not designs:
            return None

        designs.sort(key=lambda d: d[0], reverse=True)
        _, _, master, background = designs[0]
        now = _now_ms()
        project = ProjectLayout(
            id=f"project_{uuid.uuid4().hex[:12]}",
            name=name,
            master_layout=master,
            canvas_background=background,
            overrides={},
            created_at=now,
            updated_at=now,
        )
        for _, format_key, elements, format_background in designs[1:]:
            override = diff_layouts(master, elements, background, format_background)
            if not override.is_empty:
                project.overrides[format_key] = override
        _refresh_override_flags(project)
        return project

    def migrate_legacy(self) -> ProjectLayout | None:
        project = self.load_legacy()
        if project is None:
            return None
        self.save(project)
        logger.info("Migrated legacy designs into project %s", project.id)
        return project
