from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping

from smart_format.roles import default_responsive, infer_role, is_role

MODES = ("fixed", "fluid", "relative", "adaptive")
ANCHORS = (
    "top-left",
    "top-center",
    "top-right",
    "center-left",
    "center",
    "center-right",
    "bottom-left",
    "bottom-center",
    "bottom-right",
)

# A sparse set of wire-format fields for one element, always carrying "elementId".
FormatOverride = dict[str, Any]

# Wire keys the engine understands; anything else on an element is style passthrough.
_ELEMENT_KEYS = frozenset(
    {
        "id",
        "type",
        "kind",
        "x",
        "y",
        "width",
        "height",
        "role",
        "responsive",
        "fontSize",
        "visible",
        "locked",
        "content",
        "style",
        "originalX",
        "originalY",
        "originalWidth",
        "originalHeight",
        "originalFontSize",
        "originalCanvasWidth",
        "originalCanvasHeight",
        "zIndex",
        "layoutOrder",
        "groupId",
        "hasOverrides",
        "overrideFormats",
    }
)


def _num(value: Any, default: float | None = None) -> float | None:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(f"expected a number, got {value!r}")
    if isinstance(value, (int, float)):
        return value
    return float(value)


def _opt_int(value: Any) -> int | None:
    if value is None:
        return None
    return int(value)


@dataclass(frozen=True)
class ResponsiveProperties:
    mode: str = "fluid"
    anchor: str = "top-left"

    # Cached percentage placement (0-100) used by relative mode
    x_percent: float | None = None
    y_percent: float | None = None
    width_percent: float | None = None
    height_percent: float | None = None

    min_width: float | None = None
    max_width: float | None = None
    min_height: float | None = None
    max_height: float | None = None

    margin: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"mode": self.mode, "anchor": self.anchor}
        optional = {
            "xPercent": self.x_percent,
            "yPercent": self.y_percent,
            "widthPercent": self.width_percent,
            "heightPercent": self.height_percent,
            "minWidth": self.min_width,
            "maxWidth": self.max_width,
            "minHeight": self.min_height,
            "maxHeight": self.max_height,
            "margin": dict(self.margin) if self.margin is not None else None,
        }
        out.update({k: v for k, v in optional.items() if v is not None})
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], role: str = "body") -> "ResponsiveProperties":
        mode, anchor = default_responsive(role)
        margin = data.get("margin")
        return cls(
            mode=str(data.get("mode") or mode),
            anchor=str(data.get("anchor") or anchor),
            x_percent=_num(data.get("xPercent")),
            y_percent=_num(data.get("yPercent")),
            width_percent=_num(data.get("widthPercent")),
            height_percent=_num(data.get("heightPercent")),
            min_width=_num(data.get("minWidth")),
            max_width=_num(data.get("maxWidth")),
            min_height=_num(data.get("minHeight")),
            max_height=_num(data.get("maxHeight")),
            margin=dict(margin) if isinstance(margin, Mapping) else None,
        )

    @classmethod
    def for_role(cls, role: str) -> "ResponsiveProperties":
        mode, anchor = default_responsive(role)
        return cls(mode=mode, anchor=anchor)


@dataclass(frozen=True)
class Element:
    id: str
    kind: str
    x: float
    y: float
    width: float
    height: float
    role: str = "body"
    responsive: ResponsiveProperties = field(default_factory=ResponsiveProperties)
    font_size: float | None = None
    visible: bool = True
    locked: bool = False
    content: str | None = None
    # Opaque to the engine: colors, fonts, src, etc. are forwarded untouched.
    style: dict[str, Any] = field(default_factory=dict)

    # Pristine geometry: last user-authored values, never written by a transform.
    original_x: float | None = None
    original_y: float | None = None
    original_width: float | None = None
    original_height: float | None = None
    original_font_size: float | None = None
    original_canvas_width: float | None = None
    original_canvas_height: float | None = None

    z_index: int | None = None
    layout_order: int | None = None
    group_id: str | None = None
    has_overrides: bool = False
    override_formats: tuple[str, ...] = ()

    @property
    def is_text(self) -> bool:
        return self.kind == "text"

    @property
    def pristine_box(self) -> tuple[float, float, float, float]:
        return (
            self.x if self.original_x is None else self.original_x,
            self.y if self.original_y is None else self.original_y,
            self.width if self.original_width is None else self.original_width,
            self.height if self.original_height is None else self.original_height,
        )

    @property
    def pristine_font_size(self) -> float | None:
        return self.font_size if self.original_font_size is None else self.original_font_size

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "type": self.kind,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "role": self.role,
            "responsive": self.responsive.to_dict(),
            "visible": self.visible,
            "locked": self.locked,
            "style": dict(self.style),
            "hasOverrides": self.has_overrides,
            "overrideFormats": list(self.override_formats),
        }
        optional = {
            "fontSize": self.font_size,
            "content": self.content,
            "originalX": self.original_x,
            "originalY": self.original_y,
            "originalWidth": self.original_width,
            "originalHeight": self.original_height,
            "originalFontSize": self.original_font_size,
            "originalCanvasWidth": self.original_canvas_width,
            "originalCanvasHeight": self.original_canvas_height,
            "zIndex": self.z_index,
            "layoutOrder": self.layout_order,
            "groupId": self.group_id,
        }
        out.update({k: v for k, v in optional.items() if v is not None})
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], canvas: tuple[float, float] | None = None) -> "Element":
        """
        Build an element from a wire record, upgrading older shapes on the way:
        missing role is inferred, missing responsive block defaults from the
        role, missing pristine geometry defaults to the current geometry, and
        unknown top-level keys are folded into the style passthrough.
        """
        if "id" not in data:
            raise ValueError("element is missing 'id'")

        kind = str(data.get("type") or data.get("kind") or "shape")
        x = _num(data.get("x"), 0)
        y = _num(data.get("y"), 0)
        width = _num(data.get("width"), 0)
        height = _num(data.get("height"), 0)
        font_size = _num(data.get("fontSize"))

        role = data.get("role")
        if not is_role(role):
            role = infer_role(kind, width, height, font_size, canvas)

        raw_responsive = data.get("responsive")
        if isinstance(raw_responsive, Mapping):
            responsive = ResponsiveProperties.from_dict(raw_responsive, role)
        else:
            responsive = ResponsiveProperties.for_role(role)

        style = dict(data["style"]) if isinstance(data.get("style"), Mapping) else {}
        for key, value in data.items():
            if key not in _ELEMENT_KEYS:
                style.setdefault(key, value)

        canvas_w = canvas[0] if canvas else None
        canvas_h = canvas[1] if canvas else None
        content = data.get("content")

        return cls(
            id=str(data["id"]),
            kind=kind,
            x=x,
            y=y,
            width=width,
            height=height,
            role=role,
            responsive=responsive,
            font_size=font_size,
            visible=bool(data.get("visible", True)),
            locked=bool(data.get("locked", False)),
            content=None if content is None else str(content),
            style=style,
            original_x=_num(data.get("originalX"), x),
            original_y=_num(data.get("originalY"), y),
            original_width=_num(data.get("originalWidth"), width),
            original_height=_num(data.get("originalHeight"), height),
            original_font_size=_num(data.get("originalFontSize"), font_size),
            original_canvas_width=_num(data.get("originalCanvasWidth"), canvas_w),
            original_canvas_height=_num(data.get("originalCanvasHeight"), canvas_h),
            z_index=_opt_int(data.get("zIndex")),
            layout_order=_opt_int(data.get("layoutOrder")),
            group_id=data.get("groupId"),
            has_overrides=bool(data.get("hasOverrides", False)),
            override_formats=tuple(data.get("overrideFormats") or ()),
        )


def create_element(
    element_id: str,
    kind: str,
    x: float,
    y: float,
    width: float,
    height: float,
    role: str | None = None,
    font_size: float | None = None,
    context: "LayoutContext | None" = None,
    responsive: ResponsiveProperties | None = None,
    **fields: Any,
) -> Element:
    """New user-authored element; pristine geometry starts equal to the given geometry."""
    if width <= 0 or height <= 0:
        raise ValueError("element width and height must be positive")
    if x < 0 or y < 0:
        raise ValueError("element position must not be negative")

    canvas = (context.container_width, context.container_height) if context else None
    if role is None:
        role = infer_role(kind, width, height, font_size, canvas)
    elif not is_role(role):
        raise ValueError(f"unknown role '{role}'")

    return Element(
        id=element_id,
        kind=kind,
        x=x,
        y=y,
        width=width,
        height=height,
        role=role,
        responsive=responsive or ResponsiveProperties.for_role(role),
        font_size=font_size,
        original_x=x,
        original_y=y,
        original_width=width,
        original_height=height,
        original_font_size=font_size,
        original_canvas_width=canvas[0] if canvas else None,
        original_canvas_height=canvas[1] if canvas else None,
        **fields,
    )


_EDITABLE_GEOMETRY = ("x", "y", "width", "height", "font_size")


def apply_user_edit(element: Element, context: "LayoutContext | None" = None, **changes: Any) -> Element:
    """
    Apply an explicit user edit. This is the only place pristine geometry is
    refreshed; cached relative percentages are dropped so they re-derive.
    """
    edited = replace(element, **changes)
    if not any(name in changes for name in _EDITABLE_GEOMETRY):
        return edited

    responsive = replace(
        edited.responsive,
        x_percent=None,
        y_percent=None,
        width_percent=None,
        height_percent=None,
    )
    return replace(
        edited,
        responsive=responsive,
        original_x=edited.x,
        original_y=edited.y,
        original_width=edited.width,
        original_height=edited.height,
        original_font_size=edited.font_size,
        original_canvas_width=context.container_width if context else edited.original_canvas_width,
        original_canvas_height=context.container_height if context else edited.original_canvas_height,
    )


def ensure_pristine(element: Element) -> Element:
    """Fill missing pristine fields from the current geometry."""
    px, py, pw, ph = element.pristine_box
    return replace(
        element,
        original_x=px,
        original_y=py,
        original_width=pw,
        original_height=ph,
        original_font_size=element.pristine_font_size,
    )


def with_override(element: Element, override: Mapping[str, Any]) -> Element:
    """Layer one sparse override record on top of an element."""
    fields = {k: v for k, v in override.items() if k != "elementId"}
    if not fields:
        return element
    data = element.to_dict()
    style_patch = fields.pop("style", None)
    data.update(fields)
    if isinstance(style_patch, Mapping):
        style = dict(element.style)
        for key, value in style_patch.items():
            if value is None:
                style.pop(key, None)
            else:
                style[key] = value
        data["style"] = style
    return Element.from_dict(data)


def apply_overrides(elements: Iterable[Element], element_overrides: Mapping[str, FormatOverride]) -> list[Element]:
    out: list[Element] = []
    for element in elements:
        override = element_overrides.get(element.id)
        out.append(with_override(element, override) if override else element)
    return out


@dataclass(frozen=True)
class LayoutContext:
    container_width: float
    container_height: float
    platform: str = "custom"
    format_name: str = "custom"

    def __post_init__(self) -> None:
        if self.container_width <= 0 or self.container_height <= 0:
            raise ValueError("container dimensions must be positive")

    @property
    def aspect_ratio(self) -> float:
        return self.container_width / self.container_height

    @property
    def orientation(self) -> str:
        ratio = self.aspect_ratio
        if abs(ratio - 1) < 0.01:
            return "square"
        return "landscape" if ratio > 1 else "portrait"

    @property
    def format_key(self) -> str:
        return f"{self.platform}_{self.format_name}_{int(self.container_width)}x{int(self.container_height)}".lower()

    def to_dict(self) -> dict[str, Any]:
        return {
            "containerWidth": self.container_width,
            "containerHeight": self.container_height,
            "aspectRatio": self.aspect_ratio,
            "orientation": self.orientation,
            "platform": self.platform,
            "formatName": self.format_name,
            "formatKey": self.format_key,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LayoutContext":
        width = data.get("containerWidth", data.get("width"))
        height = data.get("containerHeight", data.get("height"))
        if width is None or height is None:
            raise ValueError("context needs containerWidth and containerHeight")
        return cls(
            container_width=_num(width),
            container_height=_num(height),
            platform=str(data.get("platform") or "custom"),
            format_name=str(data.get("formatName") or "custom"),
        )


@dataclass(frozen=True)
class PresetRule:
    # Pixel numbers or "%"-suffixed strings resolved against the destination.
    x: float | str
    y: float | str
    width: float | str
    height: float | str
    anchor: str = "top-left"
    mode: str = "adaptive"
    min_size: float | None = None
    max_size: float | None = None
    maintain_aspect_ratio: bool = False


@dataclass(frozen=True)
class FlowSpec:
    direction: str = "vertical"  # vertical|horizontal|grid
    spacing: float | str = 20
    alignment: str = "start"  # start|center|end|stretch
    wrap: bool = False


@dataclass(frozen=True)
class LayoutPreset:
    id: str
    name: str
    description: str
    target_formats: tuple[str, ...]
    aspect_ratios: tuple[float, ...]
    rules: Mapping[str, PresetRule]
    flow: FlowSpec = field(default_factory=FlowSpec)

    def targets(self, context: LayoutContext) -> bool:
        wanted = {t.lower() for t in self.target_formats}
        return context.format_name.lower() in wanted or context.platform.lower() in wanted

    def fits_ratio(self, aspect_ratio: float, tolerance: float = 0.1) -> bool:
        return any(abs(ratio - aspect_ratio) < tolerance for ratio in self.aspect_ratios)


@dataclass
class FormatOverrideSet:
    element_overrides: dict[str, FormatOverride] = field(default_factory=dict)
    canvas_background: str | None = None
    layout_preset: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.element_overrides and self.canvas_background is None and self.layout_preset is None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"elementOverrides": {k: dict(v) for k, v in self.element_overrides.items()}}
        if self.canvas_background is not None:
            out["canvasBackground"] = self.canvas_background
        if self.layout_preset is not None:
            out["layoutPreset"] = self.layout_preset
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FormatOverrideSet":
        raw = data.get("elementOverrides") or {}
        if not isinstance(raw, Mapping):
            raise ValueError("elementOverrides must be an object")
        return cls(
            element_overrides={str(k): {**dict(v), "elementId": str(k)} for k, v in raw.items()},
            canvas_background=data.get("canvasBackground"),
            layout_preset=data.get("layoutPreset"),
        )


@dataclass
class ProjectLayout:
    id: str
    name: str
    master_layout: list[Element]
    canvas_background: str
    overrides: dict[str, FormatOverrideSet]
    created_at: int
    updated_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "masterLayout": [el.to_dict() for el in self.master_layout],
            "canvasBackground": self.canvas_background,
            "overrides": {k: v.to_dict() for k, v in self.overrides.items()},
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProjectLayout":
        master = data["masterLayout"]
        if not isinstance(master, list):
            raise ValueError("masterLayout must be a list")
        overrides = data.get("overrides") or {}
        if not isinstance(overrides, Mapping):
            raise ValueError("overrides must be an object")
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            master_layout=[Element.from_dict(el) for el in master],
            canvas_background=str(data.get("canvasBackground") or "#ffffff"),
            overrides={str(k): FormatOverrideSet.from_dict(v) for k, v in overrides.items()},
            created_at=int(data.get("createdAt") or 0),
            updated_at=int(data.get("updatedAt") or 0),
        )
