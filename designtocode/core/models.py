"""Scene document model shared by the editor and the export pipeline."""

from __future__ import annotations

import math
import re
import uuid
from dataclasses import dataclass, field, replace
from typing import ClassVar, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .errors import InvalidInput

MISSING_ITEMS_MESSAGE = "No 'items' array provided in request body."

ELEMENT_TYPES = ("rect", "text", "image", "ellipse", "line", "pencil")

# ids become class names and archive paths
ELEMENT_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]+")
# characters that would let a colour escape its CSS declaration
_UNSAFE_COLOR_CHARS = re.compile(r"[;{}<>\"'\\\r\n]")


def new_element_id(prefix: str = "el-") -> str:
    return f"{prefix}{uuid.uuid4().hex[:10]}"


def _number(data: dict, key: str, default: float, element_id: str = "") -> float:
    value = data.get(key)
    if value is None:
        return float(default)
    if isinstance(value, bool):
        raise InvalidInput(f"Element {element_id!r}: '{key}' must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"Element {element_id!r}: '{key}' must be a number") from None
    if not math.isfinite(number):
        raise InvalidInput(f"Element {element_id!r}: '{key}' must be finite")
    return number


def _optional_number(value: object) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _text(data: dict, key: str, default: str) -> str:
    value = data.get(key)
    if value is None:
        return default
    return str(value)


def _optional_text(data: dict, key: str) -> Optional[str]:
    value = data.get(key)
    if value is None or value == "":
        return None
    return str(value)


def _color(data: dict, key: str, default: Optional[str], element_id: str) -> Optional[str]:
    value = _text(data, key, default) if default is not None else _optional_text(data, key)
    if value is not None and _UNSAFE_COLOR_CHARS.search(value):
        raise InvalidInput(f"Element {element_id!r}: '{key}' is not a valid colour")
    return value


def check_element_id(raw_id: object) -> str:
    element_id = "" if raw_id is None else str(raw_id)
    if not element_id.strip():
        raise InvalidInput("Each item needs a non-empty 'id'")
    if not ELEMENT_ID_PATTERN.fullmatch(element_id):
        raise InvalidInput(
            f"Element id {element_id!r} may only contain letters, digits, '-' and '_'"
        )
    return element_id


def _points(data: dict, element_id: str) -> Tuple[float, ...]:
    raw = data.get("points")
    if raw is None:
        return ()
    if not isinstance(raw, (list, tuple)):
        raise InvalidInput(f"Element {element_id!r}: 'points' must be a list of numbers")
    values = [_number({"p": item}, "p", 0.0, element_id) for item in raw]
    # flat x,y pairs; a dangling coordinate is dropped
    if len(values) % 2:
        values = values[:-1]
    return tuple(values)


@dataclass(frozen=True, slots=True)
class RectElement:
    type: ClassVar[str] = "rect"

    id: str
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    fill: str = "#ddd"
    rotate: float = 0.0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "fill": self.fill,
            "rotate": self.rotate,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RectElement":
        element_id = check_element_id(data.get("id"))
        # the editor's transformer writes `rotation`; older scenes use `rotate`
        rotate_key = "rotate" if data.get("rotate") is not None else "rotation"
        return cls(
            id=element_id,
            x=_number(data, "x", 0, element_id),
            y=_number(data, "y", 0, element_id),
            width=_number(data, "width", 0, element_id),
            height=_number(data, "height", 0, element_id),
            fill=_color(data, "fill", "#ddd", element_id),
            rotate=_number(data, rotate_key, 0, element_id),
        )


@dataclass(frozen=True, slots=True)
class TextElement:
    type: ClassVar[str] = "text"

    id: str
    x: float = 0.0
    y: float = 0.0
    text: str = ""
    font_size: float = 16.0
    fill: str = "#000"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "x": self.x,
            "y": self.y,
            "text": self.text,
            "fontSize": self.font_size,
            "fill": self.fill,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TextElement":
        element_id = check_element_id(data.get("id"))
        return cls(
            id=element_id,
            x=_number(data, "x", 0, element_id),
            y=_number(data, "y", 0, element_id),
            text=_text(data, "text", ""),
            font_size=_number(data, "fontSize", 16, element_id),
            fill=_color(data, "fill", "#000", element_id),
        )


@dataclass(frozen=True, slots=True)
class ImageElement:
    type: ClassVar[str] = "image"

    id: str
    x: float = 0.0
    y: float = 0.0
    width: float = 200.0
    height: float = 120.0
    src: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "src": self.src,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ImageElement":
        element_id = check_element_id(data.get("id"))
        return cls(
            id=element_id,
            x=_number(data, "x", 0, element_id),
            y=_number(data, "y", 0, element_id),
            width=_number(data, "width", 200, element_id),
            height=_number(data, "height", 120, element_id),
            src=_text(data, "src", ""),
        )


@dataclass(frozen=True, slots=True)
class EllipseElement:
    """Ellipse anchored at its centre, as the canvas library draws it."""

    type: ClassVar[str] = "ellipse"

    id: str
    x: float = 0.0
    y: float = 0.0
    radius_x: float = 60.0
    radius_y: float = 60.0
    fill: str = "#8b5cf6"
    stroke: Optional[str] = None
    stroke_width: float = 0.0
    rotate: float = 0.0

    def to_dict(self) -> dict:
        payload: dict = {
            "id": self.id,
            "type": self.type,
            "x": self.x,
            "y": self.y,
            "radiusX": self.radius_x,
            "radiusY": self.radius_y,
            "fill": self.fill,
            "strokeWidth": self.stroke_width,
            "rotate": self.rotate,
        }
        if self.stroke:
            payload["stroke"] = self.stroke
        return payload

    @classmethod
    def from_dict(cls, data: dict) -> "EllipseElement":
        element_id = check_element_id(data.get("id"))
        rotate_key = "rotate" if data.get("rotate") is not None else "rotation"
        return cls(
            id=element_id,
            x=_number(data, "x", 0, element_id),
            y=_number(data, "y", 0, element_id),
            radius_x=_number(data, "radiusX", 60, element_id),
            radius_y=_number(data, "radiusY", 60, element_id),
            fill=_color(data, "fill", "#8b5cf6", element_id),
            stroke=_color(data, "stroke", None, element_id),
            stroke_width=_number(data, "strokeWidth", 0, element_id),
            rotate=_number(data, rotate_key, 0, element_id),
        )


@dataclass(frozen=True, slots=True)
class LineElement:
    """Straight segment(s) through flat ``points``, offset by ``x``/``y``."""

    type: ClassVar[str] = "line"

    id: str
    x: float = 0.0
    y: float = 0.0
    points: Tuple[float, ...] = ()
    stroke: str = "#000"
    stroke_width: float = 3.0
    line_cap: Optional[str] = None

    def to_dict(self) -> dict:
        payload: dict = {
            "id": self.id,
            "type": self.type,
            "x": self.x,
            "y": self.y,
            "points": list(self.points),
            "stroke": self.stroke,
            "strokeWidth": self.stroke_width,
        }
        if self.line_cap:
            payload["lineCap"] = self.line_cap
        return payload

    @classmethod
    def from_dict(cls, data: dict) -> "LineElement":
        element_id = check_element_id(data.get("id"))
        return cls(
            id=element_id,
            x=_number(data, "x", 0, element_id),
            y=_number(data, "y", 0, element_id),
            points=_points(data, element_id),
            stroke=_color(data, "stroke", "#000", element_id),
            stroke_width=_number(data, "strokeWidth", 3, element_id),
            line_cap=_optional_text(data, "lineCap"),
        )


@dataclass(frozen=True, slots=True)
class PencilElement:
    type: ClassVar[str] = "pencil"

    id: str
    x: float = 0.0
    y: float = 0.0
    points: Tuple[float, ...] = ()
    stroke: str = "#000"
    stroke_width: float = 2.0
    tension: float = 0.0
    line_cap: Optional[str] = None
    line_join: Optional[str] = None

    def to_dict(self) -> dict:
        payload: dict = {
            "id": self.id,
            "type": self.type,
            "x": self.x,
            "y": self.y,
            "points": list(self.points),
            "stroke": self.stroke,
            "strokeWidth": self.stroke_width,
            "tension": self.tension,
        }
        if self.line_cap:
            payload["lineCap"] = self.line_cap
        if self.line_join:
            payload["lineJoin"] = self.line_join
        return payload

    @classmethod
    def from_dict(cls, data: dict) -> "PencilElement":
        element_id = check_element_id(data.get("id"))
        return cls(
            id=element_id,
            x=_number(data, "x", 0, element_id),
            y=_number(data, "y", 0, element_id),
            points=_points(data, element_id),
            stroke=_color(data, "stroke", "#000", element_id),
            stroke_width=_number(data, "strokeWidth", 2, element_id),
            tension=_number(data, "tension", 0, element_id),
            line_cap=_optional_text(data, "lineCap"),
            line_join=_optional_text(data, "lineJoin"),
        )


Element = Union[RectElement, TextElement, ImageElement, EllipseElement, LineElement, PencilElement]

_ELEMENT_CLASSES: Dict[str, type] = {
    "rect": RectElement,
    "text": TextElement,
    "image": ImageElement,
    "ellipse": EllipseElement,
    "line": LineElement,
    "pencil": PencilElement,
}


def element_from_dict(data: object) -> Element:
    if not isinstance(data, dict):
        raise InvalidInput("Each item must be an object")
    element_id = check_element_id(data.get("id"))
    kind = data.get("type")
    cls = _ELEMENT_CLASSES.get(kind) if isinstance(kind, str) else None
    if cls is None:
        raise InvalidInput(f"Element {element_id!r}: unsupported type {kind!r}")
    return cls.from_dict(data)


@dataclass(frozen=True)
class Scene:
    """An ordered set of elements drawn on a canvas of a given size.

    Element order is paint order. Canvas dimensions may be left unset; the
    unit transform substitutes the default canvas in that case.
    """

    elements: Tuple[Element, ...] = ()
    canvas_width: Optional[float] = None
    canvas_height: Optional[float] = None
    _index: Dict[str, int] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        elements = tuple(self.elements)
        index: Dict[str, int] = {}
        for position, element in enumerate(elements):
            check_element_id(element.id)
            if element.id in index:
                raise InvalidInput(f"Duplicate element id: {element.id!r}")
            index[element.id] = position
        object.__setattr__(self, "elements", elements)
        object.__setattr__(self, "_index", index)

    def __len__(self) -> int:
        return len(self.elements)

    def __iter__(self):
        return iter(self.elements)

    @property
    def ids(self) -> List[str]:
        return [element.id for element in self.elements]

    def get(self, element_id: str) -> Optional[Element]:
        position = self._index.get(element_id)
        return None if position is None else self.elements[position]

    def add(self, element: Element) -> "Scene":
        return self._with_elements(self.elements + (element,))

    def update(self, element_id: str, **changes: object) -> "Scene":
        if "id" in changes:
            raise InvalidInput("Element ids cannot be changed")
        position = self._index.get(element_id)
        if position is None:
            raise KeyError(element_id)
        try:
            patched = replace(self.elements[position], **changes)
            # rebuild through the parser so edits get the same checks as input
            patched = type(patched).from_dict(patched.to_dict())
        except TypeError as exc:
            raise InvalidInput(str(exc)) from None
        elements = list(self.elements)
        elements[position] = patched
        return self._with_elements(elements)

    def remove(self, element_id: str) -> "Scene":
        return self._with_elements(e for e in self.elements if e.id != element_id)

    def reorder(self, ids: Sequence[str]) -> "Scene":
        """Return the scene with elements in ``ids`` order.

        Unknown ids are ignored and elements not listed are dropped, matching
        the layer panel's drag-and-drop behaviour.
        """

        picked: List[Element] = []
        seen: set[str] = set()
        for element_id in ids:
            element = self.get(element_id)
            if element is None or element_id in seen:
                continue
            seen.add(element_id)
            picked.append(element)
        return self._with_elements(picked)

    def _with_elements(self, elements: Iterable[Element]) -> "Scene":
        return Scene(
            elements=tuple(elements),
            canvas_width=self.canvas_width,
            canvas_height=self.canvas_height,
        )

    def to_dict(self) -> dict:
        payload: dict = {"items": [element.to_dict() for element in self.elements]}
        if self.canvas_width is not None:
            payload["canvasWidth"] = self.canvas_width
        if self.canvas_height is not None:
            payload["canvasHeight"] = self.canvas_height
        return payload

    @classmethod
    def from_dict(cls, data: object) -> "Scene":
        if not isinstance(data, dict):
            raise InvalidInput(MISSING_ITEMS_MESSAGE)
        items = data.get("items")
        if items is None:
            items = data.get("elements")
        if items is None:
            raise InvalidInput(MISSING_ITEMS_MESSAGE)
        if not isinstance(items, list):
            raise InvalidInput("'items' must be an array")
        return cls(
            elements=tuple(element_from_dict(item) for item in items),
            canvas_width=_optional_number(data.get("canvasWidth")),
            canvas_height=_optional_number(data.get("canvasHeight")),
        )
