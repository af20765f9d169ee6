"""Scene to HTML/CSS code generation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Tuple

from jinja2 import DictLoader, Environment, select_autoescape
from markupsafe import Markup, escape

from .models import (
    EllipseElement,
    Element,
    ImageElement,
    LineElement,
    PencilElement,
    RectElement,
    Scene,
    TextElement,
    check_element_id,
)
from .units import place, resolve_canvas, viewport_width

logger = logging.getLogger(__name__)

CLASS_PREFIX = "el-"
ASSETS_DIR = "assets"
INDEX_FILENAME = "index.html"
STYLESHEET_FILENAME = "styles.css"

BASE_CSS_RULES: Tuple[str, ...] = (
    "*,*::before,*::after{box-sizing:border-box}",
    "html, body { height: 100%; margin: 0; padding: 0; }",
    "body{font-family:Inter,system-ui,Arial,Helvetica,sans-serif}",
    "#page{position:relative;width:100vw;height:100vh;background:#fff;overflow:hidden;}",
    ".abs-el{position:absolute;transform-origin: top left;}",
)

PAGE_TEMPLATE = """<!doctype html>
<html>
<head>
<meta charset="utf-8" />
<meta name="viewport" content="width=device-width,initial-scale=1" />
<link rel="stylesheet" href="{{ stylesheet_path }}" />
<title>{{ title }}</title>
</head>
<body>
  <div id="page">
{% for node in nodes %}{{ node }}
{% endfor %}
  </div>
</body>
</html>
"""


def class_name(element_id: str) -> str:
    return f"{CLASS_PREFIX}{check_element_id(element_id)}"


def asset_path(element_id: str) -> str:
    return f"{ASSETS_DIR}/{check_element_id(element_id)}.png"


def escape_text(text: str) -> str:
    """Escape the angle brackets so user text cannot open or close tags."""

    return text.replace("<", "&lt;").replace(">", "&gt;")


def format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


@dataclass(frozen=True, slots=True)
class AssetRequest:
    id: str
    src: str

    @property
    def path(self) -> str:
        return asset_path(self.id)


@dataclass(slots=True)
class Emission:
    markup: str
    stylesheet: str
    asset_requests: List[AssetRequest] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def _env() -> Environment:
    return Environment(
        loader=DictLoader({"index.html": PAGE_TEMPLATE}),
        autoescape=select_autoescape(["html", "xml"]),
    )


def emit(scene: Scene, title: str = "Exported Design") -> Emission:
    cw, ch = resolve_canvas(scene.canvas_width, scene.canvas_height)
    nodes: List[str] = []
    rules: List[str] = list(BASE_CSS_RULES)
    requests: List[AssetRequest] = []
    skipped: List[str] = []

    for element in scene.elements:
        rendered = _render_element(element, cw, ch)
        if rendered is None:
            logger.warning("Skipping %s element %r: not exportable", element.type, element.id)
            skipped.append(element.id)
            continue
        node, rule = rendered
        nodes.append(node)
        rules.append(rule)
        if isinstance(element, ImageElement):
            requests.append(AssetRequest(id=element.id, src=element.src))

    template = _env().get_template("index.html")
    markup = template.render(
        title=title,
        stylesheet_path=STYLESHEET_FILENAME,
        nodes=[Markup(node) for node in nodes],
    ).strip()
    return Emission(
        markup=markup,
        stylesheet="\n".join(rules),
        asset_requests=requests,
        skipped=skipped,
    )


def _render_element(element: Element, cw: float, ch: float) -> Tuple[str, str] | None:
    if isinstance(element, RectElement):
        return _render_rect(element, cw, ch)
    if isinstance(element, TextElement):
        return _render_text(element, cw, ch)
    if isinstance(element, ImageElement):
        return _render_image(element, cw, ch)
    if isinstance(element, EllipseElement):
        return _render_ellipse(element, cw, ch)
    if isinstance(element, LineElement):
        return _render_line(element, cw, ch)
    if isinstance(element, PencilElement):
        # freehand strokes are arbitrary paths and are not exported
        return None
    raise TypeError(f"Unhandled element type: {type(element).__name__}")


def _render_rect(element: RectElement, cw: float, ch: float) -> Tuple[str, str]:
    cls = class_name(element.id)
    box = place(element, cw, ch)
    node = f'<div class="abs-el {cls}"></div>'
    rule = (
        f".{cls}{{left:{box.left}%;top:{box.top}%;width:{box.width}%;height:{box.height}%;"
        f"background:{element.fill};transform: rotate({format_number(box.rotate)}deg);}}"
    )
    return node, rule


def _render_text(element: TextElement, cw: float, ch: float) -> Tuple[str, str]:
    cls = class_name(element.id)
    box = place(element, cw, ch)
    node = f'<div class="abs-el {cls}">{escape_text(element.text)}</div>'
    rule = (
        f".{cls}{{left:{box.left}%;top:{box.top}%;"
        f"font-size:{viewport_width(element.font_size, cw)}vw;color:{element.fill};}}"
    )
    return node, rule


def _render_image(element: ImageElement, cw: float, ch: float) -> Tuple[str, str]:
    cls = class_name(element.id)
    box = place(element, cw, ch)
    node = f'<img class="abs-el {cls}" src="{asset_path(element.id)}" alt="" />'
    rule = f".{cls}{{left:{box.left}%;top:{box.top}%;width:{box.width}%;height:{box.height}%;}}"
    return node, rule


def _render_ellipse(element: EllipseElement, cw: float, ch: float) -> Tuple[str, str]:
    cls = class_name(element.id)
    box = place(element, cw, ch)
    parts = [
        f"left:{box.left}%",
        f"top:{box.top}%",
        f"width:{box.width}%",
        f"height:{box.height}%",
        "border-radius:50%",
        f"background:{element.fill}",
    ]
    if element.stroke and element.stroke_width > 0:
        parts.append(f"border:{viewport_width(element.stroke_width, cw)}vw solid {element.stroke}")
    parts.append("transform-origin:center")
    parts.append(f"transform: rotate({format_number(box.rotate)}deg)")
    node = f'<div class="abs-el {cls}"></div>'
    return node, f".{cls}{{{';'.join(parts)};}}"


def _render_line(element: LineElement, cw: float, ch: float) -> Tuple[str, str]:
    cls = class_name(element.id)
    points = " ".join(
        f"{format_number(px + element.x)},{format_number(py + element.y)}"
        for px, py in _pairs(element.points)
    )
    attrs = [
        f'points="{points}"',
        'fill="none"',
        f'stroke="{escape(element.stroke)}"',
        f'stroke-width="{format_number(element.stroke_width)}"',
    ]
    if element.line_cap:
        attrs.append(f'stroke-linecap="{escape(element.line_cap)}"')
    node = (
        f'<svg class="abs-el {cls}" viewBox="0 0 {format_number(cw)} {format_number(ch)}" '
        f'preserveAspectRatio="none"><polyline {" ".join(attrs)} /></svg>'
    )
    rule = f".{cls}{{left:0%;top:0%;width:100%;height:100%;overflow:visible;pointer-events:none;}}"
    return node, rule


def _pairs(values: Iterable[float]) -> Iterable[Tuple[float, float]]:
    it = iter(values)
    return zip(it, it)


def write_site(emission: Emission, assets: dict[str, bytes], output_dir: str | Path) -> None:
    """Write the bundle as a plain directory instead of an archive."""

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    (output_dir / INDEX_FILENAME).write_text(emission.markup, encoding="utf-8")
    (output_dir / STYLESHEET_FILENAME).write_text(emission.stylesheet, encoding="utf-8")
    if not assets:
        return
    assets_dir = output_dir / ASSETS_DIR
    assets_dir.mkdir(parents=True, exist_ok=True)
    for request in emission.asset_requests:
        data = assets.get(request.id)
        if data is None:
            continue
        (output_dir / request.path).write_bytes(data)
