"""Pixel to relative-unit conversion for exported geometry."""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Context, Decimal
from typing import Optional, Tuple

from .models import EllipseElement, Element, ImageElement, RectElement

DEFAULT_CANVAS_WIDTH = 1100
DEFAULT_CANVAS_HEIGHT = 700

_TWO_PLACES = Decimal("0.01")
_CONTEXT = Context(prec=400)


def resolve_canvas(width: object, height: object) -> Tuple[float, float]:
    return (
        _positive_or(width, DEFAULT_CANVAS_WIDTH),
        _positive_or(height, DEFAULT_CANVAS_HEIGHT),
    )


def _positive_or(value: object, default: float) -> float:
    if value is None or isinstance(value, bool):
        return float(default)
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return float(default)
    if not math.isfinite(number) or number <= 0:
        return float(default)
    return number


def fixed2(value: float) -> str:
    # half away from zero on the exact binary value
    return str(Decimal(value).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP, context=_CONTEXT))


def percent(value: float, extent: float) -> str:
    return fixed2(value / extent * 100)


def viewport_width(size: float, canvas_width: float) -> str:
    return fixed2(size / canvas_width * 100)


@dataclass(frozen=True, slots=True)
class Placement:
    left: str
    top: str
    width: Optional[str] = None
    height: Optional[str] = None
    rotate: float = 0.0


def place(element: Element, canvas_width: object, canvas_height: object) -> Placement:
    cw, ch = resolve_canvas(canvas_width, canvas_height)
    if isinstance(element, EllipseElement):
        return Placement(
            left=percent(element.x - element.radius_x, cw),
            top=percent(element.y - element.radius_y, ch),
            width=percent(element.radius_x * 2, cw),
            height=percent(element.radius_y * 2, ch),
            rotate=element.rotate,
        )
    if isinstance(element, (RectElement, ImageElement)):
        return Placement(
            left=percent(element.x, cw),
            top=percent(element.y, ch),
            width=percent(element.width, cw),
            height=percent(element.height, ch),
            rotate=getattr(element, "rotate", 0.0),
        )
    return Placement(left=percent(element.x, cw), top=percent(element.y, ch))
