"""Raw design node -> normalized render element.

Every node resolves to absolute canvas-space geometry plus a block that
depends on its classified kind. Nodes that carry nothing renderable (an
image without a source) produce no element at all.
"""

import math
from collections.abc import Iterable, Mapping
from typing import Any

from rendering.elements import (
    Border,
    Element,
    Font,
    ImageElement,
    Position,
    ShapeElement,
    Size,
    TextElement,
)
from rendering.node_types import RawNode
from rendering.templates import render_template, template_source

DEFAULT_FONT_SIZE = 16.0
DEFAULT_FONT_WEIGHT = 400
DEFAULT_TEXT_COLOR = "#111827"
DEFAULT_LINE_HEIGHT = 1.2

# Fallback box estimates for nodes saved without explicit dimensions
_FALLBACK_CHAR_WIDTH_RATIO = 0.5
_FALLBACK_LINE_HEIGHT_RATIO = 1.2


def _finite_or(value: float, default: float) -> float:
    return value if math.isfinite(value) else default


def _resolve_size(node: RawNode) -> Size:
    scale_x = node.number("scaleX", 1.0) or 1.0
    scale_y = node.number("scaleY", 1.0) or 1.0
    # Products of huge finite values overflow to inf
    width = _finite_or(node.number("width") * scale_x, 0.0)
    height = _finite_or(node.number("height") * scale_y, 0.0)
    font_size = node.number("fontSize", DEFAULT_FONT_SIZE)

    if width <= 0:
        width = _finite_or(
            font_size * max(1.0, len(node.text()) * _FALLBACK_CHAR_WIDTH_RATIO),
            DEFAULT_FONT_SIZE,
        )

    if height <= 0:
        height = _finite_or(
            font_size * _FALLBACK_LINE_HEIGHT_RATIO, DEFAULT_FONT_SIZE
        )

    return Size(width=width, height=height)


def _base_fields(node: RawNode, z_index: int) -> dict[str, Any]:
    return {
        "position": Position(x=node.number("left"), y=node.number("top")),
        "size": _resolve_size(node),
        "z_index": z_index,
        "opacity": node.number("opacity", 1.0),
        "rotation": node.number("angle", 0.0),
        "background_color": node.string("backgroundColor"),
    }


def _font_weight(node: RawNode) -> str | int | float | None:
    weight = node.get("fontWeight", DEFAULT_FONT_WEIGHT)
    if isinstance(weight, bool):
        return DEFAULT_FONT_WEIGHT
    if weight is None or isinstance(weight, (str, int, float)):
        return weight
    return DEFAULT_FONT_WEIGHT


def _letter_spacing(char_spacing: float, font_size: float) -> float | None:
    # charSpacing is expressed in 1/1000 em
    if char_spacing == 0:
        return None
    spacing = round((char_spacing / 1000) * font_size, 2)
    return spacing if math.isfinite(spacing) else None


def _text_element(
    node: RawNode, base: dict[str, Any], values: Mapping[str, str | None]
) -> TextElement:
    template = template_source(node.mapping)
    font_size = node.number("fontSize", DEFAULT_FONT_SIZE)

    color = node.get("fill", DEFAULT_TEXT_COLOR)
    font = Font(
        family=node.string("fontFamily"),
        size=font_size,
        weight=_font_weight(node),
        style=node.string("fontStyle"),
        color=color if isinstance(color, str) else None,
        line_height=node.optional_number("lineHeight", DEFAULT_LINE_HEIGHT),
        letter_spacing=_letter_spacing(node.number("charSpacing"), font_size),
    )

    return TextElement(
        **base,
        content=render_template(template, values),
        template=template,
        font=font,
        text_align=node.string("textAlign") or "left",
        transform=(node.string("textTransform") or "none").lower(),
    )


def _image_element(node: RawNode, base: dict[str, Any]) -> ImageElement | None:
    src = node.get("src")
    if not isinstance(src, str) or src == "":
        return None
    return ImageElement(**base, image_url=src)


def _shape_element(node: RawNode, base: dict[str, Any]) -> ShapeElement:
    border = None
    stroke_width = node.number("strokeWidth")
    if stroke_width > 0:
        radius = node.optional_number("rx")
        if radius is None:
            radius = node.optional_number("ry")
        border = Border(
            color=node.string("stroke"),
            width=stroke_width,
            style="dashed" if node.get("strokeDashArray") else "solid",
            radius=radius,
        )

    return ShapeElement(
        **base,
        shape=node.raw_type or "rect",
        border=border,
        fill=node.string("fill"),
    )


def transform_node(
    data: Mapping[str, Any], z_index: int, values: Mapping[str, str | None]
) -> Element | None:
    """Convert one raw node into an element.

    Args:
        data: Raw node mapping from the (template-rendered) design document
        z_index: 1-based stacking position for the element
        values: Variable value map used to render text templates

    Returns:
        The element, or None when the node carries nothing renderable
    """
    node = RawNode(data)
    base = _base_fields(node, z_index)

    match node.kind:
        case "text":
            return _text_element(node, base, values)
        case "image":
            return _image_element(node, base)
        case "shape":
            return _shape_element(node, base)
    return None


def transform_objects(
    objects: Iterable[Any] | None, values: Mapping[str, str | None]
) -> list[Element]:
    """Convert a design's ``objects`` list into ordered elements.

    Document order is stacking order. Dropped nodes leave no gap: ``z_index``
    runs 1..N over the elements actually returned.
    """
    if not isinstance(objects, (list, tuple)):
        return []

    elements: list[Element] = []
    for data in objects:
        if not isinstance(data, Mapping):
            continue
        element = transform_node(data, len(elements) + 1, values)
        if element is not None:
            elements.append(element)

    return elements
