"""Certificate payload -> fixed-page HTML for rasterization.

The canvas is laid out at its native pixel size and scaled onto the physical
A4 page with a single ``scale(sx, sy)`` transform from the top-left corner,
so element geometry is emitted exactly as stored in the payload.
"""

import html
from collections.abc import Mapping
from typing import Any
from urllib.parse import urljoin

from rendering.elements import (
    CanvasLayout,
    CertificatePayload,
    Element,
    ImageElement,
    ShapeElement,
    TextElement,
)
from rendering.layout import DEFAULT_TEXT_COLOR
from rendering.payload import DEFAULT_BACKGROUND_COLOR, DEFAULT_FONT_FAMILY

PAGE_SIZES_MM: dict[str, tuple[int, int]] = {
    "landscape": (297, 210),
    "portrait": (210, 297),
}

ROUND_SHAPES = frozenset({"circle", "ellipse"})

# Characters that would end a declaration or open a rule inside style=""
_CSS_BREAKOUT_CHARS = frozenset(";{}")

_PAGE_CSS = """
@page {{
  size: {page_width}mm {page_height}mm;
  margin: 0;
}}

* {{
  box-sizing: border-box;
}}

html,
body {{
  margin: 0;
  padding: 0;
  -webkit-print-color-adjust: exact;
  print-color-adjust: exact;
}}

.page {{
  position: relative;
  width: {page_width}mm;
  height: {page_height}mm;
  overflow: hidden;
}}

.canvas {{
  position: absolute;
  top: 0;
  left: 0;
  transform-origin: top left;
}}

.element {{
  position: absolute;
  transform-origin: top left;
  overflow: visible;
}}

.element--text span {{
  display: block;
  width: 100%;
  white-space: pre-wrap;
  word-break: break-word;
}}

.element--image img {{
  display: block;
  width: 100%;
  height: 100%;
  object-fit: contain;
}}
""".strip()


def mm_to_px(mm: float) -> float:
    """Convert millimetres to CSS pixels (96 px per inch)."""
    return mm * 96 / 25.4


def page_size_mm(orientation: str) -> tuple[int, int]:
    return PAGE_SIZES_MM.get(orientation, PAGE_SIZES_MM["landscape"])


def page_scale(layout: CanvasLayout) -> tuple[float, float]:
    """Canvas-to-page scale factors ``(scale_x, scale_y)``."""
    page_width, page_height = page_size_mm(layout.orientation)
    scale_x = mm_to_px(page_width) / max(1, layout.width)
    scale_y = mm_to_px(page_height) / max(1, layout.height)
    return scale_x, scale_y


def format_number(value: float) -> str:
    """Format a CSS number without floating point noise.

    At most six decimals are kept, trailing zeros are trimmed and any
    flavour of zero (``-0``, ``0.000000``) collapses to ``0``.
    """
    formatted = f"{value:.6f}".rstrip("0").rstrip(".")
    if formatted in ("", "-0", "0"):
        return "0"
    return formatted


def css_value(value: Any, default: str | None = None) -> str | None:
    """A stored style value, or ``default`` if it could inject declarations."""
    if value is None:
        return default
    text = str(value).strip()
    if not text or "/*" in text or any(c in _CSS_BREAKOUT_CHARS for c in text):
        return default
    return text


def resolve_asset_url(value: str | None, base_url: str | None = None) -> str | None:
    """Resolve a stored asset reference for a page loaded without a base URL.

    Absolute URLs (anything with ``://``) and ``data:`` URIs are kept as
    they are. Other values are treated as paths below ``base_url``; without
    a base they are returned unchanged.
    """
    if not value:
        return None
    if "://" in value or value.startswith("data:") or not base_url:
        return value
    return urljoin(base_url.rstrip("/") + "/", value.lstrip("/"))


def _css_url(value: str) -> str:
    return (
        value.replace("\\", "%5C")
        .replace("'", "%27")
        .replace("\n", "%0A")
        .replace("\r", "%0D")
    )


def _style_attribute(declarations: list[str]) -> str:
    return html.escape("; ".join(declarations) + ";", quote=True)


def _box_declarations(element: Element) -> list[str]:
    opacity = min(1.0, max(0.0, element.opacity))
    declarations = [
        f"left: {format_number(element.position.x)}px",
        f"top: {format_number(element.position.y)}px",
        f"width: {format_number(element.size.width)}px",
        f"height: {format_number(element.size.height)}px",
        f"z-index: {element.z_index}",
        f"opacity: {format_number(opacity)}",
    ]
    if element.rotation:
        declarations.append(f"transform: rotate({format_number(element.rotation)}deg)")
    return declarations


def _text_declarations(element: TextElement, default_font: str) -> list[str]:
    font = element.font
    declarations = [
        f"font-family: {css_value(font.family, default_font)}",
        f"font-size: {format_number(font.size)}px",
        f"color: {css_value(font.color, DEFAULT_TEXT_COLOR)}",
        f"text-align: {css_value(element.text_align, 'left')}",
        f"text-transform: {css_value(element.transform, 'none')}",
    ]
    weight = css_value(font.weight)
    if weight is not None:
        declarations.append(f"font-weight: {weight}")
    style = css_value(font.style)
    if style:
        declarations.append(f"font-style: {style}")
    if font.line_height is not None:
        declarations.append(f"line-height: {format_number(font.line_height)}")
    if font.letter_spacing is not None:
        declarations.append(f"letter-spacing: {format_number(font.letter_spacing)}px")
    background = css_value(element.background_color)
    if background:
        declarations.append(f"background-color: {background}")
    return declarations


def _shape_declarations(element: ShapeElement) -> list[str]:
    declarations = []

    background = css_value(element.fill) or css_value(element.background_color)
    if background:
        declarations.append(f"background-color: {background}")

    border = element.border
    if border is not None:
        color = css_value(border.color, DEFAULT_TEXT_COLOR)
        declarations.append(
            f"border: {format_number(border.width)}px {border.style} {color}"
        )

    if element.shape in ROUND_SHAPES:
        declarations.append("border-radius: 50%")
    elif border is not None and border.radius:
        declarations.append(f"border-radius: {format_number(border.radius)}px")

    return declarations


def render_element(
    element: Element, default_font: str, asset_base_url: str | None = None
) -> str:
    """Render one element as an absolutely positioned box."""
    declarations = _box_declarations(element)
    inner = ""

    match element:
        case TextElement():
            declarations.extend(_text_declarations(element, default_font))
            inner = f"<span>{html.escape(element.content)}</span>"
        case ImageElement():
            background = css_value(element.background_color)
            if background:
                declarations.append(f"background-color: {background}")
            image_url = resolve_asset_url(element.image_url, asset_base_url) or ""
            src = html.escape(image_url, quote=True)
            inner = f'<img src="{src}" alt="">'
        case ShapeElement():
            declarations.extend(_shape_declarations(element))

    return (
        f'<div class="element element--{element.type}" '
        f'style="{_style_attribute(declarations)}">{inner}</div>'
    )


def _coerce_payload(
    payload: CertificatePayload | Mapping[str, Any],
) -> CertificatePayload:
    if isinstance(payload, CertificatePayload):
        return payload
    return CertificatePayload.model_validate(dict(payload))


def project_to_html(
    payload: CertificatePayload | Mapping[str, Any],
    *,
    asset_base_url: str | None = None,
) -> str:
    """Project a certificate payload onto a single fixed-size HTML page.

    Args:
        payload: The payload, or its persisted dict form
        asset_base_url: Base that relative image and background URLs are
            resolved against; the rasterizer loads the page without one

    Returns:
        A complete HTML document ready for rasterization

    Raises:
        pydantic.ValidationError: If a persisted payload does not validate
    """
    payload = _coerce_payload(payload)
    layout = payload.layout

    page_width, page_height = page_size_mm(layout.orientation)
    scale_x, scale_y = page_scale(layout)
    default_font = css_value(layout.default_font_family, DEFAULT_FONT_FAMILY)
    background_color = css_value(layout.background_color, DEFAULT_BACKGROUND_COLOR)

    canvas_declarations = [
        f"width: {max(1, layout.width)}px",
        f"height: {max(1, layout.height)}px",
        f"transform: scale({format_number(scale_x)}, {format_number(scale_y)})",
        f"background-color: {background_color}",
        f"font-family: {default_font}",
    ]
    background_image = resolve_asset_url(layout.background_image, asset_base_url)
    if background_image:
        canvas_declarations.extend(
            [
                f"background-image: url('{_css_url(background_image)}')",
                "background-size: cover",
                "background-position: center",
            ]
        )

    body = "\n".join(
        render_element(element, default_font, asset_base_url)
        for element in payload.elements
    )

    recipient = payload.variables.get("recipient_name") or ""
    title = "Certificate" if not recipient else f"Certificate - {recipient}"
    css = _PAGE_CSS.format(page_width=page_width, page_height=page_height)

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{html.escape(title)}</title>
<style>
{css}
</style>
</head>
<body>
<div class="page">
<div class="canvas" style="{_style_attribute(canvas_declarations)}">
{body}
</div>
</div>
</body>
</html>
"""
