"""Tests for payload -> HTML projection."""

import pytest
from pydantic import ValidationError

from rendering.elements import (
    Border,
    CanvasLayout,
    Font,
    ImageElement,
    Position,
    ShapeElement,
    Size,
    TextElement,
)
from rendering.html import (
    format_number,
    mm_to_px,
    page_scale,
    css_value,
    page_size_mm,
    project_to_html,
    render_element,
    resolve_asset_url,
)
from rendering.payload import DesignSnapshot, render_payload
from tests.factories import design_document, image_node, shape_node, text_node

pytestmark = pytest.mark.unit

BOX = {"position": Position(x=10, y=20), "size": Size(width=100, height=40), "z_index": 1}


def _payload(*objects, **document):
    design = DesignSnapshot(design_data=design_document(*objects, **document))
    return render_payload(
        design, {"recipient_name": "Jane Doe", "recipient_email": "jane@example.com"}
    )


class TestPageGeometry:
    def test_mm_to_px(self):
        assert mm_to_px(25.4) == pytest.approx(96)

    def test_page_sizes(self):
        assert page_size_mm("landscape") == (297, 210)
        assert page_size_mm("portrait") == (210, 297)
        assert page_size_mm("weird") == (297, 210)

    def test_scale_formula(self):
        layout = CanvasLayout(width=1684, height=1191, orientation="landscape")
        scale_x, scale_y = page_scale(layout)
        assert scale_x == pytest.approx(297 * 96 / 25.4 / 1684)
        assert scale_y == pytest.approx(210 * 96 / 25.4 / 1191)

    def test_zero_sized_canvas_does_not_divide_by_zero(self):
        layout = CanvasLayout(width=0, height=0, orientation="portrait")
        scale_x, scale_y = page_scale(layout)
        assert scale_x == pytest.approx(mm_to_px(210))
        assert scale_y == pytest.approx(mm_to_px(297))


class TestFormatNumber:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (10, "10"),
            (10.5, "10.5"),
            (0.1 + 0.2, "0.3"),
            (-0.0, "0"),
            (-0.0000001, "0"),
            (1 / 3, "0.333333"),
        ],
    )
    def test_format(self, value, expected):
        assert format_number(value) == expected


class TestRenderElement:
    def test_text_element(self):
        element = TextElement(
            **BOX,
            content="Jane <Doe>",
            template="{{recipient_name}}",
            font=Font(family="Lora", size=24, weight="bold", color="#222",
                      line_height=1.5, letter_spacing=2),
            text_align="center",
        )

        html = render_element(element, "Inter")

        assert 'class="element element--text"' in html
        assert "<span>Jane &lt;Doe&gt;</span>" in html
        assert "left: 10px" in html
        assert "top: 20px" in html
        assert "font-family: Lora" in html
        assert "font-size: 24px" in html
        assert "font-weight: bold" in html
        assert "line-height: 1.5" in html
        assert "letter-spacing: 2px" in html
        assert "text-align: center" in html

    def test_text_falls_back_to_default_font(self):
        element = TextElement(**BOX, content="x", template="x", font=Font())
        html = render_element(element, "Inter")
        assert "font-family: Inter" in html
        assert "font-weight" not in html

    def test_image_element(self):
        element = ImageElement(**BOX, image_url="https://x/logo.png?a=1&b=2")
        html = render_element(element, "Inter")
        assert '<img src="https://x/logo.png?a=1&amp;b=2" alt="">' in html

    def test_dashed_border(self):
        element = ShapeElement(
            **BOX, border=Border(color="#000", width=3, style="dashed")
        )
        assert "border: 3px dashed #000" in render_element(element, "Inter")

    def test_solid_border_with_radius(self):
        element = ShapeElement(
            **BOX, border=Border(color="#000", width=1, radius=6), fill="#eee"
        )
        html = render_element(element, "Inter")
        assert "border: 1px solid #000" in html
        assert "border-radius: 6px" in html
        assert "background-color: #eee" in html

    def test_circle_is_round(self):
        element = ShapeElement(**BOX, shape="circle")
        assert "border-radius: 50%" in render_element(element, "Inter")

    def test_rotation_and_clamped_opacity(self):
        element = ShapeElement(**BOX, rotation=-12.5, opacity=1.7)
        html = render_element(element, "Inter")
        assert "transform: rotate(-12.5deg)" in html
        assert "opacity: 1" in html

    def test_style_values_are_escaped(self):
        element = ShapeElement(**BOX, fill='red" onload="x')
        html = render_element(element, "Inter")
        assert 'onload="x' not in html
        assert "&quot;" in html

    @pytest.mark.parametrize(
        "fill",
        [
            "red; background-image: url(https://evil/x.png)",
            "red} .page { display: none",
            "red /* swallow the rest",
        ],
    )
    def test_values_that_inject_declarations_are_dropped(self, fill):
        element = ShapeElement(**BOX, fill=fill, background_color="#abc")
        html = render_element(element, "Inter")
        assert "evil" not in html
        assert "display: none" not in html
        assert "/*" not in html
        assert "background-color: #abc" in html

    def test_injected_text_styles_fall_back_to_defaults(self):
        element = TextElement(
            **BOX,
            content="x",
            template="x",
            font=Font(family="Lora; color: red", color="blue;x:y", weight="700;"),
            text_align="center;position:fixed",
        )
        html = render_element(element, "Inter")
        assert "font-family: Inter" in html
        assert "color: #111827" in html
        assert "text-align: left" in html
        assert "font-weight" not in html
        assert "position:fixed" not in html

    def test_relative_image_resolves_against_base(self):
        element = ImageElement(**BOX, image_url="/storage/seal.png")
        html = render_element(element, "Inter", "https://certs.example.com/app")
        assert 'src="https://certs.example.com/app/storage/seal.png"' in html


class TestCssValue:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("#fff", "#fff"),
            ("  rgba(0, 0, 0, 0.5) ", "rgba(0, 0, 0, 0.5)"),
            (700, "700"),
            (None, "dflt"),
            ("", "dflt"),
            ("red;", "dflt"),
            ("a{b}", "dflt"),
            ("red /* x */", "dflt"),
        ],
    )
    def test_css_value(self, value, expected):
        assert css_value(value, "dflt") == expected


class TestResolveAssetUrl:
    @pytest.mark.parametrize(
        "value,base,expected",
        [
            ("https://cdn/x.png", "https://app/", "https://cdn/x.png"),
            ("data:image/png;base64,AAAA", "https://app/", "data:image/png;base64,AAAA"),
            ("storage/x.png", "https://app", "https://app/storage/x.png"),
            ("/storage/x.png", "https://app/base/", "https://app/base/storage/x.png"),
            ("storage/x.png", "", "storage/x.png"),
            ("storage/x.png", None, "storage/x.png"),
            ("", "https://app/", None),
            (None, "https://app/", None),
        ],
    )
    def test_resolve(self, value, base, expected):
        assert resolve_asset_url(value, base) == expected


class TestProjectToHtml:
    def test_scenario_page(self):
        payload = _payload(
            text_node("Certificate for {{recipient_name}}"),
            shape_node(strokeWidth=2, stroke="#333", strokeDashArray=[4, 2]),
            image_node(src=None),
        )

        html = project_to_html(payload)
        scale_x, scale_y = page_scale(payload.layout)

        assert html.startswith("<!DOCTYPE html>")
        assert "<title>Certificate - Jane Doe</title>" in html
        assert "size: 297mm 210mm" in html
        assert (
            f"transform: scale({format_number(scale_x)}, {format_number(scale_y)})"
            in html
        )
        assert "Certificate for Jane Doe" in html
        assert "border: 2px dashed #333" in html
        assert 'class="element element--image"' not in html

    def test_accepts_persisted_dict(self):
        payload = _payload(text_node("Hello"))
        assert project_to_html(payload.to_dict()) == project_to_html(payload)

    def test_portrait_page(self):
        payload = _payload(width=800, height=1200)
        assert "size: 210mm 297mm" in project_to_html(payload)

    def test_background_image(self):
        payload = _payload(backgroundImage={"src": "https://x/bg.png"})
        assert "background-image: url(&#x27;https://x/bg.png&#x27;)" in project_to_html(
            payload
        )

    def test_invalid_dict_raises(self):
        with pytest.raises(ValidationError):
            project_to_html({"elements": []})

    def test_relative_background_image_resolves_against_base(self):
        payload = _payload(
            backgroundImage={"src": "storage/bg.png"},
            background="#fff; background-image: url(https://evil/x.png)",
        )

        html = project_to_html(payload, asset_base_url="https://certs.example.com/")

        assert (
            "background-image: url(&#x27;https://certs.example.com/storage/bg.png&#x27;)"
            in html
        )
        assert "evil" not in html
        assert "background-color: #ffffff" in html

    def test_relative_image_kept_without_base(self):
        payload = _payload(image_node(src="storage/seal.png"))
        assert '<img src="storage/seal.png" alt="">' in project_to_html(payload)
