"""Design-to-render pipeline.

Pure functions only (no I/O, no database):
- Variable resolution from recipient identity and attributes
- ``{{variable}}`` template rendering over the raw design document
- Raw node -> normalized element transformation
- Certificate payload assembly
- Payload -> fixed-page HTML projection for rasterization

Services persist payloads and hand the projected HTML to a rasterizer.
"""

from rendering.elements import CertificatePayload, Element
from rendering.html import page_scale, project_to_html
from rendering.payload import DesignSnapshot, build_certificate_payload, render_payload
from rendering.templates import detect_design_variables, render_template
from rendering.variables import build_variable_values

__all__ = [
    "CertificatePayload",
    "DesignSnapshot",
    "Element",
    "build_certificate_payload",
    "build_variable_values",
    "detect_design_variables",
    "page_scale",
    "project_to_html",
    "render_payload",
    "render_template",
]
