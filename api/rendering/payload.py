"""Certificate payload assembly.

This is the single entry point of the render core: a design snapshot plus
one recipient in, a fully resolved :class:`CertificatePayload` out. The
payload is a pure function of its inputs; only ``metadata.generated_at``
differs between two generations from the same design and recipient.
"""

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from rendering.elements import CanvasLayout, CertificatePayload, PayloadMetadata
from rendering.layout import transform_objects
from rendering.templates import render_design
from rendering.variables import VariableValues, values_for_recipient

# A4 landscape at ~200 dpi
DEFAULT_CANVAS_WIDTH = 1684
DEFAULT_CANVAS_HEIGHT = 1191
DEFAULT_BACKGROUND_COLOR = "#ffffff"
DEFAULT_FONT_FAMILY = 'Inter, "Helvetica Neue", Helvetica, Arial, sans-serif'


class DesignSnapshot(BaseModel):
    """Read-only view of a design at generation time."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str | None = None
    name: str | None = None
    design_data: Any = None
    settings: Any = None


def _canvas_dimension(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        dimension = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default
    return dimension if dimension > 0 else default


def resolve_orientation(settings: Mapping[str, Any], width: int, height: int) -> str:
    """Explicit design setting wins; otherwise derive from the canvas shape."""
    explicit = settings.get("orientation")
    if isinstance(explicit, str) and explicit.strip().lower() in (
        "landscape",
        "portrait",
    ):
        return explicit.strip().lower()
    return "landscape" if width >= height else "portrait"


def _background_image(design_data: Mapping[str, Any]) -> str | None:
    background_image = design_data.get("backgroundImage")
    if isinstance(background_image, Mapping):
        src = background_image.get("src")
        if isinstance(src, str) and src:
            return src
    return None


def build_certificate_payload(
    design: DesignSnapshot,
    values: VariableValues,
    *,
    certificate_id: str | None = None,
    campaign_id: str | None = None,
    generated_at: datetime | None = None,
) -> CertificatePayload | None:
    """Assemble the payload for one certificate.

    Args:
        design: Design snapshot (raw document + settings)
        values: Variable value map for the recipient
        certificate_id: Certificate the payload belongs to
        campaign_id: Campaign the certificate was issued under, if any
        generated_at: Generation timestamp (defaults to now, UTC)

    Returns:
        The payload, or None when the design has nothing to render yet
    """
    design_data = design.design_data
    if not isinstance(design_data, Mapping) or not design_data:
        return None

    settings = design.settings if isinstance(design.settings, Mapping) else {}

    width = _canvas_dimension(design_data.get("width"), DEFAULT_CANVAS_WIDTH)
    height = _canvas_dimension(design_data.get("height"), DEFAULT_CANVAS_HEIGHT)

    background_color = design_data.get("background", DEFAULT_BACKGROUND_COLOR)
    font_family = settings.get("default_font_family") or DEFAULT_FONT_FAMILY

    rendered = render_design(design_data, values)
    elements = transform_objects(rendered.get("objects"), values)

    layout = CanvasLayout(
        width=width,
        height=height,
        orientation=resolve_orientation(settings, width, height),
        background_color=background_color
        if isinstance(background_color, str)
        else None,
        background_image=_background_image(design_data),
        default_font_family=str(font_family),
    )

    timestamp = generated_at or datetime.now(UTC)

    return CertificatePayload(
        layout=layout,
        elements=elements,
        fabric=rendered,
        variables=dict(values),
        metadata=PayloadMetadata(
            certificate_id=certificate_id,
            campaign_id=campaign_id,
            design_id=design.id,
            design_name=design.name,
            generated_at=timestamp.isoformat(),
        ),
    )


def render_payload(
    design: DesignSnapshot,
    recipient: Any,
    *,
    certificate_id: str | None = None,
    campaign_id: str | None = None,
) -> CertificatePayload | None:
    """Resolve variables for ``recipient`` and build the certificate payload.

    ``recipient`` is a mapping or object with ``recipient_name``,
    ``recipient_email`` and optional ``recipient_data``.
    """
    values = values_for_recipient(recipient)
    return build_certificate_payload(
        design,
        values,
        certificate_id=certificate_id,
        campaign_id=campaign_id,
    )
