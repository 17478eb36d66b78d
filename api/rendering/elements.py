"""Normalized render elements and the certificate payload.

Elements are the render-agnostic form of raw canvas nodes: absolute pixel
geometry in canvas space plus a small type-specific block. They are modeled
as a tagged union on ``type`` so the persisted payload can be validated back
into the right class.
"""

import copy
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ElementType = Literal["text", "image", "shape"]
Orientation = Literal["landscape", "portrait"]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class Position(_Frozen):
    x: float = 0.0
    y: float = 0.0


class Size(_Frozen):
    width: float
    height: float


class Font(_Frozen):
    """Text styling. Sub-fields whose source value is null are left unset."""

    family: str | None = None
    size: float = 16.0
    weight: str | int | float | None = None
    style: str | None = None
    color: str | None = None
    line_height: float | None = None
    letter_spacing: float | None = None


class Border(_Frozen):
    color: str | None = None
    width: float
    style: Literal["solid", "dashed"] = "solid"
    radius: float | None = None


class _ElementBase(_Frozen):
    position: Position
    size: Size
    z_index: int
    opacity: float = 1.0
    rotation: float = 0.0
    background_color: str | None = None


class TextElement(_ElementBase):
    type: Literal["text"] = "text"
    content: str
    template: str
    font: Font
    text_align: str = "left"
    transform: str = "none"


class ImageElement(_ElementBase):
    type: Literal["image"] = "image"
    image_url: str


class ShapeElement(_ElementBase):
    type: Literal["shape"] = "shape"
    shape: str = "rect"
    border: Border | None = None
    fill: str | None = None


Element = Annotated[
    TextElement | ImageElement | ShapeElement,
    Field(discriminator="type"),
]


class CanvasLayout(_Frozen):
    width: int
    height: int
    orientation: Orientation
    background_color: str | None = None
    background_image: str | None = None
    default_font_family: str | None = None


class PayloadMetadata(_Frozen):
    certificate_id: str | None = None
    campaign_id: str | None = None
    design_id: str | None = None
    design_name: str | None = None
    generated_at: str | None = None


class CertificatePayload(_Frozen):
    """The immutable, fully resolved rendering source of truth for one certificate."""

    layout: CanvasLayout
    elements: list[Element] = Field(default_factory=list)
    fabric: dict[str, Any] = Field(default_factory=dict)
    variables: dict[str, str | None] = Field(default_factory=dict)
    metadata: PayloadMetadata = Field(default_factory=PayloadMetadata)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the persisted JSON form (null fields omitted).

        ``fabric`` and ``variables`` are copied verbatim: null entries in the
        raw document and in the value map are data, not unset fields.
        """
        data = self.model_dump(mode="json", exclude_none=True)
        data["fabric"] = copy.deepcopy(self.fabric)
        data["variables"] = dict(self.variables)
        return data
