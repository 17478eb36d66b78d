"""Raw canvas node classification and tolerant field access."""

import math
from collections.abc import Mapping
from typing import Any, Literal

NodeKind = Literal["text", "image", "shape"]

SHAPE_TYPES = frozenset(
    {"rect", "triangle", "circle", "line", "ellipse", "polygon", "path"}
)

_MISSING = object()


def classify_node_type(raw_type: Any) -> NodeKind:
    """Map a free-form editor type onto text, image or shape.

    Unknown types (including textbox, i-text and anything new an editor
    version introduces) are treated as text.
    """
    kind = str(raw_type or "").strip().lower()
    if kind == "image":
        return "image"
    if kind in SHAPE_TYPES:
        return "shape"
    return "text"


def _to_float(value: Any) -> float | None:
    """Finite float or None; NaN, infinities and out-of-range ints are None."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


class RawNode:
    """Read-only view over one raw design node.

    Nodes come from a freeform editor, so every accessor tolerates missing
    keys, nulls and wrongly typed values instead of raising.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any]) -> None:
        self._data = data

    @property
    def mapping(self) -> Mapping[str, Any]:
        return self._data

    @property
    def kind(self) -> NodeKind:
        return classify_node_type(self._data.get("type"))

    @property
    def raw_type(self) -> str:
        return str(self._data.get("type") or "").strip().lower()

    def get(self, key: str, default: Any = None) -> Any:
        """Stored value, or ``default`` only when the key is absent."""
        return self._data.get(key, default)

    def number(self, key: str, default: float = 0.0) -> float:
        """Numeric value; null or malformed values fall back to ``default``."""
        value = _to_float(self._data.get(key))
        return default if value is None else value

    def optional_number(self, key: str, default: float | None = None) -> float | None:
        """Like :meth:`number`, but an explicit null stays null."""
        value = self._data.get(key, _MISSING)
        if value is _MISSING:
            return default
        if value is None:
            return None
        converted = _to_float(value)
        return default if converted is None else converted

    def string(self, key: str, default: str | None = None) -> str | None:
        """String value; non-string values fall back to ``default``."""
        value = self._data.get(key)
        return value if isinstance(value, str) else default

    def text(self) -> str:
        value = self._data.get("text")
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)
