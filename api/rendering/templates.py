"""``{{variable}}`` substitution inside design text nodes.

Unresolved tokens are passed through verbatim rather than blanked, so
missing recipient data stays visible on the generated certificate.
"""

import copy
import re
from collections.abc import Mapping
from typing import Any

from rendering.node_types import classify_node_type

TOKEN_PATTERN = re.compile(r"{{\s*([\w.-]+)\s*}}")


def render_template(template: str, values: Mapping[str, str | None]) -> str:
    """Replace every resolvable token in ``template``.

    A token resolves when its key maps to a non-null, non-empty value.
    Anything else is left exactly as written.
    """
    if not template:
        return ""

    def _replace(match: re.Match[str]) -> str:
        replacement = values.get(match.group(1))
        if replacement is None or replacement == "":
            return match.group(0)
        return str(replacement)

    return TOKEN_PATTERN.sub(_replace, template)


def template_source(node: Mapping[str, Any]) -> str:
    """The unresolved template of a text node (``template``, else ``text``)."""
    template = node.get("template")
    if template is None:
        template = node.get("text")
    if template is None:
        return ""
    return template if isinstance(template, str) else str(template)


def render_design(
    design: Mapping[str, Any], values: Mapping[str, str | None]
) -> dict[str, Any]:
    """Return a deep copy of ``design`` with every text node rendered.

    Each text node keeps its ``template`` (backfilled from ``text`` when it
    was missing) so the certificate can be regenerated later; ``text`` and
    ``rendered_text`` receive the rendered string.
    """
    rendered = copy.deepcopy(dict(design))

    objects = rendered.get("objects")
    if not isinstance(objects, list):
        return rendered

    for node in objects:
        if not isinstance(node, dict):
            continue
        if classify_node_type(node.get("type")) != "text":
            continue

        template = template_source(node)
        text = render_template(template, values)
        node["template"] = template
        node["text"] = text
        node["rendered_text"] = text

    return rendered


def extract_variables(text: str) -> list[str]:
    """Token keys referenced in ``text``, in order of appearance."""
    if not isinstance(text, str):
        return []
    return TOKEN_PATTERN.findall(text)


def detect_design_variables(design: Mapping[str, Any] | None) -> list[str]:
    """Distinct variable keys used by a design's text nodes.

    The stored ``template`` wins when it holds tokens; otherwise the literal
    ``text`` is scanned, which covers nodes edited before templates were
    tracked.
    """
    if not isinstance(design, Mapping):
        return []

    objects = design.get("objects")
    if not isinstance(objects, list):
        return []

    found: dict[str, None] = {}
    for node in objects:
        if not isinstance(node, Mapping):
            continue
        if classify_node_type(node.get("type")) != "text":
            continue

        keys = extract_variables(node.get("template") or "")
        if not keys:
            keys = extract_variables(node.get("text") or "")
        for key in keys:
            found.setdefault(key, None)

    return list(found)
