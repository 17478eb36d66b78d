"""Variable value map construction.

The value map is the flat ``key -> str | None`` mapping that template tokens
resolve against. It always carries the recipient identity; any other
recipient attribute is included only when it is a scalar.
"""

from collections.abc import Mapping
from typing import Any

VariableValues = dict[str, str | None]

_SCALAR_TYPES = (str, int, float, bool)


def _stringify(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def build_variable_values(
    recipient_name: str | None,
    recipient_email: str | None,
    recipient_data: Mapping[Any, Any] | None = None,
) -> VariableValues:
    """Build the value map for one recipient.

    Non-scalar recipient fields (lists, dicts, ...) are dropped without error.

    Args:
        recipient_name: Name to display on the certificate
        recipient_email: Recipient email address
        recipient_data: Arbitrary extra attributes (CSV columns, form fields)

    Returns:
        Mapping of variable key to string value, or None for null fields
    """
    values: VariableValues = {
        "recipient_name": _stringify(recipient_name),
        "recipient_email": _stringify(recipient_email),
    }

    if not isinstance(recipient_data, Mapping):
        return values

    for key, value in recipient_data.items():
        if value is None or isinstance(value, _SCALAR_TYPES):
            values[str(key)] = _stringify(value)

    return values


def values_for_recipient(recipient: Any) -> VariableValues:
    """Build the value map from a recipient record.

    Accepts either a mapping with ``recipient_name``, ``recipient_email`` and
    ``recipient_data`` keys or any object exposing those attributes.
    """
    if isinstance(recipient, Mapping):
        return build_variable_values(
            recipient.get("recipient_name"),
            recipient.get("recipient_email"),
            recipient.get("recipient_data"),
        )
    return build_variable_values(
        getattr(recipient, "recipient_name", None),
        getattr(recipient, "recipient_email", None),
        getattr(recipient, "recipient_data", None),
    )
