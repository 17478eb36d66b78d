"""CSV recipient import.

Turns an uploaded CSV into validated recipients using a campaign's column
mapping:
- First row is the header row; headers are trimmed and blank ones ignored
- Empty rows are skipped
- Rows whose mapped name or email is missing (or not an email) are dropped
- Mapped variable columns land in ``recipient_data`` under their target key
"""

import csv
import io
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from schemas import RecipientInput, VariableMapping


def _decode(content: str | bytes) -> str:
    if isinstance(content, bytes):
        # utf-8-sig strips the BOM spreadsheet exports like to prepend
        return content.decode("utf-8-sig")
    return content.removeprefix("\ufeff")


def _is_empty(row: list[str]) -> bool:
    return all(not cell.strip() for cell in row)


def parse_csv_rows(content: str | bytes) -> list[dict[str, str]]:
    """Parse CSV text into one ``{header: cell}`` dict per non-empty data row.

    Cells are trimmed; a row shorter than the header row yields ``""`` for
    the missing cells.
    """
    reader = csv.reader(io.StringIO(_decode(content)))

    headers: list[str] | None = None
    rows: list[dict[str, str]] = []
    for raw in reader:
        if _is_empty(raw):
            continue
        if headers is None:
            headers = [header.strip() for header in raw]
            continue

        row: dict[str, str] = {}
        for index, header in enumerate(headers):
            if not header:
                continue
            row[header] = raw[index].strip() if index < len(raw) else ""
        rows.append(row)

    return rows


def count_csv_rows(content: str | bytes) -> int:
    """Number of non-empty data rows (header excluded)."""
    return len(parse_csv_rows(content))


def _coerce_mapping(mapping: VariableMapping | Mapping[str, Any] | None) -> VariableMapping:
    if isinstance(mapping, VariableMapping):
        return mapping
    if not mapping:
        return VariableMapping()
    return VariableMapping(
        recipient_name=mapping.get("recipient_name") or "recipient_name",
        recipient_email=mapping.get("recipient_email") or "recipient_email",
        variables=dict(mapping.get("variables") or {}),
    )


def map_row_to_recipient(
    row: Mapping[str, str],
    mapping: VariableMapping | Mapping[str, Any] | None = None,
) -> RecipientInput | None:
    """Project one CSV row into a recipient, or None when it is unusable."""
    mapping = _coerce_mapping(mapping)

    name = (row.get(mapping.recipient_name) or "").strip()
    email = (row.get(mapping.recipient_email) or "").strip()
    if not name or not email:
        return None

    recipient_data = {
        target: row[source]
        for target, source in mapping.variables.items()
        if source in row
    }

    try:
        return RecipientInput(
            recipient_name=name,
            recipient_email=email,
            recipient_data=recipient_data,
        )
    except ValidationError:
        return None


def extract_recipients(
    content: str | bytes,
    mapping: VariableMapping | Mapping[str, Any] | None = None,
) -> list[RecipientInput]:
    """Parse ``content`` and keep every row that maps to a valid recipient."""
    mapping = _coerce_mapping(mapping)
    recipients = []
    for row in parse_csv_rows(content):
        recipient = map_row_to_recipient(row, mapping)
        if recipient is not None:
            recipients.append(recipient)
    return recipients
