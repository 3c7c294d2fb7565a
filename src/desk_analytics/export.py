"""Spreadsheet export of view rows."""

import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Font

logger = logging.getLogger(__name__)


def collect_headers(rows: Iterable[Mapping[str, Any]]) -> list[str]:
    """Union of row keys, in first-seen order."""
    headers: dict[str, None] = {}
    for row in rows:
        for key in row:
            headers.setdefault(key, None)
    return list(headers)


def cell_value(value: Any) -> Any:
    """Convert a row value to something a worksheet cell accepts."""
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return "\n".join(str(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value, default=str)
    return value


def export_rows(
    rows: list[Mapping[str, Any]],
    path: str | Path,
    sheet_name: str = "Data",
) -> Path:
    """Write rows to an ``.xlsx`` workbook with a single sheet.

    Args:
        rows: Flat row dicts as returned by the view producers.
        path: Output file path.
        sheet_name: Worksheet title.

    Returns:
        The path written.

    Raises:
        ValueError: If there are no rows.
    """
    if not rows:
        raise ValueError("No data to export")

    headers = collect_headers(rows)
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name
    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in rows:
        ws.append([cell_value(row.get(h)) for h in headers])

    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(path)
    logger.info("Exported %d rows to %s", len(rows), path)
    return path
