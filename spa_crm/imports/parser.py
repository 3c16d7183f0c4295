from __future__ import annotations

import io
import logging
from datetime import date, datetime, time
from typing import Any, Iterable, Union

from openpyxl import load_workbook

from spa_crm.imports.errors import ParseError

logger = logging.getLogger(__name__)

CellValue = Union[str, int, float, bool, date, datetime, None]
Row = dict[str, CellValue]

EMPTY_HEADER = "__EMPTY"


def _header_names(raw_headers: Iterable[Any]) -> list[str]:
    """
    Turn the first sheet row into unique column names.

    Blank headers become `__EMPTY`, `__EMPTY_1`, ...; repeated headers get a
    numeric suffix so no column is silently dropped.
    """

    names: list[str] = []
    seen: dict[str, int] = {}
    for raw in raw_headers:
        base = str(raw).strip() if raw is not None else ""
        if not base:
            base = EMPTY_HEADER
        count = seen.get(base, 0)
        seen[base] = count + 1
        names.append(base if count == 0 else f"{base}_{count}")
    return names


def _cell(value: Any) -> CellValue:
    if value is None:
        return ""
    if isinstance(value, time):
        return value.isoformat()
    if isinstance(value, (str, int, float, bool, date)):
        return value
    return str(value)


def _is_blank(values: Iterable[Any]) -> bool:
    return all(value is None or (isinstance(value, str) and not value.strip()) for value in values)


def parse_spreadsheet(content: bytes) -> list[Row]:
    """
    Decode spreadsheet bytes into row mappings (header -> cell value).

    Only the first sheet is read. Date-formatted cells come back as datetime,
    numbers stay numbers, empty cells become "".
    """

    if not content:
        raise ParseError("Excel file is empty")

    try:
        workbook = load_workbook(io.BytesIO(content), data_only=True)
    except Exception as exc:
        logger.info("Spreadsheet could not be opened: %s", exc)
        raise ParseError(
            "Failed to read Excel file. Please ensure it is a valid Excel (.xlsx) file."
        ) from exc

    try:
        if not workbook.sheetnames:
            raise ParseError("Excel file has no sheets")

        worksheet = workbook[workbook.sheetnames[0]]
        values = worksheet.iter_rows(values_only=True)
        header_row = next(values, None)
        if header_row is None or _is_blank(header_row):
            raise ParseError("Excel file is empty")
        headers = _header_names(header_row)

        rows: list[Row] = []
        for raw_row in values:
            if _is_blank(raw_row):
                continue
            cells = list(raw_row) + [None] * (len(headers) - len(raw_row))
            rows.append({header: _cell(value) for header, value in zip(headers, cells)})
    finally:
        workbook.close()

    if not rows:
        raise ParseError("Excel file is empty")
    return rows


def serialize_row(row: Row) -> dict[str, Any]:
    """
    Make a parsed row JSON-safe for storage against the import job.
    """

    return {
        key: value.isoformat() if isinstance(value, (date, datetime)) else value
        for key, value in row.items()
    }
