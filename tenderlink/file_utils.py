"""Shared file parsing utilities for CSV/Excel opportunity exports.

Used by:
  - services/upload_parser.py: parse_upload
"""

import csv
import io
import logging
from datetime import date, datetime

log = logging.getLogger(__name__)

TABULAR_EXTENSIONS = (".csv", ".tsv", ".xlsx", ".xls")


def parse_tabular_file(content: bytes, filename: str) -> list[dict]:
    """Parse CSV/TSV/Excel file bytes into a list of row dicts.

    Header keys are stripped but keep their case; the record mapper
    normalizes them against its alias table.
    Values are stripped strings (Excel dates become ISO strings).
    Returns empty list on parse failure (logs warning).
    """
    fname = (filename or "").lower()
    rows = []

    try:
        if fname.endswith((".xlsx", ".xls")):
            rows = _parse_excel(content)
        else:
            delimiter = "\t" if fname.endswith(".tsv") else ","
            rows = _parse_csv(content, delimiter)
    except Exception as e:
        log.warning(f"File parse error ({filename}): {e}")

    return rows


def _cell_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value).strip()


def _parse_excel(content: bytes) -> list[dict]:
    """Parse Excel bytes into list of row dicts."""
    import openpyxl

    wb = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    ws = wb.active
    rows = []
    headers = []
    for i, row in enumerate(ws.iter_rows(values_only=True)):
        if i == 0:
            headers = [_cell_text(c) for c in row]
            continue
        if not headers or not any(v not in (None, "") for v in row):
            continue
        rows.append({h: _cell_text(v) for h, v in zip(headers, row) if h})
    wb.close()
    return rows


def _parse_csv(content: bytes, delimiter: str = ",") -> list[dict]:
    """Parse CSV/TSV bytes into list of row dicts."""
    text = content.decode("utf-8-sig", errors="replace")
    reader = csv.DictReader(io.StringIO(text), delimiter=delimiter)
    rows = []
    for row in reader:
        cleaned = {k.strip(): (v or "").strip() for k, v in row.items() if k}
        if any(cleaned.values()):
            rows.append(cleaned)
    return rows
