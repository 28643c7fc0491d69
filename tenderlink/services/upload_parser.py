"""Manual upload — turn a portal CSV/XLSX export into raw sync records.

The rows come back untouched apart from whitespace; header aliases
("ATM ID", "Buyer Entity", "Contact Officer") are resolved later by the
record mapper, exactly as for webhook payloads, so both paths share one
ingestion pipeline.
"""

import logging

from ..config import settings
from ..exceptions import InvalidInput
from ..file_utils import TABULAR_EXTENSIONS, parse_tabular_file

log = logging.getLogger("tenderlink.upload")


def parse_upload(content: bytes, filename: str | None) -> list[dict]:
    """Validate an uploaded export and return its data rows.

    Raises:
        InvalidInput: unsupported extension, empty/oversized file, or no rows.
    """
    fname = (filename or "").strip()
    if not fname.lower().endswith(TABULAR_EXTENSIONS):
        raise InvalidInput(f"Unsupported file type: {fname or '<unnamed>'} (use CSV or XLSX)")
    if not content:
        raise InvalidInput("Uploaded file is empty")
    max_bytes = settings.max_upload_size_mb * 1024 * 1024
    if len(content) > max_bytes:
        raise InvalidInput(f"File exceeds {settings.max_upload_size_mb} MB limit")

    rows = parse_tabular_file(content, fname)
    if not rows:
        raise InvalidInput(f"No data rows found in {fname}")
    log.info(f"Parsed {len(rows)} rows from upload {fname}")
    return rows
