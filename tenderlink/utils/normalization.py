"""Deterministic normalization of values scraped from tender listings.

Normalizes identifier values found in scraped listings:
  - Dates: "2025-03-14T14:00:00Z" / "14/03/2025" / "Friday, 14 March 2025" → aware UTC datetime
  - Emails: "  <Jane.Doe@Agency.gov.au>. " → "jane.doe@agency.gov.au"
  - Free text: "   " → None

Design: Prefer less data if it means better data. Return None for ambiguous values.
"""

import calendar
import re
from datetime import date, datetime, timezone
from typing import Any

# ── Date normalization ────────────────────────────────────────────────

_DMY_RE = re.compile(r"(?<!\d)(\d{1,2})/(\d{1,2})/(\d{4})(?!\d)")
_TEXTUAL_RE = re.compile(r"(?<!\d)(\d{1,2})(?:st|nd|rd|th)?\s+([A-Za-z]+)\.?,?\s+(\d{4})(?!\d)")

_MONTHS = {name.lower(): i for i, name in enumerate(calendar.month_name) if name}
_MONTHS.update({abbr.lower(): i for i, abbr in enumerate(calendar.month_abbr) if abbr})
_MONTHS["sept"] = 9


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_iso(s: str) -> datetime | None:
    try:
        return _as_utc(datetime.fromisoformat(s.replace("Z", "+00:00")))
    except ValueError:
        return None


def _parse_dmy(s: str) -> datetime | None:
    m = _DMY_RE.search(s)
    if not m:
        return None
    day, month, year = (int(g) for g in m.groups())
    try:
        return datetime(year, month, day, tzinfo=timezone.utc)
    except ValueError:
        return None


def _parse_textual(s: str) -> datetime | None:
    m = _TEXTUAL_RE.search(s)
    if not m:
        return None
    month = _MONTHS.get(m.group(2).lower())
    if not month:
        return None
    try:
        return datetime(int(m.group(3)), month, int(m.group(1)), tzinfo=timezone.utc)
    except ValueError:
        return None


def parse_date(raw: Any) -> datetime | None:
    """Parse a listing date defensively. Returns None rather than raising.

    Tries, in order: ISO-8601, DD/MM/YYYY (day first), then a loose
    "Day, DD Month YYYY" textual form. Naive values are taken as UTC.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return _as_utc(raw)
    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day, tzinfo=timezone.utc)

    s = str(raw).strip()
    if not s:
        return None

    for parser in (_parse_iso, _parse_dmy, _parse_textual):
        parsed = parser(s)
        if parsed is not None:
            return parsed
    return None


# ── Email normalization ───────────────────────────────────────────────

_EMAIL_EDGE_CHARS = " \t\r\n<>()[]\"',;:."


def normalize_email(raw: Any) -> str | None:
    """Canonicalize an email address: trimmed, no mailto:, lower case."""
    if raw is None:
        return None
    s = str(raw).strip(_EMAIL_EDGE_CHARS)
    if s.lower().startswith("mailto:"):
        s = s[7:]
    s = s.strip(_EMAIL_EDGE_CHARS).lower()
    if s.count("@") != 1:
        return None
    local, domain = s.split("@")
    if not local or "." not in domain or domain.startswith(".") or domain.endswith("."):
        return None
    return s


def email_domain(email: str | None) -> str:
    """Domain part of an email, or empty string."""
    if not email or "@" not in email:
        return ""
    return email.rsplit("@", 1)[1].lower()


# ── Free text ─────────────────────────────────────────────────────────


def clean_text(raw: Any) -> str | None:
    """Strip a scalar to a string; blank values become None."""
    if raw is None:
        return None
    s = str(raw).strip()
    return s or None
