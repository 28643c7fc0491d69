"""Record mapper — accepted input aliases → canonical OpportunityRecord.

The crawler posts snake_case keys ("buyict_reference", "contact_text_raw"),
portal CSV exports use display headers ("ATM ID", "Closing Date",
"Contact Officer"), and hand-written payloads use short names ("ref",
"buyer"). One alias table maps all of them, once, at the ingestion
boundary.

Header matching ignores case, surrounding whitespace, and the difference
between spaces and underscores.
"""

import re
from typing import Any

from pydantic import ValidationError

from ..exceptions import RecordProcessingError
from ..schemas.sync import OpportunityRecord
from ..utils.normalization import clean_text

# canonical field → accepted keys, highest priority first (normalized form)
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "external_reference": (
        "external reference", "buyict reference", "reference", "ref",
        "atm id", "opportunity id",
    ),
    "title": ("title", "opportunity title"),
    "buyer_entity_raw": (
        "buyer entity raw", "buyer entity", "buyer", "agency", "department", "buying entity",
    ),
    "category": ("category", "panel"),
    "description": ("description", "summary"),
    "publish_date": ("publish date", "published"),
    "closing_date": ("closing date", "close date", "closes"),
    "status": ("status", "opportunity status"),
    "contact_text_raw": (
        "contact text raw", "contact text", "contact", "contact officer", "enquiries",
    ),
    "source_url": ("source url", "buyict url", "url", "link"),
    "rfq_id": ("rfq id",),
    "rfq_type": ("rfq type",),
    "engagement_type": ("engagement type",),
    "opportunity_type": ("opportunity type",),
    "location": ("location",),
    "working_arrangement": ("working arrangement",),
    "deadline_for_questions": ("deadline for questions",),
    "estimated_start_date": ("estimated start date",),
    "initial_contract_duration": ("initial contract duration",),
    "requirements": ("requirements",),
    "key_duties": ("key duties",),
    "experience_level": ("experience level",),
    "max_hours": ("max hours",),
    "security_clearance": ("security clearance",),
}

# When the primary field is empty, fill it from these (in order)
FIELD_FALLBACKS: dict[str, tuple[str, ...]] = {
    "description": ("requirements", "key_duties"),
    "contact_text_raw": ("buyer contact",),
    "rfq_type": ("engagement_type",),
}

_KEY_RE = re.compile(r"[\s_]+")


def normalize_key(key: Any) -> str:
    return _KEY_RE.sub(" ", str(key).strip().lower())


def _list_of_dicts(value: Any) -> list[dict]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict) and v.get("name")]


def _list_of_str(value: Any) -> list[str]:
    if isinstance(value, list):
        return [s for s in (clean_text(v) for v in value) if s]
    s = clean_text(value)
    return [s] if s else []


def map_aliases(raw: dict[str, Any]) -> dict[str, Any]:
    """Collapse a raw payload/row dict onto canonical field names."""
    by_key = {normalize_key(k): v for k, v in raw.items()}
    mapped: dict[str, Any] = {}

    for field, aliases in FIELD_ALIASES.items():
        for alias in aliases:
            value = clean_text(by_key.get(alias))
            if value is not None:
                mapped[field] = value
                break

    for field, sources in FIELD_FALLBACKS.items():
        if mapped.get(field):
            continue
        for source in sources:
            value = mapped.get(source) or clean_text(by_key.get(normalize_key(source)))
            if value:
                mapped[field] = value
                break

    mapped["attachments"] = _list_of_dicts(by_key.get("attachments"))
    mapped["criteria"] = _list_of_str(by_key.get("criteria"))
    return mapped


def _short_validation_message(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        msg = err.get("msg", "invalid").removeprefix("Value error, ")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts)


def to_record(raw: Any, position: int) -> OpportunityRecord:
    """Map and validate one raw record. Raises RecordProcessingError."""
    if not isinstance(raw, dict):
        raise RecordProcessingError(position, None, "record is not an object")
    mapped = map_aliases(raw)
    try:
        return OpportunityRecord.model_validate(mapped)
    except ValidationError as e:
        raise RecordProcessingError(
            position, mapped.get("external_reference"), _short_validation_message(e)
        ) from e
