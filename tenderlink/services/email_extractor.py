"""Email extraction from scraped listing text.

Finds email-shaped tokens in free text (contact blocks, descriptions),
drops placeholder and no-reply addresses, and optionally reads the
surrounding words for a person's name and a role label such as
"Contact Officer".

Usage:
    from tenderlink.services.email_extractor import extract_emails, extract_contacts
"""

import re
from dataclasses import dataclass

from ..config import settings
from ..utils.normalization import email_domain, normalize_email

EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

ROLE_PATTERNS = [
    re.compile(r"contact\s*officer", re.IGNORECASE),
    re.compile(r"enquiries", re.IGNORECASE),
    re.compile(r"technical\s*contact", re.IGNORECASE),
    re.compile(r"procurement\s*officer", re.IGNORECASE),
    re.compile(r"project\s*officer", re.IGNORECASE),
]

# Two or more capitalised words directly before "<addr>", "(addr)" or the address itself
NAME_RE = re.compile(r"([A-Z][a-z]+(?:[ \t]+[A-Z][a-z'\-]+)+)[ \t]*(?:[<(:\-][ \t]*)?$")
_NAME_STOPWORDS = {"contact", "officer", "enquiries", "email", "technical", "procurement", "project", "please"}

# How far either side of a match to look for name/role context
CONTEXT_BEFORE = 100
CONTEXT_AFTER = 50

SOURCE_CONFIDENCE = {
    "structured_field": 0.95,
    "page_text": 0.75,
    "attachment": 0.6,
}

SOURCE_DETAIL = {
    "structured_field": "contact_field",
    "page_text": "description",
    "attachment": "attachment",
}


@dataclass(frozen=True)
class ExtractedEmail:
    email: str
    name: str | None
    role_label: str | None
    source_type: str
    source_detail: str
    confidence: float


def is_placeholder(email: str) -> bool:
    """True for documentation/test domains and no-reply mailboxes.

    A domain is a placeholder when any label but the last is one of
    EMAIL_PLACEHOLDER_LABELS ("test.gov.au", "qa.test.io", "example.com.au"),
    unless it is listed in EMAIL_PLACEHOLDER_ALLOWED_DOMAINS.
    """
    local = email.split("@", 1)[0]
    if any(local.startswith(p) for p in settings.email_placeholder_prefixes):
        return True
    domain = email_domain(email)
    if domain in settings.email_placeholder_allowed_domains:
        return False
    labels = domain.split(".")[:-1]
    return any(label in settings.email_placeholder_labels for label in labels)


def _iter_matches(text: str):
    for m in EMAIL_RE.finditer(text):
        email = normalize_email(m.group(0))
        if email and not is_placeholder(email):
            yield m, email


def extract_emails(text: str | None) -> list[str]:
    """Return every non-placeholder email in text, in order of appearance.

    Not de-duplicated; repeated occurrences are returned repeatedly.
    """
    if not text:
        return []
    return [email for _, email in _iter_matches(text)]


def _find_role(context: str) -> str | None:
    for pattern in ROLE_PATTERNS:
        m = pattern.search(context)
        if m:
            return " ".join(w.capitalize() for w in m.group(0).split())
    return None


def _find_name(before: str) -> str | None:
    # Only the text on the same line as the address
    line = before.rsplit("\n", 1)[-1]
    m = NAME_RE.search(line)
    if not m:
        return None
    words = [w for w in m.group(1).split() if w.lower() not in _NAME_STOPWORDS]
    if len(words) < 2:
        return None
    return " ".join(words)


def extract_contacts(text: str | None, source_type: str = "page_text") -> list[ExtractedEmail]:
    """Like extract_emails, with name/role detection and provenance attached."""
    if not text:
        return []
    confidence = SOURCE_CONFIDENCE.get(source_type, SOURCE_CONFIDENCE["page_text"])
    detail = SOURCE_DETAIL.get(source_type, source_type)

    found = []
    for m, email in _iter_matches(text):
        before = text[max(0, m.start() - CONTEXT_BEFORE):m.start()]
        after = text[m.end():m.end() + CONTEXT_AFTER]
        found.append(
            ExtractedEmail(
                email=email,
                name=_find_name(before),
                role_label=_find_role(before + " " + after),
                source_type=source_type,
                source_detail=detail,
                confidence=confidence,
            )
        )
    return found
