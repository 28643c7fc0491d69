"""
dependencies.py — Shared FastAPI Dependencies

Header-based guards for the two kinds of caller: the crawler posting
batches, and the UI reading data.

Business Rules:
- require_webhook_secret checks X-Webhook-Secret against SYNC_WEBHOOK_SECRET
- require_api_key checks X-API-Key against API_KEY
- Both compare in constant time and raise 401 on mismatch
- An unset secret disables its guard (local/dev)

Called by: routers/sync.py, routers/opportunities.py, routers/contacts.py,
           routers/mappings.py, routers/stats.py
Depends on: config
"""

import hmac
import logging

from fastapi import HTTPException, Request

from .config import settings

log = logging.getLogger(__name__)


def _header_matches(request: Request, header: str, expected: str) -> bool:
    supplied = request.headers.get(header) or ""
    return hmac.compare_digest(supplied.encode(), expected.encode())


def require_webhook_secret(request: Request) -> None:
    """Dependency: raises 401 unless the crawler supplied the shared secret."""
    if not settings.sync_webhook_secret:
        return
    if not _header_matches(request, "x-webhook-secret", settings.sync_webhook_secret):
        log.warning(f"Rejected webhook call from {request.client.host if request.client else '?'}")
        raise HTTPException(401, "Invalid webhook secret")


def require_api_key(request: Request) -> None:
    """Dependency: raises 401 unless a valid API key header is present."""
    if not settings.api_key:
        return
    if not _header_matches(request, "x-api-key", settings.api_key):
        raise HTTPException(401, "Invalid API key")
