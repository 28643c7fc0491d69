"""
main.py — FastAPI application for the tenderlink ingestion service

Mounts the sync, opportunity, contact, mapping, organisation and stats routers, wires
the shared rate limiter, and renders every error as an ErrorResponse body.

Business Rules:
- Every response carries an X-Request-ID (echoed from the caller if sent)
- HTTPException / validation / InvalidInput errors share one JSON shape
- Unhandled errors are logged with the request id and returned as 500

Called by: uvicorn (tenderlink.main:app)
Depends on: routers, rate_limit, logging_config
"""

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException

from .config import settings
from .exceptions import InvalidInput
from .logging_config import setup_logging
from .rate_limit import limiter
from .routers import contacts, mappings, opportunities, organisations, stats, sync
from .schemas.errors import ErrorResponse


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info(f"tenderlink starting ({settings.environment})")
    yield
    logger.info("tenderlink stopped")


app = FastAPI(title="tenderlink", version="1.0.0", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
    request.state.request_id = request_id
    with logger.contextualize(request_id=request_id):
        response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


def _error(request: Request, status_code: int, message: str, detail: list | None = None):
    body = ErrorResponse(
        error=message,
        status_code=status_code,
        request_id=getattr(request.state, "request_id", ""),
        detail=detail,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


# ── Exception handlers ───────────────────────────────────────────────


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return _error(request, exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    detail = [
        {"loc": [str(p) for p in err.get("loc", ())], "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return _error(request, 422, "Validation error", detail)


@app.exception_handler(InvalidInput)
async def invalid_input_handler(request: Request, exc: InvalidInput):
    return _error(request, 400, str(exc))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(
        f"Unhandled error on {request.method} {request.url.path} "
        f"[{getattr(request.state, 'request_id', '')}]: {exc}"
    )
    return _error(request, 500, "Internal server error")


# ── Routers ──────────────────────────────────────────────────────────

app.include_router(sync.router)
app.include_router(opportunities.router)
app.include_router(contacts.router)
app.include_router(mappings.router)
app.include_router(organisations.router)
app.include_router(stats.router)
