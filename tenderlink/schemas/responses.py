"""
schemas/responses.py — Shared response wrappers

Called by: routers/*.py
Depends on: pydantic
"""

from pydantic import BaseModel


class PaginatedResponse(BaseModel):
    total: int = 0
    limit: int = 100
    offset: int = 0


class OkResponse(BaseModel):
    ok: bool = True


class HealthResponse(BaseModel):
    status: str = "ok"
    database: str = "ok"
