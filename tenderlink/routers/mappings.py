"""
routers/mappings.py — Department mapping CRUD and unmapped-entity discovery

Business Rules:
- Duplicate (source_pattern, match_type) for a tenant → 409
- Rule edits take effect on the next read; nothing is re-ingested
- /unmapped lists raw buyer entities no rule covers, first-seen order

Called by: main.py (router mount)
Depends on: services/mapping_service.py, services/department_resolver.py
"""

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_api_key
from ..schemas.mappings import MappingCreate, MappingOut, MappingUpdate, UnmappedEntitiesResponse
from ..schemas.responses import OkResponse
from ..services.department_resolver import list_unmapped_entities
from ..services.mapping_service import (
    DuplicateMappingError,
    create_mapping,
    delete_mapping,
    get_mapping,
    list_mappings,
    update_mapping,
)

router = APIRouter(tags=["mappings"], dependencies=[Depends(require_api_key)])


@router.get("/api/tenants/{tenant_id}/department-mappings", response_model=list[MappingOut])
def mappings_list(tenant_id: str, db: Session = Depends(get_db)):
    return list_mappings(db, tenant_id)


@router.get(
    "/api/tenants/{tenant_id}/department-mappings/unmapped",
    response_model=UnmappedEntitiesResponse,
)
def mappings_unmapped(tenant_id: str, db: Session = Depends(get_db)):
    entities = list_unmapped_entities(db, tenant_id)
    return {"entities": entities, "total": len(entities)}


@router.post(
    "/api/tenants/{tenant_id}/department-mappings",
    response_model=MappingOut,
    status_code=201,
)
def mappings_create(tenant_id: str, body: MappingCreate, db: Session = Depends(get_db)):
    try:
        return create_mapping(db, tenant_id, **body.model_dump(), created_by="api")
    except DuplicateMappingError as e:
        raise HTTPException(409, str(e))


@router.put(
    "/api/tenants/{tenant_id}/department-mappings/{mapping_id}",
    response_model=MappingOut,
)
def mappings_update(
    tenant_id: str, mapping_id: int, body: MappingUpdate, db: Session = Depends(get_db)
):
    mapping = get_mapping(db, tenant_id, mapping_id)
    if not mapping:
        raise HTTPException(404, "Mapping not found")
    try:
        return update_mapping(db, mapping, **body.model_dump(exclude_unset=True))
    except DuplicateMappingError as e:
        raise HTTPException(409, str(e))


@router.delete(
    "/api/tenants/{tenant_id}/department-mappings/{mapping_id}",
    response_model=OkResponse,
)
def mappings_delete(tenant_id: str, mapping_id: int, db: Session = Depends(get_db)):
    mapping = get_mapping(db, tenant_id, mapping_id)
    if not mapping:
        raise HTTPException(404, "Mapping not found")
    delete_mapping(db, mapping)
    logger.info(f"Tenant {tenant_id} removed mapping {mapping_id}")
    return {"ok": True}
