"""
Business Entity API Routes
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from gstledger.core.database import get_db, unit_of_work
from gstledger.core.security import get_current_tenant
from gstledger.core.tenancy import TenantContext
from gstledger.models import EntityType
from gstledger.schemas import BusinessEntityCreate, BusinessEntityResponse
from gstledger.services.entity_service import BusinessEntityService

router = APIRouter(prefix="/entities", tags=["Business Entities"])


@router.get("", response_model=List[BusinessEntityResponse])
async def list_entities(
    entity_type: Optional[EntityType] = None,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    """List counterparties, deduplicated by name and type"""
    return BusinessEntityService(db).list(tenant, entity_type.value if entity_type else None)


@router.post("", response_model=BusinessEntityResponse, status_code=status.HTTP_201_CREATED)
async def create_entity(
    entity_data: BusinessEntityCreate,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    with unit_of_work(db):
        entity = BusinessEntityService(db).create(tenant, entity_data)
    return entity
