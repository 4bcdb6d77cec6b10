"""
Business Entity Service - Customers, suppliers and other counterparties
"""
from typing import Optional, List
from sqlalchemy.orm import Session

from gstledger.core.exceptions import NotFoundError
from gstledger.core.tenancy import TenantContext
from gstledger.models import BusinessEntity, EntityType
from gstledger.schemas import BusinessEntityCreate


class BusinessEntityService:
    def __init__(self, db: Session):
        self.db = db
    
    def get_by_id(self, tenant: TenantContext, entity_id: int) -> Optional[BusinessEntity]:
        return self.db.query(BusinessEntity).filter(
            BusinessEntity.id == entity_id,
            BusinessEntity.company_id == tenant.company_id,
            BusinessEntity.user_id == tenant.user_id
        ).first()
    
    def get(self, tenant: TenantContext, entity_id: int) -> BusinessEntity:
        entity = self.get_by_id(tenant, entity_id)
        if not entity:
            raise NotFoundError(f"Business entity {entity_id} not found")
        return entity
    
    def list(self, tenant: TenantContext, entity_type: Optional[str] = None) -> List[BusinessEntity]:
        """
        Counterparties for the tenant, one per (lower-cased name, entity_type).
        
        Imports and repeated quick-adds leave duplicates behind; the most
        recently created record wins.
        """
        query = self.db.query(BusinessEntity).filter(
            BusinessEntity.company_id == tenant.company_id,
            BusinessEntity.user_id == tenant.user_id
        )
        if entity_type:
            query = query.filter(BusinessEntity.entity_type == EntityType(entity_type).value)
        
        seen = {}
        for entity in query.order_by(BusinessEntity.created_at.desc(), BusinessEntity.id.desc()).all():
            key = (entity.name.strip().lower(), entity.entity_type)
            if key not in seen:
                seen[key] = entity
        return sorted(seen.values(), key=lambda e: e.name.lower())
    
    def create(self, tenant: TenantContext, entity_data: BusinessEntityCreate) -> BusinessEntity:
        entity = BusinessEntity(
            name=entity_data.name.strip(),
            entity_type=EntityType(entity_data.entity_type).value,
            state=entity_data.state.strip() if entity_data.state else None,
            gstin=entity_data.gstin.strip().upper() if entity_data.gstin else None,
            email=entity_data.email,
            phone=entity_data.phone,
            address=entity_data.address,
            contact_person=entity_data.contact_person,
            company_id=tenant.company_id,
            user_id=tenant.user_id
        )
        self.db.add(entity)
        self.db.flush()
        return entity
