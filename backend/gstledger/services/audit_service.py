"""
Audit Logging Service
Records who changed which financial document, in the same transaction
"""
from sqlalchemy.orm import Session
from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from typing import Optional, List, Dict
import json
import logging

from gstledger.core.tenancy import TenantContext
from gstledger.models import AuditLog

logger = logging.getLogger(__name__)


class AuditAction:
    """Constants for audit actions"""
    CREATE = "CREATE"
    DELETE = "DELETE"
    
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    STATUS_CHANGED = "STATUS_CHANGED"
    MARKED_OVERDUE = "MARKED_OVERDUE"
    STOCK_ADJUSTED = "STOCK_ADJUSTED"
    PO_RECEIVED = "PO_RECEIVED"


class AuditService:
    """Service for recording and retrieving audit logs"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def log(
        self,
        tenant: TenantContext,
        action: str,
        resource_type: str,
        resource_id: Optional[int] = None,
        description: Optional[str] = None,
        old_values: Optional[Dict] = None,
        new_values: Optional[Dict] = None,
        status: str = "success",
    ) -> AuditLog:
        """
        Create an audit log entry inside the caller's transaction.
        A failed insert propagates so the whole operation rolls back with it.
        
        Args:
            tenant: Company and user performing the action
            action: One of the AuditAction constants
            resource_type: e.g. 'Invoice', 'PurchaseOrder'
            resource_id: ID of the affected resource
            description: Human-readable description
            old_values: Values before the change
            new_values: Values after the change
            status: 'success', 'failure' or 'error'
        """
        try:
            audit_log = AuditLog(
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                description=description,
                old_values=json.dumps(old_values, default=str) if old_values else None,
                new_values=json.dumps(new_values, default=str) if new_values else None,
                user_id=tenant.user_id,
                company_id=tenant.company_id,
                status=status,
            )
            self.db.add(audit_log)
            self.db.flush()
            
            logger.info(
                f"Audit: {action} {resource_type}(id={resource_id}) by user={tenant.user_id} "
                f"company={tenant.company_id} status={status}"
            )
            return audit_log
        
        except SQLAlchemyError as e:
            # the session now needs a rollback; the caller's unit of work takes care of it
            logger.error(f"Failed to create audit log: {e}")
            raise
    
    def get_by_resource(self, tenant: TenantContext, resource_type: str, resource_id: int) -> List[AuditLog]:
        """Audit history of one document, newest first"""
        return self.db.query(AuditLog).filter(
            AuditLog.company_id == tenant.company_id,
            AuditLog.user_id == tenant.user_id,
            AuditLog.resource_type == resource_type,
            AuditLog.resource_id == resource_id
        ).order_by(desc(AuditLog.timestamp), desc(AuditLog.id)).all()
