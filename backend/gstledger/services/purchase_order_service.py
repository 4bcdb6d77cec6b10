"""
Purchase Order Service - Ordering and goods receipt
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload
from decimal import Decimal
import logging

from gstledger.core.config import settings
from gstledger.core.currency import money, to_decimal
from gstledger.core.exceptions import (
    ConflictError, DependencyError, InvariantViolation, NotFoundError, ValidationError
)
from gstledger.core.tenancy import TenantContext
from gstledger.models import Company, PurchaseOrder, PurchaseOrderItem, POStatus
from gstledger.schemas import PurchaseOrderCreate
from gstledger.services.audit_service import AuditService, AuditAction
from gstledger.services.entity_service import BusinessEntityService
from gstledger.services.inventory_service import InventoryLedger
from gstledger.services.numbering import generate_document_number
from gstledger.services.tax_service import compute_tax

logger = logging.getLogger(__name__)


# Allowed manual transitions; partial/received are only reached by receiving
PO_TRANSITIONS: Dict[str, List[str]] = {
    POStatus.DRAFT.value: [POStatus.SENT.value, POStatus.CANCELLED.value],
    POStatus.SENT.value: [POStatus.CANCELLED.value],
    POStatus.PARTIAL.value: [POStatus.CANCELLED.value],
    POStatus.RECEIVED.value: [],
    POStatus.CANCELLED.value: [],
}

RECEIVABLE_STATUSES = (POStatus.DRAFT.value, POStatus.SENT.value, POStatus.PARTIAL.value)


def can_transition(current_status: str, new_status: str) -> bool:
    return new_status in PO_TRANSITIONS.get(current_status, [])


def derive_po_status(items: List[PurchaseOrderItem], current_status: str) -> str:
    """received when every line is complete, partial once anything has arrived"""
    if items and all(Decimal(i.received_quantity) >= Decimal(i.quantity) for i in items):
        return POStatus.RECEIVED.value
    if any(Decimal(i.received_quantity) > 0 for i in items):
        return POStatus.PARTIAL.value
    return current_status


@dataclass
class ReceiptResult:
    purchase_order: PurchaseOrder
    received: Dict[int, Decimal] = field(default_factory=dict)  # item id -> newly received


class PurchaseOrderService:
    def __init__(self, db: Session, number_factory: Optional[Callable[[], str]] = None):
        self.db = db
        self.number_factory = number_factory or (
            lambda: generate_document_number(settings.PO_NUMBER_PREFIX)
        )
        self.inventory = InventoryLedger(db)
        self.audit = AuditService(db)
    
    def get_by_id(self, tenant: TenantContext, po_id: int) -> Optional[PurchaseOrder]:
        return self.db.query(PurchaseOrder).options(
            joinedload(PurchaseOrder.items),
            joinedload(PurchaseOrder.supplier)
        ).filter(
            PurchaseOrder.id == po_id,
            PurchaseOrder.company_id == tenant.company_id,
            PurchaseOrder.user_id == tenant.user_id
        ).first()
    
    def get(self, tenant: TenantContext, po_id: int) -> PurchaseOrder:
        po = self.get_by_id(tenant, po_id)
        if not po:
            raise NotFoundError(f"Purchase order {po_id} not found")
        return po
    
    def list(self, tenant: TenantContext, status: Optional[str] = None) -> List[PurchaseOrder]:
        query = self.db.query(PurchaseOrder).filter(
            PurchaseOrder.company_id == tenant.company_id,
            PurchaseOrder.user_id == tenant.user_id
        )
        if status:
            query = query.filter(PurchaseOrder.status == POStatus(status).value)
        return query.order_by(PurchaseOrder.order_date.desc(), PurchaseOrder.id.desc()).all()
    
    def _number_taken(self, tenant: TenantContext, number: str) -> bool:
        return self.db.query(PurchaseOrder.id).filter(
            PurchaseOrder.user_id == tenant.user_id,
            PurchaseOrder.po_number == number
        ).first() is not None
    
    def create(self, tenant: TenantContext, po_data: PurchaseOrderCreate) -> PurchaseOrder:
        """Create a draft PO. Stock is untouched until goods are received."""
        for position, item in enumerate(po_data.items, start=1):
            if not (item.description or "").strip():
                raise ValidationError(f"Item {position} needs a description")
            if to_decimal(item.quantity, f"Item {position} quantity") <= 0:
                raise ValidationError(f"Item {position} quantity must be greater than zero")
        
        supplier = None
        if po_data.supplier_id:
            supplier = BusinessEntityService(self.db).get(tenant, po_data.supplier_id)
        
        company = self.db.query(Company).filter(Company.id == tenant.company_id).first()
        seller_state = (company.state_code if company else None) or settings.DEFAULT_SELLER_STATE
        supplier_state = supplier.state if supplier is not None and supplier.state else seller_state
        
        breakdown = compute_tax(po_data.items, supplier_state, seller_state, po_data.force_igst)
        amounts = breakdown.persisted()
        
        for attempt in (1, 2):
            number = self.number_factory()
            if self._number_taken(tenant, number):
                logger.warning(f"PO number {number} already taken (attempt {attempt})")
                continue
            
            po = PurchaseOrder(
                po_number=number,
                supplier=supplier,
                order_date=po_data.order_date,
                expected_delivery_date=po_data.expected_delivery_date,
                status=POStatus.DRAFT.value,
                force_igst=po_data.force_igst,
                subtotal=amounts["subtotal"],
                tax_amount=amounts["tax_amount"],
                total_amount=amounts["total_amount"],
                notes=po_data.notes,
                company_id=tenant.company_id,
                user_id=tenant.user_id
            )
            for item, line in zip(po_data.items, breakdown.lines):
                po.items.append(PurchaseOrderItem(
                    description=item.description.strip(),
                    product_id=item.product_id,
                    quantity=line.quantity,
                    received_quantity=Decimal("0"),
                    unit_price=line.unit_price,
                    gst_rate=line.gst_rate,
                    line_total=money(line.line_total),
                ))
            self.db.add(po)
            try:
                self.db.flush()
            except IntegrityError:
                self.db.rollback()
                logger.warning(f"PO number {number} collided on insert (attempt {attempt})")
                continue
            except SQLAlchemyError as e:
                self.db.rollback()
                raise DependencyError(f"Could not save purchase order: {e}") from e
            
            self.audit.log(
                tenant, AuditAction.CREATE, "PurchaseOrder", po.id,
                description=f"Created purchase order {po.po_number}",
                new_values={"total_amount": po.total_amount}
            )
            return po
        
        raise ConflictError("Could not allocate a unique purchase order number, please retry")
    
    def _transition(self, tenant: TenantContext, po_id: int, new_status: str) -> PurchaseOrder:
        po = self.get(tenant, po_id)
        if not can_transition(po.status, new_status):
            raise InvariantViolation(f"Purchase order {po.po_number} cannot move from {po.status} to {new_status}")
        old_status = po.status
        po.status = new_status
        self.audit.log(
            tenant, AuditAction.STATUS_CHANGED, "PurchaseOrder", po.id,
            old_values={"status": old_status}, new_values={"status": new_status}
        )
        self.db.flush()
        return po
    
    def mark_sent(self, tenant: TenantContext, po_id: int) -> PurchaseOrder:
        return self._transition(tenant, po_id, POStatus.SENT.value)
    
    def cancel(self, tenant: TenantContext, po_id: int) -> PurchaseOrder:
        return self._transition(tenant, po_id, POStatus.CANCELLED.value)
    
    def receive(self, tenant: TenantContext, po_id: int, received: Dict[int, Decimal]) -> ReceiptResult:
        """
        Record cumulative received quantities per item.
        
        Each value is clamped into [already received, ordered], so receipts
        never go backwards or beyond the order. Stock rises by the newly
        received quantity only.
        """
        po = self.get(tenant, po_id)
        if po.status not in RECEIVABLE_STATUSES:
            raise InvariantViolation(f"Purchase order {po.po_number} is {po.status}; nothing more can be received")
        
        items_by_id = {item.id: item for item in po.items}
        unknown = [item_id for item_id in received if int(item_id) not in items_by_id]
        if unknown:
            raise ValidationError(f"Items {unknown} do not belong to purchase order {po.po_number}")
        
        result = ReceiptResult(purchase_order=po)
        old_status = po.status
        
        for item_id, quantity in received.items():
            item = items_by_id[int(item_id)]
            previous = Decimal(item.received_quantity)
            ordered = Decimal(item.quantity)
            requested = to_decimal(quantity, f"Received quantity for item {item.id}")
            target = min(max(requested, previous), ordered)
            if target != requested:
                logger.warning(
                    f"PO {po.po_number} item {item.id}: received quantity {requested} clamped to {target}"
                )
            
            delta = target - previous
            if delta <= 0:
                continue
            item.received_quantity = target
            result.received[item.id] = delta
            
            product = self.inventory.resolve_product(tenant, item.product_id, item.description)
            if product is None:
                continue
            if item.product_id is None:
                item.product_id = product.id
            self.inventory.receive(tenant, product, delta, source_id=po.id, reason=f"Received on {po.po_number}")
        
        po.status = derive_po_status(po.items, po.status)
        self.audit.log(
            tenant, AuditAction.PO_RECEIVED, "PurchaseOrder", po.id,
            description=f"Goods received on {po.po_number}",
            old_values={"status": old_status},
            new_values={"status": po.status, "received": result.received}
        )
        self.db.flush()
        return result
