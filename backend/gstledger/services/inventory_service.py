"""
Inventory Service - Products and the stock ledger
"""
from typing import Optional, List
from sqlalchemy import func, update
from sqlalchemy.orm import Session
from decimal import Decimal
from datetime import datetime
import logging

from gstledger.core.config import settings
from gstledger.core.currency import to_decimal
from gstledger.core.exceptions import ConflictError, ConsistencyError, NotFoundError
from gstledger.core.tenancy import TenantContext
from gstledger.models import Product, StockMovement, Invoice, InvoiceType
from gstledger.schemas import ProductCreate, ProductUpdate

logger = logging.getLogger(__name__)

# Direction of the stock change an invoice line causes
STOCK_DIRECTION = {
    InvoiceType.SALES.value: -1,
    InvoiceType.PURCHASE.value: 1,
    InvoiceType.SALE_RETURN.value: 1,
    InvoiceType.PURCHASE_RETURN.value: -1,
}


class ProductService:
    def __init__(self, db: Session):
        self.db = db
    
    def _query(self, tenant: TenantContext):
        return self.db.query(Product).filter(
            Product.company_id == tenant.company_id,
            Product.user_id == tenant.user_id
        )
    
    def get_by_id(self, tenant: TenantContext, product_id: int) -> Optional[Product]:
        return self._query(tenant).filter(Product.id == product_id).first()
    
    def get(self, tenant: TenantContext, product_id: int) -> Product:
        product = self.get_by_id(tenant, product_id)
        if not product:
            raise NotFoundError(f"Product {product_id} not found")
        return product
    
    def get_by_name(self, tenant: TenantContext, name: str) -> Optional[Product]:
        """Case-insensitive exact match on the trimmed name"""
        if not name or not name.strip():
            return None
        return self._query(tenant).filter(
            func.lower(func.trim(Product.name)) == name.strip().lower()
        ).order_by(Product.id).first()
    
    def list(self, tenant: TenantContext) -> List[Product]:
        return self._query(tenant).order_by(Product.name).all()
    
    def get_low_stock(self, tenant: TenantContext) -> List[Product]:
        """Products below their minimum stock level"""
        return self._query(tenant).filter(
            Product.current_stock < Product.min_stock_level
        ).order_by(Product.name).all()
    
    def create(self, tenant: TenantContext, product_data: ProductCreate) -> Product:
        if self.get_by_name(tenant, product_data.name):
            raise ConflictError(f"Product '{product_data.name.strip()}' already exists")
        
        product = Product(
            name=product_data.name.strip(),
            hsn_code=product_data.hsn_code,
            unit=product_data.unit,
            purchase_price=product_data.purchase_price,
            selling_price=product_data.selling_price,
            gst_rate=product_data.gst_rate,
            current_stock=product_data.current_stock,
            min_stock_level=(
                product_data.min_stock_level if product_data.min_stock_level is not None
                else Decimal(settings.LOW_STOCK_DEFAULT)
            ),
            supplier_id=product_data.supplier_id,
            company_id=tenant.company_id,
            user_id=tenant.user_id
        )
        self.db.add(product)
        self.db.flush()
        return product
    
    def update(self, tenant: TenantContext, product_id: int, product_data: ProductUpdate) -> Product:
        """Update descriptive fields; stock only moves through InventoryLedger"""
        product = self.get(tenant, product_id)
        update_data = product_data.model_dump(exclude_unset=True)
        
        if update_data.get('name'):
            existing = self.get_by_name(tenant, update_data['name'])
            if existing and existing.id != product.id:
                raise ConflictError(f"Product '{update_data['name'].strip()}' already exists")
            update_data['name'] = update_data['name'].strip()
        
        for key, value in update_data.items():
            setattr(product, key, value)
        
        self.db.flush()
        return product


class InventoryLedger:
    """
    Sole writer of Product.current_stock.
    
    Every change is one conditional UPDATE, so two requests touching the
    same product cannot lose each other's delta.
    """
    
    def __init__(self, db: Session):
        self.db = db
        self.products = ProductService(db)
    
    def resolve_product(self, tenant: TenantContext, product_id: Optional[int], description: str) -> Optional[Product]:
        """Explicit reference first, then a case-insensitive name match"""
        if product_id:
            product = self.products.get_by_id(tenant, product_id)
            if product:
                return product
        return self.products.get_by_name(tenant, description)
    
    def apply_delta(
        self,
        tenant: TenantContext,
        product: Product,
        delta: Decimal,
        source: str,
        source_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> bool:
        """
        Add `delta` to the product's stock unless the result would be negative.
        
        Returns False, leaving stock untouched, when the guard rejects it.
        """
        self.db.flush()
        result = self.db.execute(
            update(Product)
            .where(
                Product.id == product.id,
                Product.company_id == tenant.company_id,
                Product.user_id == tenant.user_id,
                Product.current_stock + delta >= 0
            )
            .values(current_stock=Product.current_stock + delta, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(product)
        
        if result.rowcount == 0:
            return False
        
        self.db.add(StockMovement(
            product_id=product.id,
            quantity_change=delta,
            resulting_stock=product.current_stock,
            source=source,
            source_id=source_id,
            reason=reason,
            company_id=tenant.company_id,
            user_id=tenant.user_id
        ))
        self.db.flush()
        return True
    
    def apply_invoice(self, tenant: TenantContext, invoice: Invoice) -> List[str]:
        """
        Move stock for every line of an invoice.
        
        Free-text lines without a matching product are skipped. A line the
        stock guard rejects is reported in the returned warnings and the
        rest of the invoice still goes through.
        """
        direction = STOCK_DIRECTION[invoice.invoice_type]
        warnings = []
        
        for item in invoice.items:
            product = self.resolve_product(tenant, item.product_id, item.description)
            if product is None:
                continue
            if item.product_id is None:
                item.product_id = product.id
            
            quantity = Decimal(item.quantity)
            applied = self.apply_delta(
                tenant, product, quantity * direction,
                source="invoice", source_id=invoice.id,
                reason=f"{invoice.invoice_type} {invoice.invoice_number}"
            )
            if not applied:
                error = ConsistencyError(
                    f"Insufficient stock for '{product.name}': available {product.current_stock}, "
                    f"requested {quantity}. Stock was not updated for this item."
                )
                logger.warning(f"Invoice {invoice.invoice_number}: {error.message}")
                warnings.append(error.message)
        
        self.db.flush()
        return warnings
    
    def receive(self, tenant: TenantContext, product: Product, quantity: Decimal, source_id: int, reason: str) -> bool:
        """Stock increment for goods received against a purchase order"""
        return self.apply_delta(tenant, product, quantity, source="purchase_order", source_id=source_id, reason=reason)
    
    def adjust_stock(self, tenant: TenantContext, product_id: int, quantity_change, reason: Optional[str] = None) -> Product:
        """Manual stock correction; a reduction below zero is refused"""
        product = ProductService(self.db).get(tenant, product_id)
        delta = to_decimal(quantity_change, "Quantity change")
        if delta == 0:
            return product
        if not self.apply_delta(tenant, product, delta, source="manual", reason=reason or "Manual adjustment"):
            raise ConsistencyError(
                f"Stock cannot go below zero: '{product.name}' has {product.current_stock}, change {delta}"
            )
        return product
