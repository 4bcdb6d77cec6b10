"""
Invoice Service - Invoice lifecycle, payments and payment status
"""
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, List, Optional
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload
from decimal import Decimal
from datetime import date, timedelta
import logging

from gstledger.core.config import settings
from gstledger.core.currency import money, to_decimal
from gstledger.core.exceptions import (
    ConflictError, DependencyError, InvariantViolation, NotFoundError, ValidationError
)
from gstledger.core.tenancy import TenantContext
from gstledger.models import (
    Company, Invoice, InvoiceItem, InvoicePayment, LedgerEntry,
    InvoiceType, EntityType, PaymentStatus, DocumentStatus
)
from gstledger.schemas import InvoiceCreate, PaymentCreate
from gstledger.services.audit_service import AuditService, AuditAction
from gstledger.services.entity_service import BusinessEntityService
from gstledger.services.gst_service import GSTService
from gstledger.services.inventory_service import InventoryLedger, ProductService
from gstledger.services.numbering import generate_document_number
from gstledger.services.tax_service import compute_tax

logger = logging.getLogger(__name__)


# ==================== ENTITY RULES ====================

@dataclass(frozen=True)
class EntityRule:
    """What an invoice against this kind of counterparty requires and triggers"""
    requires_entity: bool = False
    inventory_invoice_types: FrozenSet[str] = frozenset()
    
    def syncs_inventory(self, invoice_type: str) -> bool:
        return invoice_type in self.inventory_invoice_types


ENTITY_RULES = {
    EntityType.CUSTOMER.value: EntityRule(
        requires_entity=True,
        inventory_invoice_types=frozenset({InvoiceType.SALES.value, InvoiceType.SALE_RETURN.value}),
    ),
    EntityType.SUPPLIER.value: EntityRule(
        inventory_invoice_types=frozenset({InvoiceType.PURCHASE.value, InvoiceType.PURCHASE_RETURN.value}),
    ),
    EntityType.WHOLESALER.value: EntityRule(),
    EntityType.TRANSPORT.value: EntityRule(),
    EntityType.LABOUR.value: EntityRule(),
    EntityType.OTHER.value: EntityRule(),
}


def derive_payment_status(total_paid: Decimal, total_amount: Decimal) -> str:
    """Status implied by the payments alone; never yields overdue"""
    if total_paid > 0 and total_paid >= total_amount:
        return PaymentStatus.PAID.value
    if total_paid > 0:
        return PaymentStatus.PARTIAL.value
    return PaymentStatus.DUE.value


@dataclass
class InvoiceResult:
    invoice: Invoice
    warnings: List[str] = field(default_factory=list)


class InvoiceService:
    def __init__(self, db: Session, number_factory: Optional[Callable[[], str]] = None):
        self.db = db
        self.number_factory = number_factory or (
            lambda: generate_document_number(settings.INVOICE_NUMBER_PREFIX)
        )
        self.inventory = InventoryLedger(db)
        self.gst = GSTService(db)
        self.audit = AuditService(db)
    
    # ---------- queries ----------
    
    def get_by_id(self, tenant: TenantContext, invoice_id: int) -> Optional[Invoice]:
        return self.db.query(Invoice).options(
            joinedload(Invoice.items),
            joinedload(Invoice.entity)
        ).filter(
            Invoice.id == invoice_id,
            Invoice.company_id == tenant.company_id,
            Invoice.user_id == tenant.user_id
        ).first()
    
    def get(self, tenant: TenantContext, invoice_id: int) -> Invoice:
        invoice = self.get_by_id(tenant, invoice_id)
        if not invoice:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        return invoice
    
    def list(
        self,
        tenant: TenantContext,
        invoice_type: Optional[str] = None,
        payment_status: Optional[str] = None,
    ) -> List[Invoice]:
        query = self.db.query(Invoice).options(joinedload(Invoice.entity)).filter(
            Invoice.company_id == tenant.company_id,
            Invoice.user_id == tenant.user_id
        )
        if invoice_type:
            query = query.filter(Invoice.invoice_type == InvoiceType(invoice_type).value)
        if payment_status:
            query = query.filter(Invoice.payment_status == PaymentStatus(payment_status).value)
        return query.order_by(Invoice.invoice_date.desc(), Invoice.id.desc()).all()
    
    def get_payments(self, tenant: TenantContext, invoice_id: int) -> List[InvoicePayment]:
        invoice = self.get(tenant, invoice_id)
        return list(invoice.payments)
    
    def amount_paid(self, invoice: Invoice) -> Decimal:
        """Sum of recorded payments; the authoritative amount paid"""
        return sum((Decimal(p.amount) for p in invoice.payments), Decimal("0"))
    
    def _number_taken(self, tenant: TenantContext, number: str) -> bool:
        return self.db.query(Invoice.id).filter(
            Invoice.user_id == tenant.user_id,
            or_(Invoice.invoice_number == number, Invoice.custom_invoice_number == number)
        ).first() is not None
    
    def _seller_state(self, tenant: TenantContext) -> str:
        company = self.db.query(Company).filter(Company.id == tenant.company_id).first()
        if company and company.state_code:
            return company.state_code
        return settings.DEFAULT_SELLER_STATE
    
    # ---------- creation ----------
    
    def _valid_items(self, tenant: TenantContext, items) -> List:
        """Lines with a description and a positive quantity; others are dropped"""
        products = ProductService(self.db)
        valid = []
        for position, item in enumerate(items, start=1):
            description = (item.description or "").strip()
            quantity = to_decimal(item.quantity, f"Item {position} quantity")
            if not description or quantity <= 0:
                continue
            if item.product_id and products.get_by_id(tenant, item.product_id) is None:
                raise ValidationError(f"Item {position} references unknown product {item.product_id}")
            valid.append(item)
        return valid
    
    def create(self, tenant: TenantContext, invoice_data: InvoiceCreate) -> InvoiceResult:
        """
        Validate, price and persist an invoice with its side effects.
        
        Items, stock movements, the GST entry and the audit row are written
        in the caller's transaction. Stock shortfalls come back as warnings.
        """
        invoice_type = InvoiceType(invoice_data.invoice_type).value
        entity_type = EntityType(invoice_data.entity_type).value
        rule = ENTITY_RULES[entity_type]
        
        entity = None
        if invoice_data.entity_id:
            entity = BusinessEntityService(self.db).get(tenant, invoice_data.entity_id)
        if rule.requires_entity and entity is None:
            raise ValidationError(f"Please select a {entity_type} for this invoice")
        
        items = self._valid_items(tenant, invoice_data.items)
        if not items:
            raise ValidationError("Add at least one item with a description and a quantity greater than zero")
        
        seller_state = self._seller_state(tenant)
        counterparty_state = entity.state if entity is not None and entity.state else seller_state
        breakdown = compute_tax(items, counterparty_state, seller_state, invoice_data.force_igst)
        amounts = breakdown.persisted()
        
        custom_number = (invoice_data.custom_invoice_number or "").strip() or None
        if custom_number and self._number_taken(tenant, custom_number):
            raise ConflictError(f"Invoice number '{custom_number}' is already in use")
        
        def build(number: str) -> Invoice:
            invoice = Invoice(
                invoice_number=number,
                custom_invoice_number=custom_number,
                invoice_type=invoice_type,
                entity_type=entity_type,
                entity=entity,
                invoice_date=invoice_data.invoice_date,
                due_date=invoice_data.due_date,
                force_igst=invoice_data.force_igst,
                is_inter_state=breakdown.is_inter_state,
                subtotal=amounts["subtotal"],
                tax_amount=amounts["tax_amount"],
                total_amount=amounts["total_amount"],
                payment_status=PaymentStatus.DUE.value,
                status=DocumentStatus.SENT.value,
                notes=(invoice_data.notes or "").strip() or None,
                company_id=tenant.company_id,
                user_id=tenant.user_id
            )
            for item, line in zip(items, breakdown.lines):
                invoice.items.append(InvoiceItem(
                    description=item.description.strip(),
                    product_id=item.product_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    gst_rate=line.gst_rate,
                    line_total=money(line.line_total),
                    gst_amount=money(line.gst_amount),
                ))
            return invoice
        
        invoice = self._insert_with_number(tenant, build, custom_number)
        number = invoice.invoice_number
        
        try:
            warnings = []
            if rule.syncs_inventory(invoice_type):
                warnings = self.inventory.apply_invoice(tenant, invoice)
            
            self.gst.create_from_invoice(tenant, invoice, amounts, seller_state, counterparty_state)
            
            self.audit.log(
                tenant, AuditAction.CREATE, "Invoice", invoice.id,
                description=f"Created {invoice_type} invoice {invoice.invoice_number}",
                new_values={"total_amount": invoice.total_amount, "warnings": warnings}
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Invoice {number} creation failed after header insert: {e}")
            raise DependencyError("Invoice could not be saved completely; nothing was recorded") from e
        
        return InvoiceResult(invoice=invoice, warnings=warnings)
    
    def _insert_with_number(self, tenant: TenantContext, build, custom_number: Optional[str]) -> Invoice:
        """
        Flush the invoice under a fresh system number.
        A collision is retried once with a new number; a custom number is never retried.
        """
        for attempt in (1, 2):
            number = self.number_factory()
            if self._number_taken(tenant, number):
                logger.warning(f"Invoice number {number} already taken (attempt {attempt})")
                continue
            
            invoice = build(number)
            self.db.add(invoice)
            try:
                self.db.flush()
                return invoice
            except IntegrityError:
                self.db.rollback()
                if custom_number and self._number_taken(tenant, custom_number):
                    raise ConflictError(f"Invoice number '{custom_number}' is already in use")
                logger.warning(f"Invoice number {number} collided on insert (attempt {attempt})")
            except SQLAlchemyError as e:
                self.db.rollback()
                raise DependencyError(f"Could not save invoice: {e}") from e
        
        raise ConflictError("Could not allocate a unique invoice number, please retry")
    
    # ---------- payments & status ----------
    
    def _set_payment_status(self, tenant: TenantContext, invoice: Invoice, new_status: str, paid_date: Optional[date]):
        invoice.payment_status = new_status
        if new_status == PaymentStatus.PAID.value:
            invoice.status = DocumentStatus.PAID.value
            invoice.paid_date = paid_date or date.today()
        else:
            invoice.status = DocumentStatus.SENT.value
            invoice.paid_date = None
        self.gst.sync_payment_status(tenant, invoice, invoice.paid_date)
    
    def record_payment(self, tenant: TenantContext, invoice_id: int, payment_data: PaymentCreate) -> Invoice:
        amount = to_decimal(payment_data.amount, "Payment amount")
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than zero")
        
        invoice = self.get(tenant, invoice_id)
        old_status = invoice.payment_status
        
        invoice.payments.append(InvoicePayment(
            amount=money(amount),
            payment_date=payment_data.payment_date,
            payment_method=payment_data.payment_method,
            reference=payment_data.reference,
            company_id=tenant.company_id,
            user_id=tenant.user_id
        ))
        self.db.flush()
        
        new_status = derive_payment_status(self.amount_paid(invoice), Decimal(invoice.total_amount))
        if old_status == PaymentStatus.PAID.value:
            new_status = old_status
        if new_status != old_status:
            self._set_payment_status(tenant, invoice, new_status, payment_data.payment_date)
        
        self.audit.log(
            tenant, AuditAction.PAYMENT_RECEIVED, "Invoice", invoice.id,
            description=f"Payment of {money(amount)} on {invoice.invoice_number}",
            old_values={"payment_status": old_status},
            new_values={"payment_status": invoice.payment_status, "amount": money(amount)}
        )
        self.db.flush()
        return invoice
    
    def update_payment_status(
        self,
        tenant: TenantContext,
        invoice_id: int,
        payment_status: str,
        paid_date: Optional[date] = None,
    ) -> Invoice:
        """
        Manual override of payment status.
        
        A paid invoice can never move back. Marking an invoice paid records
        an adjustment payment for whatever is still outstanding.
        """
        new_status = PaymentStatus(payment_status).value
        invoice = self.get(tenant, invoice_id)
        old_status = invoice.payment_status
        
        if new_status == old_status:
            return invoice
        if old_status == PaymentStatus.PAID.value:
            raise InvariantViolation(
                f"Invoice {invoice.invoice_number} is paid and cannot be moved back to {new_status}"
            )
        
        if new_status == PaymentStatus.PAID.value:
            outstanding = Decimal(invoice.total_amount) - self.amount_paid(invoice)
            if outstanding > 0:
                invoice.payments.append(InvoicePayment(
                    amount=money(outstanding),
                    payment_date=paid_date or date.today(),
                    payment_method="adjustment",
                    reference="Marked as paid",
                    company_id=tenant.company_id,
                    user_id=tenant.user_id
                ))
        
        self._set_payment_status(tenant, invoice, new_status, paid_date)
        self.audit.log(
            tenant, AuditAction.STATUS_CHANGED, "Invoice", invoice.id,
            description=f"Payment status of {invoice.invoice_number} set to {new_status}",
            old_values={"payment_status": old_status},
            new_values={"payment_status": new_status}
        )
        self.db.flush()
        return invoice
    
    def update_invoice_status(
        self,
        tenant: TenantContext,
        invoice_id: int,
        status: str,
        paid_date: Optional[date] = None,
    ) -> Invoice:
        """Document status (sent/paid) override, kept in step with payment status"""
        status = DocumentStatus(status).value
        if status == DocumentStatus.PAID.value:
            return self.update_payment_status(tenant, invoice_id, PaymentStatus.PAID.value, paid_date)
        
        invoice = self.get(tenant, invoice_id)
        if invoice.payment_status == PaymentStatus.PAID.value:
            raise InvariantViolation(f"Invoice {invoice.invoice_number} is paid and cannot be reopened")
        invoice.status = status
        self.db.flush()
        return invoice
    
    def mark_overdue(self, tenant: TenantContext, as_of: Optional[date] = None) -> List[Invoice]:
        """Flag unpaid sales invoices whose due date has passed"""
        as_of = as_of or date.today()
        candidates = self.db.query(Invoice).filter(
            Invoice.company_id == tenant.company_id,
            Invoice.user_id == tenant.user_id,
            Invoice.invoice_type == InvoiceType.SALES.value,
            Invoice.payment_status.in_([PaymentStatus.DUE.value, PaymentStatus.PARTIAL.value])
        ).all()
        
        flagged = []
        for invoice in candidates:
            due_date = invoice.due_date or invoice.invoice_date + timedelta(days=settings.DEFAULT_CREDIT_DAYS)
            if due_date < as_of:
                self._set_payment_status(tenant, invoice, PaymentStatus.OVERDUE.value, None)
                flagged.append(invoice)
        
        if flagged:
            self.audit.log(
                tenant, AuditAction.MARKED_OVERDUE, "Invoice",
                description=f"{len(flagged)} invoice(s) marked overdue as of {as_of}",
                new_values={"invoice_ids": [inv.id for inv in flagged]}
            )
        self.db.flush()
        return flagged
    
    def delete(self, tenant: TenantContext, invoice_id: int) -> bool:
        """
        Remove an invoice with its items and GST entry.
        Stock movements already applied are left as they are.
        """
        invoice = self.get(tenant, invoice_id)
        payment_count = self.db.query(func.count(InvoicePayment.id)).filter(
            InvoicePayment.invoice_id == invoice.id
        ).scalar()
        if payment_count:
            raise InvariantViolation(
                f"Invoice {invoice.invoice_number} has {payment_count} payment(s) and cannot be deleted"
            )
        
        self.db.query(LedgerEntry).filter(
            LedgerEntry.invoice_id == invoice.id,
            LedgerEntry.company_id == tenant.company_id
        ).update({LedgerEntry.invoice_id: None}, synchronize_session=False)
        
        self.audit.log(
            tenant, AuditAction.DELETE, "Invoice", invoice.id,
            description=f"Deleted invoice {invoice.invoice_number}",
            old_values={"invoice_type": invoice.invoice_type, "total_amount": invoice.total_amount}
        )
        self.db.delete(invoice)
        self.db.flush()
        return True
