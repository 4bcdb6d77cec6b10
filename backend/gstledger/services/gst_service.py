"""
GST Service - Tax entries derived from invoices
"""
from typing import Optional, List, Iterable
from sqlalchemy.orm import Session
from datetime import date

from gstledger.core.tenancy import TenantContext
from gstledger.models import (
    GSTEntry, Invoice, InvoiceType, GSTTransactionType, LedgerEntry, PaymentStatus
)


class GSTService:
    def __init__(self, db: Session):
        self.db = db
    
    def create_from_invoice(
        self,
        tenant: TenantContext,
        invoice: Invoice,
        amounts: dict,
        seller_state: Optional[str],
        counterparty_state: Optional[str],
    ) -> Optional[GSTEntry]:
        """
        Record the tax of a sales or purchase invoice.
        Returns None for return invoices, which never reach the GST books.
        """
        if invoice.is_void:
            return None
        
        is_sale = invoice.invoice_type == InvoiceType.SALES.value
        entity_name = invoice.entity.name if invoice.entity is not None else "Miscellaneous"
        
        entry = GSTEntry(
            invoice_id=invoice.id,
            transaction_type=(GSTTransactionType.SALE if is_sale else GSTTransactionType.PURCHASE).value,
            transaction_date=invoice.invoice_date,
            entity_name=entity_name,
            from_state=seller_state if is_sale else counterparty_state,
            to_state=counterparty_state if is_sale else seller_state,
            taxable_amount=amounts["subtotal"],
            cgst_amount=amounts["cgst"],
            sgst_amount=amounts["sgst"],
            igst_amount=amounts["igst"],
            total_gst=amounts["tax_amount"],
            payment_status=invoice.payment_status,
            company_id=tenant.company_id,
            user_id=tenant.user_id
        )
        self.db.add(entry)
        self.db.flush()
        return entry
    
    def sync_payment_status(self, tenant: TenantContext, invoice: Invoice, paid_date: Optional[date] = None) -> int:
        """
        Copy the invoice's payment status to its GST entry and linked ledger entries.
        Returns the number of rows touched.
        """
        is_paid = invoice.payment_status == PaymentStatus.PAID.value
        stamp = (paid_date or date.today()) if is_paid else None
        touched = 0
        
        linked: Iterable = self.db.query(GSTEntry).filter(
            GSTEntry.invoice_id == invoice.id,
            GSTEntry.company_id == tenant.company_id,
            GSTEntry.user_id == tenant.user_id
        ).all()
        for entry in linked:
            entry.payment_status = invoice.payment_status
            entry.paid_date = stamp
            touched += 1
        
        ledger_status = PaymentStatus.DUE.value if invoice.payment_status == PaymentStatus.OVERDUE.value \
            else invoice.payment_status
        for entry in self.db.query(LedgerEntry).filter(
            LedgerEntry.invoice_id == invoice.id,
            LedgerEntry.company_id == tenant.company_id,
            LedgerEntry.user_id == tenant.user_id
        ).all():
            entry.status = ledger_status
            entry.paid_date = stamp
            touched += 1
        
        self.db.flush()
        return touched
    
    def list_entries(
        self,
        tenant: TenantContext,
        date_from: date,
        date_to: date,
        transaction_types: Optional[List[str]] = None,
    ) -> List[GSTEntry]:
        transaction_types = transaction_types or [t.value for t in GSTTransactionType]
        return self.db.query(GSTEntry).filter(
            GSTEntry.company_id == tenant.company_id,
            GSTEntry.user_id == tenant.user_id,
            GSTEntry.transaction_type.in_(transaction_types),
            GSTEntry.transaction_date >= date_from,
            GSTEntry.transaction_date <= date_to
        ).order_by(GSTEntry.transaction_date, GSTEntry.id).all()
