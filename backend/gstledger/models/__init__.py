"""
SQLAlchemy Models for the GST Ledger
"""
from datetime import datetime
from decimal import Decimal
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Date, Numeric,
    ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
import enum

from gstledger.core.database import Base


# ==================== ENUMS ====================

class InvoiceType(str, enum.Enum):
    SALES = "sales"
    PURCHASE = "purchase"
    SALE_RETURN = "sale_return"
    PURCHASE_RETURN = "purchase_return"


RETURN_INVOICE_TYPES = frozenset({InvoiceType.SALE_RETURN.value, InvoiceType.PURCHASE_RETURN.value})


class EntityType(str, enum.Enum):
    CUSTOMER = "customer"
    SUPPLIER = "supplier"
    WHOLESALER = "wholesaler"
    TRANSPORT = "transport"
    LABOUR = "labour"
    OTHER = "other"


class PaymentStatus(str, enum.Enum):
    DUE = "due"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


class DocumentStatus(str, enum.Enum):
    SENT = "sent"
    PAID = "paid"


class POStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    PARTIAL = "partial"
    RECEIVED = "received"
    CANCELLED = "cancelled"


class LedgerType(str, enum.Enum):
    ASSET = "asset"
    LIABILITY = "liability"
    INCOME = "income"
    EXPENSE = "expense"
    CAPITAL = "capital"
    EQUITY = "equity"
    LOAN = "loan"
    PAYABLES = "payables"
    RECEIVABLES = "receivables"


class GSTTransactionType(str, enum.Enum):
    SALE = "sale"
    PURCHASE = "purchase"


# ==================== TENANT & COUNTERPARTIES ====================

class Company(Base):
    """Tenant: the selling business whose books these are"""
    __tablename__ = 'companies'
    
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    state_code = Column(String(10), nullable=True)
    gstin = Column(String(15), nullable=True)
    address = Column(Text, nullable=True)
    user_id = Column(Integer, nullable=False)  # owner
    created_at = Column(DateTime, default=datetime.utcnow)
    
    __table_args__ = (
        Index('ix_companies_user_id', 'user_id'),
    )


class BusinessEntity(Base):
    """Customer, supplier or other counterparty"""
    __tablename__ = 'business_entities'
    
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    entity_type = Column(String(20), nullable=False)
    state = Column(String(10), nullable=True)  # GST state code, e.g. "27"
    gstin = Column(String(15), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    contact_person = Column(String(255), nullable=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    
    invoices = relationship("Invoice", back_populates="entity")
    purchase_orders = relationship("PurchaseOrder", back_populates="supplier")
    
    __table_args__ = (
        Index('ix_business_entities_tenant', 'company_id', 'user_id'),
    )


# ==================== INVENTORY ====================

class Product(Base):
    """Stock-bearing product"""
    __tablename__ = 'products'
    
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    hsn_code = Column(String(20), nullable=True)
    unit = Column(String(20), default="pcs")
    purchase_price = Column(Numeric(15, 2), default=Decimal("0.00"))
    selling_price = Column(Numeric(15, 2), default=Decimal("0.00"))
    gst_rate = Column(Numeric(5, 2), default=Decimal("0.00"))
    current_stock = Column(Numeric(15, 3), default=Decimal("0"), nullable=False)
    min_stock_level = Column(Numeric(15, 3), default=Decimal("0"))
    supplier_id = Column(Integer, ForeignKey('business_entities.id', ondelete='SET NULL'), nullable=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    movements = relationship("StockMovement", back_populates="product", cascade="all, delete-orphan")
    
    __table_args__ = (
        Index('ix_products_tenant', 'company_id', 'user_id'),
    )


class StockMovement(Base):
    """One applied stock delta"""
    __tablename__ = 'stock_movements'
    
    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey('products.id', ondelete='CASCADE'), nullable=False)
    quantity_change = Column(Numeric(15, 3), nullable=False)
    resulting_stock = Column(Numeric(15, 3), nullable=False)
    source = Column(String(20), nullable=False)  # invoice, purchase_order, manual
    source_id = Column(Integer, nullable=True)
    reason = Column(String(255), nullable=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    
    product = relationship("Product", back_populates="movements")


# ==================== INVOICES ====================

class Invoice(Base):
    """Sales, purchase or return invoice"""
    __tablename__ = 'invoices'
    
    id = Column(Integer, primary_key=True)
    invoice_number = Column(String(50), nullable=False)
    custom_invoice_number = Column(String(50), nullable=True)
    invoice_type = Column(String(20), nullable=False)
    entity_type = Column(String(20), nullable=False)
    entity_id = Column(Integer, ForeignKey('business_entities.id', ondelete='SET NULL'), nullable=True)
    invoice_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=True)
    force_igst = Column(Boolean, default=False)
    is_inter_state = Column(Boolean, default=False)
    subtotal = Column(Numeric(15, 2), default=Decimal("0.00"))
    tax_amount = Column(Numeric(15, 2), default=Decimal("0.00"))
    total_amount = Column(Numeric(15, 2), default=Decimal("0.00"))
    payment_status = Column(String(20), default=PaymentStatus.DUE.value, nullable=False)
    status = Column(String(20), default=DocumentStatus.SENT.value, nullable=False)
    paid_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    entity = relationship("BusinessEntity", back_populates="invoices")
    items = relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan",
                         order_by="InvoiceItem.id")
    payments = relationship("InvoicePayment", back_populates="invoice", cascade="all, delete-orphan",
                            order_by="InvoicePayment.id")
    gst_entries = relationship("GSTEntry", back_populates="invoice", cascade="all, delete-orphan")
    
    @property
    def is_void(self) -> bool:
        return self.invoice_type in RETURN_INVOICE_TYPES
    
    __table_args__ = (
        UniqueConstraint('user_id', 'invoice_number', name='uq_invoice_number_per_user'),
        UniqueConstraint('user_id', 'custom_invoice_number', name='uq_custom_invoice_number_per_user'),
        Index('ix_invoices_tenant_date', 'company_id', 'user_id', 'invoice_date'),
    )


class InvoiceItem(Base):
    """Invoice line item"""
    __tablename__ = 'invoice_items'
    
    id = Column(Integer, primary_key=True)
    invoice_id = Column(Integer, ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False)
    product_id = Column(Integer, ForeignKey('products.id', ondelete='SET NULL'), nullable=True)
    description = Column(String(500), nullable=False)
    quantity = Column(Numeric(15, 3), nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False)
    gst_rate = Column(Numeric(5, 2), default=Decimal("0.00"))
    line_total = Column(Numeric(15, 2), nullable=False)
    gst_amount = Column(Numeric(15, 2), default=Decimal("0.00"))
    
    invoice = relationship("Invoice", back_populates="items")
    product = relationship("Product")


class InvoicePayment(Base):
    """Payment recorded against an invoice"""
    __tablename__ = 'invoice_payments'
    
    id = Column(Integer, primary_key=True)
    invoice_id = Column(Integer, ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    payment_date = Column(Date, nullable=False)
    payment_method = Column(String(30), default="cash")  # cash, bank, upi, cheque, adjustment
    reference = Column(String(100), nullable=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    
    invoice = relationship("Invoice", back_populates="payments")


class GSTEntry(Base):
    """Tax record derived from a non-return invoice"""
    __tablename__ = 'gst_entries'
    
    id = Column(Integer, primary_key=True)
    invoice_id = Column(Integer, ForeignKey('invoices.id', ondelete='CASCADE'), nullable=True)
    transaction_type = Column(String(20), nullable=False)  # sale, purchase
    transaction_date = Column(Date, nullable=False)
    entity_name = Column(String(255), nullable=False)
    from_state = Column(String(10), nullable=True)
    to_state = Column(String(10), nullable=True)
    taxable_amount = Column(Numeric(15, 2), default=Decimal("0.00"))
    cgst_amount = Column(Numeric(15, 2), default=Decimal("0.00"))
    sgst_amount = Column(Numeric(15, 2), default=Decimal("0.00"))
    igst_amount = Column(Numeric(15, 2), default=Decimal("0.00"))
    total_gst = Column(Numeric(15, 2), default=Decimal("0.00"))
    payment_status = Column(String(20), default=PaymentStatus.DUE.value)
    paid_date = Column(Date, nullable=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    
    invoice = relationship("Invoice", back_populates="gst_entries")
    
    __table_args__ = (
        Index('ix_gst_entries_tenant_date', 'company_id', 'user_id', 'transaction_date'),
    )


# ==================== PURCHASE ORDERS ====================

class PurchaseOrder(Base):
    """Purchase order to a supplier"""
    __tablename__ = 'purchase_orders'
    
    id = Column(Integer, primary_key=True)
    po_number = Column(String(50), nullable=False)
    supplier_id = Column(Integer, ForeignKey('business_entities.id', ondelete='SET NULL'), nullable=True)
    order_date = Column(Date, nullable=False)
    expected_delivery_date = Column(Date, nullable=True)
    status = Column(String(20), default=POStatus.DRAFT.value, nullable=False)
    force_igst = Column(Boolean, default=False)
    subtotal = Column(Numeric(15, 2), default=Decimal("0.00"))
    tax_amount = Column(Numeric(15, 2), default=Decimal("0.00"))
    total_amount = Column(Numeric(15, 2), default=Decimal("0.00"))
    notes = Column(Text, nullable=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    supplier = relationship("BusinessEntity", back_populates="purchase_orders")
    items = relationship("PurchaseOrderItem", back_populates="purchase_order", cascade="all, delete-orphan",
                         order_by="PurchaseOrderItem.id")
    
    __table_args__ = (
        UniqueConstraint('user_id', 'po_number', name='uq_po_number_per_user'),
        Index('ix_purchase_orders_tenant_date', 'company_id', 'user_id', 'order_date'),
    )


class PurchaseOrderItem(Base):
    """Purchase order line"""
    __tablename__ = 'purchase_order_items'
    
    id = Column(Integer, primary_key=True)
    purchase_order_id = Column(Integer, ForeignKey('purchase_orders.id', ondelete='CASCADE'), nullable=False)
    product_id = Column(Integer, ForeignKey('products.id', ondelete='SET NULL'), nullable=True)
    description = Column(String(500), nullable=False)
    quantity = Column(Numeric(15, 3), nullable=False)
    received_quantity = Column(Numeric(15, 3), default=Decimal("0"), nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False)
    gst_rate = Column(Numeric(5, 2), default=Decimal("0.00"))
    line_total = Column(Numeric(15, 2), nullable=False)
    
    purchase_order = relationship("PurchaseOrder", back_populates="items")
    product = relationship("Product")


# ==================== LEDGERS ====================

class Ledger(Base):
    """Named account"""
    __tablename__ = 'ledgers'
    
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    ledger_type = Column(String(20), nullable=False)
    opening_balance = Column(Numeric(15, 2), default=Decimal("0.00"))
    current_balance = Column(Numeric(15, 2), default=Decimal("0.00"))
    financial_year = Column(String(10), nullable=False)
    description = Column(Text, nullable=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    
    entries = relationship("LedgerEntry", back_populates="ledger", cascade="all, delete-orphan",
                           order_by="LedgerEntry.entry_date")
    
    __table_args__ = (
        Index('ix_ledgers_tenant_fy', 'company_id', 'user_id', 'financial_year'),
    )


class LedgerEntry(Base):
    """Debit or credit posted to a ledger; amounts never change after insert"""
    __tablename__ = 'ledger_entries'
    
    id = Column(Integer, primary_key=True)
    ledger_id = Column(Integer, ForeignKey('ledgers.id', ondelete='CASCADE'), nullable=False)
    invoice_id = Column(Integer, ForeignKey('invoices.id', ondelete='SET NULL'), nullable=True)
    entry_date = Column(Date, nullable=False)
    description = Column(String(500), nullable=True)
    debit_amount = Column(Numeric(15, 2), default=Decimal("0.00"))
    credit_amount = Column(Numeric(15, 2), default=Decimal("0.00"))
    financial_year = Column(String(10), nullable=False)
    status = Column(String(20), default=PaymentStatus.DUE.value)  # due, partial, paid
    paid_date = Column(Date, nullable=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    
    ledger = relationship("Ledger", back_populates="entries")
    
    __table_args__ = (
        Index('ix_ledger_entries_tenant_date', 'company_id', 'user_id', 'entry_date'),
    )


# ==================== AUDIT ====================

class AuditLog(Base):
    """Audit trail for financial mutations"""
    __tablename__ = 'audit_logs'
    
    id = Column(Integer, primary_key=True)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)
    user_id = Column(Integer, nullable=True)
    company_id = Column(Integer, nullable=True)
    action = Column(String(50), nullable=False)
    resource_type = Column(String(100), nullable=False)
    resource_id = Column(Integer, nullable=True)
    description = Column(Text, nullable=True)
    old_values = Column(Text, nullable=True)  # JSON
    new_values = Column(Text, nullable=True)  # JSON
    status = Column(String(20), default='success')
    
    __table_args__ = (
        Index('ix_audit_logs_company_timestamp', 'company_id', 'timestamp'),
        Index('ix_audit_logs_resource', 'resource_type', 'resource_id'),
    )
