"""
Pydantic Schemas for API Validation
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Any, Dict, List, Optional
from datetime import datetime, date
from decimal import Decimal
from enum import Enum

from gstledger.models import (
    InvoiceType, EntityType, PaymentStatus, DocumentStatus, POStatus, LedgerType
)


# ==================== ENUMS ====================

class ReportType(str, Enum):
    PROFIT_LOSS = "profit_loss"
    TRIAL_BALANCE = "trial_balance"
    LEDGER_SUMMARY = "ledger_summary"
    GST_REPORT = "gst_report"
    INVOICE_AGING = "invoice_aging"
    RETURN_VOID = "return_void"
    SALES_REPORT = "sales_report"
    PURCHASE_REPORT = "purchase_report"
    INVENTORY_REPORT = "inventory_report"
    PAYMENT_REPORT = "payment_report"


# ==================== BUSINESS ENTITY SCHEMAS ====================

class BusinessEntityBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    entity_type: EntityType
    state: Optional[str] = Field(None, max_length=10)
    gstin: Optional[str] = Field(None, max_length=15)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    contact_person: Optional[str] = None


class BusinessEntityCreate(BusinessEntityBase):
    pass


class BusinessEntityResponse(BusinessEntityBase):
    id: int
    company_id: int
    created_at: datetime
    
    model_config = ConfigDict(from_attributes=True)


# ==================== PRODUCT SCHEMAS ====================

class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    hsn_code: Optional[str] = None
    unit: str = "pcs"
    purchase_price: Decimal = Field(Decimal("0"), ge=0)
    selling_price: Decimal = Field(Decimal("0"), ge=0)
    gst_rate: Decimal = Field(Decimal("0"), ge=0, le=100)
    min_stock_level: Optional[Decimal] = Field(None, ge=0)
    supplier_id: Optional[int] = None


class ProductCreate(ProductBase):
    current_stock: Decimal = Field(Decimal("0"), ge=0)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    hsn_code: Optional[str] = None
    unit: Optional[str] = None
    purchase_price: Optional[Decimal] = Field(None, ge=0)
    selling_price: Optional[Decimal] = Field(None, ge=0)
    gst_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    min_stock_level: Optional[Decimal] = Field(None, ge=0)
    supplier_id: Optional[int] = None


class ProductResponse(ProductBase):
    id: int
    current_stock: Decimal
    company_id: int
    created_at: datetime
    
    model_config = ConfigDict(from_attributes=True)


class StockAdjustRequest(BaseModel):
    quantity_change: Decimal
    reason: Optional[str] = None


# ==================== INVOICE SCHEMAS ====================

class InvoiceItemCreate(BaseModel):
    """Blank descriptions and non-positive quantities are dropped, not rejected"""
    description: str = ""
    product_id: Optional[int] = None
    quantity: Decimal = Decimal("0")
    unit_price: Decimal = Field(Decimal("0"), ge=0)
    gst_rate: Decimal = Field(Decimal("0"), ge=0, le=100)


class InvoiceItemResponse(BaseModel):
    id: int
    description: str
    product_id: Optional[int] = None
    quantity: Decimal
    unit_price: Decimal
    gst_rate: Decimal
    line_total: Decimal
    gst_amount: Decimal
    
    model_config = ConfigDict(from_attributes=True)


class InvoiceCreate(BaseModel):
    invoice_type: InvoiceType = InvoiceType.SALES
    entity_type: EntityType = EntityType.CUSTOMER
    entity_id: Optional[int] = None
    invoice_date: date = Field(default_factory=date.today)
    due_date: Optional[date] = None
    custom_invoice_number: Optional[str] = Field(None, max_length=50)
    force_igst: bool = False
    notes: Optional[str] = None
    items: List[InvoiceItemCreate] = Field(default_factory=list)


class InvoiceResponse(BaseModel):
    id: int
    invoice_number: str
    custom_invoice_number: Optional[str] = None
    invoice_type: str
    entity_type: str
    entity_id: Optional[int] = None
    invoice_date: date
    due_date: Optional[date] = None
    is_inter_state: bool
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    payment_status: str
    status: str
    paid_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: datetime
    
    model_config = ConfigDict(from_attributes=True)


class InvoiceWithItems(InvoiceResponse):
    items: List[InvoiceItemResponse] = []


class InvoiceCreateResponse(BaseModel):
    invoice: InvoiceWithItems
    warnings: List[str] = []


class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0)
    payment_date: date = Field(default_factory=date.today)
    payment_method: str = "cash"
    reference: Optional[str] = None


class PaymentResponse(BaseModel):
    id: int
    invoice_id: int
    amount: Decimal
    payment_date: date
    payment_method: str
    reference: Optional[str] = None
    
    model_config = ConfigDict(from_attributes=True)


class PaymentStatusUpdate(BaseModel):
    payment_status: PaymentStatus
    paid_date: Optional[date] = None


class InvoiceStatusUpdate(BaseModel):
    status: DocumentStatus
    paid_date: Optional[date] = None


class MarkOverdueRequest(BaseModel):
    as_of: date = Field(default_factory=date.today)


# ==================== PURCHASE ORDER SCHEMAS ====================

class PurchaseOrderItemCreate(BaseModel):
    description: str = Field(..., min_length=1)
    product_id: Optional[int] = None
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(Decimal("0"), ge=0)
    gst_rate: Decimal = Field(Decimal("0"), ge=0, le=100)


class PurchaseOrderItemResponse(BaseModel):
    id: int
    description: str
    product_id: Optional[int] = None
    quantity: Decimal
    received_quantity: Decimal
    unit_price: Decimal
    gst_rate: Decimal
    line_total: Decimal
    
    model_config = ConfigDict(from_attributes=True)


class PurchaseOrderCreate(BaseModel):
    supplier_id: Optional[int] = None
    order_date: date = Field(default_factory=date.today)
    expected_delivery_date: Optional[date] = None
    force_igst: bool = False
    notes: Optional[str] = None
    items: List[PurchaseOrderItemCreate] = Field(..., min_length=1)


class PurchaseOrderResponse(BaseModel):
    id: int
    po_number: str
    supplier_id: Optional[int] = None
    order_date: date
    expected_delivery_date: Optional[date] = None
    status: POStatus
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    notes: Optional[str] = None
    items: List[PurchaseOrderItemResponse] = []
    
    model_config = ConfigDict(from_attributes=True)


class ReceiveItemsRequest(BaseModel):
    """Cumulative received quantity per purchase order item id"""
    received: Dict[int, Decimal]


# ==================== LEDGER SCHEMAS ====================

class LedgerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    ledger_type: LedgerType
    opening_balance: Decimal = Decimal("0")
    financial_year: Optional[str] = None
    description: Optional[str] = None


class LedgerResponse(BaseModel):
    id: int
    name: str
    ledger_type: LedgerType
    opening_balance: Decimal
    current_balance: Decimal
    financial_year: str
    description: Optional[str] = None
    
    model_config = ConfigDict(from_attributes=True)


class LedgerEntryCreate(BaseModel):
    entry_date: date = Field(default_factory=date.today)
    description: Optional[str] = None
    debit_amount: Decimal = Field(Decimal("0"), ge=0)
    credit_amount: Decimal = Field(Decimal("0"), ge=0)
    invoice_id: Optional[int] = None
    status: PaymentStatus = PaymentStatus.DUE


class LedgerEntryResponse(BaseModel):
    id: int
    ledger_id: int
    invoice_id: Optional[int] = None
    entry_date: date
    description: Optional[str] = None
    debit_amount: Decimal
    credit_amount: Decimal
    financial_year: str
    status: str
    paid_date: Optional[date] = None
    
    model_config = ConfigDict(from_attributes=True)


class LedgerEntryStatusUpdate(BaseModel):
    status: PaymentStatus
    paid_date: Optional[date] = None


# ==================== REPORT SCHEMAS ====================

class ReportSummary(BaseModel):
    """Four totals whose meaning depends on the report type"""
    total_sales: Decimal = Decimal("0.00")
    total_purchases: Decimal = Decimal("0.00")
    gross_profit: Decimal = Decimal("0.00")
    net_profit: Decimal = Decimal("0.00")


class ReportResponse(BaseModel):
    report_type: ReportType
    date_from: date
    date_to: date
    generated_at: datetime
    rows: List[Dict[str, Any]] = []
    summary: ReportSummary
    extra: Dict[str, Any] = {}
    warnings: List[str] = []
