"""
Invoice API Routes
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from gstledger.core.database import get_db, unit_of_work
from gstledger.core.security import get_current_tenant
from gstledger.core.tenancy import TenantContext
from gstledger.models import InvoiceType, PaymentStatus
from gstledger.schemas import (
    InvoiceCreate, InvoiceCreateResponse, InvoiceResponse, InvoiceWithItems,
    PaymentCreate, PaymentResponse, PaymentStatusUpdate, InvoiceStatusUpdate, MarkOverdueRequest
)
from gstledger.services.invoice_service import InvoiceService

router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.get("", response_model=List[InvoiceResponse])
async def list_invoices(
    invoice_type: Optional[InvoiceType] = None,
    payment_status: Optional[PaymentStatus] = None,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    return InvoiceService(db).list(
        tenant,
        invoice_type.value if invoice_type else None,
        payment_status.value if payment_status else None
    )


@router.post("", response_model=InvoiceCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    invoice_data: InvoiceCreate,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    """Create an invoice; stock shortfalls are returned as warnings"""
    with unit_of_work(db):
        result = InvoiceService(db).create(tenant, invoice_data)
    return InvoiceCreateResponse(
        invoice=InvoiceWithItems.model_validate(result.invoice),
        warnings=result.warnings
    )


@router.post("/mark-overdue", response_model=List[InvoiceResponse])
async def mark_overdue(
    request: MarkOverdueRequest,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    with unit_of_work(db):
        flagged = InvoiceService(db).mark_overdue(tenant, request.as_of)
    return flagged


@router.get("/{invoice_id}", response_model=InvoiceWithItems)
async def get_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    return InvoiceService(db).get(tenant, invoice_id)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    """Delete an invoice that has no payments"""
    with unit_of_work(db):
        InvoiceService(db).delete(tenant, invoice_id)


@router.get("/{invoice_id}/payments", response_model=List[PaymentResponse])
async def list_payments(
    invoice_id: int,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    return InvoiceService(db).get_payments(tenant, invoice_id)


@router.post("/{invoice_id}/payments", response_model=InvoiceResponse)
async def record_payment(
    invoice_id: int,
    payment_data: PaymentCreate,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    with unit_of_work(db):
        invoice = InvoiceService(db).record_payment(tenant, invoice_id, payment_data)
    return invoice


@router.patch("/{invoice_id}/payment-status", response_model=InvoiceResponse)
async def update_payment_status(
    invoice_id: int,
    update: PaymentStatusUpdate,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    with unit_of_work(db):
        invoice = InvoiceService(db).update_payment_status(
            tenant, invoice_id, update.payment_status.value, update.paid_date
        )
    return invoice


@router.patch("/{invoice_id}/status", response_model=InvoiceResponse)
async def update_invoice_status(
    invoice_id: int,
    update: InvoiceStatusUpdate,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    with unit_of_work(db):
        invoice = InvoiceService(db).update_invoice_status(tenant, invoice_id, update.status.value, update.paid_date)
    return invoice
