"""
Purchase Order API Routes
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from gstledger.core.database import get_db, unit_of_work
from gstledger.core.security import get_current_tenant
from gstledger.core.tenancy import TenantContext
from gstledger.models import POStatus
from gstledger.schemas import PurchaseOrderCreate, PurchaseOrderResponse, ReceiveItemsRequest
from gstledger.services.purchase_order_service import PurchaseOrderService

router = APIRouter(prefix="/purchase-orders", tags=["Purchase Orders"])


@router.get("", response_model=List[PurchaseOrderResponse])
async def list_purchase_orders(
    po_status: Optional[POStatus] = None,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    return PurchaseOrderService(db).list(tenant, po_status.value if po_status else None)


@router.post("", response_model=PurchaseOrderResponse, status_code=status.HTTP_201_CREATED)
async def create_purchase_order(
    po_data: PurchaseOrderCreate,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    with unit_of_work(db):
        po = PurchaseOrderService(db).create(tenant, po_data)
    return po


@router.get("/{po_id}", response_model=PurchaseOrderResponse)
async def get_purchase_order(
    po_id: int,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    return PurchaseOrderService(db).get(tenant, po_id)


@router.post("/{po_id}/send", response_model=PurchaseOrderResponse)
async def send_purchase_order(
    po_id: int,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    with unit_of_work(db):
        po = PurchaseOrderService(db).mark_sent(tenant, po_id)
    return po


@router.post("/{po_id}/cancel", response_model=PurchaseOrderResponse)
async def cancel_purchase_order(
    po_id: int,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    with unit_of_work(db):
        po = PurchaseOrderService(db).cancel(tenant, po_id)
    return po


@router.post("/{po_id}/receive", response_model=PurchaseOrderResponse)
async def receive_items(
    po_id: int,
    request: ReceiveItemsRequest,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    """Record cumulative received quantities; stock rises by the new delta only"""
    with unit_of_work(db):
        result = PurchaseOrderService(db).receive(tenant, po_id, request.received)
    return result.purchase_order
