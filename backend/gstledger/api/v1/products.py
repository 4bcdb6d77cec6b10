"""
Product & Stock API Routes
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List

from gstledger.core.database import get_db, unit_of_work
from gstledger.core.security import get_current_tenant
from gstledger.core.tenancy import TenantContext
from gstledger.schemas import ProductCreate, ProductUpdate, ProductResponse, StockAdjustRequest
from gstledger.services.audit_service import AuditService, AuditAction
from gstledger.services.inventory_service import InventoryLedger, ProductService

router = APIRouter(prefix="/products", tags=["Products"])


@router.get("", response_model=List[ProductResponse])
async def list_products(
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    return ProductService(db).list(tenant)


@router.get("/low-stock", response_model=List[ProductResponse])
async def list_low_stock(
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    """Products below their minimum stock level"""
    return ProductService(db).get_low_stock(tenant)


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    product_data: ProductCreate,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    with unit_of_work(db):
        product = ProductService(db).create(tenant, product_data)
    return product


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    product_data: ProductUpdate,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    with unit_of_work(db):
        product = ProductService(db).update(tenant, product_id, product_data)
    return product


@router.post("/{product_id}/adjust", response_model=ProductResponse)
async def adjust_stock(
    product_id: int,
    adjustment: StockAdjustRequest,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    """Manual stock correction; refused if it would take stock below zero"""
    with unit_of_work(db):
        product = InventoryLedger(db).adjust_stock(tenant, product_id, adjustment.quantity_change, adjustment.reason)
        AuditService(db).log(
            tenant, AuditAction.STOCK_ADJUSTED, "Product", product.id,
            description=adjustment.reason,
            new_values={"quantity_change": adjustment.quantity_change, "current_stock": product.current_stock}
        )
    return product
