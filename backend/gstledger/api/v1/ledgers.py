"""
Ledger API Routes
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from gstledger.core.database import get_db, unit_of_work
from gstledger.core.security import get_current_tenant
from gstledger.core.tenancy import TenantContext
from gstledger.schemas import (
    LedgerCreate, LedgerResponse, LedgerEntryCreate, LedgerEntryResponse, LedgerEntryStatusUpdate
)
from gstledger.services.ledger_service import LedgerService

router = APIRouter(prefix="/ledgers", tags=["Ledgers"])


@router.get("", response_model=List[LedgerResponse])
async def list_ledgers(
    financial_year: Optional[str] = None,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    return LedgerService(db).list_ledgers(tenant, financial_year)


@router.post("", response_model=LedgerResponse, status_code=status.HTTP_201_CREATED)
async def create_ledger(
    ledger_data: LedgerCreate,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    with unit_of_work(db):
        ledger = LedgerService(db).create_ledger(tenant, ledger_data)
    return ledger


@router.patch("/entries/{entry_id}/status", response_model=LedgerEntryResponse)
async def update_entry_status(
    entry_id: int,
    update: LedgerEntryStatusUpdate,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    with unit_of_work(db):
        entry = LedgerService(db).update_entry_status(tenant, entry_id, update.status.value, update.paid_date)
    return entry


@router.get("/{ledger_id}/entries", response_model=List[LedgerEntryResponse])
async def list_entries(
    ledger_id: int,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    financial_year: Optional[str] = None,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    return LedgerService(db).list_entries(tenant, ledger_id, date_from, date_to, financial_year)


@router.post("/{ledger_id}/entries", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
async def add_entry(
    ledger_id: int,
    entry_data: LedgerEntryCreate,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    with unit_of_work(db):
        entry = LedgerService(db).add_entry(tenant, ledger_id, entry_data)
    return entry
