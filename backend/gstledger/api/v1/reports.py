"""
Reports API Routes
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

from gstledger.core.database import get_db
from gstledger.core.security import get_current_tenant
from gstledger.core.tenancy import TenantContext
from gstledger.schemas import ReportType, ReportResponse, ReportSummary
from gstledger.services.report_service import ReportService

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/{report_type}", response_model=ReportResponse)
async def get_report(
    report_type: ReportType,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    as_of: Optional[date] = None,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_current_tenant)
):
    """Generate a report; defaults to the current month"""
    if not date_from:
        date_from = date.today().replace(day=1)
    if not date_to:
        date_to = date.today()
    
    result = ReportService(db).generate(tenant, report_type.value, date_from, date_to, as_of)
    return ReportResponse(
        report_type=result.report_type,
        date_from=result.date_from,
        date_to=result.date_to,
        generated_at=result.generated_at,
        rows=result.rows,
        summary=ReportSummary(**result.summary),
        extra=result.extra,
        warnings=result.warnings
    )
