"""
Ledger Service - Accounts, entries and balances
"""
from dataclasses import dataclass
from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from decimal import Decimal
from datetime import date
import logging

from gstledger.core.currency import money, to_decimal
from gstledger.core.exceptions import DependencyError, NotFoundError, ValidationError
from gstledger.core.fiscal import financial_year_bounds, financial_year_for
from gstledger.core.tenancy import TenantContext
from gstledger.models import Invoice, Ledger, LedgerEntry, LedgerType, PaymentStatus
from gstledger.schemas import LedgerCreate, LedgerEntryCreate

logger = logging.getLogger(__name__)

# Balances of these grow with credits; everything else grows with debits
CREDIT_NORMAL_TYPES = frozenset({
    LedgerType.CAPITAL.value,
    LedgerType.EQUITY.value,
    LedgerType.LOAN.value,
    LedgerType.PAYABLES.value,
    LedgerType.LIABILITY.value,
    LedgerType.INCOME.value,
})


def closing_balance(ledger_type: str, opening: Decimal, debits: Decimal, credits: Decimal) -> Decimal:
    if ledger_type in CREDIT_NORMAL_TYPES:
        return opening + credits - debits
    return opening + debits - credits


@dataclass
class LedgerBalance:
    ledger_id: int
    name: str
    ledger_type: str
    opening_balance: Decimal
    debits: Decimal
    credits: Decimal
    
    @property
    def closing_balance(self) -> Decimal:
        return closing_balance(self.ledger_type, self.opening_balance, self.debits, self.credits)


class LedgerService:
    def __init__(self, db: Session):
        self.db = db
    
    def get_by_id(self, tenant: TenantContext, ledger_id: int) -> Optional[Ledger]:
        return self.db.query(Ledger).filter(
            Ledger.id == ledger_id,
            Ledger.company_id == tenant.company_id,
            Ledger.user_id == tenant.user_id
        ).first()
    
    def get(self, tenant: TenantContext, ledger_id: int) -> Ledger:
        ledger = self.get_by_id(tenant, ledger_id)
        if not ledger:
            raise NotFoundError(f"Ledger {ledger_id} not found")
        return ledger
    
    def list_ledgers(self, tenant: TenantContext, financial_year: Optional[str] = None) -> List[Ledger]:
        query = self.db.query(Ledger).filter(
            Ledger.company_id == tenant.company_id,
            Ledger.user_id == tenant.user_id
        )
        if financial_year:
            query = query.filter(Ledger.financial_year == financial_year)
        return query.order_by(Ledger.ledger_type, Ledger.name).all()
    
    def create_ledger(self, tenant: TenantContext, ledger_data: LedgerCreate) -> Ledger:
        opening = money(to_decimal(ledger_data.opening_balance, "Opening balance"))
        ledger = Ledger(
            name=ledger_data.name.strip(),
            ledger_type=LedgerType(ledger_data.ledger_type).value,
            opening_balance=opening,
            current_balance=opening,
            financial_year=ledger_data.financial_year or financial_year_for(date.today()),
            description=ledger_data.description,
            company_id=tenant.company_id,
            user_id=tenant.user_id
        )
        self.db.add(ledger)
        self.db.flush()
        return ledger
    
    def add_entry(self, tenant: TenantContext, ledger_id: int, entry_data: LedgerEntryCreate) -> LedgerEntry:
        """Post a one-sided debit or credit; amounts are fixed from here on"""
        ledger = self.get(tenant, ledger_id)
        debit = to_decimal(entry_data.debit_amount or 0, "Debit amount")
        credit = to_decimal(entry_data.credit_amount or 0, "Credit amount")
        
        if debit < 0 or credit < 0:
            raise ValidationError("Debit and credit amounts cannot be negative")
        if (debit > 0) == (credit > 0):
            raise ValidationError("An entry needs exactly one of a debit or a credit amount")
        
        if entry_data.invoice_id:
            linked = self.db.query(Invoice.id).filter(
                Invoice.id == entry_data.invoice_id,
                Invoice.company_id == tenant.company_id,
                Invoice.user_id == tenant.user_id
            ).first()
            if linked is None:
                raise ValidationError(f"Invoice {entry_data.invoice_id} not found")
        
        status = PaymentStatus(entry_data.status).value
        if status == PaymentStatus.OVERDUE.value:
            status = PaymentStatus.DUE.value
        
        entry = LedgerEntry(
            ledger_id=ledger.id,
            invoice_id=entry_data.invoice_id,
            entry_date=entry_data.entry_date,
            description=entry_data.description,
            debit_amount=money(debit),
            credit_amount=money(credit),
            financial_year=financial_year_for(entry_data.entry_date),
            status=status,
            paid_date=entry_data.entry_date if status == PaymentStatus.PAID.value else None,
            company_id=tenant.company_id,
            user_id=tenant.user_id
        )
        self.db.add(entry)
        self.db.flush()
        
        ledger.current_balance = self.balance(tenant, ledger).closing_balance
        self.db.flush()
        return entry
    
    def list_entries(
        self,
        tenant: TenantContext,
        ledger_id: int,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        financial_year: Optional[str] = None,
    ) -> List[LedgerEntry]:
        """Entries of one ledger, optionally narrowed to a financial year such as 2025-26"""
        self.get(tenant, ledger_id)
        if financial_year:
            fy_start, fy_end = financial_year_bounds(financial_year)
            date_from = max(date_from, fy_start) if date_from else fy_start
            date_to = min(date_to, fy_end) if date_to else fy_end
        query = self.db.query(LedgerEntry).filter(
            LedgerEntry.ledger_id == ledger_id,
            LedgerEntry.company_id == tenant.company_id,
            LedgerEntry.user_id == tenant.user_id
        )
        if date_from:
            query = query.filter(LedgerEntry.entry_date >= date_from)
        if date_to:
            query = query.filter(LedgerEntry.entry_date <= date_to)
        return query.order_by(LedgerEntry.entry_date, LedgerEntry.id).all()
    
    def update_entry_status(
        self,
        tenant: TenantContext,
        entry_id: int,
        status: str,
        paid_date: Optional[date] = None,
    ) -> LedgerEntry:
        """Settlement status is the only mutable part of an entry"""
        entry = self.db.query(LedgerEntry).filter(
            LedgerEntry.id == entry_id,
            LedgerEntry.company_id == tenant.company_id,
            LedgerEntry.user_id == tenant.user_id
        ).first()
        if not entry:
            raise NotFoundError(f"Ledger entry {entry_id} not found")
        
        status = PaymentStatus(status).value
        if status == PaymentStatus.OVERDUE.value:
            raise ValidationError("Ledger entries are due, partial or paid")
        entry.status = status
        entry.paid_date = (paid_date or date.today()) if status == PaymentStatus.PAID.value else None
        self.db.flush()
        return entry
    
    def balance(
        self,
        tenant: TenantContext,
        ledger: Ledger,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> LedgerBalance:
        query = self.db.query(
            func.coalesce(func.sum(LedgerEntry.debit_amount), 0),
            func.coalesce(func.sum(LedgerEntry.credit_amount), 0)
        ).filter(
            LedgerEntry.ledger_id == ledger.id,
            LedgerEntry.company_id == tenant.company_id,
            LedgerEntry.user_id == tenant.user_id
        )
        if date_from:
            query = query.filter(LedgerEntry.entry_date >= date_from)
        if date_to:
            query = query.filter(LedgerEntry.entry_date <= date_to)
        debits, credits = query.one()
        return LedgerBalance(
            ledger_id=ledger.id,
            name=ledger.name,
            ledger_type=ledger.ledger_type,
            opening_balance=money(ledger.opening_balance),
            debits=money(debits),
            credits=money(credits),
        )
    
    def ledger_balances(
        self,
        tenant: TenantContext,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> List[LedgerBalance]:
        """
        Per-ledger opening/debits/credits for a period.
        Store failures surface as DependencyError for the caller to degrade on.
        """
        try:
            return [
                self.balance(tenant, ledger, date_from, date_to)
                for ledger in self.list_ledgers(tenant)
            ]
        except SQLAlchemyError as e:
            logger.error(f"Ledger fetch failed for company {tenant.company_id}: {e}")
            raise DependencyError("Ledger data is unavailable") from e
    
    def entries_by_type(
        self,
        tenant: TenantContext,
        ledger_types: List[str],
        date_from: date,
        date_to: date,
    ) -> List[LedgerEntry]:
        """Entries in range posted to ledgers of the given types"""
        try:
            return self.db.query(LedgerEntry).join(Ledger).filter(
                LedgerEntry.company_id == tenant.company_id,
                LedgerEntry.user_id == tenant.user_id,
                Ledger.ledger_type.in_(ledger_types),
                LedgerEntry.entry_date >= date_from,
                LedgerEntry.entry_date <= date_to
            ).order_by(LedgerEntry.entry_date, LedgerEntry.id).all()
        except SQLAlchemyError as e:
            logger.error(f"Ledger entry fetch failed for company {tenant.company_id}: {e}")
            raise DependencyError("Ledger data is unavailable") from e
