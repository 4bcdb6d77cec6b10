"""
Report Service - P&L, trial balance, GST, aging and operational reports

Every report runs through the same pipeline: fetch the tenant's records
for the period, drop void (return) invoices unless the report is about
them, then aggregate. Reports are recomputed from scratch on each call.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload, selectinload
from decimal import Decimal
from datetime import date, datetime, timedelta
import logging

from gstledger.core.config import settings
from gstledger.core.currency import format_indian_currency, money, ZERO
from gstledger.core.exceptions import DependencyError, ValidationError
from gstledger.core.tenancy import TenantContext
from gstledger.models import (
    Invoice, InvoicePayment, Product, PurchaseOrder,
    InvoiceType, EntityType, LedgerType, POStatus, GSTTransactionType, RETURN_INVOICE_TYPES
)
from gstledger.schemas import ReportType
from gstledger.services.gst_service import GSTService
from gstledger.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)

MISCELLANEOUS = "Miscellaneous"
DIRECT_EXPENSE_ENTITY_TYPES = (EntityType.LABOUR.value, EntityType.TRANSPORT.value)

# (lower bound exclusive in days past due, label), checked top-down
AGING_BUCKETS = (
    (90, "90+ days"),
    (60, "61-90 days"),
    (30, "31-60 days"),
    (0, "0-30 days"),
)
NOT_DUE = "Not Due Yet"


def aging_bucket(days_past_due: int) -> str:
    for threshold, label in AGING_BUCKETS:
        if days_past_due > threshold:
            return label
    return NOT_DUE


def _total(records: Iterable, value: Callable[[Any], Any]) -> Decimal:
    return sum((Decimal(value(r) or 0) for r in records), ZERO)


def _counterparty(record) -> str:
    entity = getattr(record, "entity", None) or getattr(record, "supplier", None)
    return entity.name if entity is not None else MISCELLANEOUS


def _summary(total_sales=ZERO, total_purchases=ZERO, gross_profit=ZERO, net_profit=ZERO) -> Dict[str, Decimal]:
    return {
        "total_sales": money(total_sales),
        "total_purchases": money(total_purchases),
        "gross_profit": money(gross_profit),
        "net_profit": money(net_profit),
    }


@dataclass
class ReportResult:
    report_type: str
    date_from: date
    date_to: date
    rows: List[Dict[str, Any]]
    summary: Dict[str, Decimal]
    extra: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    generated_at: datetime = field(default_factory=datetime.utcnow)


class ReportService:
    def __init__(self, db: Session):
        self.db = db
        self.ledgers = LedgerService(db)
        self.gst = GSTService(db)
        self._builders = {
            ReportType.PROFIT_LOSS.value: self._profit_loss,
            ReportType.TRIAL_BALANCE.value: self._trial_balance,
            ReportType.LEDGER_SUMMARY.value: self._ledger_summary,
            ReportType.GST_REPORT.value: self._gst_report,
            ReportType.INVOICE_AGING.value: self._invoice_aging,
            ReportType.RETURN_VOID.value: self._return_void,
            ReportType.SALES_REPORT.value: self._sales_report,
            ReportType.PURCHASE_REPORT.value: self._purchase_report,
            ReportType.INVENTORY_REPORT.value: self._inventory_report,
            ReportType.PAYMENT_REPORT.value: self._payment_report,
        }
    
    def generate(
        self,
        tenant: TenantContext,
        report_type: str,
        date_from: date,
        date_to: date,
        as_of: Optional[date] = None,
    ) -> ReportResult:
        """
        Build a complete report. Nothing is cached; a failure other than a
        degraded ledger fetch propagates and no partial result is returned.
        """
        report_type = ReportType(report_type).value
        if date_from > date_to:
            raise ValidationError("date_from must not be after date_to")
        
        result = ReportResult(report_type=report_type, date_from=date_from, date_to=date_to, rows=[], summary={})
        builder = self._builders[report_type]
        rows, summary, extra = builder(tenant, date_from, date_to, as_of or date.today(), result.warnings)
        
        for row in rows:
            row["display_amount"] = format_indian_currency(row["amount"])
        result.rows = rows
        result.summary = summary
        result.extra = extra
        logger.info(
            f"Report {report_type} for company {tenant.company_id} "
            f"{date_from}..{date_to}: {len(rows)} rows, {len(result.warnings)} warnings"
        )
        return result
    
    # ==================== PIPELINE ====================
    
    def _invoices(
        self,
        tenant: TenantContext,
        date_from: Optional[date],
        date_to: date,
        invoice_types: Iterable[str],
        include_void: bool = False,
    ) -> List[Invoice]:
        """Invoices of the given types up to date_to; date_from=None means no lower bound"""
        types = [t for t in invoice_types if include_void or t not in RETURN_INVOICE_TYPES]
        if not types:
            return []
        query = self.db.query(Invoice).options(
            joinedload(Invoice.entity),
            selectinload(Invoice.items)
        ).filter(
            Invoice.company_id == tenant.company_id,
            Invoice.user_id == tenant.user_id,
            Invoice.invoice_type.in_(types),
            Invoice.invoice_date <= date_to
        )
        if date_from is not None:
            query = query.filter(Invoice.invoice_date >= date_from)
        return query.order_by(Invoice.invoice_date, Invoice.id).all()
    
    def _payments_by_invoice(self, invoices: List[Invoice]) -> Dict[int, Decimal]:
        ids = [inv.id for inv in invoices]
        if not ids:
            return {}
        rows = self.db.query(
            InvoicePayment.invoice_id, func.sum(InvoicePayment.amount)
        ).filter(
            InvoicePayment.invoice_id.in_(ids)
        ).group_by(InvoicePayment.invoice_id).all()
        return {invoice_id: money(amount) for invoice_id, amount in rows}
    
    def _products(self, tenant: TenantContext) -> List[Product]:
        return self.db.query(Product).filter(
            Product.company_id == tenant.company_id,
            Product.user_id == tenant.user_id
        ).order_by(Product.name).all()
    
    def _degrade(self, warnings: List[str], fetch: Callable[[], Any], default: Any) -> Any:
        """Run a sub-fetch; a DependencyError is logged and the aggregate falls back to `default`"""
        try:
            return fetch()
        except DependencyError as e:
            logger.warning(f"Report input unavailable, using zero: {e.message}")
            warnings.append(e.message)
            return default
    
    def _ledger_movement(self, tenant, ledger_types, date_from, date_to, warnings, credit_normal: bool) -> Decimal:
        entries = self._degrade(
            warnings,
            lambda: self.ledgers.entries_by_type(tenant, list(ledger_types), date_from, date_to),
            []
        )
        debits = _total(entries, lambda e: e.debit_amount)
        credits = _total(entries, lambda e: e.credit_amount)
        return credits - debits if credit_normal else debits - credits
    
    # ==================== FINANCIAL ====================
    
    def _profit_loss(self, tenant, date_from, date_to, as_of, warnings):
        # labour and transport bills are direct expenses whatever invoice type they were saved under
        invoices = self._invoices(
            tenant, date_from, date_to, [InvoiceType.SALES.value, InvoiceType.PURCHASE.value]
        )
        direct_expense_invoices = [i for i in invoices if i.entity_type in DIRECT_EXPENSE_ENTITY_TYPES]
        trading = [i for i in invoices if i.entity_type not in DIRECT_EXPENSE_ENTITY_TYPES]
        sales_invoices = [i for i in trading if i.invoice_type == InvoiceType.SALES.value]
        purchase_invoices = [i for i in trading if i.invoice_type == InvoiceType.PURCHASE.value]
        products = self._products(tenant)
        
        sales = _total(sales_invoices, lambda i: i.subtotal)
        purchases = _total(purchase_invoices, lambda i: i.subtotal)
        opening_stock = _total(products, lambda p: Decimal(p.current_stock or 0) * Decimal(p.purchase_price or 0))
        
        by_id = {p.id: p for p in products}
        by_name = {p.name.strip().lower(): p for p in products}
        cost_of_sold = ZERO
        for invoice in sales_invoices:
            for item in invoice.items:
                product = by_id.get(item.product_id) or by_name.get((item.description or "").strip().lower())
                if product is not None:
                    cost_of_sold += Decimal(item.quantity) * Decimal(product.purchase_price or 0)
        
        closing_stock = max(ZERO, opening_stock - cost_of_sold)
        cogs = opening_stock + purchases - closing_stock
        gross_profit = sales - cogs
        
        direct_expenses = _total(direct_expense_invoices, lambda i: i.total_amount)
        ledger_expenses = self._ledger_movement(
            tenant, [LedgerType.EXPENSE.value], date_from, date_to, warnings, credit_normal=False
        )
        ledger_income = self._ledger_movement(
            tenant, [LedgerType.INCOME.value], date_from, date_to, warnings, credit_normal=True
        )
        purchase_tax = _total(purchase_invoices, lambda i: i.tax_amount)
        sales_tax = _total(sales_invoices, lambda i: i.tax_amount)
        net_tax = purchase_tax - sales_tax
        
        net_profit = gross_profit - (direct_expenses + ledger_expenses) + ledger_income - net_tax
        
        rows = [
            {"category": "Income", "subcategory": "Sales", "amount": money(sales)},
            {"category": "Cost of Goods Sold", "subcategory": "Opening Stock", "amount": money(opening_stock)},
            {"category": "Cost of Goods Sold", "subcategory": "Purchases", "amount": money(purchases)},
            {"category": "Cost of Goods Sold", "subcategory": "Closing Stock", "amount": money(closing_stock)},
            {"category": "Cost of Goods Sold", "subcategory": "COGS", "amount": money(cogs)},
            {"category": "Gross Profit", "subcategory": "Gross Profit", "amount": money(gross_profit)},
            {"category": "Expenses", "subcategory": "Labour & Transport", "amount": money(direct_expenses)},
            {"category": "Expenses", "subcategory": "Ledger Expenses", "amount": money(ledger_expenses)},
            {"category": "Income", "subcategory": "Ledger Income", "amount": money(ledger_income)},
            {"category": "Tax", "subcategory": "Net GST (input - output)", "amount": money(net_tax)},
            {"category": "Net Profit", "subcategory": "Net Profit", "amount": money(net_profit)},
        ]
        extra = {"purchase_tax": money(purchase_tax), "sales_tax": money(sales_tax)}
        return rows, _summary(sales, purchases, gross_profit, net_profit), extra
    
    def _ledger_rows(self, tenant, date_from, date_to, warnings):
        balances = self._degrade(
            warnings, lambda: self.ledgers.ledger_balances(tenant, date_from, date_to), []
        )
        rows = []
        for balance in balances:
            closing = balance.closing_balance
            rows.append({
                "category": balance.ledger_type,
                "subcategory": balance.name,
                "ledger_id": balance.ledger_id,
                "opening_balance": money(balance.opening_balance),
                "debit": money(balance.debits),
                "credit": money(balance.credits),
                "closing_balance": money(closing),
                "amount": money(closing),
            })
        return balances, rows
    
    def _trial_balance(self, tenant, date_from, date_to, as_of, warnings):
        balances, rows = self._ledger_rows(tenant, date_from, date_to, warnings)
        debits = _total(balances, lambda b: b.debits)
        credits = _total(balances, lambda b: b.credits)
        closing = _total(balances, lambda b: b.closing_balance)
        opening = _total(balances, lambda b: b.opening_balance)
        difference = debits - credits
        
        extra = {"difference": money(difference), "is_balanced": difference == 0}
        if difference != 0:
            logger.warning(f"Trial balance for company {tenant.company_id} is out by {money(difference)}")
        return rows, _summary(credits, debits, closing - opening, difference), extra
    
    def _ledger_summary(self, tenant, date_from, date_to, as_of, warnings):
        balances, rows = self._ledger_rows(tenant, date_from, date_to, warnings)
        debits = _total(balances, lambda b: b.debits)
        credits = _total(balances, lambda b: b.credits)
        closing = _total(balances, lambda b: b.closing_balance)
        opening = _total(balances, lambda b: b.opening_balance)
        return rows, _summary(credits, debits, closing - opening, closing), {}
    
    def _gst_report(self, tenant, date_from, date_to, as_of, warnings):
        entries = self.gst.list_entries(
            tenant, date_from, date_to,
            [GSTTransactionType.SALE.value, GSTTransactionType.PURCHASE.value]
        )
        rows = [{
            "category": entry.transaction_type,
            "subcategory": entry.entity_name or MISCELLANEOUS,
            "invoice_id": entry.invoice_id,
            "date": entry.transaction_date,
            "from_state": entry.from_state,
            "to_state": entry.to_state,
            "taxable_amount": money(entry.taxable_amount),
            "cgst": money(entry.cgst_amount),
            "sgst": money(entry.sgst_amount),
            "igst": money(entry.igst_amount),
            "amount": money(entry.total_gst),
            "payment_status": entry.payment_status,
        } for entry in entries]
        
        cgst = _total(entries, lambda e: e.cgst_amount)
        sgst = _total(entries, lambda e: e.sgst_amount)
        igst = _total(entries, lambda e: e.igst_amount)
        output_tax = _total([e for e in entries if e.transaction_type == GSTTransactionType.SALE.value],
                            lambda e: e.total_gst)
        input_tax = _total([e for e in entries if e.transaction_type == GSTTransactionType.PURCHASE.value],
                           lambda e: e.total_gst)
        extra = {
            "output_tax": money(output_tax),
            "input_tax": money(input_tax),
            "net_liability": money(output_tax - input_tax),
        }
        return rows, _summary(cgst, sgst, igst, cgst + sgst + igst), extra
    
    # ==================== RECEIVABLES ====================
    
    def _invoice_aging(self, tenant, date_from, date_to, as_of, warnings):
        """Every outstanding sales invoice up to date_to; older debts are what aging is for"""
        invoices = self._invoices(tenant, None, date_to, [InvoiceType.SALES.value])
        paid = self._payments_by_invoice(invoices)
        
        rows = []
        bucket_totals = {label: ZERO for _, label in AGING_BUCKETS}
        bucket_totals[NOT_DUE] = ZERO
        total_overdue = ZERO
        for invoice in invoices:
            amount_paid = paid.get(invoice.id, ZERO)
            amount_due = money(invoice.total_amount) - amount_paid
            if amount_due <= 0:
                continue
            due_date = invoice.due_date or invoice.invoice_date + timedelta(days=settings.DEFAULT_CREDIT_DAYS)
            days_past_due = (as_of - due_date).days
            bucket = aging_bucket(days_past_due)
            bucket_totals[bucket] += amount_due
            if days_past_due > 0:
                total_overdue += amount_due
            rows.append({
                "category": bucket,
                "subcategory": _counterparty(invoice),
                "invoice_id": invoice.id,
                "invoice_number": invoice.custom_invoice_number or invoice.invoice_number,
                "invoice_date": invoice.invoice_date,
                "due_date": due_date,
                "days_overdue": max(days_past_due, 0),
                "total_amount": money(invoice.total_amount),
                "amount_paid": amount_paid,
                "amount": amount_due,
            })
        
        total_pending = _total(rows, lambda r: r["amount"])
        total_paid = _total(rows, lambda r: r["amount_paid"])
        extra = {"buckets": {label: money(amount) for label, amount in bucket_totals.items()}, "as_of": as_of}
        return rows, _summary(total_pending, total_overdue, len(rows), total_paid), extra
    
    def _return_void(self, tenant, date_from, date_to, as_of, warnings):
        invoices = self._invoices(
            tenant, date_from, date_to,
            [InvoiceType.SALE_RETURN.value, InvoiceType.PURCHASE_RETURN.value],
            include_void=True
        )
        rows = [{
            "category": "Sale Return" if inv.invoice_type == InvoiceType.SALE_RETURN.value else "Purchase Return",
            "subcategory": _counterparty(inv),
            "invoice_id": inv.id,
            "invoice_number": inv.custom_invoice_number or inv.invoice_number,
            "invoice_date": inv.invoice_date,
            "subtotal": money(inv.subtotal),
            "tax_amount": money(inv.tax_amount),
            "amount": money(inv.total_amount),
        } for inv in invoices]
        
        sale_returns = _total([i for i in invoices if i.invoice_type == InvoiceType.SALE_RETURN.value],
                              lambda i: i.total_amount)
        purchase_returns = _total([i for i in invoices if i.invoice_type == InvoiceType.PURCHASE_RETURN.value],
                                  lambda i: i.total_amount)
        return rows, _summary(sale_returns, purchase_returns, ZERO, sale_returns + purchase_returns), {}
    
    # ==================== OPERATIONAL ====================
    
    def _sales_report(self, tenant, date_from, date_to, as_of, warnings):
        invoices = self._invoices(tenant, date_from, date_to, [InvoiceType.SALES.value])
        rows = [{
            "category": "Sales",
            "subcategory": _counterparty(inv),
            "invoice_id": inv.id,
            "invoice_number": inv.custom_invoice_number or inv.invoice_number,
            "invoice_date": inv.invoice_date,
            "subtotal": money(inv.subtotal),
            "tax_amount": money(inv.tax_amount),
            "amount": money(inv.total_amount),
            "payment_status": inv.payment_status,
        } for inv in invoices]
        subtotal = _total(invoices, lambda i: i.subtotal)
        tax = _total(invoices, lambda i: i.tax_amount)
        total = _total(invoices, lambda i: i.total_amount)
        return rows, _summary(subtotal, ZERO, tax, total), {}
    
    def _purchase_report(self, tenant, date_from, date_to, as_of, warnings):
        orders = self.db.query(PurchaseOrder).options(
            joinedload(PurchaseOrder.supplier),
            selectinload(PurchaseOrder.items)
        ).filter(
            PurchaseOrder.company_id == tenant.company_id,
            PurchaseOrder.user_id == tenant.user_id,
            PurchaseOrder.order_date >= date_from,
            PurchaseOrder.order_date <= date_to
        ).order_by(PurchaseOrder.order_date, PurchaseOrder.id).all()
        invoices = self._invoices(tenant, date_from, date_to, [InvoiceType.PURCHASE.value])
        
        rows = []
        for po in orders:
            rows.append({
                "category": "Purchase Order",
                "subcategory": _counterparty(po),
                "po_number": po.po_number,
                "date": po.order_date,
                "status": po.status,
                "total_items": len(po.items),
                "total_quantity": _total(po.items, lambda i: i.quantity),
                "received_quantity": _total(po.items, lambda i: i.received_quantity),
                "amount": money(po.total_amount),
            })
        for inv in invoices:
            rows.append({
                "category": "Purchase Invoice",
                "subcategory": _counterparty(inv),
                "invoice_number": inv.custom_invoice_number or inv.invoice_number,
                "date": inv.invoice_date,
                "status": inv.payment_status,
                "amount": money(inv.total_amount),
            })
        
        active_orders = [po for po in orders if po.status != POStatus.CANCELLED.value]
        po_total = _total(active_orders, lambda po: po.total_amount)
        invoice_total = _total(invoices, lambda i: i.total_amount)
        open_orders = len([po for po in active_orders if po.status != POStatus.RECEIVED.value])
        return rows, _summary(po_total, invoice_total, open_orders, po_total + invoice_total), {}
    
    def _inventory_report(self, tenant, date_from, date_to, as_of, warnings):
        products = self._products(tenant)
        rows = []
        for product in products:
            stock = Decimal(product.current_stock or 0)
            value = stock * Decimal(product.purchase_price or 0)
            rows.append({
                "category": "Low Stock" if stock < Decimal(product.min_stock_level or 0) else "In Stock",
                "subcategory": product.name,
                "product_id": product.id,
                "hsn_code": product.hsn_code,
                "current_stock": stock,
                "min_stock_level": Decimal(product.min_stock_level or 0),
                "purchase_price": money(product.purchase_price),
                "amount": money(value),
            })
        stock_value = _total(rows, lambda r: r["amount"])
        low_stock = len([r for r in rows if r["category"] == "Low Stock"])
        return rows, _summary(len(rows), stock_value, low_stock, stock_value), {}
    
    def _payment_report(self, tenant, date_from, date_to, as_of, warnings):
        entries = self._degrade(
            warnings,
            lambda: self.ledgers.entries_by_type(
                tenant, [LedgerType.RECEIVABLES.value, LedgerType.PAYABLES.value], date_from, date_to
            ),
            []
        )
        invoices = self._invoices(tenant, date_from, date_to, [InvoiceType.SALES.value, InvoiceType.PURCHASE.value])
        paid = self._payments_by_invoice(invoices)
        
        rows = []
        receivables = payables = ZERO
        for entry in entries:
            is_receivable = entry.ledger.ledger_type == LedgerType.RECEIVABLES.value
            debit, credit = money(entry.debit_amount), money(entry.credit_amount)
            amount = debit - credit if is_receivable else credit - debit
            if is_receivable:
                receivables += amount
            else:
                payables += amount
            rows.append({
                "category": "Receivable" if is_receivable else "Payable",
                "subcategory": entry.ledger.name,
                "date": entry.entry_date,
                "description": entry.description,
                "status": entry.status,
                "amount": amount,
            })
        for inv in invoices:
            amount_paid = paid.get(inv.id, ZERO)
            amount_due = max(money(inv.total_amount) - amount_paid, ZERO)
            is_sale = inv.invoice_type == InvoiceType.SALES.value
            if is_sale:
                receivables += amount_due
            else:
                payables += amount_due
            rows.append({
                "category": "Receivable" if is_sale else "Payable",
                "subcategory": _counterparty(inv),
                "invoice_number": inv.custom_invoice_number or inv.invoice_number,
                "date": inv.invoice_date,
                "status": inv.payment_status,
                "total_amount": money(inv.total_amount),
                "amount_paid": amount_paid,
                "amount": amount_due,
            })
        return rows, _summary(receivables, payables, len(rows), receivables - payables), {}
