"""Tests for report aggregation."""

from datetime import date
from decimal import Decimal

import pytest

from gstledger.core.exceptions import DependencyError, ValidationError
from gstledger.schemas import LedgerCreate, LedgerEntryCreate, PaymentCreate
from gstledger.services.ledger_service import LedgerService
from gstledger.services.report_service import ReportService, aging_bucket

from tests.conftest import make_invoice

JAN_FROM, JAN_TO = date(2025, 1, 1), date(2025, 1, 31)


@pytest.fixture
def reports(db):
    return ReportService(db)


@pytest.fixture
def january_books(db, tenant, invoice_service, customer, supplier, widget):
    """
    Sale of 2 widgets (2000 + 360 GST), purchase of raw material (500 + 90),
    a widget return (void), labour charges of 200, rent expense 50, interest income 30.
    Widget stock ends at 4 at a cost of 600.
    """
    invoice_service.create(tenant, make_invoice([("Widget", 2, 1000, 18)], entity=customer))
    invoice_service.create(tenant, make_invoice(
        [("Raw material", 1, 500, 18)], invoice_type="purchase", entity_type="supplier", entity=supplier
    ))
    invoice_service.create(tenant, make_invoice([("Widget", 1, 1000, 18)], invoice_type="sale_return", entity=customer))
    invoice_service.create(tenant, make_invoice([("Loading", 1, 200, 0)], invoice_type="purchase", entity_type="labour"))

    ledgers = LedgerService(db)
    rent = ledgers.create_ledger(tenant, LedgerCreate(name="Rent", ledger_type="expense", financial_year="2024-25"))
    interest = ledgers.create_ledger(tenant, LedgerCreate(name="Interest", ledger_type="income", financial_year="2024-25"))
    ledgers.add_entry(tenant, rent.id, LedgerEntryCreate(entry_date=date(2025, 1, 20), debit_amount=Decimal("50")))
    ledgers.add_entry(tenant, interest.id, LedgerEntryCreate(entry_date=date(2025, 1, 25), credit_amount=Decimal("30")))
    db.commit()


class TestProfitLoss:

    def test_figures(self, tenant, reports, january_books):
        result = reports.generate(tenant, "profit_loss", JAN_FROM, JAN_TO)
        rows = {row["subcategory"]: row["amount"] for row in result.rows}

        assert rows["Sales"] == Decimal("2000.00")
        assert rows["Opening Stock"] == Decimal("2400.00")
        assert rows["Purchases"] == Decimal("500.00")
        assert rows["Closing Stock"] == Decimal("1200.00")
        assert rows["COGS"] == Decimal("1700.00")
        assert rows["Labour & Transport"] == Decimal("200.00")
        # 300 - (200 + 50) + 30 - (90 - 360)
        assert result.summary == {
            "total_sales": Decimal("2000.00"),
            "total_purchases": Decimal("500.00"),
            "gross_profit": Decimal("300.00"),
            "net_profit": Decimal("350.00"),
        }
        assert result.warnings == []

    def test_ledger_failure_degrades_to_zero(self, tenant, reports, january_books, monkeypatch):
        def unavailable(*args, **kwargs):
            raise DependencyError("Ledger data is unavailable")

        monkeypatch.setattr(reports.ledgers, "entries_by_type", unavailable)
        result = reports.generate(tenant, "profit_loss", JAN_FROM, JAN_TO)

        # ledger expense and income both contribute zero: 300 - 200 + 270
        assert result.summary["net_profit"] == Decimal("370.00")
        assert result.warnings == ["Ledger data is unavailable", "Ledger data is unavailable"]

    def test_labour_bill_saved_as_sales_is_an_expense(self, db, tenant, reports, invoice_service):
        invoice_service.create(tenant, make_invoice([("Unloading", 1, 200, 0)], invoice_type="sales", entity_type="labour"))
        db.commit()

        result = reports.generate(tenant, "profit_loss", JAN_FROM, JAN_TO)
        rows = {row["subcategory"]: row["amount"] for row in result.rows}

        assert rows["Sales"] == Decimal("0.00")
        assert rows["Labour & Transport"] == Decimal("200.00")
        assert result.summary["net_profit"] == Decimal("-200.00")

    def test_out_of_range_invoices_ignored(self, tenant, reports, january_books):
        result = reports.generate(tenant, "profit_loss", date(2025, 2, 1), date(2025, 2, 28))
        assert result.summary["total_sales"] == Decimal("0.00")

    def test_bad_range(self, tenant, reports):
        with pytest.raises(ValidationError):
            reports.generate(tenant, "profit_loss", JAN_TO, JAN_FROM)


class TestGSTReport:

    def test_returns_never_counted(self, tenant, reports, january_books):
        result = reports.generate(tenant, "gst_report", JAN_FROM, JAN_TO)

        assert len(result.rows) == 3  # sale, purchase, labour purchase
        assert result.summary["total_sales"] == Decimal("225.00")  # cgst
        assert result.summary["total_purchases"] == Decimal("225.00")  # sgst
        assert result.summary["gross_profit"] == Decimal("0.00")  # igst
        assert result.summary["net_profit"] == Decimal("450.00")
        assert result.extra["net_liability"] == Decimal("270.00")


class TestReturnVoid:

    def test_lists_returns_only(self, tenant, reports, january_books):
        result = reports.generate(tenant, "return_void", JAN_FROM, JAN_TO)

        assert [row["category"] for row in result.rows] == ["Sale Return"]
        assert result.summary["total_sales"] == Decimal("1180.00")
        assert result.summary["total_purchases"] == Decimal("0.00")
        assert result.summary["net_profit"] == Decimal("1180.00")


class TestAging:

    def test_buckets(self):
        assert aging_bucket(-5) == "Not Due Yet"
        assert aging_bucket(0) == "Not Due Yet"
        assert aging_bucket(1) == "0-30 days"
        assert aging_bucket(31) == "31-60 days"
        assert aging_bucket(61) == "61-90 days"
        assert aging_bucket(91) == "90+ days"

    def test_unpaid_sales_only(self, db, tenant, reports, invoice_service, customer):
        old = invoice_service.create(tenant, make_invoice(
            [("A", 1, 1000, 18)], entity=customer, invoice_date=date(2025, 1, 1)
        )).invoice
        invoice_service.create(tenant, make_invoice(
            [("B", 1, 500, 0)], entity=customer, invoice_date=date(2025, 1, 5), due_date=date(2025, 4, 1)
        ))
        paid = invoice_service.create(tenant, make_invoice(
            [("C", 1, 100, 0)], entity=customer, invoice_date=date(2025, 1, 2)
        )).invoice
        invoice_service.create(tenant, make_invoice(
            [("D", 1, 100, 0)], invoice_type="sale_return", entity=customer, invoice_date=date(2025, 1, 3)
        ))
        invoice_service.record_payment(tenant, old.id, PaymentCreate(amount=Decimal("180"), payment_date=date(2025, 1, 10)))
        invoice_service.record_payment(tenant, paid.id, PaymentCreate(amount=Decimal("100"), payment_date=date(2025, 1, 10)))
        db.commit()

        result = reports.generate(tenant, "invoice_aging", JAN_FROM, JAN_TO, as_of=date(2025, 3, 15))
        rows = {row["invoice_id"]: row for row in result.rows}

        assert len(rows) == 2
        assert rows[old.id]["category"] == "31-60 days"  # due 31 Jan, 43 days late
        assert rows[old.id]["amount"] == Decimal("1000.00")
        assert result.summary["total_sales"] == Decimal("1500.00")
        assert result.summary["total_purchases"] == Decimal("1000.00")
        assert result.summary["gross_profit"] == Decimal("2.00")
        assert result.summary["net_profit"] == Decimal("180.00")  # paid on the rows shown

    def test_debts_from_before_the_range_are_aged(self, db, tenant, reports, invoice_service, customer):
        old = invoice_service.create(tenant, make_invoice(
            [("A", 1, 1000, 0)], entity=customer, invoice_date=date(2024, 10, 1)
        )).invoice
        invoice_service.create(tenant, make_invoice(
            [("Later", 1, 400, 0)], entity=customer, invoice_date=date(2025, 4, 2)
        ))
        db.commit()

        result = reports.generate(tenant, "invoice_aging", date(2025, 3, 1), date(2025, 3, 31), as_of=date(2025, 3, 15))

        assert [row["invoice_id"] for row in result.rows] == [old.id]
        assert result.rows[0]["category"] == "90+ days"
        assert result.rows[0]["amount"] == Decimal("1000.00")
        assert result.extra["buckets"]["90+ days"] == Decimal("1000.00")
        assert result.summary["total_sales"] == Decimal("1000.00")

    def test_paid_total_covers_outstanding_rows_only(self, db, tenant, reports, invoice_service, customer):
        part = invoice_service.create(tenant, make_invoice([("A", 1, 1000, 0)], entity=customer)).invoice
        settled = invoice_service.create(tenant, make_invoice([("B", 1, 500, 0)], entity=customer)).invoice
        invoice_service.record_payment(tenant, part.id, PaymentCreate(amount=Decimal("100"), payment_date=date(2025, 1, 20)))
        invoice_service.record_payment(tenant, settled.id, PaymentCreate(amount=Decimal("500"), payment_date=date(2025, 1, 20)))
        db.commit()

        result = reports.generate(tenant, "invoice_aging", JAN_FROM, JAN_TO, as_of=date(2025, 3, 15))

        assert len(result.rows) == 1
        assert result.summary["total_sales"] == Decimal("900.00")
        assert result.summary["net_profit"] == Decimal("100.00")


class TestTrialBalance:

    def _books(self, db, tenant):
        ledgers = LedgerService(db)
        cash = ledgers.create_ledger(tenant, LedgerCreate(name="Cash", ledger_type="asset"))
        capital = ledgers.create_ledger(tenant, LedgerCreate(name="Capital", ledger_type="capital"))
        ledgers.add_entry(tenant, cash.id, LedgerEntryCreate(entry_date=date(2025, 1, 2), debit_amount=Decimal("1000")))
        ledgers.add_entry(tenant, capital.id, LedgerEntryCreate(entry_date=date(2025, 1, 2), credit_amount=Decimal("1000")))
        db.commit()
        return ledgers, cash

    def test_balanced(self, db, tenant, reports):
        self._books(db, tenant)
        result = reports.generate(tenant, "trial_balance", JAN_FROM, JAN_TO)

        assert result.extra == {"difference": Decimal("0.00"), "is_balanced": True}
        assert result.summary["total_sales"] == Decimal("1000.00")
        assert result.summary["total_purchases"] == Decimal("1000.00")

    def test_difference_is_surfaced(self, db, tenant, reports):
        ledgers, cash = self._books(db, tenant)
        ledgers.add_entry(tenant, cash.id, LedgerEntryCreate(entry_date=date(2025, 1, 3), debit_amount=Decimal("100")))
        db.commit()

        result = reports.generate(tenant, "trial_balance", JAN_FROM, JAN_TO)
        assert result.extra["is_balanced"] is False
        assert result.extra["difference"] == Decimal("100.00")
        assert result.summary["net_profit"] == Decimal("100.00")

    def test_ledger_summary_net_is_total_closing(self, db, tenant, reports):
        self._books(db, tenant)
        result = reports.generate(tenant, "ledger_summary", JAN_FROM, JAN_TO)

        assert result.summary["net_profit"] == Decimal("2000.00")


class TestOperationalReports:

    def test_sales_report(self, tenant, reports, january_books):
        result = reports.generate(tenant, "sales_report", JAN_FROM, JAN_TO)

        assert len(result.rows) == 1
        assert result.rows[0]["display_amount"] == "₹2,360.00"
        assert result.summary["total_sales"] == Decimal("2000.00")
        assert result.summary["gross_profit"] == Decimal("360.00")
        assert result.summary["net_profit"] == Decimal("2360.00")

    def test_inventory_report(self, tenant, reports, january_books):
        result = reports.generate(tenant, "inventory_report", JAN_FROM, JAN_TO)

        assert result.summary["total_sales"] == Decimal("1.00")
        assert result.summary["total_purchases"] == Decimal("2400.00")
        assert result.summary["gross_profit"] == Decimal("0.00")

    def test_payment_report(self, tenant, reports, january_books):
        result = reports.generate(tenant, "payment_report", JAN_FROM, JAN_TO)

        # sale 2360 receivable; purchases 590 + 200 payable
        assert result.summary["total_sales"] == Decimal("2360.00")
        assert result.summary["total_purchases"] == Decimal("790.00")
        assert result.summary["net_profit"] == Decimal("1570.00")

    def test_purchase_report(self, db, tenant, reports, january_books, supplier):
        from gstledger.schemas import PurchaseOrderCreate, PurchaseOrderItemCreate
        from gstledger.services.purchase_order_service import PurchaseOrderService

        PurchaseOrderService(db, number_factory=lambda: "PO-1").create(tenant, PurchaseOrderCreate(
            supplier_id=supplier.id, order_date=date(2025, 1, 12),
            items=[PurchaseOrderItemCreate(description="Widget", quantity=Decimal("2"), unit_price=Decimal("100"))],
        ))
        db.commit()

        result = reports.generate(tenant, "purchase_report", JAN_FROM, JAN_TO)
        assert result.summary["total_sales"] == Decimal("200.00")
        assert result.summary["total_purchases"] == Decimal("790.00")
        assert result.summary["gross_profit"] == Decimal("1.00")
        assert result.summary["net_profit"] == Decimal("990.00")

    def test_other_tenant_sees_nothing(self, tenant, other_tenant, reports, january_books):
        result = reports.generate(other_tenant, "sales_report", JAN_FROM, JAN_TO)
        assert result.rows == []
