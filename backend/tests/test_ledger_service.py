"""Tests for ledgers, entries and closing balances."""

from datetime import date
from decimal import Decimal

import pytest

from gstledger.core.exceptions import NotFoundError, ValidationError
from gstledger.schemas import LedgerCreate, LedgerEntryCreate
from gstledger.services.ledger_service import LedgerService, closing_balance


@pytest.fixture
def ledgers(db):
    return LedgerService(db)


def _entry(debit=0, credit=0, day=date(2025, 1, 10), **kw):
    return LedgerEntryCreate(entry_date=day, debit_amount=Decimal(str(debit)), credit_amount=Decimal(str(credit)), **kw)


class TestClosingBalance:

    @pytest.mark.parametrize("ledger_type", ["capital", "equity", "loan", "payables", "liability", "income"])
    def test_credit_normal(self, ledger_type):
        assert closing_balance(ledger_type, Decimal("100"), Decimal("30"), Decimal("50")) == Decimal("120")

    @pytest.mark.parametrize("ledger_type", ["asset", "expense", "receivables"])
    def test_debit_normal(self, ledger_type):
        assert closing_balance(ledger_type, Decimal("100"), Decimal("30"), Decimal("50")) == Decimal("80")


class TestEntries:

    def test_entry_updates_current_balance(self, db, tenant, ledgers):
        cash = ledgers.create_ledger(tenant, LedgerCreate(name="Cash", ledger_type="asset",
                                                          opening_balance=Decimal("500"), financial_year="2024-25"))
        ledgers.add_entry(tenant, cash.id, _entry(debit=200))
        ledgers.add_entry(tenant, cash.id, _entry(credit=50))
        db.commit()

        assert cash.current_balance == Decimal("650")
        assert [e.financial_year for e in ledgers.list_entries(tenant, cash.id)] == ["2024-25", "2024-25"]

    @pytest.mark.parametrize("debit, credit", [(0, 0), (10, 10)])
    def test_entry_needs_exactly_one_side(self, tenant, ledgers, debit, credit):
        cash = ledgers.create_ledger(tenant, LedgerCreate(name="Cash", ledger_type="asset"))
        with pytest.raises(ValidationError):
            ledgers.add_entry(tenant, cash.id, _entry(debit=debit, credit=credit))

    def test_status_update(self, db, tenant, ledgers):
        payables = ledgers.create_ledger(tenant, LedgerCreate(name="Creditors", ledger_type="payables"))
        entry = ledgers.add_entry(tenant, payables.id, _entry(credit=1000))
        ledgers.update_entry_status(tenant, entry.id, "paid", date(2025, 2, 1))
        db.commit()

        assert entry.status == "paid"
        assert entry.paid_date == date(2025, 2, 1)
        assert entry.credit_amount == Decimal("1000")

    def test_unknown_ledger(self, tenant, other_tenant, ledgers):
        cash = ledgers.create_ledger(tenant, LedgerCreate(name="Cash", ledger_type="asset"))
        with pytest.raises(NotFoundError):
            ledgers.add_entry(other_tenant, cash.id, _entry(debit=1))

    def test_period_balance(self, db, tenant, ledgers):
        capital = ledgers.create_ledger(tenant, LedgerCreate(name="Capital", ledger_type="capital",
                                                             opening_balance=Decimal("1000")))
        ledgers.add_entry(tenant, capital.id, _entry(credit=300, day=date(2025, 1, 5)))
        ledgers.add_entry(tenant, capital.id, _entry(credit=700, day=date(2025, 3, 5)))
        db.commit()

        balance = ledgers.balance(tenant, capital, date(2025, 1, 1), date(2025, 1, 31))
        assert balance.credits == Decimal("300")
        assert balance.closing_balance == Decimal("1300")

    def test_entries_for_financial_year(self, db, tenant, ledgers):
        cash = ledgers.create_ledger(tenant, LedgerCreate(name="Cash", ledger_type="asset"))
        for day in (date(2024, 3, 31), date(2024, 4, 1), date(2025, 3, 31), date(2025, 4, 1)):
            ledgers.add_entry(tenant, cash.id, _entry(debit=10, day=day))
        db.commit()

        entries = ledgers.list_entries(tenant, cash.id, financial_year="2024-25")
        assert [e.entry_date for e in entries] == [date(2024, 4, 1), date(2025, 3, 31)]

        narrowed = ledgers.list_entries(tenant, cash.id, date_from=date(2025, 1, 1), financial_year="2024-25")
        assert [e.entry_date for e in narrowed] == [date(2025, 3, 31)]

    def test_bad_financial_year_label(self, tenant, ledgers):
        cash = ledgers.create_ledger(tenant, LedgerCreate(name="Cash", ledger_type="asset"))
        with pytest.raises(ValidationError):
            ledgers.list_entries(tenant, cash.id, financial_year="2024-26")
