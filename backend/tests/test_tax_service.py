"""Tests for the GST split."""

from decimal import Decimal

import pytest

from gstledger.core.exceptions import ValidationError
from gstledger.services.tax_service import compute_tax, is_inter_state


def _item(quantity, price, rate):
    return {"quantity": quantity, "unit_price": price, "gst_rate": rate}


class TestComputeTax:
    """Totals and bucket split."""

    def test_intra_state_splits_evenly(self):
        result = compute_tax([_item(2, 1000, 18)], "27", "27")

        assert result.subtotal == Decimal("2000")
        assert result.tax_amount == Decimal("360")
        assert result.cgst == Decimal("180")
        assert result.sgst == Decimal("180")
        assert result.igst == Decimal("0")
        assert result.total == Decimal("2360")

    def test_force_igst_puts_everything_in_igst(self):
        result = compute_tax([_item(2, 1000, 18)], "27", "27", force_igst=True)

        assert result.igst == Decimal("360")
        assert result.cgst == Decimal("0")
        assert result.sgst == Decimal("0")
        assert result.total == Decimal("2360")

    def test_different_states_are_inter_state(self):
        result = compute_tax([_item(1, 500, 12)], "29", "27")

        assert result.is_inter_state
        assert result.igst == Decimal("60")

    def test_multiple_lines_sum(self):
        result = compute_tax([_item(2, 1000, 18), _item(3, 100, 5), _item(1, 50, 0)], "27", "27")

        assert result.subtotal == Decimal("2350")
        assert result.tax_amount == Decimal("375")
        assert [line.line_total for line in result.lines] == [Decimal("2000"), Decimal("300"), Decimal("50")]

    def test_buckets_add_up_at_full_precision(self):
        result = compute_tax([_item("3", "33.33", "5"), _item("0.5", "10.01", "28")], "27", "27")

        assert result.cgst + result.sgst + result.igst == result.tax_amount

    def test_persisted_buckets_add_up_to_the_paisa(self):
        # 10.20 at 5% is 0.51, which cannot be halved into whole paise
        amounts = compute_tax([_item(1, "10.20", 5)], "27", "27").persisted()

        assert amounts["tax_amount"] == Decimal("0.51")
        assert amounts["cgst"] == Decimal("0.26")
        assert amounts["sgst"] == Decimal("0.25")
        assert amounts["cgst"] + amounts["sgst"] + amounts["igst"] == amounts["tax_amount"]
        assert amounts["subtotal"] + amounts["tax_amount"] == amounts["total_amount"]

    def test_accepts_objects_with_attributes(self):
        class Line:
            quantity = Decimal("1")
            unit_price = Decimal("100")
            gst_rate = Decimal("18")

        assert compute_tax([Line()], "27", "27").total == Decimal("118")


class TestValidation:
    """Bad numbers are rejected before anything is totalled."""

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantity(self, quantity):
        with pytest.raises(ValidationError):
            compute_tax([_item(quantity, 100, 18)], "27", "27")

    @pytest.mark.parametrize("bad", ["abc", "NaN", "Infinity", None])
    def test_non_numeric_price(self, bad):
        with pytest.raises(ValidationError):
            compute_tax([_item(1, bad, 18)], "27", "27")

    def test_rate_out_of_range(self):
        with pytest.raises(ValidationError):
            compute_tax([_item(1, 100, 150)], "27", "27")

    def test_negative_price(self):
        with pytest.raises(ValidationError):
            compute_tax([_item(1, -5, 18)], "27", "27")


class TestInterStateRule:

    def test_symmetric(self):
        assert is_inter_state("27", "29") == is_inter_state("29", "27") is True

    def test_missing_state_is_intra_state(self):
        assert is_inter_state(None, "27") is False
        assert is_inter_state("  ", "27") is False

    def test_whitespace_is_ignored(self):
        assert is_inter_state(" 27 ", "27") is False

    def test_force_wins(self):
        assert is_inter_state(None, None, force_igst=True) is True
