"""
Tax Engine - GST split for a set of line items
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, List, Optional

from gstledger.core.currency import to_decimal, money, ZERO
from gstledger.core.exceptions import ValidationError

HUNDRED = Decimal("100")
TWO = Decimal("2")


@dataclass
class TaxLine:
    quantity: Decimal
    unit_price: Decimal
    gst_rate: Decimal
    line_total: Decimal
    gst_amount: Decimal


@dataclass
class TaxBreakdown:
    """
    Full-precision result of a tax computation.
    
    cgst + sgst + igst equals tax_amount exactly; nothing is rounded here.
    Call persisted() for the 2-decimal amounts that get stored.
    """
    lines: List[TaxLine] = field(default_factory=list)
    subtotal: Decimal = ZERO
    tax_amount: Decimal = ZERO
    cgst: Decimal = ZERO
    sgst: Decimal = ZERO
    igst: Decimal = ZERO
    is_inter_state: bool = False
    
    @property
    def total(self) -> Decimal:
        return self.subtotal + self.tax_amount
    
    def persisted(self) -> dict:
        """Rounded amounts whose buckets still add up to the stored tax, paisa for paisa."""
        subtotal = money(self.subtotal)
        tax_amount = money(self.tax_amount)
        if self.is_inter_state:
            cgst = sgst = money(ZERO)
            igst = tax_amount
        else:
            cgst = money(tax_amount / TWO)
            sgst = tax_amount - cgst
            igst = money(ZERO)
        return {
            "subtotal": subtotal,
            "tax_amount": tax_amount,
            "total_amount": subtotal + tax_amount,
            "cgst": cgst,
            "sgst": sgst,
            "igst": igst,
        }


def _normalise_state(state: Optional[Any]) -> Optional[str]:
    if state is None:
        return None
    state = str(state).strip()
    return state or None


def is_inter_state(counterparty_state, seller_state, force_igst: bool = False) -> bool:
    """IGST applies when forced or when both states are known and differ."""
    if force_igst:
        return True
    buyer = _normalise_state(counterparty_state)
    seller = _normalise_state(seller_state)
    return bool(buyer and seller and buyer != seller)


def _field(item: Any, name: str):
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def compute_tax(
    items: Iterable[Any],
    counterparty_state=None,
    seller_state=None,
    force_igst: bool = False,
) -> TaxBreakdown:
    """
    Compute line totals, GST and the CGST/SGST/IGST split.
    
    Items may be dicts or objects exposing quantity, unit_price and gst_rate.
    Raises ValidationError on a non-positive quantity, a negative price,
    a rate outside 0-100 or any non-numeric value.
    """
    breakdown = TaxBreakdown(is_inter_state=is_inter_state(counterparty_state, seller_state, force_igst))
    
    for position, item in enumerate(items, start=1):
        quantity = to_decimal(_field(item, "quantity"), f"Item {position} quantity")
        unit_price = to_decimal(_field(item, "unit_price"), f"Item {position} unit price")
        raw_rate = _field(item, "gst_rate")
        gst_rate = to_decimal(raw_rate if raw_rate is not None else 0, f"Item {position} GST rate")
        
        if quantity <= 0:
            raise ValidationError(f"Item {position} quantity must be greater than zero")
        if unit_price < 0:
            raise ValidationError(f"Item {position} unit price cannot be negative")
        if gst_rate < 0 or gst_rate > HUNDRED:
            raise ValidationError(f"Item {position} GST rate must be between 0 and 100")
        
        line_total = quantity * unit_price
        gst_amount = line_total * gst_rate / HUNDRED
        breakdown.lines.append(TaxLine(quantity, unit_price, gst_rate, line_total, gst_amount))
        breakdown.subtotal += line_total
        breakdown.tax_amount += gst_amount
    
    if breakdown.is_inter_state:
        breakdown.igst = breakdown.tax_amount
    else:
        # sgst takes the remainder so the two halves always sum to tax_amount
        breakdown.cgst = breakdown.tax_amount / TWO
        breakdown.sgst = breakdown.tax_amount - breakdown.cgst
    
    return breakdown
