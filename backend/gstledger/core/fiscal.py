"""
Indian financial year helpers (April to March)
"""
from datetime import date
from typing import Optional, Tuple

from gstledger.core.exceptions import ValidationError

FY_START_MONTH = 4


def financial_year_for(day: Optional[date] = None) -> str:
    """Label like '2025-26' for the financial year containing `day`."""
    day = day or date.today()
    start_year = day.year if day.month >= FY_START_MONTH else day.year - 1
    return f"{start_year}-{str(start_year + 1)[-2:]}"


def financial_year_bounds(label: str) -> Tuple[date, date]:
    """First and last day of a financial year label."""
    try:
        start, end = label.split("-")
        start_year = int(start)
    except (ValueError, AttributeError):
        raise ValidationError(f"Invalid financial year '{label}', expected e.g. 2025-26")
    if len(start) != 4 or end != str(start_year + 1)[-2:]:
        raise ValidationError(f"Invalid financial year '{label}', expected e.g. 2025-26")
    return date(start_year, FY_START_MONTH, 1), date(start_year + 1, FY_START_MONTH - 1, 31)
