"""
Document numbering
"""
from datetime import datetime
from typing import Dict, Optional
import threading

_lock = threading.Lock()
_last_issued: Dict[str, int] = {}


def generate_document_number(prefix: str, now: Optional[datetime] = None) -> str:
    """
    PREFIX-YYYYMM-xxxxxx where the suffix is the last six digits of the
    millisecond timestamp.

    Within one process the timestamp never repeats per prefix: a call in the
    same millisecond as the previous one moves on to the next millisecond,
    so a retry after a collision always gets a different number.
    """
    now = now or datetime.now()
    millis = int(now.timestamp() * 1000)
    with _lock:
        millis = max(millis, _last_issued.get(prefix, 0) + 1)
        _last_issued[prefix] = millis
    return f"{prefix}-{now:%Y%m}-{str(millis)[-6:]}"
