"""
Tenant scoping
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class TenantContext:
    """The (company, owner) pair every query and mutation is scoped to."""
    company_id: int
    user_id: int
