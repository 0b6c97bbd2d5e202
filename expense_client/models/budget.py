"""
Budget-related Pydantic models.
"""
from decimal import Decimal
from pydantic import BaseModel
from typing import Optional


class Budget(BaseModel):
    """Spending limit for one category."""
    id: str
    category: str
    amount: Decimal
    month: Optional[str] = None
    spent: Optional[Decimal] = None


class BudgetInput(BaseModel):
    """Create/update payload."""
    category: str
    amount: Decimal
