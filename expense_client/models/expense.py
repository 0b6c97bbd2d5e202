"""
Expense-related Pydantic models.
"""
from decimal import Decimal
from pydantic import BaseModel
from typing import List, Optional


class Expense(BaseModel):
    """A single expense record."""
    id: str
    title: str
    amount: Decimal
    currency: str = "USD"
    category: str
    expense_date: str
    notes: Optional[str] = None
    created_at: Optional[str] = None


class ExpensePage(BaseModel):
    """One page of the expense listing."""
    count: int
    results: List[Expense] = []
    next: Optional[str] = None
    previous: Optional[str] = None


class CategoryBreakdown(BaseModel):
    category: str
    total: Decimal
    count: int


class ExpenseSummary(BaseModel):
    """Spending aggregate computed from the same records as the listing."""
    total_spend: Decimal
    currency: str = "USD"
    count: int
    breakdown: List[CategoryBreakdown] = []


class ExpenseFilters(BaseModel):
    """Listing filters. page is 1-based."""
    page: Optional[int] = None
    from_date: Optional[str] = None
    to_date: Optional[str] = None
    category: Optional[str] = None
    min_amount: Optional[str] = None
    max_amount: Optional[str] = None


class ExpenseInput(BaseModel):
    """Create/update payload."""
    title: str
    amount: Decimal
    currency: str = "USD"
    category: str
    expense_date: str
    notes: Optional[str] = None
