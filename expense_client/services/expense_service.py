"""
Expense operations for the UI.

Reads go through the query cache; writes go through the cache's
write path so the listing, summary and detail entries are
invalidated after the server accepts them.
"""
from pathlib import Path
from typing import Optional, Union

from expense_client.models.cache import QueryState
from expense_client.models.expense import (
    Expense,
    ExpenseFilters,
    ExpenseInput,
    ExpensePage,
    ExpenseSummary,
)
from expense_client.services.query_cache import QueryCache
from expense_client.services.resources import (
    CREATE,
    DELETE,
    EXPENSE,
    EXPENSES,
    EXPENSES_SUMMARY,
    UPDATE,
)
from expense_client.utils.logger import get_logger

logger = get_logger(__name__)

EXPORT_PATH = "/expenses/export/"


class ExpenseService:
    """
    Expense listing, summary, detail, CRUD and export.
    
    Usage:
        expenses = ExpenseService(cache)
        page = await expenses.list_expenses(ExpenseFilters(page=1, category="food"))
        summary = await expenses.get_summary()
        created = await expenses.create_expense(ExpenseInput(...))
    """
    
    def __init__(self, cache: QueryCache):
        self.cache = cache
    
    async def list_expenses(self, filters: Optional[ExpenseFilters] = None) -> ExpensePage:
        return await self.cache.read(EXPENSES, filters or ExpenseFilters())
    
    def listing_state(
        self,
        filters: ExpenseFilters,
        previous: Optional[ExpenseFilters] = None,
    ) -> QueryState:
        """
        Listing state for the table.
        
        Pass the filters that were on screen before as previous; their
        page is shown until the new one arrives.
        """
        return self.cache.view(EXPENSES, filters, placeholder_params=previous)
    
    async def get_summary(
        self,
        month: Optional[str] = None,
        from_date: Optional[str] = None,
        to_date: Optional[str] = None,
    ) -> ExpenseSummary:
        """Spending summary, optionally for a month (YYYY-MM) or a date range."""
        params = {"month": month, "from_date": from_date, "to_date": to_date}
        return await self.cache.read(EXPENSES_SUMMARY, params)
    
    async def get_expense(self, expense_id: str) -> Expense:
        """
        Raises:
            ResourceNotFoundError: No such expense
        """
        return await self.cache.read(EXPENSE, {"id": expense_id})
    
    async def create_expense(self, expense: ExpenseInput) -> Expense:
        data = await self.cache.write(EXPENSES, CREATE, expense)
        created = Expense.model_validate(data)
        logger.info(f"Created expense {created.id}")
        return created
    
    async def update_expense(self, expense_id: str, changes: Union[ExpenseInput, dict]) -> Expense:
        data = await self.cache.write(EXPENSES, UPDATE, changes, resource_id=expense_id)
        return Expense.model_validate(data)
    
    async def delete_expense(self, expense_id: str) -> None:
        await self.cache.write(EXPENSES, DELETE, resource_id=expense_id)
        logger.info(f"Deleted expense {expense_id}")
    
    async def export_csv(self, destination: Optional[Union[str, Path]] = None) -> bytes:
        """
        Download every expense as CSV. Never cached.
        
        Args:
            destination: If given, the CSV is also written to this file
        """
        content = await self.cache.api.get_bytes(EXPORT_PATH)
        if destination is not None:
            path = Path(destination).expanduser()
            path.write_bytes(content)
            logger.info(f"Exported {len(content)} bytes to {path}")
        return content

