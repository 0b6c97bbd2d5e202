"""
Budget operations for the UI.
"""
from typing import Union

from expense_client.models.budget import Budget, BudgetInput
from expense_client.services.query_cache import QueryCache
from expense_client.services.resources import BUDGETS, CREATE, DELETE, UPDATE


class BudgetService:
    """Budget listing and CRUD. Writes invalidate the budgets family only."""
    
    def __init__(self, cache: QueryCache):
        self.cache = cache
    
    async def list_budgets(self) -> list[Budget]:
        return await self.cache.read(BUDGETS)
    
    async def create_budget(self, budget: BudgetInput) -> Budget:
        data = await self.cache.write(BUDGETS, CREATE, budget)
        return Budget.model_validate(data)
    
    async def update_budget(self, budget_id: str, changes: Union[BudgetInput, dict]) -> Budget:
        data = await self.cache.write(BUDGETS, UPDATE, changes, resource_id=budget_id)
        return Budget.model_validate(data)
    
    async def delete_budget(self, budget_id: str) -> None:
        await self.cache.write(BUDGETS, DELETE, resource_id=budget_id)
