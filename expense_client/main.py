"""
Client entry point.

ExpenseClient wires the session store, request pipeline, query cache
and domain services onto one httpx.AsyncClient.
"""
from functools import partial
from typing import Callable, Optional

import httpx

from expense_client.config import Settings, get_settings
from expense_client.integrations.api_client import ApiClient
from expense_client.integrations.auth_api import refresh_access_token
from expense_client.integrations.token_storage import FileTokenStorage, TokenStorage
from expense_client.models.user import Identity
from expense_client.services.auth_service import AuthService
from expense_client.services.budget_service import BudgetService
from expense_client.services.expense_service import ExpenseService
from expense_client.services.query_cache import QueryCache
from expense_client.services.session_service import init_session_store, reset_session_store
from expense_client.utils.logger import setup_logging


class ExpenseClient:
    """
    Session-authenticated client for the expense API.
    
    Usage:
        async with create_client() as client:
            client.on_session_expired(show_login_page)
            await client.auth.login(email, password)
            page = await client.expenses.list_expenses(ExpenseFilters(page=1))
    """
    
    def __init__(
        self,
        settings: Optional[Settings] = None,
        storage: Optional[TokenStorage] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            settings: Defaults to get_settings()
            storage: Durable token storage, defaults to a file at
                settings.token_storage_path
            http: Preconfigured client (tests pass one with a mock transport)
        """
        self.settings = settings or get_settings()
        
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(
            base_url=self.settings.api_url,
            timeout=self.settings.request_timeout,
        )
        
        storage = storage or FileTokenStorage(self.settings.token_storage_path)
        self.session = init_session_store(
            storage,
            partial(refresh_access_token, self.http),
            default_theme=self.settings.default_theme,
        )
        self.api = ApiClient(self.http, self.session)
        self.cache = QueryCache(
            self.api,
            stale_seconds=self.settings.cache_stale_seconds,
            page_size=self.settings.page_size,
        )
        
        # A dead session must not keep serving its cached results
        self.session.add_logout_listener(self.cache.clear)
        
        self.auth = AuthService(self.api, self.session, self.cache)
        self.expenses = ExpenseService(self.cache)
        self.budgets = BudgetService(self.cache)
    
    def on_session_expired(self, callback: Callable[[], None]) -> None:
        """Register the logout redirect, fired when renewal fails."""
        self.session.add_logout_listener(callback)
    
    def on_theme_change(self, callback: Callable[[str], None]) -> None:
        self.session.add_theme_listener(callback)
    
    async def start(self) -> Optional[Identity]:
        """Run the startup identity probe."""
        return await self.auth.bootstrap()
    
    async def close(self) -> None:
        if self._owns_http:
            await self.http.aclose()
        reset_session_store()
    
    async def __aenter__(self) -> "ExpenseClient":
        await self.start()
        return self
    
    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def create_client(**kwargs) -> ExpenseClient:
    """Set up logging and build a client."""
    setup_logging()
    return ExpenseClient(**kwargs)
