"""
Session store.

This module handles:
1. Holding the current credential pair and the logged-in identity
2. Persisting credentials to durable client-side storage
3. Single-flight token renewal
4. Theme state that follows the identity's preference

There is exactly one store per process. init_session_store() creates
it, get_session_store() returns it and reset_session_store() drops it.
Everything else goes through the store's methods.
"""
import asyncio
from typing import Awaitable, Callable, List, Optional

from expense_client.integrations.token_storage import (
    TokenStorage,
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    THEME_KEY,
)
from expense_client.models.user import Identity, TokenPair
from expense_client.utils.logger import get_logger
from expense_client.utils.errors import AppError, AuthError, SessionExpiredError

logger = get_logger(__name__)

Refresher = Callable[[str], Awaitable[TokenPair]]


class SessionStore:
    """
    Single source of truth for "are we logged in".
    
    Usage:
        store = init_session_store(storage, refresher)
        store.attach(tokens, identity)
        token = store.current_access_credential()
        token = await store.renew()
        store.clear()
    """
    
    def __init__(
        self,
        storage: TokenStorage,
        refresher: Refresher,
        default_theme: str = "light",
    ):
        """
        Load any persisted credentials.
        
        Args:
            storage: Durable key/value storage
            refresher: Coroutine exchanging a refresh token for a TokenPair
            default_theme: Theme applied when nobody is logged in
        """
        self._storage = storage
        self._refresher = refresher
        self._default_theme = default_theme
        
        self._access_token: Optional[str] = storage.get(ACCESS_TOKEN_KEY)
        self._refresh_token: Optional[str] = storage.get(REFRESH_TOKEN_KEY)
        self._identity: Optional[Identity] = None
        self._theme: str = storage.get(THEME_KEY) or default_theme
        
        # Renewal state: the shared task is set iff a renewal is in flight
        self._renewal: Optional[asyncio.Task] = None
        # Bumped by attach() and clear() so a renewal that straddles
        # a login/logout doesn't write stale tokens back
        self._epoch = 0
        
        self._logout_listeners: List[Callable[[], None]] = []
        self._theme_listeners: List[Callable[[str], None]] = []
    
    @property
    def identity(self) -> Optional[Identity]:
        return self._identity
    
    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None
    
    @property
    def theme(self) -> str:
        return self._theme
    
    @property
    def renewal_in_flight(self) -> bool:
        return self._renewal is not None
    
    def current_access_credential(self) -> Optional[str]:
        return self._access_token
    
    def attach(self, tokens: TokenPair, identity: Identity) -> None:
        """
        Record a freshly issued credential pair and identity.
        
        Both tokens are persisted. The identity's theme is applied.
        """
        self._epoch += 1
        self._access_token = tokens.access
        self._refresh_token = tokens.refresh
        self._storage.set(ACCESS_TOKEN_KEY, tokens.access)
        if tokens.refresh:
            self._storage.set(REFRESH_TOKEN_KEY, tokens.refresh)
        else:
            self._storage.remove(REFRESH_TOKEN_KEY)
        
        self.update_identity(identity)
        logger.info(f"Session attached for: {identity.email}")
    
    def update_identity(self, identity: Identity) -> None:
        """Replace the identity wholesale and re-apply its theme."""
        self._identity = identity
        self._apply_theme(identity.theme_preference)
    
    def clear(self) -> None:
        """Erase credentials and identity. Safe to call when logged out."""
        self._epoch += 1
        had_session = self._access_token is not None or self._identity is not None
        
        self._access_token = None
        self._refresh_token = None
        self._identity = None
        self._storage.remove(ACCESS_TOKEN_KEY)
        self._storage.remove(REFRESH_TOKEN_KEY)
        self._apply_theme(self._default_theme)
        
        if had_session:
            logger.info("Session cleared")
    
    async def renew(self) -> str:
        """
        Get a new access token, sharing one renewal among all callers.
        
        If a renewal is already in flight this joins it instead of
        issuing a second refresh call.
        
        Returns:
            The new access token
            
        Raises:
            SessionExpiredError: Renewal failed; the session is cleared
        """
        # Check-and-set with no await in between
        if self._renewal is None:
            self._renewal = asyncio.ensure_future(self._perform_renewal(self._epoch))
        # A cancelled waiter must not cancel the shared renewal
        return await asyncio.shield(self._renewal)
    
    async def _perform_renewal(self, epoch: int) -> str:
        try:
            if not self._refresh_token:
                raise AuthError("No refresh token stored", "NO_REFRESH_TOKEN")
            tokens = await self._refresher(self._refresh_token)
        except AppError as e:
            logger.warning(f"Session renewal failed: {e.code}")
            if epoch == self._epoch:
                self.clear()
                self._notify_logout()
            raise SessionExpiredError() from e
        else:
            if epoch != self._epoch:
                # Logged in or out while renewing; the result belongs to a dead session
                if self._access_token:
                    return self._access_token
                raise SessionExpiredError()
            
            self._access_token = tokens.access
            self._storage.set(ACCESS_TOKEN_KEY, tokens.access)
            if tokens.refresh:
                self._refresh_token = tokens.refresh
                self._storage.set(REFRESH_TOKEN_KEY, tokens.refresh)
            logger.info("Session renewed")
            return tokens.access
        finally:
            self._renewal = None
    
    def add_logout_listener(self, callback: Callable[[], None]) -> None:
        """Register a callback fired once per failed renewal (redirect to login)."""
        self._logout_listeners.append(callback)
    
    def add_theme_listener(self, callback: Callable[[str], None]) -> None:
        """Register a callback fired whenever the visible theme changes."""
        self._theme_listeners.append(callback)
    
    def _notify_logout(self):
        for callback in self._logout_listeners:
            callback()
    
    def _apply_theme(self, theme: str):
        if theme == self._theme and self._storage.get(THEME_KEY) == theme:
            return
        self._theme = theme
        self._storage.set(THEME_KEY, theme)
        for callback in self._theme_listeners:
            callback(theme)


# Process-wide store
_store: Optional[SessionStore] = None


def init_session_store(
    storage: TokenStorage,
    refresher: Refresher,
    default_theme: str = "light",
) -> SessionStore:
    """Create the process-wide session store, replacing any previous one."""
    global _store
    _store = SessionStore(storage, refresher, default_theme)
    return _store


def get_session_store() -> SessionStore:
    """
    Get the process-wide session store.
    
    Raises:
        RuntimeError: If init_session_store() hasn't been called
    """
    if _store is None:
        raise RuntimeError("Session store not initialized. Call init_session_store() first.")
    return _store


def reset_session_store() -> None:
    """Drop the process-wide store (logout of the whole client, tests)."""
    global _store
    _store = None
