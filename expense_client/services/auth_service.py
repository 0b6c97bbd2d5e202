"""
Authentication service.

This module orchestrates the session lifecycle:
1. Login → attach tokens and identity to the session store
2. Signup and email verification (public endpoints)
3. Startup probe of /auth/me/ when a stored token exists
4. Preference updates that change the identity (and theme)
5. Logout
"""
from typing import Optional

from expense_client.integrations.api_client import ApiClient
from expense_client.models.user import AuthResponse, Identity, SignupRequest, ThemePreference, TokenPair
from expense_client.services.query_cache import QueryCache
from expense_client.services.session_service import SessionStore
from expense_client.utils.logger import get_logger
from expense_client.utils.errors import AppError

logger = get_logger(__name__)


class AuthService:
    """
    Authentication service handling the session lifecycle.
    
    Usage:
        auth = AuthService(api, session, cache)
        await auth.bootstrap()
        user = await auth.login(email, password)
        await auth.update_preferences("dark")
        auth.logout()
    """
    
    def __init__(self, api: ApiClient, session: SessionStore, cache: QueryCache):
        self.api = api
        self.session = session
        self.cache = cache
        self.is_loading = True
    
    async def bootstrap(self) -> Optional[Identity]:
        """
        Probe /auth/me/ if a durable access token exists.
        
        A failed probe doesn't clear the session. An expired access
        token is renewed by the pipeline; only a failed renewal clears
        the session (and fires the logout listeners).
        
        Returns:
            Identity if the probe succeeded, else None
        """
        try:
            if not self.session.current_access_credential():
                return None
            try:
                return await self.fetch_identity()
            except AppError as e:
                logger.warning(f"Startup identity probe failed: {e.code}")
                return None
        finally:
            self.is_loading = False
    
    async def fetch_identity(self) -> Identity:
        """Fetch the current user and make it the session identity."""
        data = await self.api.get_json("/auth/me/")
        identity = Identity.model_validate(data)
        self.session.update_identity(identity)
        logger.info(f"Identity confirmed for: {identity.email}")
        return identity
    
    async def login(self, email: str, password: str) -> Identity:
        """
        Log in with email and password.
        
        Raises:
            AuthError: Wrong credentials
            InvalidRequestError: Malformed input (field errors in details)
        """
        data = await self.api.post_json(
            "/auth/login/",
            {"email": email, "password": password},
            authenticated=False,
        )
        auth = AuthResponse.model_validate(data)
        
        # Results cached for a previous user must not leak into this session
        self.cache.clear()
        self.session.attach(TokenPair(access=auth.access, refresh=auth.refresh), auth.user)
        return auth.user
    
    async def signup(self, request: SignupRequest) -> dict:
        """Create an account. The user verifies their email before logging in."""
        data = await self.api.post_json(
            "/auth/signup/",
            request.model_dump(),
            authenticated=False,
        )
        logger.info(f"Signed up: {request.email}")
        return data or {}
    
    async def verify_email(self, token: str) -> dict:
        """Confirm an email address with the token from the verification link."""
        data = await self.api.post_json(
            "/auth/verify-email/",
            {"token": token},
            authenticated=False,
        )
        logger.info("Email verified")
        return data or {}
    
    async def update_preferences(self, theme_preference: ThemePreference) -> Identity:
        """
        Change the user's theme preference.
        
        The server returns the updated identity, which replaces the
        session identity and re-applies the theme.
        """
        data = await self.api.patch_json(
            "/auth/preferences/",
            {"theme_preference": theme_preference},
        )
        identity = Identity.model_validate(data)
        self.session.update_identity(identity)
        return identity
    
    def logout(self) -> None:
        """Clear the session and every cached result."""
        self.session.clear()
        self.cache.clear()
