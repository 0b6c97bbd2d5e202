"""
User-related Pydantic models.
"""
from pydantic import BaseModel
from typing import Literal, Optional

ThemePreference = Literal["light", "dark"]


class Identity(BaseModel):
    """Profile of the logged-in user, as returned by /auth/me/."""
    id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    is_email_verified: bool = False
    theme_preference: ThemePreference = "light"
    date_joined: Optional[str] = None
    
    @property
    def display_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.email


class AuthResponse(BaseModel):
    """Login response: credential pair plus identity."""
    access: str
    refresh: str
    user: Identity


class TokenPair(BaseModel):
    """Refresh response. The server may or may not rotate the refresh token."""
    access: str
    refresh: Optional[str] = None


class SignupRequest(BaseModel):
    """Signup form payload."""
    first_name: str
    last_name: str
    email: str
    password: str
