"""
Client configuration loaded from environment variables.
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Client settings from environment variables."""
    
    # Backend API
    api_url: str = "http://localhost:8000/api"
    request_timeout: float = 30.0
    
    # Listings are paged with offset = (page - 1) * page_size
    page_size: int = 20
    
    # Durable client-side storage for the credential pair
    token_storage_path: str = "~/.expense_client/session.json"
    
    # Cached reads are served without a network call for this long
    cache_stale_seconds: float = 30.0
    
    # Theme applied when nobody is logged in
    default_theme: str = "light"
    
    # Logging
    log_level: str = "INFO"
    debug: bool = False
    
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
