"""
Durable client-side key/value storage for the session.

Keys:
    access_token   current access credential
    refresh_token  credential used to obtain a new access token
    theme          last applied theme

Both tokens absent means logged out.
"""
import json
import os
from pathlib import Path
from typing import Optional

from expense_client.utils.logger import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"
THEME_KEY = "theme"


class TokenStorage:
    """Interface for durable session storage."""
    
    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError
    
    def set(self, key: str, value: str) -> None:
        raise NotImplementedError
    
    def remove(self, key: str) -> None:
        raise NotImplementedError


class MemoryTokenStorage(TokenStorage):
    """Storage that lives as long as the process. Used in tests."""
    
    def __init__(self, initial: Optional[dict] = None):
        self.data: dict[str, str] = dict(initial or {})
    
    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)
    
    def set(self, key: str, value: str) -> None:
        self.data[key] = value
    
    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class FileTokenStorage(TokenStorage):
    """
    JSON file storage.
    
    The file is rewritten on every change and created with 0600
    permissions since it holds credentials.
    """
    
    def __init__(self, path: str):
        self.path = Path(path).expanduser()
        self._data = self._load()
    
    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable session file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}
    
    def _flush(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(self._data, f)
        os.replace(tmp, self.path)
    
    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)
    
    def set(self, key: str, value: str) -> None:
        if self._data.get(key) == value:
            return
        self._data[key] = value
        self._flush()
    
    def remove(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._flush()
