"""
Query cache models.
"""
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict
from typing import Any, Literal, Optional, Tuple

CacheKey = Tuple[str, str]


class CacheStatus(str, Enum):
    FRESH = "fresh"
    STALE = "stale"
    ABSENT = "absent"


class CacheEntry(BaseModel):
    """One cached read, keyed by (resource, params fingerprint)."""
    model_config = ConfigDict(arbitrary_types_allowed=True)
    
    key: CacheKey
    value: Any = None
    fetched_at: Optional[datetime] = None
    status: CacheStatus = CacheStatus.ABSENT
    error: Optional[Exception] = None
    # Bumped on every invalidation so late responses can't repopulate
    generation: int = 0


class QueryState(BaseModel):
    """What the UI renders for one query."""
    model_config = ConfigDict(arbitrary_types_allowed=True)
    
    status: Literal["loading", "success", "error"]
    data: Any = None
    error: Optional[Exception] = None
    is_fetching: bool = False
    is_stale: bool = False
    # data belongs to a previous key (e.g. the last page) while this one loads
    is_placeholder: bool = False
