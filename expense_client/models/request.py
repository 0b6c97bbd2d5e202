"""
Outgoing request descriptor.
"""
from pydantic import BaseModel, ConfigDict
from typing import Any, Literal, Optional


class ApiRequest(BaseModel):
    """
    Immutable description of one API call.
    
    The pipeline never mutates it. Retry bookkeeping travels
    alongside the descriptor, not on it.
    """
    model_config = ConfigDict(frozen=True)
    
    method: Literal["GET", "POST", "PATCH", "PUT", "DELETE"] = "GET"
    path: str
    params: Optional[dict[str, Any]] = None
    json_body: Optional[Any] = None
    # Public endpoints (login, signup) never trigger token renewal
    authenticated: bool = True
