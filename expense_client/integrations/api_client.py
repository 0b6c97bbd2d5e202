"""
Request pipeline for the expense API.

Every outbound call goes through ApiClient.send():
1. Attach the current access token
2. Dispatch
3. On 401, renew the session (single-flight) and retry exactly once
4. Map every other failure to a typed error, never retried
"""
from typing import Any, Optional

import httpx

from expense_client.models.request import ApiRequest
from expense_client.services.session_service import SessionStore
from expense_client.utils.logger import get_logger
from expense_client.utils.errors import (
    AppError,
    ApiError,
    AuthError,
    InvalidRequestError,
    NetworkError,
    PermissionDeniedError,
    RateLimitError,
    ResourceNotFoundError,
    ServerError,
    SessionExpiredError,
)

logger = get_logger(__name__)

# A request is re-dispatched at most this many times after a 401
MAX_AUTH_RETRIES = 1


class ApiClient:
    """
    Authenticated client for the expense API.
    
    Usage:
        api = ApiClient(http, session_store)
        response = await api.send(ApiRequest(method="GET", path="/expenses/"))
        data = await api.get_json("/budgets/")
    """
    
    def __init__(self, http: httpx.AsyncClient, session: SessionStore):
        """
        Args:
            http: Client configured with the API base URL
            session: Store the access token is read from
        """
        self.http = http
        self.session = session
    
    async def send(self, request: ApiRequest) -> httpx.Response:
        """
        Send a request, renewing the session once on a 401.
        
        Returns:
            The successful response, unchanged
            
        Raises:
            SessionExpiredError: Renewal failed, session cleared
            AuthError: Still unauthorized after a successful renewal
            InvalidRequestError, ResourceNotFoundError, ...: passed through
        """
        return await self._send(request, attempt=0)
    
    async def _send(
        self,
        request: ApiRequest,
        attempt: int,
        token: Optional[str] = None,
    ) -> httpx.Response:
        if token is None and request.authenticated:
            token = self.session.current_access_credential()
        
        response = await self._dispatch(request, token)
        
        if response.is_success:
            return response
        
        if (
            response.status_code == 401
            and request.authenticated
            and attempt < MAX_AUTH_RETRIES
        ):
            new_token = await self._renewed_token(token)
            logger.info(f"Retrying {request.method} {request.path} with renewed token")
            return await self._send(request, attempt + 1, token=new_token)
        
        raise self._error_for(request, response)
    
    async def _renewed_token(self, rejected_token: Optional[str]) -> str:
        """
        Token to retry with after rejected_token got a 401.
        
        If another request already renewed the session since this one
        was dispatched, use that token instead of renewing again. If the
        session was cleared meanwhile (a failed renewal already fired the
        logout redirect), fail without renewing.
        """
        current = self.session.current_access_credential()
        if rejected_token and current is None and not self.session.renewal_in_flight:
            raise SessionExpiredError()
        if current and current != rejected_token and not self.session.renewal_in_flight:
            return current
        logger.info("Access token rejected, renewing session")
        return await self.session.renew()
    
    async def _dispatch(self, request: ApiRequest, token: Optional[str]) -> httpx.Response:
        headers = {}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        
        params = None
        if request.params:
            params = {k: v for k, v in request.params.items() if v is not None}
        
        try:
            return await self.http.request(
                method=request.method,
                url=request.path,
                params=params,
                json=request.json_body,
                headers=headers,
            )
        except httpx.RequestError as e:
            logger.error(f"{request.method} {request.path} failed: {e}")
            raise NetworkError()
    
    def _error_for(self, request: ApiRequest, response: httpx.Response) -> AppError:
        status = response.status_code
        body = response_body(response)
        
        if status in (400, 422):
            details = body if isinstance(body, dict) else {"errors": body}
            message = details.get("detail") if isinstance(details.get("detail"), str) else None
            logger.info(f"{request.method} {request.path} rejected as invalid")
            return InvalidRequestError(message or "Invalid request.", details=details)
        
        if status == 401:
            logger.warning(f"{request.method} {request.path}: unauthorized")
            return AuthError()
        
        if status == 403:
            return PermissionDeniedError()
        
        if status == 404:
            return ResourceNotFoundError(request.path)
        
        if status == 429:
            return RateLimitError()
        
        if status >= 500:
            logger.error(f"{request.method} {request.path}: server error {status}")
            return ServerError(status)
        
        logger.error(f"{request.method} {request.path}: unexpected status {status}")
        return ApiError(status, details=body if isinstance(body, dict) else None)
    
    async def get_json(self, path: str, params: Optional[dict] = None) -> Any:
        response = await self.send(ApiRequest(method="GET", path=path, params=params))
        return response_body(response)
    
    async def post_json(self, path: str, payload: Any = None, authenticated: bool = True) -> Any:
        response = await self.send(
            ApiRequest(method="POST", path=path, json_body=payload, authenticated=authenticated)
        )
        return response_body(response)
    
    async def patch_json(self, path: str, payload: Any = None) -> Any:
        response = await self.send(ApiRequest(method="PATCH", path=path, json_body=payload))
        return response_body(response)
    
    async def delete(self, path: str) -> None:
        await self.send(ApiRequest(method="DELETE", path=path))
    
    async def get_bytes(self, path: str, params: Optional[dict] = None) -> bytes:
        """GET a binary body (file export)."""
        response = await self.send(ApiRequest(method="GET", path=path, params=params))
        return response.content


def response_body(response: httpx.Response) -> Any:
    """Decoded JSON body, None for empty bodies, raw text if not JSON."""
    if response.status_code == 204 or not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return {"detail": response.text}
