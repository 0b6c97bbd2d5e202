"""
Token refresh call.

The refresh endpoint is called directly on the HTTP client, outside
the request pipeline, so a failed refresh can never trigger another
refresh.
"""
import httpx
from pydantic import ValidationError

from expense_client.models.user import TokenPair
from expense_client.utils.logger import get_logger
from expense_client.utils.errors import AuthError, NetworkError

logger = get_logger(__name__)

TOKEN_REFRESH_PATH = "/auth/token/refresh/"


async def refresh_access_token(http: httpx.AsyncClient, refresh_token: str) -> TokenPair:
    """
    Exchange a refresh token for a new access token.
    
    Args:
        http: Client configured with the API base URL
        refresh_token: Stored refresh credential
        
    Returns:
        TokenPair with the new access token (and a new refresh
        token if the server rotates them)
        
    Raises:
        AuthError: Refresh token rejected
        NetworkError: Server unreachable
    """
    try:
        response = await http.post(TOKEN_REFRESH_PATH, json={"refresh": refresh_token})
    except httpx.RequestError as e:
        logger.error(f"Token refresh request failed: {e}")
        raise NetworkError("Couldn't reach the server to refresh the session.")
    
    if response.status_code != 200:
        logger.warning(f"Token refresh rejected: {response.status_code}")
        raise AuthError("Refresh token rejected", "REFRESH_REJECTED")
    
    try:
        data = response.json()
        if not isinstance(data, dict) or not data.get("access"):
            raise ValueError("no access token in refresh response")
        tokens = TokenPair(access=data["access"], refresh=data.get("refresh"))
    except (ValueError, ValidationError) as e:
        logger.error(f"Token refresh response unusable: {e}")
        raise AuthError("Refresh response missing access token", "REFRESH_REJECTED")
    
    logger.info("Successfully refreshed access token")
    return tokens
