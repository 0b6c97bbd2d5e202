"""
Error classes for the expense client.

Every failure the request pipeline can surface is one of these.
Only AuthError is handled inside the client (renew and retry once);
everything else propagates to the caller unchanged.
"""
from typing import Optional


class AppError(Exception):
    """Base client error."""
    
    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        status_code: int = 500,
        details: Optional[dict] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)
    
    def to_dict(self) -> dict:
        """Convert error to a dictionary for inline display."""
        return {
            "error": True,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class AuthError(AppError):
    """Credential missing or rejected by the server."""
    
    def __init__(self, message: str = "Authentication required.", code: str = "UNAUTHENTICATED"):
        super().__init__(message, code, status_code=401)


class SessionExpiredError(AuthError):
    """Token renewal failed. The session has been cleared."""
    
    def __init__(self):
        super().__init__(
            "Your session has expired. Please sign in again.",
            "SESSION_EXPIRED"
        )


class InvalidRequestError(AppError):
    """Server rejected the input. Details carry the server's field errors verbatim."""
    
    def __init__(self, message: str = "Invalid request.", details: Optional[dict] = None):
        super().__init__(message, "INVALID_REQUEST", status_code=400, details=details)


class PermissionDeniedError(AppError):
    """Authenticated but not allowed."""
    
    def __init__(self, message: str = "You don't have permission to do that."):
        super().__init__(message, "PERMISSION_DENIED", status_code=403)


class ResourceNotFoundError(AppError):
    """Resource not found."""
    
    def __init__(self, path: str = ""):
        message = f"Couldn't find '{path}'." if path else "Not found."
        super().__init__(message, "NOT_FOUND", status_code=404)


class RateLimitError(AppError):
    """Rate limit exceeded."""
    
    def __init__(self):
        super().__init__(
            "Too many requests. Please wait a moment.",
            "RATE_LIMITED",
            status_code=429
        )


class ServerError(AppError):
    """Backend returned a 5xx."""
    
    def __init__(self, status_code: int = 500):
        super().__init__(
            "The server had a problem. Please try again.",
            "SERVER_ERROR",
            status_code=status_code
        )


class NetworkError(AppError):
    """No response from the server."""
    
    def __init__(self, message: str = "Couldn't reach the server. Check your connection."):
        super().__init__(message, "NETWORK_ERROR", status_code=503)


class ApiError(AppError):
    """Any other non-success response."""
    
    def __init__(self, status_code: int, details: Optional[dict] = None):
        super().__init__(
            f"Request failed with status {status_code}.",
            "API_ERROR",
            status_code=status_code,
            details=details,
        )
