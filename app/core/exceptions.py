from typing import Optional, Any

class LeWhatsAppError(Exception):
    """
    Base exception for the LeWhatsApp bridge.
    """
    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500, details: Optional[Any] = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)

class ResourceNotFoundError(LeWhatsAppError):
    """
    Raised when a requested resource is not found.
    """
    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)

class BadRequestError(LeWhatsAppError):
    """
    Raised when a request is well-formed but cannot be honoured.
    """
    def __init__(self, message: str = "Bad request", details: Optional[Any] = None):
        super().__init__(message, code="BAD_REQUEST", status_code=400, details=details)

class AuthenticationError(LeWhatsAppError):
    """
    Raised when authentication fails.
    """
    def __init__(self, message: str = "Authentication failed", details: Optional[Any] = None):
        super().__init__(message, code="AUTHENTICATION_FAILED", status_code=401, details=details)

class ForbiddenError(LeWhatsAppError):
    """
    Raised when a presented token is invalid or expired.
    """
    def __init__(self, message: str = "Forbidden", details: Optional[Any] = None):
        super().__init__(message, code="FORBIDDEN", status_code=403, details=details)

class ValidationError(LeWhatsAppError):
    """
    Raised when input validation fails.
    """
    def __init__(self, message: str = "Validation error", details: Optional[Any] = None):
        super().__init__(message, code="VALIDATION_ERROR", status_code=422, details=details)

class ProviderError(LeWhatsAppError):
    """
    Raised when Unipile, GHL or Claude returns an error.
    Carries the upstream status and body in details.
    """
    def __init__(self, message: str = "Provider request failed", details: Optional[Any] = None, upstream_status: Optional[int] = None):
        super().__init__(message, code="PROVIDER_ERROR", status_code=500, details=details)
        self.upstream_status = upstream_status
