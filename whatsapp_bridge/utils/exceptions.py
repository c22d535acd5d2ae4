from fastapi import HTTPException, status
from typing import Any, Dict, Optional


class BaseAPIException(HTTPException):
    """Base exception for API errors."""

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "An error occurred",
        headers: Optional[Dict[str, Any]] = None,
        details: Any = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.details = details


class ValidationException(BaseAPIException):
    """Exception raised when request input is malformed."""

    def __init__(self, detail: str, details: Any = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            details=details
        )


class SignatureVerificationException(BaseAPIException):
    """Exception raised when a webhook signature does not match."""

    def __init__(self, detail: str = "Invalid webhook signature"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail
        )


class VerifyTokenException(BaseAPIException):
    """Exception raised when webhook subscription verification fails."""

    def __init__(self, detail: str = "Invalid verification token"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )


class MessageSendException(BaseAPIException):
    """Exception raised when the WhatsApp API rejects or fails a send."""

    def __init__(self, detail: str = "Failed to send message", details: Any = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            details=details
        )


class DatabaseException(BaseAPIException):
    """Exception raised when a database operation fails."""

    def __init__(self, detail: str = "Database operation failed", details: Any = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            details=details
        )
