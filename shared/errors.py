"""
Shared error handling for the response cache layer.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class ResponseCacheException(Exception):
    """Base exception for the response cache layer."""

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class StoreError(ResponseCacheException):
    """Backend fault raised by a cache store (transport or storage I/O)."""

    def __init__(self, message: str = "Cache store error", details: Optional[Dict[str, Any]] = None,
                 code: str = "STORE_ERROR"):
        super().__init__(code, message, details)


class SerializationError(StoreError):
    """A cached record could not be encoded or decoded."""

    def __init__(self, message: str = "Cache record serialization failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, code="SERIALIZATION_ERROR")


class ConfigurationError(ResponseCacheException):
    """Invalid cache or store configuration."""

    status_code = 400

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)
