"""
Shared error handling for the casbin-pgx adapter.

Storage and transport errors raised by asyncpg are never wrapped; they
reach the caller verbatim. The classes below cover the failures this
package detects itself, before or while translating rows.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class PolicyAdapterError(Exception):
    """Base exception for adapter errors."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class RowDecodeError(PolicyAdapterError):
    """A stored row cannot be turned into a policy line."""

    def __init__(self, message: str = "Malformed policy row", details: Optional[Dict[str, Any]] = None):
        super().__init__("ROW_DECODE_ERROR", message, details)


class InvalidFilterError(PolicyAdapterError):
    """Filter has the wrong shape or addresses columns outside v0..v5."""

    def __init__(self, message: str = "Invalid filter", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_FILTER", message, details)


class RuleValidationError(PolicyAdapterError):
    """Rule or rule batch cannot be persisted as given."""

    def __init__(self, message: str = "Rule validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("RULE_VALIDATION_ERROR", message, details)


class ConfigurationError(PolicyAdapterError):
    """Adapter configuration errors."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)
