"""
Shared error handling for the rate limiter.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class RateLimiterException(Exception):
    """Base exception for rate limiter errors."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class LimitExceeded(RateLimiterException):
    """The requested operations would take the bucket past its burst ceiling."""

    def __init__(self, message: str = "Rate limit exceeded", details: Optional[Dict[str, Any]] = None):
        super().__init__("LIMIT_EXCEEDED", message, details)


class ConfigurationError(RateLimiterException):
    """Missing or invalid rate limiter configuration."""

    def __init__(self, message: str = "Invalid rate limiter configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class BackendUnavailable(RateLimiterException):
    """No usable store backend."""

    def __init__(self, message: str = "Rate limiter backend unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("BACKEND_UNAVAILABLE", message, details)


class ScriptNotLoaded(RateLimiterException):
    """The store does not hold the requested script (e.g. after a restart)."""

    def __init__(self, sha: str, details: Optional[Dict[str, Any]] = None):
        self.sha = sha
        super().__init__("SCRIPT_NOT_LOADED", f"Script {sha} is not loaded", details)
