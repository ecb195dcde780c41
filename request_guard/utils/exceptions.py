"""
Custom Exception Classes for Request Validation

This module defines the exception taxonomy used by the request-guard
middleware. Validation failures and invalid request types are normally
turned into 422 responses without raising; the exceptions below cover the
remaining cases: malformed schema definitions, undecodable request bodies,
and the dependency surface, which signals rejection by raising.
"""

from typing import Any, Dict, Optional


class RequestGuardError(Exception):
    """
    Base exception class for all request-guard errors.

    Provides a common interface (message, machine-readable code, details)
    so exception handlers can render any subclass uniformly.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize the request-guard error.

        Args:
            message: Human-readable error message
            error_code: Optional error code for programmatic handling
            details: Optional dictionary with additional error context
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "REQUEST_GUARD_ERROR"
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details
        }


class SchemaDefinitionError(RequestGuardError):
    """
    Exception raised when a declarative schema cannot be compiled.

    This covers scenarios like:
    - Unknown rule types
    - Rules that are neither strings, mappings nor model classes
    - Malformed shorthand modifiers
    """

    def __init__(
        self,
        message: str = "Invalid schema definition",
        field: Optional[str] = None,
        rule: Optional[Any] = None
    ):
        details = {"field": field}
        if rule is not None:
            details["rule"] = repr(rule)

        super().__init__(
            message=message,
            error_code="SCHEMA_DEFINITION_ERROR",
            details=details
        )
        self.field = field


class RequestBodyParseError(RequestGuardError):
    """Exception raised when the request body cannot be decoded."""

    def __init__(
        self,
        message: str = "Malformed request body",
        content_type: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {"content_type": content_type}

        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(
            message=message,
            error_code="REQUEST_BODY_PARSE_ERROR",
            details=details
        )


class RequestValidationFailed(RequestGuardError):
    """
    Raised by the dependency form of the validator when a request is rejected.

    Carries the ready-made error body so the registered exception handler
    can render it unchanged.
    """

    def __init__(self, body: Dict[str, Any], status_code: int = 422):
        super().__init__(
            message=body.get("message", "Validation Error!"),
            error_code="REQUEST_VALIDATION_FAILED",
            details={"body": body}
        )
        self.body = body
        self.status_code = status_code
