"""
Structured Logging for Request Validation

This module provides a small logging facade used by the validation
middleware so every rejection, pass and forwarded failure is reported in
the same format.
"""

import logging
from typing import Any, Dict, List, Optional

from request_guard.config import get_settings


class ValidationLogger:
    """
    Logger for request validation outcomes.

    Wraps a standard library logger and adds request context (method and
    path) to each line.
    """

    def __init__(self, name: str = __name__):
        """
        Initialize the validation logger.

        Args:
            name: Logger name, typically __name__ from calling module
        """
        self.logger = logging.getLogger(name)

    @staticmethod
    def _endpoint(request: Any) -> str:
        method = getattr(request, "method", "?")
        url = getattr(request, "url", None)
        path = getattr(url, "path", "?")
        return f"{method} {path}"

    def log_validation_rejected(
        self,
        request: Any,
        section: str,
        errors: List[Dict[str, Any]]
    ):
        """
        Log a request rejected by schema validation.

        Args:
            request: The incoming request
            section: Request section that failed (body, params, query, headers)
            errors: Error entries returned by the engine
        """
        if not get_settings().log_validation_failures:
            return

        fields = ", ".join(str(entry.get("field", "?")) for entry in errors)
        self.logger.info(
            f"Validation failed: {self._endpoint(request)} | "
            f"Section: {section} | Errors: {len(errors)} | Fields: {fields}"
        )

    def log_invalid_request_type(self, request: Any, request_type: str):
        """Log a middleware configured with an unrecognized request type."""
        if not get_settings().log_validation_failures:
            return

        self.logger.info(
            f"Invalid request type: {self._endpoint(request)} | Type: {request_type!r}"
        )

    def log_validation_passed(self, request: Any, sections: List[str]):
        """Log a request that passed every configured section."""
        self.logger.debug(
            f"Validation passed: {self._endpoint(request)} | Sections: {', '.join(sections)}"
        )

    def log_forwarded_error(
        self,
        request: Any,
        error: Exception,
        handler: Optional[str] = None
    ):
        """
        Log an exception forwarded to the application's error channel.

        Args:
            request: The incoming request
            error: Exception that occurred
            handler: Name of the exception handler receiving it, if any
        """
        self.logger.error(
            f"Forwarding error: {self._endpoint(request)} | "
            f"Error: {type(error).__name__}: {str(error)} | "
            f"Handler: {handler or 'server error middleware'}",
            exc_info=error
        )
