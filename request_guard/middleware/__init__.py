"""
Middleware package for Request Guard.

This package contains the request validation middleware and the
asynchronous error-propagation wrapper it is built on.
"""

from .error_handling import catch_async, forward_error
from .validation import (
    RequestValidationMiddleware,
    RequestValidator,
    register_exception_handlers,
    validate_multi_request,
    validate_request
)

__all__ = [
    "catch_async",
    "forward_error",
    "RequestValidationMiddleware",
    "RequestValidator",
    "register_exception_handlers",
    "validate_multi_request",
    "validate_request"
]
