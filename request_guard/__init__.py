"""
Request Guard

Declarative request validation middleware for FastAPI and Starlette
applications.
"""

from request_guard.core.classifier import is_multi_validation_schema
from request_guard.core.validator import SchemaValidator, ValidatorOptions, get_validator
from request_guard.middleware import (
    RequestValidationMiddleware,
    RequestValidator,
    catch_async,
    register_exception_handlers,
    validate_multi_request,
    validate_request
)
from request_guard.schemas.common import MultiValidationSchema, ValidateReqType, ValidationErrorResponse

__version__ = "1.0.0"

__all__ = [
    "is_multi_validation_schema",
    "SchemaValidator",
    "ValidatorOptions",
    "get_validator",
    "RequestValidationMiddleware",
    "RequestValidator",
    "catch_async",
    "register_exception_handlers",
    "validate_multi_request",
    "validate_request",
    "MultiValidationSchema",
    "ValidateReqType",
    "ValidationErrorResponse"
]
