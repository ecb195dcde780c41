"""
Utilities Package for Request Guard

This package contains utility modules including logging and exception
handling helpers used throughout the middleware.
"""

from .exceptions import (
    RequestGuardError,
    SchemaDefinitionError,
    RequestBodyParseError,
    RequestValidationFailed
)
from .logging import ValidationLogger

__all__ = [
    "RequestGuardError",
    "SchemaDefinitionError",
    "RequestBodyParseError",
    "RequestValidationFailed",
    "ValidationLogger"
]
