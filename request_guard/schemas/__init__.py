"""
Shared type declarations and response models.
"""

from .common import *

__all__ = [
    "ValidateReqType",
    "VALID_REQUEST_TYPES",
    "ValidationSchema",
    "MultiValidationSchema",
    "SchemaType",
    "ErrorEntry",
    "ValidationOutcome",
    "INVALID_REQUEST_TYPE_MESSAGE",
    "ValidationErrorResponse",
]
