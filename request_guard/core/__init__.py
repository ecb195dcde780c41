"""
Core package for Request Guard.

This package contains schema classification, the declarative rule
compiler and the validation engine.
"""

from .classifier import is_multi_validation_schema
from .rules import CompiledSchema, compile_schema, parse_shorthand
from .validator import (
    SchemaValidator,
    ValidatorOptions,
    get_validator,
    merge_validator_options
)

__all__ = [
    "is_multi_validation_schema",
    "CompiledSchema",
    "compile_schema",
    "parse_shorthand",
    "SchemaValidator",
    "ValidatorOptions",
    "get_validator",
    "merge_validator_options"
]
