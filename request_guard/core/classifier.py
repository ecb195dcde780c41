"""
Schema classification.

A schema supplied to the middleware is either a single-section schema or a
multi-section schema keyed by request section. There is no explicit tag:
the decision is structural.
"""

from collections.abc import Mapping
from typing import Any

from request_guard.schemas.common import VALID_REQUEST_TYPES


def is_multi_validation_schema(schema: Any) -> bool:
    """
    Return True when ``schema`` is a mapping with at least one section key.

    A single schema that declares a top-level field literally named
    ``body``, ``params``, ``query`` or ``headers`` is classified as multi.
    Pydantic model classes are never multi.
    """
    if not isinstance(schema, Mapping):
        return False
    return any(key in schema for key in VALID_REQUEST_TYPES)
