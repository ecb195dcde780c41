"""
Request Validation Middleware

Checks one or more sections of an incoming request (body, path params,
query string, headers) against a declarative schema before the request
reaches the route handler. A rejected request gets a 422 JSON body of the
form ``{type, status, message, details?}``; an accepted one is handed to
the next stage unchanged.

Three mounting styles share the same dispatcher:

- ``validate_request(...)`` returns a ``(request, call_next)`` callable for
  ``app.middleware("http")`` or ``BaseHTTPMiddleware(dispatch=...)``
- ``RequestValidationMiddleware`` for ``app.add_middleware`` and route
  level ``Middleware(...)``
- ``RequestValidator.dependency`` for FastAPI ``Depends``
"""

import json
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from request_guard.config import get_settings
from request_guard.core.classifier import is_multi_validation_schema
from request_guard.core.validator import SchemaValidator, ValidatorOptions, get_validator
from request_guard.middleware.error_handling import RequestHandler, catch_async
from request_guard.schemas.common import (
    VALID_REQUEST_TYPES,
    SchemaType,
    ValidateReqType,
    ValidationErrorResponse
)
from request_guard.utils.exceptions import RequestBodyParseError, RequestValidationFailed
from request_guard.utils.logging import ValidationLogger


logger = logging.getLogger(__name__)
validation_logger = ValidationLogger(__name__)

Options = Optional[Union[ValidatorOptions, Mapping[str, Any]]]


async def _read_body(request: Request) -> Any:
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()

    if content_type == "application/json" or content_type.endswith("+json"):
        body = await request.body()
        if not body:
            return {}
        try:
            return json.loads(body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise RequestBodyParseError(
                "Invalid JSON in request body",
                content_type=content_type,
                original_error=e
            )

    if content_type in ("application/x-www-form-urlencoded", "multipart/form-data"):
        # Cache the raw bytes so the route can parse the form again.
        await request.body()
        form_data = await request.form()
        return {key: _single_or_list(form_data.getlist(key)) for key in form_data.keys()}

    return {}


async def _read_params(request: Request) -> Dict[str, Any]:
    return dict(request.path_params)


async def _read_query(request: Request) -> Dict[str, Any]:
    query_params = request.query_params
    return {key: _single_or_list(query_params.getlist(key)) for key in query_params.keys()}


async def _read_headers(request: Request) -> Dict[str, str]:
    headers = request.headers
    return {key: ", ".join(headers.getlist(key)) for key in headers.keys()}


def _single_or_list(values: List[Any]) -> Any:
    return values[0] if len(values) == 1 else list(values)


SECTION_READERS: Dict[str, Callable] = {
    "body": _read_body,
    "params": _read_params,
    "query": _read_query,
    "headers": _read_headers,
}


async def read_request_section(request: Request, section: str) -> Any:
    """Extract one named section of ``request`` as plain Python data."""
    return await SECTION_READERS[section](request)


class RequestValidator:
    """
    Validates configured request sections against a schema.

    The instance is immutable after construction and may serve concurrent
    requests. A fresh engine is built per request unless the
    ``reuse_validator`` setting is enabled.
    """

    def __init__(
        self,
        schema: SchemaType,
        request_type: ValidateReqType = "body",
        validator_options: Options = None
    ):
        self.schema = schema
        self.request_type = request_type
        self.validator_options = validator_options
        self.status_code = get_settings().validation_status_code
        self._shared_validator: Optional[SchemaValidator] = None
        if get_settings().reuse_validator:
            self._shared_validator = get_validator(validator_options, cache_compiled=True)

    def get_validator(self) -> SchemaValidator:
        if self._shared_validator is not None:
            return self._shared_validator
        return get_validator(self.validator_options)

    async def inspect(self, request: Request) -> Optional[ValidationErrorResponse]:
        """
        Run validation for ``request``.

        Returns:
            The error body to send, or None when the request may proceed
        """
        validator = self.get_validator()

        if self.request_type == "multiple" and is_multi_validation_schema(self.schema):
            checked = []
            for key in self.schema.keys():
                if key == "multiple":
                    continue
                if key not in VALID_REQUEST_TYPES:
                    validation_logger.log_invalid_request_type(request, key)
                    return ValidationErrorResponse.invalid_request_type()

                value = await read_request_section(request, key)
                outcome = await validator.validate(value, self.schema[key])
                if outcome is not True:
                    validation_logger.log_validation_rejected(request, key, outcome)
                    return ValidationErrorResponse.from_errors(outcome)
                checked.append(key)

            validation_logger.log_validation_passed(request, checked)
            return None

        if self.request_type != "multiple" and self.request_type not in VALID_REQUEST_TYPES:
            validation_logger.log_invalid_request_type(request, self.request_type)
            return ValidationErrorResponse.invalid_request_type()

        # "multiple" with a single schema validates the body.
        section = self.request_type if self.request_type in VALID_REQUEST_TYPES else "body"
        value = await read_request_section(request, section)
        outcome = await validator.validate(value, self.schema)
        if outcome is not True:
            validation_logger.log_validation_rejected(request, section, outcome)
            return ValidationErrorResponse.from_errors(outcome)

        validation_logger.log_validation_passed(request, [section])
        return None

    def error_response(self, error: ValidationErrorResponse) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=error.to_content())

    async def __call__(self, request: Request, call_next: Callable) -> Response:
        error = await self.inspect(request)
        if error is not None:
            return self.error_response(error)
        return await call_next(request)

    async def dependency(self, request: Request) -> None:
        """FastAPI dependency form: raises :class:`RequestValidationFailed` on rejection."""
        error = await self.inspect(request)
        if error is not None:
            raise RequestValidationFailed(error.to_content(), status_code=self.status_code)


def validate_request(
    schema: SchemaType,
    request_type: ValidateReqType = "body",
    validator_options: Options = None
) -> RequestHandler:
    """
    Build a validation middleware for one or more request sections.

    Args:
        schema: Single schema, or a multi schema keyed by section
        request_type: body, params, query, headers or multiple
        validator_options: Engine options layered over the defaults

    Returns:
        An async ``(request, call_next)`` middleware whose failures are
        forwarded to the application's exception handlers
    """
    return catch_async(RequestValidator(schema, request_type, validator_options))


def validate_multi_request(schema: SchemaType, validator_options: Options = None) -> RequestHandler:
    """Shorthand for ``validate_request(schema, "multiple", validator_options)``."""
    return validate_request(schema, "multiple", validator_options)


class RequestValidationMiddleware(BaseHTTPMiddleware):
    """
    Starlette middleware class wrapping :func:`validate_request`.

    Path parameters are only populated once routing has happened, so mount
    it at route level when ``params`` must be validated.
    """

    def __init__(
        self,
        app: ASGIApp,
        schema: SchemaType,
        request_type: ValidateReqType = "body",
        validator_options: Options = None
    ):
        super().__init__(app, dispatch=validate_request(schema, request_type, validator_options))
        logger.info(f"RequestValidationMiddleware initialized for request type {request_type!r}")


async def request_validation_failed_handler(request: Request, exc: RequestValidationFailed) -> JSONResponse:
    """Render a rejection raised by the dependency form."""
    return JSONResponse(status_code=exc.status_code, content=exc.body)


async def request_body_parse_error_handler(request: Request, exc: RequestBodyParseError) -> JSONResponse:
    """Render an undecodable request body as a 400 response."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "type": "Validation Error!",
            "status": "error",
            "message": exc.message,
        }
    )


def register_exception_handlers(app: FastAPI):
    """
    Install the handlers the validation surfaces rely on.

    Args:
        app: FastAPI (or Starlette) application instance
    """
    app.add_exception_handler(RequestValidationFailed, request_validation_failed_handler)
    app.add_exception_handler(RequestBodyParseError, request_body_parse_error_handler)
    logger.info("Request validation exception handlers registered")
