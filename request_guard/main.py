"""
Reference application for Request Guard.

Shows every mounting style of the validation middleware on a small user
API. Run with ``uvicorn request_guard.main:app``.
"""

import logging
import re
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Route, Router

from request_guard.config import configure_logging, get_settings
from request_guard.middleware import (
    RequestValidationMiddleware,
    RequestValidator,
    register_exception_handlers,
    validate_multi_request,
    validate_request
)

logger = logging.getLogger(__name__)

PERIOD_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

USER_SCHEMA = {
    "name": "string|min:2",
    "email": "email",
    "age": "number|integer|optional|min:0",
}

LIST_QUERY_SCHEMA = {
    "page": "number|integer|optional|min:1",
    "limit": "number|integer|optional|min:1|max:100",
    "sort": {"type": "enum", "values": ["name", "created"], "optional": True},
}


async def check_period(value, errors, rule, path, parent, context):
    """Reject periods that are not ``YYYY-MM`` or lie in the future."""
    if not PERIOD_PATTERN.match(value):
        errors.append({"type": "periodFormat", "actual": value, "expected": "YYYY-MM"})
    elif value > datetime.now(timezone.utc).strftime("%Y-%m"):
        errors.append({"type": "periodFuture", "actual": value})
    return value


REPORT_SCHEMA = {
    "period": {
        "type": "string",
        "custom": check_period,
        "messages": {
            "periodFormat": "The '{field}' field must use the {expected} format.",
            "periodFuture": "The '{field}' field cannot be in the future.",
        },
    },
    "tags": {"type": "array", "items": "string", "optional": True, "max": 10},
}

UPDATE_USER_SCHEMA = {
    "params": {"user_id": "number|integer|positive"},
    "headers": {"x-api-key": "string|min:8"},
    "body": {"name": "string|optional|min:2", "email": "email|optional"},
}


async def list_users(request: Request) -> JSONResponse:
    return JSONResponse({"users": [], "query": dict(request.query_params)})


async def update_user(request: Request) -> JSONResponse:
    payload = await request.json()
    return JSONResponse({"id": int(request.path_params["user_id"]), **payload})


async def create_report(request: Request) -> JSONResponse:
    payload = await request.json()
    return JSONResponse({"report": payload}, status_code=status.HTTP_201_CREATED)


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    settings = get_settings()
    configure_logging()

    app = FastAPI(title=settings.app_name, version=settings.app_version)
    register_exception_handlers(app)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions with structured error responses."""
        logger.error(f"Unhandled exception: {str(exc)}", exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "type": "Internal Error!",
                "status": "error",
                "message": "Internal server error" + (f": {str(exc)}" if get_settings().debug else ""),
            }
        )

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "version": settings.app_version}

    @app.post(
        "/users",
        status_code=status.HTTP_201_CREATED,
        dependencies=[Depends(RequestValidator(USER_SCHEMA).dependency)]
    )
    async def create_user(request: Request):
        return {"user": await request.json()}

    # Route-level middleware sees resolved path params.
    v1 = Router(routes=[
        Route(
            "/users",
            list_users,
            methods=["GET"],
            middleware=[Middleware(BaseHTTPMiddleware, dispatch=validate_request(LIST_QUERY_SCHEMA, "query"))]
        ),
        Route(
            "/users/{user_id}",
            update_user,
            methods=["PUT"],
            middleware=[Middleware(BaseHTTPMiddleware, dispatch=validate_multi_request(UPDATE_USER_SCHEMA))]
        ),
        Route(
            "/reports",
            create_report,
            methods=["POST"],
            middleware=[Middleware(RequestValidationMiddleware, schema=REPORT_SCHEMA)]
        ),
    ])
    app.mount("/v1", v1)

    logger.info(f"{settings.app_name} application created")
    return app


app = create_app()
