"""
Asynchronous Error Propagation

Wraps async request handlers so that any exception raised while they are
suspended is forwarded to the application's exception handlers instead of
escaping the middleware stack unhandled. Errors are never transformed or
retried, and each one is reported exactly once.

The wrapper covers the whole awaited handler, ``call_next`` included, so an
exception raised by the downstream route is forwarded the same way as a
failure of the validation step itself.
"""

import inspect
from functools import wraps
from typing import Any, Awaitable, Callable, Optional

from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import Response

from request_guard.utils.logging import ValidationLogger

validation_logger = ValidationLogger(__name__)

RequestHandler = Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]


def lookup_exception_handler(request: Request, exc: Exception) -> Optional[Callable]:
    """
    Find the application's handler for ``exc``, walking the class MRO.

    Returns None when the request carries no application or no handler is
    registered for the exception class or any of its bases.
    """
    app = request.scope.get("app")
    handlers = getattr(app, "exception_handlers", None) or {}
    for cls in type(exc).__mro__:
        if cls in handlers:
            return handlers[cls]
    return None


async def forward_error(request: Request, exc: Exception) -> Response:
    """
    Hand ``exc`` to the pipeline's error channel.

    The registered exception handler renders the response. Without one the
    exception is re-raised so the server error middleware reports it.
    """
    handler = lookup_exception_handler(request, exc)
    validation_logger.log_forwarded_error(
        request, exc, getattr(handler, "__name__", None) if handler else None
    )

    if handler is None:
        raise exc

    if inspect.iscoroutinefunction(handler):
        return await handler(request, exc)
    return await run_in_threadpool(handler, request, exc)


def catch_async(fn: RequestHandler) -> RequestHandler:
    """
    Wrap an async ``(request, call_next)`` handler.

    The wrapper has the same signature; a failure raised by ``fn`` is passed
    to :func:`forward_error` rather than propagated.
    """
    @wraps(fn)
    async def wrapper(request: Request, call_next: Callable[..., Any]) -> Response:
        try:
            return await fn(request, call_next)
        except Exception as exc:
            return await forward_error(request, exc)

    return wrapper
