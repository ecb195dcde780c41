"""
Shared pytest configuration and fixtures for Request Guard tests.

This module provides a factory for bare Starlette requests, so the
dispatcher can be exercised without a server, and a client for the
reference application.
"""

import json
from typing import Any, Dict, Generator, List, Optional, Tuple, Union
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request
from starlette.responses import PlainTextResponse


HeaderInput = Union[Dict[str, str], List[Tuple[str, str]]]


def build_request(
    method: str = "POST",
    path: str = "/",
    json_body: Any = None,
    body: bytes = b"",
    query_string: str = "",
    headers: Optional[HeaderInput] = None,
    path_params: Optional[Dict[str, Any]] = None,
    app: Any = None
) -> Request:
    """Build a Starlette request whose body is delivered in one message."""
    header_items = list(headers.items()) if isinstance(headers, dict) else list(headers or [])
    if json_body is not None:
        body = json.dumps(json_body).encode("utf-8")
        if not any(name.lower() == "content-type" for name, _ in header_items):
            header_items.append(("content-type", "application/json"))

    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "root_path": "",
        "query_string": query_string.encode("latin-1"),
        "headers": [(name.lower().encode("latin-1"), value.encode("latin-1")) for name, value in header_items],
        "path_params": path_params or {},
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
    }
    if app is not None:
        scope["app"] = app

    delivered = False

    async def receive():
        nonlocal delivered
        if delivered:
            return {"type": "http.disconnect"}
        delivered = True
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)


@pytest.fixture
def make_request():
    """Provide the request factory to tests."""
    return build_request


@pytest.fixture
def call_next():
    """Continuation that records its calls and answers 200 OK."""
    return AsyncMock(return_value=PlainTextResponse("ok"))


@pytest.fixture
def app():
    """Create the reference FastAPI application for testing."""
    from request_guard.main import create_app

    return create_app()


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Create synchronous test client for the reference application."""
    with TestClient(app) as test_client:
        yield test_client
