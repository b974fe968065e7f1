"""
tests/conftest.py -- Shared test fixtures for sessiongate tests.

This module provides:
  - _patch_lifespan(): wires a FakeValidator into app.state, bypassing real startup
  - validator: a fresh FakeValidator (tests/helpers.py) per test
  - web_client: TestClient with follow_redirects=False for page and API tests
  - asgi_app: the real app with the fake wired in, for httpx.ASGITransport

The environment variables below must be set before any core/api import so
get_settings() sees them when it is first called.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before importing the app so the cached Settings pick them up.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.issuer import SessionIssuer
from tests.helpers import FakeValidator


def _patch_lifespan(validator: FakeValidator):
    """Return an async context manager that replaces the real lifespan.

    Wires the fake validator and an issuer around it into app.state so
    TestClient routes never open a connection to the real validator.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.validator = validator
        app.state.issuer = SessionIssuer(validator, window_minutes=30)
        yield

    return test_lifespan


@pytest.fixture
def validator() -> FakeValidator:
    return FakeValidator()


@pytest.fixture
def web_client(validator: FakeValidator) -> Generator[TestClient, None, None]:
    """Yield a TestClient with a fresh cookie jar.

    follow_redirects=False is essential: we assert on redirect *locations*
    (e.g. 302 to /login?redirect=...), which are invisible once the client
    follows the redirect and returns the final 200 response.
    """
    app.router.lifespan_context = _patch_lifespan(validator)
    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client


@pytest.fixture
def asgi_app(validator: FakeValidator):
    """The real app with the fake validator wired in, for httpx.ASGITransport.

    ASGITransport does not run lifespan, so app.state is populated directly.
    """
    app.state.validator = validator
    app.state.issuer = SessionIssuer(validator, window_minutes=30)
    return app
