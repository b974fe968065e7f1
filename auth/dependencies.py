"""
auth/dependencies.py -- FastAPI Depends() helpers for the session subsystem.

The session-cookie middleware in api/main.py builds one SessionStore per
request and parks it on request.state before any route runs; it applies the
staged cookie changes to whatever response comes back, including error
responses produced by exception handlers. Routes therefore never touch
Set-Cookie themselves -- they ask for the store and mutate it.

get_session_store() returns that request-scoped store.
get_issuer() returns the app-wide SessionIssuer created in lifespan.
get_current_principal() resolves the access cookie to a Principal, raising
Unauthorized (401) or Transient (503) via the AuthError handler.

Layer rule: no imports from web/ or client/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.issuer import SessionIssuer
from auth.models import Principal
from auth.session_store import SessionStore
from core.config import get_settings


def get_session_store(request: Request) -> SessionStore:
    """Return the request-scoped SessionStore.

    Falls back to building one if the middleware did not run (e.g. a route
    mounted on a bare app in a unit test). In that case staged changes are
    not applied automatically.
    """
    store = getattr(request.state, "session_store", None)
    if store is None:
        store = SessionStore.from_settings(request.cookies, get_settings())
        request.state.session_store = store
    return store


def get_issuer(request: Request) -> SessionIssuer:
    return request.app.state.issuer


async def get_current_principal(
    store: SessionStore = Depends(get_session_store),
    issuer: SessionIssuer = Depends(get_issuer),
) -> Principal:
    """Require a principal the validator recognises.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(principal: Principal = Depends(get_current_principal)): ...
    """
    return await issuer.identify(store)
