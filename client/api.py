"""
client/api.py -- Async SDK for the sessiongate client-facing query surface.

AuthApiClient wraps one httpx.AsyncClient whose cookie jar plays the part of
the browser: Set-Cookie from the server lands in the jar and is forwarded on
every later request. Nothing in this module reads the jar back, and no method
returns a secret -- callers only ever see Principal objects and errors.

Error mapping:
  {"error": {"code": ...}} envelope  -> error_from_code(code, message, status)
  non-envelope 4xx                   -> Unauthorized
  non-envelope 5xx                   -> Transient
  timeout / transport failure        -> Transient

Layer rule: imports auth/ for the shared types only; never imports api/ or web/.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from auth.errors import AuthError, Transient, Unauthorized, error_from_code
from auth.models import Principal

logger = logging.getLogger("sessiongate.client.api")

API_PREFIX = "/api/v1/auth"


class AuthApiClient:
    """Thin async wrapper over POST login / POST logout / GET me / POST refresh.

    Usage:
        api = AuthApiClient("http://localhost:8000")
        principal = await api.login("emilys", "emilyspass")
        await api.aclose()

    Tests pass transport=httpx.ASGITransport(app=app) to run against the app
    in-process.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            follow_redirects=False,
            headers={"Accept": "application/json"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def login(self, username: str, password: str) -> Principal:
        data = await self._call("POST", "/login", json={"username": username, "password": password})
        return self._principal(data)

    async def logout(self) -> None:
        await self._call("POST", "/logout")

    async def current_user(self) -> Principal:
        data = await self._call("GET", "/me")
        return self._principal(data)

    async def refresh(self) -> None:
        await self._call("POST", "/refresh")

    def forget_session(self) -> None:
        """Drop the session cookies from the local jar without telling the server."""
        self._client.cookies.clear()

    async def get_page(self, path: str) -> httpx.Response:
        """GET a web page with the session cookies attached. Redirects are returned, not followed."""
        try:
            return await self._client.get(path, headers={"Accept": "text/html"})
        except httpx.HTTPError as exc:
            raise Transient() from exc

    @staticmethod
    def _principal(data: dict[str, Any]) -> Principal:
        try:
            return Principal.model_validate(data.get("user"))
        except ValidationError as exc:
            raise Unauthorized("Server returned a malformed profile.") from exc

    async def _call(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            resp = await self._client.request(method, f"{API_PREFIX}{path}", **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("%s %s timed out", method, path)
            raise Transient("Authentication service timed out.") from exc
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, type(exc).__name__)
            raise Transient() from exc

        if resp.status_code == 200:
            try:
                data = resp.json()
            except ValueError as exc:
                raise Unauthorized("Server returned a non-JSON body.") from exc
            return data if isinstance(data, dict) else {}

        raise self._error_from(resp)

    @staticmethod
    def _error_from(resp: httpx.Response) -> AuthError:
        try:
            body = resp.json()
        except ValueError:
            body = None
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            return error_from_code(error.get("code"), error.get("message"), resp.status_code)
        if resp.status_code >= 500:
            return Transient()
        return Unauthorized()
