"""
auth/validator.py -- Client for the remote credential validator.

The validator is the identity authority: it checks username/password, mints
the access/renewal pair, rotates it, and resolves an access secret back to a
principal. It is not reimplemented here -- this module only speaks its HTTP
API (DummyJSON-compatible):

  POST {base}/auth/login    {username, password, expiresInMins}
       -> {id, username, email, firstName, lastName, gender, image,
           accessToken, refreshToken}
  POST {base}/auth/refresh  {refreshToken, expiresInMins}
       -> {accessToken, refreshToken}
  GET  {base}/auth/me       Authorization: Bearer <access>
       -> user object

Error mapping (the only two kinds this module raises):
  Unauthorized -- 4xx response, or a 2xx body that does not parse into the
                  expected shape. The validator said no (or said nonsense).
  Transient    -- timeout, connection failure, or 5xx. Nobody said anything.

Callers (the issuer) translate these into the operation-specific kinds
(InvalidCredentials for login, RenewalFailed for renewal).

CredentialValidator is the Protocol the issuer depends on, so tests can
plug in an in-process fake without touching the network.

Layer rule: no imports from api/, web/, or client/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx
from pydantic import ValidationError

from auth.errors import Transient, Unauthorized
from auth.models import CredentialPair, Principal

logger = logging.getLogger("sessiongate.auth.validator")

LOGIN_PATH = "/auth/login"
REFRESH_PATH = "/auth/refresh"
ME_PATH = "/auth/me"


@dataclass(frozen=True)
class LoginGrant:
    """Result of a successful validator login: who, plus the secrets."""

    principal: Principal
    credentials: CredentialPair


class CredentialValidator(Protocol):
    async def login(self, username: str, password: str, window_minutes: int) -> LoginGrant: ...

    async def renew(self, renewal_secret: str, window_minutes: int) -> CredentialPair: ...

    async def identify(self, access_secret: str) -> Principal: ...


def _pair_from(data: dict[str, Any]) -> CredentialPair:
    access = data.get("accessToken")
    renewal = data.get("refreshToken")
    if not isinstance(access, str) or not access or not isinstance(renewal, str) or not renewal:
        raise Unauthorized("Validator response is missing credentials.")
    return CredentialPair(access_secret=access, renewal_secret=renewal)


def _principal_from(data: dict[str, Any]) -> Principal:
    try:
        return Principal.model_validate(data)
    except ValidationError as exc:
        logger.warning("Validator returned a malformed profile: %d field error(s)", exc.error_count())
        raise Unauthorized("Validator returned a malformed profile.") from exc


class HttpCredentialValidator:
    """httpx-based CredentialValidator.

    One AsyncClient is shared across all calls for connection pooling.
    Redirects are not followed: these are known endpoints, and following a
    redirect would forward credentials to wherever it points.

    Usage:
        validator = HttpCredentialValidator("https://dummyjson.com", timeout=10)
        grant = await validator.login("emilys", "emilyspass", 30)
        await validator.aclose()
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            follow_redirects=False,
            headers={"Accept": "application/json"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def login(self, username: str, password: str, window_minutes: int) -> LoginGrant:
        data = await self._call(
            "POST",
            LOGIN_PATH,
            json={"username": username, "password": password, "expiresInMins": window_minutes},
        )
        credentials = _pair_from(data)
        principal = _principal_from(data)
        logger.info("Validator accepted login for %s", principal.username)
        return LoginGrant(principal=principal, credentials=credentials)

    async def renew(self, renewal_secret: str, window_minutes: int) -> CredentialPair:
        data = await self._call(
            "POST",
            REFRESH_PATH,
            json={"refreshToken": renewal_secret, "expiresInMins": window_minutes},
        )
        return _pair_from(data)

    async def identify(self, access_secret: str) -> Principal:
        data = await self._call("GET", ME_PATH, headers={"Authorization": f"Bearer {access_secret}"})
        return _principal_from(data)

    async def _call(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Issue one request and return the decoded JSON object.

        Never retries -- retry policy belongs to the caller's decision table.
        """
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("Validator %s %s timed out", method, path)
            raise Transient("Authentication service timed out.") from exc
        except httpx.HTTPError as exc:
            logger.warning("Validator %s %s failed: %s", method, path, type(exc).__name__)
            raise Transient() from exc

        if resp.status_code >= 500:
            logger.warning("Validator %s %s returned %d", method, path, resp.status_code)
            raise Transient()
        if resp.status_code != 200:
            logger.info("Validator %s %s rejected with %d", method, path, resp.status_code)
            raise Unauthorized()

        try:
            data = resp.json()
        except ValueError as exc:
            raise Unauthorized("Validator returned a non-JSON body.") from exc
        if not isinstance(data, dict):
            raise Unauthorized("Validator returned an unexpected body.")
        return data
