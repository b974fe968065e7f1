"""
tests/helpers.py -- Test doubles shared across test modules.

FakeValidator mints fresh opaque secrets on each login/renewal and treats
renewal secrets as single-use, the way the real validator does. That makes
rotation and single-flight behaviour observable from tests without a network.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from auth.errors import AuthError, Unauthorized
from auth.models import CredentialPair, Principal
from auth.validator import LoginGrant

EMILY: dict[str, Any] = {
    "id": 1,
    "username": "emilys",
    "email": "emily.johnson@x.dummyjson.com",
    "firstName": "Emily",
    "lastName": "Johnson",
    "gender": "female",
    "image": "https://dummyjson.com/icon/emilys/128",
}


class FakeValidator:
    """CredentialValidator double.

    Knows one user (emilys / emilyspass). Set login_error / renew_error /
    identify_error to force a failure, and renew_delay to hold renewals open
    long enough to overlap them.
    """

    def __init__(self) -> None:
        self.users: dict[str, tuple[str, dict[str, Any]]] = {"emilys": ("emilyspass", EMILY)}
        self.calls: list[tuple[str, str]] = []
        self.login_error: Optional[AuthError] = None
        self.renew_error: Optional[AuthError] = None
        self.identify_error: Optional[AuthError] = None
        self.renew_delay: float = 0.0
        self._access: dict[str, str] = {}
        self._renewal: dict[str, str] = {}
        self._minted = 0

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def _mint(self, username: str) -> CredentialPair:
        self._minted += 1
        pair = CredentialPair(access_secret=f"access-{self._minted}", renewal_secret=f"renewal-{self._minted}")
        self._access[pair.access_secret] = username
        self._renewal[pair.renewal_secret] = username
        return pair

    def revoke_access(self) -> None:
        """Invalidate every access secret issued so far (simulates expiry)."""
        self._access.clear()

    async def login(self, username: str, password: str, window_minutes: int) -> LoginGrant:
        self.calls.append(("login", username))
        if self.login_error is not None:
            raise self.login_error
        entry = self.users.get(username)
        if entry is None or entry[0] != password:
            raise Unauthorized()
        return LoginGrant(principal=Principal.model_validate(entry[1]), credentials=self._mint(username))

    async def renew(self, renewal_secret: str, window_minutes: int) -> CredentialPair:
        self.calls.append(("renew", renewal_secret))
        if self.renew_delay:
            await asyncio.sleep(self.renew_delay)
        if self.renew_error is not None:
            raise self.renew_error
        username = self._renewal.pop(renewal_secret, None)
        if username is None:
            raise Unauthorized()
        return self._mint(username)

    async def identify(self, access_secret: str) -> Principal:
        self.calls.append(("identify", access_secret))
        if self.identify_error is not None:
            raise self.identify_error
        username = self._access.get(access_secret)
        if username is None:
            raise Unauthorized()
        return Principal.model_validate(self.users[username][1])


def login(client, username: str = "emilys", password: str = "emilyspass"):
    """POST the JSON login through a TestClient and return the response."""
    return client.post("/api/v1/auth/login", json={"username": username, "password": password})


def set_cookie_headers(resp) -> dict[str, str]:
    """Map cookie name -> raw Set-Cookie header for an httpx response."""
    return {h.split("=", 1)[0]: h for h in resp.headers.get_list("set-cookie")}
