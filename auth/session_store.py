"""
auth/session_store.py -- Request-scoped view of the two session cookies.

The session record lives in two httpOnly cookies:

  access_token   short-lived access secret   (max-age = access window)
  refresh_token  long-lived renewal secret   (max-age = renewal window)

Both are SameSite=Lax, Path=/, HttpOnly, and Secure in production. Page
script can never read them; the browser forwards them on every same-site
request, which is what makes the "who am I" query work without the client
ever holding a secret.

Writes are staged, not sent immediately. write() and clear() always stage
BOTH slots together, and apply() emits the staged Set-Cookie headers on the
outgoing response. This gives the record its invariants:

  - a slot is either absent or holds exactly one value;
  - a rotation replaces both slots in the same response;
  - a failed renewal deletes both slots -- never one without the other.

Reads see staged values, so code running later in the same request (e.g. a
route that renews and then identifies) observes the new pair.

The only single-slot operation is expire_access(), which mirrors what the
browser does on its own when the access cookie's max-age runs out.

Layer rule: no imports from api/, web/, or client/. Imports core/ for settings.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Optional

from auth.models import CookieSlot, CredentialPair
from core.config import Settings

logger = logging.getLogger("sessiongate.auth.session")

ACCESS_COOKIE = "access_token"
RENEWAL_COOKIE = "refresh_token"

# Sentinel distinguishing "staged for deletion" (None) from "not staged".
_UNSET = object()


class SessionStore:
    """Cookie-backed session record for one request/response cycle.

    Usage (inside a request handler):
        store = SessionStore(request.cookies, access_slot, renewal_slot, secure=False)
        store.write(pair)
        store.apply(response)
    """

    def __init__(
        self,
        cookies: Mapping[str, str],
        access_slot: CookieSlot,
        renewal_slot: CookieSlot,
        secure: bool = False,
    ) -> None:
        self._cookies = cookies
        self.access_slot = access_slot
        self.renewal_slot = renewal_slot
        self.secure = secure
        self._staged: dict[str, Optional[str]] = {}

    @classmethod
    def from_settings(cls, cookies: Mapping[str, str], settings: Settings) -> "SessionStore":
        return cls(
            cookies,
            access_slot=CookieSlot(ACCESS_COOKIE, max_age=settings.access_max_age),
            renewal_slot=CookieSlot(RENEWAL_COOKIE, max_age=settings.renewal_max_age),
            secure=settings.secure_cookies,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _read(self, slot: CookieSlot) -> Optional[str]:
        staged = self._staged.get(slot.name, _UNSET)
        if staged is not _UNSET:
            return staged
        return self._cookies.get(slot.name) or None

    def access_secret(self) -> Optional[str]:
        return self._read(self.access_slot)

    def renewal_secret(self) -> Optional[str]:
        return self._read(self.renewal_slot)

    def has_access(self) -> bool:
        return self.access_secret() is not None

    @property
    def dirty(self) -> bool:
        """True when apply() would emit at least one Set-Cookie header."""
        return bool(self._staged)

    # ------------------------------------------------------------------
    # Staged writes
    # ------------------------------------------------------------------

    def write(self, pair: CredentialPair) -> None:
        """Stage both slots with a freshly issued or rotated pair."""
        self._staged[self.access_slot.name] = pair.access_secret
        self._staged[self.renewal_slot.name] = pair.renewal_secret

    def clear(self) -> None:
        """Stage deletion of both slots."""
        self._staged[self.access_slot.name] = None
        self._staged[self.renewal_slot.name] = None

    def expire_access(self) -> None:
        """Stage deletion of the access slot only (early expiry)."""
        self._staged[self.access_slot.name] = None

    # ------------------------------------------------------------------
    # Response
    # ------------------------------------------------------------------

    def apply(self, response) -> None:
        """Emit the staged slots as Set-Cookie headers on a Starlette response."""
        for slot in (self.access_slot, self.renewal_slot):
            if slot.name not in self._staged:
                continue
            value = self._staged[slot.name]
            if value is None:
                response.delete_cookie(
                    slot.name,
                    path=slot.path,
                    secure=self.secure,
                    httponly=slot.httponly,
                    samesite=slot.samesite,
                )
            else:
                response.set_cookie(
                    slot.name,
                    value=value,
                    max_age=slot.max_age,
                    path=slot.path,
                    secure=self.secure,
                    httponly=slot.httponly,
                    samesite=slot.samesite,
                )
        if self.dirty:
            logger.debug("Applied session cookie changes: %s", sorted(self._staged))
