"""
auth/issuer.py -- Server-side login, renewal, logout and identify.

SessionIssuer is the only code that talks to the credential validator and the
only code that writes the session record. Secrets pass through it for the
length of one call: they arrive from the validator, go straight into the
SessionStore, and are never returned to the caller.

Failure contract -- every path ends in one AuthError kind:
  login     InvalidCredentials (empty or too-short input, rejection, network,
            timeout); no cookie is written.
  renew     NoSession (no renewal cookie, no remote call) or
            RenewalFailed (anything else; BOTH cookies are deleted first).
  logout    never fails; both cookies are deleted unconditionally.
  identify  Unauthorized (no access cookie or rejected) or Transient.

Renewal is single-flight per renewal secret: concurrent refreshes from the
same browser share one remote rotation and all observe its outcome.

Layer rule: no imports from api/, web/, or client/.
"""

from __future__ import annotations

import logging

from auth.errors import AuthError, InvalidCredentials, NoSession, RenewalFailed, Unauthorized
from auth.models import CredentialPair, Principal
from auth.session_store import SessionStore
from auth.singleflight import SingleFlight
from auth.validator import CredentialValidator

logger = logging.getLogger("sessiongate.auth.issuer")

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6


class SessionIssuer:
    """Issuer/refresher bound to one credential validator.

    window_minutes is forwarded to the validator as the access secret's
    lifetime; it must match the access cookie max-age so both expire together.
    """

    def __init__(self, validator: CredentialValidator, window_minutes: int = 30) -> None:
        self.validator = validator
        self.window_minutes = window_minutes
        self._renewals = SingleFlight()

    async def login(self, store: SessionStore, username: str, password: str) -> Principal:
        """Authenticate against the validator and stage the new session record."""
        username = (username or "").strip()
        if not username or not password:
            raise InvalidCredentials("Username and password are required.")
        if len(username) < MIN_USERNAME_LENGTH or len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidCredentials()

        try:
            grant = await self.validator.login(username, password, self.window_minutes)
        except AuthError as exc:
            logger.info("Login failed for %s (%s)", username, exc.kind.value)
            raise InvalidCredentials() from exc

        store.write(grant.credentials)
        logger.info("Session issued for %s", grant.principal.username)
        return grant.principal

    async def renew(self, store: SessionStore) -> None:
        """Rotate both secrets using the renewal cookie.

        Fail-closed: on any validator failure the whole record is deleted
        before RenewalFailed propagates, so a half-valid session can never
        survive a failed rotation.
        """
        renewal_secret = store.renewal_secret()
        if not renewal_secret:
            raise NoSession()

        try:
            pair: CredentialPair = await self._renewals.do(
                renewal_secret,
                lambda: self.validator.renew(renewal_secret, self.window_minutes),
            )
        except AuthError as exc:
            store.clear()
            logger.info("Renewal failed (%s); session cleared", exc.kind.value)
            raise RenewalFailed() from exc

        store.write(pair)
        logger.info("Session renewed")

    async def logout(self, store: SessionStore) -> None:
        """Delete the session record. Local deletion never depends on anything remote."""
        store.clear()
        logger.info("Session cleared by logout")

    async def identify(self, store: SessionStore) -> Principal:
        """Resolve the access cookie to a principal via the validator."""
        access_secret = store.access_secret()
        if not access_secret:
            raise Unauthorized()
        return await self.validator.identify(access_secret)
