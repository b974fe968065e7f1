"""
client/session.py -- ClientAuth, the client-side session facade.

Wires the pieces together for a client process (a UI shell, the CLI):

  AuthApiClient      -- HTTP calls; the cookie jar carries the session
  SessionCache       -- advisory "who am I" state
  Reconciler         -- initial and periodic sync with the server
  RenewalScheduler   -- proactive refresh before the access cookie expires

The scheduler follows the cache: entering authenticated arms it, leaving
authenticated cancels it. ClientAuth and Reconciler are the only writers of
the cache.

Usage:
    auth = ClientAuth.from_settings("http://localhost:8000")
    await auth.start()
    await auth.login("emilys", "emilyspass")
    print(auth.state.principal.username)
    await auth.logout()
    await auth.close()
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

from auth.errors import AuthError
from auth.models import Principal
from auth.singleflight import SingleFlight
from client.api import AuthApiClient
from client.reconcile import Reconciler
from client.scheduler import RenewalScheduler
from client.state import SessionCache, SessionState
from core.config import Settings, get_settings

logger = logging.getLogger("sessiongate.client")

_REFRESH = "refresh"


class ClientAuth:
    def __init__(self, api: AuthApiClient, renewal_delay: float, stale_after: float = 300.0) -> None:
        self.api = api
        self.cache = SessionCache()
        self.reconciler = Reconciler(api, self.cache, stale_after=stale_after)
        self.scheduler = RenewalScheduler(self.refresh, renewal_delay)
        self._flights = SingleFlight()
        self._periodic: Optional[asyncio.Task[None]] = None
        self.cache.subscribe(self._on_auth_change)

    @classmethod
    def from_settings(
        cls,
        base_url: str,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "ClientAuth":
        settings = settings or get_settings()
        api = AuthApiClient(base_url, timeout=settings.request_timeout_seconds, transport=transport)
        return cls(
            api,
            renewal_delay=settings.renewal_delay_seconds,
            stale_after=float(settings.reconcile_stale_seconds),
        )

    @property
    def state(self) -> SessionState:
        return self.cache.state

    async def start(self, revalidate: bool = True) -> SessionState:
        """Initial reconciliation, then (optionally) periodic revalidation."""
        await self.reconciler.initialize()
        if revalidate and self._periodic is None:
            self._periodic = asyncio.get_running_loop().create_task(self.reconciler.run_periodic())
        return self.cache.state

    async def login(self, username: str, password: str) -> Principal:
        """Sign in. The cache is set from the login result, no extra query.

        On failure the error propagates and the cache is left untouched.
        """
        principal = await self.api.login(username, password)
        self.cache.set_principal(principal)
        self.cache.mark_reconciled()
        logger.info("Signed in as %s", principal.username)
        return principal

    async def logout(self) -> None:
        """Sign out. Local state and cookies are dropped even if the server can't be reached."""
        try:
            await self.api.logout()
        except AuthError as exc:
            logger.warning("Remote logout failed (%s); clearing local session anyway", exc.kind.value)
        finally:
            self.api.forget_session()
            self.cache.clear()

    async def refresh(self) -> None:
        """Rotate the session cookies. Overlapping calls share one request.

        A transient failure is retried once. Any final failure clears the
        cache (which cancels the scheduler) and is raised.
        """
        await self._flights.do(_REFRESH, self._refresh)

    async def _refresh(self) -> None:
        attempt = 0
        while True:
            try:
                await self.api.refresh()
                return
            except AuthError as exc:
                if attempt < exc.policy.retry_limit:
                    attempt += 1
                    continue
                logger.info("Session refresh failed (%s); signing out locally", exc.kind.value)
                self.cache.clear()
                raise

    async def close(self) -> None:
        if self._periodic is not None:
            self._periodic.cancel()
            self._periodic = None
        self.scheduler.cancel()
        await self.api.aclose()

    def _on_auth_change(self, authenticated: bool) -> None:
        if authenticated:
            self.scheduler.arm()
        else:
            self.scheduler.cancel()
