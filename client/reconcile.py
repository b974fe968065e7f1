"""
client/reconcile.py -- Sync the client's session cache with the server.

"Who am I" (GET /api/v1/auth/me) is the only reconciliation query. Outcomes:

  success                 -> cache holds the returned principal
  Unauthorized / other    -> cache cleared, no retry, no error surfaced
  Transient               -> one retry; if that fails too, cache cleared and
                             the Transient error is raised to the caller

initialize() runs that query exactly once per Reconciler: concurrent and
repeated callers share the first attempt, and `initialized` flips to True
when it finishes whatever the outcome.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from auth.errors import AuthError, Transient
from auth.models import Principal
from auth.singleflight import SingleFlight
from client.api import AuthApiClient
from client.state import SessionCache, SessionState

logger = logging.getLogger("sessiongate.client.reconcile")

_RECONCILE = "reconcile"


class Reconciler:
    def __init__(self, api: AuthApiClient, cache: SessionCache, stale_after: float = 300.0) -> None:
        self._api = api
        self._cache = cache
        self.stale_after = stale_after
        self._flights = SingleFlight()
        self._init_task: Optional[asyncio.Future[None]] = None

    async def initialize(self) -> SessionState:
        """Run the first reconciliation once; later calls return the same result."""
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._initialize())
        await asyncio.shield(self._init_task)
        return self._cache.state

    async def _initialize(self) -> None:
        try:
            await self.reconcile()
        except AuthError as exc:
            logger.info("Initial reconciliation failed (%s); starting signed out", exc.kind.value)
        finally:
            self._cache.mark_initialized()

    async def reconcile(self) -> Optional[Principal]:
        """Ask the server who is signed in and update the cache to match.

        Overlapping calls share one query.
        """
        return await self._flights.do(_RECONCILE, self._reconcile)

    async def _reconcile(self) -> Optional[Principal]:
        attempt = 0
        while True:
            try:
                principal = await self._api.current_user()
            except AuthError as exc:
                if attempt < exc.policy.retry_limit:
                    attempt += 1
                    logger.info("Reconciliation hit %s; retrying once", exc.kind.value)
                    continue
                self._cache.clear()
                self._cache.mark_reconciled()
                if isinstance(exc, Transient):
                    raise
                logger.debug("Reconciliation: signed out (%s)", exc.kind.value)
                return None
            self._cache.set_principal(principal)
            self._cache.mark_reconciled()
            return principal

    async def revalidate_if_stale(self) -> bool:
        """Reconcile if the last check is older than the staleness window.

        Returns True if a query was issued.
        """
        if not self._cache.is_stale(self.stale_after):
            return False
        await self.reconcile()
        return True

    async def run_periodic(self, interval: Optional[float] = None) -> None:
        """Background loop: revalidate whenever the cache goes stale.

        Runs until cancelled. A transient failure is logged and the loop
        carries on; the cache has already been cleared by reconcile().
        """
        interval = interval or self.stale_after
        while True:
            await asyncio.sleep(interval)
            try:
                await self.revalidate_if_stale()
            except Transient:
                logger.warning("Periodic revalidation failed: authentication service unavailable")
