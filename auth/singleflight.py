"""
auth/singleflight.py -- Collapse concurrent calls for the same key into one.

Renewal secrets are single-use: the validator invalidates the old secret the
moment it issues a new pair. Two overlapping rotations with the same secret
would race, one would lose, and the loser's failure handler would tear down a
perfectly good session. SingleFlight makes the second caller await the first
caller's task instead of starting its own.

The shared task is wrapped in asyncio.shield() so that a caller giving up
(client disconnect, timeout) does not cancel the rotation the other callers
are still waiting on.

Layer rule: stdlib only.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Hashable
from typing import Any, TypeVar

T = TypeVar("T")


class SingleFlight:
    """Per-key in-flight task registry.

    Usage:
        flights = SingleFlight()
        pair = await flights.do(renewal_secret, lambda: validator.renew(renewal_secret, 30))
    """

    def __init__(self) -> None:
        self._inflight: dict[Hashable, asyncio.Task[Any]] = {}

    async def do(self, key: Hashable, fn: Callable[[], Awaitable[T]]) -> T:
        """Run fn() unless a call for key is already running; either way return its result.

        Exceptions propagate to every waiter. The key is released as soon as
        the task finishes, so a later call starts a fresh attempt.
        """
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._release(k, t))
        return await asyncio.shield(task)

    def _release(self, key: Hashable, task: asyncio.Task[Any]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Mark the exception retrieved; every waiter already received it.
        if not task.cancelled():
            task.exception()
