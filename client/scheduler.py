"""
client/scheduler.py -- Proactive renewal timer.

The client cannot read the access cookie (httpOnly), so it cannot know when
the access secret really expires. Instead it renews on a fixed interval that
is strictly shorter than the access window: by default 25 minutes into a
30-minute window.

State machine, one cancellable asyncio task:

    IDLE --arm()--> SCHEDULED --delay elapses--> FIRED
    FIRED --renew ok--> SCHEDULED      (re-armed)
    FIRED --AuthError--> IDLE          (not re-armed; session already cleared)
    any  --cancel()--> IDLE

arm() always cancels a pending timer first, so at most one timer exists.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Optional

from auth.errors import AuthError

logger = logging.getLogger("sessiongate.client.scheduler")


class SchedulerState(str, Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    FIRED = "fired"


class RenewalScheduler:
    def __init__(self, renew: Callable[[], Awaitable[None]], delay: float) -> None:
        if delay <= 0:
            raise ValueError("renewal delay must be positive")
        self._renew = renew
        self.delay = delay
        self.state = SchedulerState.IDLE
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def armed(self) -> bool:
        return self.state is SchedulerState.SCHEDULED

    def arm(self) -> None:
        """Start (or restart) the countdown. Must be called inside a running loop."""
        self.cancel()
        self.state = SchedulerState.SCHEDULED
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug("Renewal armed for %.0fs", self.delay)

    def cancel(self) -> None:
        """Drop any pending timer and return to IDLE.

        A failed renewal clears the session from inside the shared refresh
        task, not from the timer task, so the timer task is cancelled while it
        awaits the shielded refresh and simply ends in IDLE. If cancel() does
        run on the timer task itself, that task is not cancelled; it just
        stops owning the timer.
        """
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self.state = SchedulerState.IDLE

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        me = asyncio.current_task()
        self.state = SchedulerState.FIRED
        try:
            await self._renew()
        except AuthError as exc:
            logger.info("Scheduled renewal failed (%s); timer not re-armed", exc.kind.value)
            if self._task is me:
                self._task = None
                self.state = SchedulerState.IDLE
            return
        # Re-arm only if nobody cancelled or re-armed us while renew() ran.
        if self._task is me:
            self.arm()
