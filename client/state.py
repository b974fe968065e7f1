"""
client/state.py -- In-memory mirror of "who is the current user".

SessionCache is advisory: it exists so a UI (or the CLI) can decide what to
render without a round trip. It is never consulted for access control -- the
server-side gate and the validator are the authority.

Single-writer discipline: only ClientAuth (login/logout/refresh) and the
Reconciler call the mutators below. Everyone else reads `state` or
subscribes to authenticated transitions.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Optional

from auth.models import Principal

Listener = Callable[[bool], None]


@dataclass(frozen=True)
class SessionState:
    """Snapshot of the client's view of the session."""

    principal: Optional[Principal] = None
    initialized: bool = False

    @property
    def authenticated(self) -> bool:
        return self.principal is not None


class SessionCache:
    """Holds the current SessionState and notifies on login/logout edges.

    Listeners receive the new `authenticated` value and are called only when
    it actually changes (False -> True or True -> False); replacing one
    principal with a refreshed copy of the same session is not a transition.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._state = SessionState()
        self._listeners: list[Listener] = []
        self._clock = clock
        self.reconciled_at: Optional[float] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def principal(self) -> Optional[Principal]:
        return self._state.principal

    @property
    def authenticated(self) -> bool:
        return self._state.authenticated

    @property
    def initialized(self) -> bool:
        return self._state.initialized

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a transition listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_principal(self, principal: Principal) -> None:
        self._update(replace(self._state, principal=principal))

    def clear(self) -> None:
        self._update(replace(self._state, principal=None))

    def mark_initialized(self) -> bool:
        """Flip `initialized` to True. Returns False if it already was."""
        if self._state.initialized:
            return False
        self._state = replace(self._state, initialized=True)
        return True

    def mark_reconciled(self) -> None:
        self.reconciled_at = self._clock()

    def is_stale(self, max_age: float) -> bool:
        if self.reconciled_at is None:
            return True
        return self._clock() - self.reconciled_at >= max_age

    def _update(self, new: SessionState) -> None:
        was = self._state.authenticated
        self._state = new
        if new.authenticated != was:
            for listener in list(self._listeners):
                listener(new.authenticated)
