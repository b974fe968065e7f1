"""
auth/gate.py -- Per-request route gating decision.

evaluate() is a pure function of (path, access cookie present?, policy). It
does not decode or verify the access secret: presence is the whole check.
Expiry and signature are the validator's business, enforced when the secret
is actually used. That keeps the gate cheap enough to run on every request.

Rules, first match wins:
  1. guest-only public path (the login page) + access present
         -> REDIRECT_TO_DASHBOARD
  2. non-public path + no access
         -> REDIRECT_TO_LOGIN, original path kept in ?redirect=
  3. anything else
         -> ALLOW

The return target is always the request *path* (never a full URL) so the
login page cannot be turned into an open redirect.

Layer rule: no imports from api/, web/, or client/. Imports core/ for settings.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import urlencode

from core.config import Settings


class DecisionKind(str, Enum):
    ALLOW = "allow"
    REDIRECT_TO_LOGIN = "redirect_to_login"
    REDIRECT_TO_DASHBOARD = "redirect_to_dashboard"


@dataclass(frozen=True)
class Decision:
    kind: DecisionKind
    location: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.kind is DecisionKind.ALLOW


ALLOW = Decision(DecisionKind.ALLOW)


@dataclass(frozen=True)
class RoutePolicy:
    """Declared public paths and redirect targets."""

    public_paths: frozenset[str] = frozenset({"/", "/login", "/logout"})
    guest_only_paths: frozenset[str] = frozenset({"/login"})
    login_path: str = "/login"
    dashboard_path: str = "/dashboard"
    return_param: str = "redirect"
    exempt_prefixes: tuple[str, ...] = ("/api/", "/static/", "/favicon.ico")

    @classmethod
    def from_settings(cls, settings: Settings) -> "RoutePolicy":
        return cls(
            public_paths=frozenset(settings.public_paths),
            guest_only_paths=frozenset(settings.guest_only_paths),
            login_path=settings.login_path,
            dashboard_path=settings.dashboard_path,
            return_param=settings.return_param,
            exempt_prefixes=tuple(settings.gate_exempt_prefixes),
        )

    def is_public(self, path: str) -> bool:
        return path in self.public_paths

    def is_guest_only(self, path: str) -> bool:
        return path in self.guest_only_paths

    def is_exempt(self, path: str) -> bool:
        return path.startswith(self.exempt_prefixes)

    def login_location(self, return_path: str) -> str:
        query = urlencode({self.return_param: safe_return_path(return_path)}, safe="/")
        return f"{self.login_path}?{query}"


def safe_return_path(path: Optional[str], default: str = "/") -> str:
    """Accept only server-local paths as post-login targets.

    Rejects absolute URLs and protocol-relative ("//host") URLs, both of
    which would send the user off-site after login.
    """
    if path and path.startswith("/") and not path.startswith("//") and "\\" not in path:
        return path
    return default


def evaluate(path: str, access_present: bool, policy: RoutePolicy) -> Decision:
    """Decide whether a request may proceed. Never raises."""
    public = policy.is_public(path)
    if public and access_present and policy.is_guest_only(path):
        return Decision(DecisionKind.REDIRECT_TO_DASHBOARD, policy.dashboard_path)
    if not public and not access_present:
        return Decision(DecisionKind.REDIRECT_TO_LOGIN, policy.login_location(path))
    return ALLOW
