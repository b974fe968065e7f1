"""
auth/errors.py -- Authentication failure taxonomy and its decision table.

Every failure in the session lifecycle resolves to exactly one ErrorKind.
What happens next -- retry, clear the client session, send the user to the
login screen, or show the message inline -- is looked up in ERROR_POLICIES
rather than decided ad hoc by whichever layer caught the exception:

  kind                 retry  clears  to login  inline  status
  invalid_credentials    0     no       no       yes     401
  no_session             0     yes      yes      no      401
  renewal_failed         0     yes      yes      no      401
  unauthorized           0     yes      yes      no      401
  transient              1     no       no       no      503

Messages are deliberately generic. Only invalid_credentials is ever shown to
the user verbatim; everything else routes silently to the login page.

Layer rule: no imports from api/, web/, or client/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    NO_SESSION = "no_session"
    RENEWAL_FAILED = "renewal_failed"
    UNAUTHORIZED = "unauthorized"
    TRANSIENT = "transient"


class AuthError(Exception):
    """Base class for every session lifecycle failure."""

    kind: ErrorKind = ErrorKind.UNAUTHORIZED
    default_message: str = "Authentication required."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def policy(self) -> "ErrorPolicy":
        return ERROR_POLICIES[self.kind]


class InvalidCredentials(AuthError):
    """Bad username/password, or the validator could not be reached during login."""

    kind = ErrorKind.INVALID_CREDENTIALS
    default_message = "Invalid username or password."


class NoSession(AuthError):
    """No renewal secret is present, so there is nothing to renew."""

    kind = ErrorKind.NO_SESSION
    default_message = "No active session."


class RenewalFailed(AuthError):
    """The validator rejected the renewal secret; the session is gone."""

    kind = ErrorKind.RENEWAL_FAILED
    default_message = "Session expired."


class Unauthorized(AuthError):
    """A guarded query ran without a usable access secret."""

    kind = ErrorKind.UNAUTHORIZED
    default_message = "Authentication required."


class Transient(AuthError):
    """Network failure or timeout. Eligible for a single retry."""

    kind = ErrorKind.TRANSIENT
    default_message = "Authentication service unavailable."


@dataclass(frozen=True)
class ErrorPolicy:
    """How the system reacts to one ErrorKind."""

    retry_limit: int
    clears_session: bool
    route_to_login: bool
    show_inline: bool
    status_code: int


ERROR_POLICIES: dict[ErrorKind, ErrorPolicy] = {
    ErrorKind.INVALID_CREDENTIALS: ErrorPolicy(
        retry_limit=0, clears_session=False, route_to_login=False, show_inline=True, status_code=401
    ),
    ErrorKind.NO_SESSION: ErrorPolicy(
        retry_limit=0, clears_session=True, route_to_login=True, show_inline=False, status_code=401
    ),
    ErrorKind.RENEWAL_FAILED: ErrorPolicy(
        retry_limit=0, clears_session=True, route_to_login=True, show_inline=False, status_code=401
    ),
    ErrorKind.UNAUTHORIZED: ErrorPolicy(
        retry_limit=0, clears_session=True, route_to_login=True, show_inline=False, status_code=401
    ),
    ErrorKind.TRANSIENT: ErrorPolicy(
        retry_limit=1, clears_session=False, route_to_login=False, show_inline=False, status_code=503
    ),
}

_ERRORS_BY_KIND: dict[ErrorKind, type[AuthError]] = {
    ErrorKind.INVALID_CREDENTIALS: InvalidCredentials,
    ErrorKind.NO_SESSION: NoSession,
    ErrorKind.RENEWAL_FAILED: RenewalFailed,
    ErrorKind.UNAUTHORIZED: Unauthorized,
    ErrorKind.TRANSIENT: Transient,
}


def error_from_code(code: Optional[str], message: Optional[str] = None, status_code: int = 401) -> AuthError:
    """Rebuild an AuthError from the {"error": {"code": ...}} envelope.

    Used by the client SDK. Unknown codes fall back on the HTTP status:
    5xx is transient, anything else is treated as unauthorized.
    """
    try:
        kind = ErrorKind(code)
    except ValueError:
        kind = ErrorKind.TRANSIENT if status_code >= 500 else ErrorKind.UNAUTHORIZED
    return _ERRORS_BY_KIND[kind](message)
