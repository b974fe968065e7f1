"""
tests/test_errors.py -- The error decision table and envelope round-trip.
"""

from __future__ import annotations

import pytest

from auth.errors import (
    ERROR_POLICIES,
    AuthError,
    ErrorKind,
    InvalidCredentials,
    NoSession,
    RenewalFailed,
    Transient,
    Unauthorized,
    error_from_code,
)


def test_every_kind_has_a_policy() -> None:
    assert set(ERROR_POLICIES) == set(ErrorKind)


def test_only_transient_is_retried() -> None:
    assert Transient().policy.retry_limit == 1
    for error in (InvalidCredentials(), NoSession(), RenewalFailed(), Unauthorized()):
        assert error.policy.retry_limit == 0


def test_only_invalid_credentials_is_shown_inline() -> None:
    inline = {kind for kind, policy in ERROR_POLICIES.items() if policy.show_inline}
    assert inline == {ErrorKind.INVALID_CREDENTIALS}


@pytest.mark.parametrize("error", [NoSession(), RenewalFailed(), Unauthorized()])
def test_session_failures_clear_and_route_to_login(error: AuthError) -> None:
    assert error.policy.clears_session
    assert error.policy.route_to_login


@pytest.mark.parametrize(
    "code, cls",
    [
        ("invalid_credentials", InvalidCredentials),
        ("no_session", NoSession),
        ("renewal_failed", RenewalFailed),
        ("unauthorized", Unauthorized),
        ("transient", Transient),
    ],
)
def test_error_from_code(code: str, cls: type) -> None:
    error = error_from_code(code, "msg")
    assert type(error) is cls
    assert error.message == "msg"


def test_unknown_code_falls_back_on_status() -> None:
    assert isinstance(error_from_code("rate_limited", status_code=429), Unauthorized)
    assert isinstance(error_from_code(None, status_code=502), Transient)


def test_default_messages_are_generic() -> None:
    assert Unauthorized().message == "Authentication required."
    assert InvalidCredentials().message == "Invalid username or password."
