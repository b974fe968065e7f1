"""
tests/test_issuer.py -- Unit tests for SessionIssuer against the fake validator.

Covers:
  - login: principal returned field-for-field, both slots staged, no secret returned
  - login: wrong password / empty or too-short input / network failure -> InvalidCredentials, nothing staged
  - renew: no renewal cookie -> NoSession with no remote call
  - renew: rotation overwrites both slots; failure deletes both slots
  - renew: concurrent calls with the same secret make exactly one remote call
  - logout: always clears both slots
"""

from __future__ import annotations

import asyncio

import pytest

from auth.errors import InvalidCredentials, NoSession, RenewalFailed, Transient, Unauthorized
from auth.issuer import SessionIssuer
from auth.session_store import ACCESS_COOKIE, RENEWAL_COOKIE, SessionStore
from core.config import Settings
from tests.helpers import EMILY, FakeValidator


def _store(cookies=None) -> SessionStore:
    return SessionStore.from_settings(cookies or {}, Settings())


@pytest.fixture
def issuer(validator: FakeValidator) -> SessionIssuer:
    return SessionIssuer(validator, window_minutes=30)


class TestLogin:
    @pytest.mark.asyncio
    async def test_success_returns_principal_and_stages_both_slots(self, issuer, validator) -> None:
        store = _store()
        principal = await issuer.login(store, "emilys", "emilyspass")

        assert principal.public_dict() == EMILY
        assert store.access_secret() == "access-1"
        assert store.renewal_secret() == "renewal-1"
        assert "access-1" not in principal.model_dump_json()
        assert validator.count("login") == 1

    @pytest.mark.asyncio
    async def test_wrong_password_writes_nothing(self, issuer) -> None:
        store = _store()
        with pytest.raises(InvalidCredentials):
            await issuer.login(store, "emilys", "wrongpass")
        assert not store.dirty

    @pytest.mark.asyncio
    @pytest.mark.parametrize("username, password", [("", "x"), ("emilys", ""), ("   ", "x")])
    async def test_empty_input_fails_without_remote_call(self, issuer, validator, username, password) -> None:
        with pytest.raises(InvalidCredentials):
            await issuer.login(_store(), username, password)
        assert validator.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("username, password", [("ab", "emilyspass"), ("emilys", "short"), ("ab", "x")])
    async def test_too_short_input_fails_without_remote_call(self, issuer, validator, username, password) -> None:
        store = _store()
        with pytest.raises(InvalidCredentials):
            await issuer.login(store, username, password)
        assert validator.calls == []
        assert not store.dirty

    @pytest.mark.asyncio
    async def test_validator_outage_is_invalid_credentials(self, issuer, validator) -> None:
        validator.login_error = Transient()
        store = _store()
        with pytest.raises(InvalidCredentials):
            await issuer.login(store, "emilys", "emilyspass")
        assert not store.dirty


class TestRenew:
    @pytest.mark.asyncio
    async def test_no_renewal_cookie_is_no_session_without_remote_call(self, issuer, validator) -> None:
        store = _store({ACCESS_COOKIE: "access-1"})
        with pytest.raises(NoSession):
            await issuer.renew(store)
        assert validator.count("renew") == 0
        assert not store.dirty

    @pytest.mark.asyncio
    async def test_rotation_overwrites_both_slots(self, issuer) -> None:
        login_store = _store()
        await issuer.login(login_store, "emilys", "emilyspass")

        store = _store({ACCESS_COOKIE: "access-1", RENEWAL_COOKIE: "renewal-1"})
        await issuer.renew(store)
        assert store.access_secret() == "access-2"
        assert store.renewal_secret() == "renewal-2"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [Unauthorized(), Transient()])
    async def test_failure_deletes_both_slots(self, issuer, validator, error) -> None:
        validator.renew_error = error
        store = _store({ACCESS_COOKIE: "access-1", RENEWAL_COOKIE: "renewal-1"})
        with pytest.raises(RenewalFailed):
            await issuer.renew(store)
        assert store.access_secret() is None
        assert store.renewal_secret() is None

    @pytest.mark.asyncio
    async def test_reused_secret_fails_closed(self, issuer) -> None:
        await issuer.login(_store(), "emilys", "emilyspass")
        await issuer.renew(_store({RENEWAL_COOKIE: "renewal-1"}))

        stale = _store({ACCESS_COOKIE: "access-1", RENEWAL_COOKIE: "renewal-1"})
        with pytest.raises(RenewalFailed):
            await issuer.renew(stale)
        assert not stale.has_access()

    @pytest.mark.asyncio
    async def test_concurrent_renewals_share_one_remote_call(self, issuer, validator) -> None:
        await issuer.login(_store(), "emilys", "emilyspass")
        validator.renew_delay = 0.01
        stores = [_store({RENEWAL_COOKIE: "renewal-1"}) for _ in range(2)]

        await asyncio.gather(*(issuer.renew(s) for s in stores))

        assert validator.count("renew") == 1
        assert stores[0].access_secret() == stores[1].access_secret() == "access-2"

    @pytest.mark.asyncio
    async def test_concurrent_failures_are_seen_by_every_caller(self, issuer, validator) -> None:
        validator.renew_error = Unauthorized()
        stores = [_store({RENEWAL_COOKIE: "renewal-x"}) for _ in range(2)]

        results = await asyncio.gather(*(issuer.renew(s) for s in stores), return_exceptions=True)

        assert validator.count("renew") == 1
        assert all(isinstance(r, RenewalFailed) for r in results)
        assert all(s.renewal_secret() is None for s in stores)


class TestLogoutAndIdentify:
    @pytest.mark.asyncio
    async def test_logout_clears_both_slots(self, issuer) -> None:
        store = _store({ACCESS_COOKIE: "a", RENEWAL_COOKIE: "r"})
        await issuer.logout(store)
        assert store.access_secret() is None
        assert store.renewal_secret() is None

    @pytest.mark.asyncio
    async def test_logout_without_session_still_succeeds(self, issuer) -> None:
        store = _store()
        await issuer.logout(store)
        assert store.dirty

    @pytest.mark.asyncio
    async def test_identify_without_access_is_unauthorized(self, issuer, validator) -> None:
        with pytest.raises(Unauthorized):
            await issuer.identify(_store())
        assert validator.count("identify") == 0

    @pytest.mark.asyncio
    async def test_identify_resolves_principal(self, issuer) -> None:
        await issuer.login(_store(), "emilys", "emilyspass")
        principal = await issuer.identify(_store({ACCESS_COOKIE: "access-1"}))
        assert principal.username == "emilys"
