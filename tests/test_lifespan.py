"""
tests/test_lifespan.py -- Startup/shutdown wiring in api/main.py.

The real lifespan is run directly with the HTTP validator patched out, so
no connection pool is opened and nothing touches the network.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from api import main as api_main
from auth.issuer import SessionIssuer


@pytest.mark.asyncio
async def test_lifespan_creates_issuer_and_closes_validator() -> None:
    fake = MagicMock()
    fake.aclose = AsyncMock()
    settings = api_main.get_settings()

    with patch.object(api_main, "HttpCredentialValidator", return_value=fake) as factory:
        async with api_main.lifespan(api_main.app):
            assert api_main.app.state.validator is fake
            issuer = api_main.app.state.issuer
            assert isinstance(issuer, SessionIssuer)
            assert issuer.window_minutes == settings.access_window_minutes
            fake.aclose.assert_not_awaited()

    factory.assert_called_once_with(settings.validator_base_url, timeout=settings.request_timeout_seconds)
    fake.aclose.assert_awaited_once()
