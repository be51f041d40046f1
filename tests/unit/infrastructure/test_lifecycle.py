"""Tests for PluginLifecycle wiring."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import SecretStr

from gplaybot.config import Settings
from gplaybot.domain.dtos import AuthToken, Track
from gplaybot.domain.exceptions import InitializationError, TokenRefreshException
from gplaybot.domain.ports import IRemoteStation
from gplaybot.infrastructure.integrations import GPlayClient, GPlayTokenProvider
from gplaybot.infrastructure.lifecycle import PluginLifecycle


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        username="user@example.com",
        password=SecretStr("hunter2"),
        device_id=SecretStr("device"),
        storage_dir=tmp_path / "data",
        state_file=tmp_path / "state.json",
        fallback_song_id="Tbase",
    )


@pytest.fixture
def station() -> AsyncMock:
    remote = AsyncMock(spec=IRemoteStation)
    remote.station_id = "st-1"
    return remote


@pytest.fixture
def client(station) -> AsyncMock:
    gplay = AsyncMock(spec=GPlayClient)
    gplay.get_track.side_effect = lambda track_id: Track(
        id=track_id, title="Base", artist="Artist", duration_millis=1000
    )
    gplay.create.return_value = station
    return gplay


@pytest.fixture
def token_provider() -> MagicMock:
    provider = MagicMock(spec=GPlayTokenProvider)
    provider.provide_token.return_value = None
    provider.provide_token_for = AsyncMock(
        return_value=AuthToken(token="fresh", fetched_at=1.0)
    )
    provider.last_fetched_at = 1.0
    return provider


class TestPluginLifecycle:
    """Test startup and shutdown order."""

    async def test_start_and_stop(self, settings, client, token_provider, station, tmp_path):
        """Test both plugins start, the token is persisted and shutdown cleans up."""
        lifecycle = PluginLifecycle(
            settings, setup_logging=False, client=client, token_provider=token_provider
        )

        async with lifecycle as plugins:
            assert plugins.provider.song_dir.is_dir()
            assert plugins.suggester.subject == "Based on Base"
            assert plugins.state_store.get_token() == "fresh"
            client.connect.assert_awaited_once()

        station.delete.assert_awaited_once()
        client.close.assert_awaited_once()
        assert (tmp_path / "state.json").exists()

    async def test_login_failure_aborts_startup(self, settings, client, token_provider):
        """Test a failed login surfaces as InitializationError and closes the client."""
        token_provider.provide_token_for.side_effect = TokenRefreshException(
            error_code="BadAuthentication"
        )
        lifecycle = PluginLifecycle(
            settings, setup_logging=False, client=client, token_provider=token_provider
        )

        with pytest.raises(InitializationError):
            async with lifecycle:
                pass

        client.create.assert_not_awaited()
        client.close.assert_awaited_once()

    async def test_configured_token_is_tried_first(self, settings, client, token_provider):
        """Test GPLAYBOT_TOKEN seeds the state store for the first login."""
        settings.token = SecretStr("configured")
        token_provider.provide_token.return_value = AuthToken(token="configured", fetched_at=0.0)
        lifecycle = PluginLifecycle(
            settings, setup_logging=False, client=client, token_provider=token_provider
        )

        async with lifecycle:
            token_provider.provide_token.assert_called_once_with("configured")
            token_provider.provide_token_for.assert_not_awaited()
