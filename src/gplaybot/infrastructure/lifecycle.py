"""Plugin lifecycle: builds the object graph from Settings, starts and stops both plugins.

Startup order:
- logging (optional, a host with its own logging setup skips it)
- provider: song directory + login
- suggester: base song lookup + first station (needs the logged-in provider)

Shutdown runs in reverse and finally closes the shared HTTP client.
"""

import logging
from types import TracebackType

from gplaybot.application.services import (
    Credentials,
    SessionManager,
    StationSuggester,
    TrackResolver,
)
from gplaybot.config import Settings, get_settings
from gplaybot.domain.ports import IPlugin
from gplaybot.infrastructure.integrations import GPlayClient, GPlayTokenProvider
from gplaybot.infrastructure.observability import configure_logging, set_correlation_id
from gplaybot.infrastructure.persistence import JsonStateStore, LocalFileStorage
from gplaybot.infrastructure.plugins import GPlayMusicProvider

logger = logging.getLogger(__name__)


class PluginLifecycle:
    """Async context manager owning the provider, the suggester and their collaborators.

    Usage:
        async with PluginLifecycle(settings) as plugins:
            songs = await plugins.provider.search("daft punk")
            next_song = await plugins.suggester.suggest_next()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        setup_logging: bool = True,
        client: GPlayClient | None = None,
        token_provider: GPlayTokenProvider | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.setup_logging = setup_logging

        s = self.settings
        token = s.token.get_secret_value() if s.token else None
        self.state_store = JsonStateStore(s.state_file, initial_token=token)
        self.file_storage = LocalFileStorage(s.storage_dir)
        self.client = client or GPlayClient(base_url=s.api_base_url, timeout=s.request_timeout)
        self.token_provider = token_provider or GPlayTokenProvider(
            auth_url=s.auth_url, timeout=s.request_timeout
        )
        self.session = SessionManager(
            client=self.client,
            token_provider=self.token_provider,
            credentials=Credentials(
                username=s.username, password=s.password, device_id=s.device_id
            ),
            token_store=self.state_store,
            cooldown_seconds=s.token_cooldown_seconds,
        )
        self.resolver = TrackResolver(
            provider_id=GPlayMusicProvider.PROVIDER_ID,
            video_provider_id=s.video_provider_id,
            show_videos=s.show_videos,
        )
        self.provider = GPlayMusicProvider(
            track_service=self.client,
            session=self.session,
            resolver=self.resolver,
            file_storage=self.file_storage,
            stream_quality=s.stream_quality,
            cache_time=s.cache_time,
        )
        self.suggester = StationSuggester(
            provider=self.provider,
            track_service=self.client,
            station_service=self.client,
            resolver=self.resolver,
            state_store=self.state_store,
            fallback_song_id=s.fallback_song_id,
            max_retries=s.station_max_retries,
            retry_delay=s.station_retry_delay,
            max_retry_delay=s.station_max_retry_delay,
        )
        self._started: list[IPlugin] = []

    async def start(self) -> None:
        """Initialize provider, then suggester.

        Raises:
            InitializationError: If a plugin can't start (already started ones are closed)
        """
        if self.setup_logging:
            configure_logging(
                log_level=self.settings.log_level,
                json_format=self.settings.log_json_format,
                app_name=self.settings.app_name,
            )
        correlation_id = set_correlation_id()
        logger.info("Starting GPlayMusic plugins (session %s)", correlation_id)

        for plugin in (self.provider, self.suggester):
            try:
                await plugin.initialize()
            except Exception:
                logger.error("Plugin %s failed to initialize", plugin.name)
                await self.stop()
                raise
            self._started.append(plugin)
            logger.info("Plugin %s initialized", plugin.name)

    # Hey future me - stop() must never raise, it runs on the error path of start() too.
    # Each plugin close is isolated so one failure doesn't leave the HTTP client open.
    async def stop(self) -> None:
        """Close started plugins in reverse order, then the HTTP client."""
        while self._started:
            plugin = self._started.pop()
            try:
                await plugin.close()
            except Exception:
                logger.exception("Error closing plugin %s", plugin.name)
            else:
                logger.info("Plugin %s closed", plugin.name)
        try:
            await self.client.close()
        except Exception:
            logger.exception("Error closing GPlay HTTP client")

    async def __aenter__(self) -> "PluginLifecycle":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()
