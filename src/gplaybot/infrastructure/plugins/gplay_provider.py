"""
GPlayMusic Provider - serves songs from Google Play Music to the bot.

Hey future me – this is the plugin the host talks to for search, lookup and loading!
It wraps the GPlayClient and hands out Songs (never Tracks).

- search(): up to two backend pages, every result seeds the song cache
- lookup(): song cache (single-flight fetch on miss)
- load_song(): idempotent download into <plugin storage>/songs/<id>.mp3
- 401 anywhere in search → one token refresh + one retry, else empty result
"""

import asyncio
import logging
import os
from contextlib import suppress
from pathlib import Path

from gplaybot.application.cache import SongCache
from gplaybot.application.services import PluginScope, SessionManager, TrackResolver
from gplaybot.config import StreamQuality
from gplaybot.domain.entities import FileResource, Song
from gplaybot.domain.exceptions import (
    AuthenticationError,
    ExternalServiceError,
    InitializationError,
    SongLoadingError,
)
from gplaybot.domain.ports import IProvider, ITrackService
from gplaybot.infrastructure.persistence import LocalFileStorage

logger = logging.getLogger(__name__)


class GPlayMusicProvider(IProvider):
    """Provider plugin for Google Play Music."""

    PROVIDER_ID = "gplaymusic"
    PAGE_SIZE = 30
    # Offsets from here on need the second backend page
    SECOND_PAGE_OFFSET = 20

    def __init__(
        self,
        track_service: ITrackService,
        session: SessionManager,
        resolver: TrackResolver,
        file_storage: LocalFileStorage,
        stream_quality: StreamQuality = StreamQuality.HIGH,
        cache_time: int = 60,
    ) -> None:
        self._track_service = track_service
        self._session = session
        self._resolver = resolver
        self._file_storage = file_storage
        self._stream_quality = stream_quality
        self._cache = SongCache(self._fetch_song, expire_after_minutes=cache_time)
        self._scope = PluginScope(self.name)
        self._song_dir: Path | None = None
        self._download_locks: dict[str, asyncio.Lock] = {}
        self._download_users: dict[str, int] = {}

    @property
    def name(self) -> str:
        return "GPlayMusic"

    @property
    def description(self) -> str:
        return "Provides songs from Google Play Music"

    @property
    def subject(self) -> str:
        return "Google Play Music"

    @property
    def provider_id(self) -> str:
        return self.PROVIDER_ID

    @property
    def cache(self) -> SongCache:
        return self._cache

    @property
    def song_dir(self) -> Path | None:
        return self._song_dir

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def initialize(self) -> None:
        logger.info("Obtaining storage dir")
        try:
            song_dir = self._file_storage.for_plugin(self.PROVIDER_ID) / "songs"
            song_dir.mkdir(exist_ok=True)
        except OSError as e:
            raise InitializationError("Unable to create song directory") from e
        self._song_dir = song_dir

        logger.info("Logging into GPlayMusic")
        try:
            await self._scope.run(self._session.login())
        except AuthenticationError as e:
            logger.warning("Logging into GPlayMusic failed!")
            raise InitializationError("Logging into GPlayMusic failed") from e

    async def close(self) -> None:
        await self._scope.close()

    # =========================================================================
    # SEARCH
    # =========================================================================

    async def search(self, query: str, offset: int = 0) -> list[Song]:
        return await self._scope.run(self._search(query, max(0, offset), retry=True))

    async def _search(self, query: str, offset: int, retry: bool) -> list[Song]:
        # We retrieve up to two pages for now and limit them to a size of 30 each
        max_results = self.PAGE_SIZE if offset < self.SECOND_PAGE_OFFSET else 2 * self.PAGE_SIZE
        try:
            tracks = await self._track_service.search(query, max_results)
        except AuthenticationError:
            if retry and await self._session.refresh_if_allowed():
                return await self._search(query, offset, retry=False)
            logger.warning("Search for '%s' unauthorized, returning no results", query)
            return []
        except (ExternalServiceError, OSError):
            logger.warning("Exception while searching with query '%s'", query, exc_info=True)
            return []

        songs = [self._resolver.resolve(track) for track in tracks]
        for song in songs:
            self._cache.put(song.id, song)
        return songs[offset : offset + self.PAGE_SIZE]

    # =========================================================================
    # LOOKUP
    # =========================================================================

    async def lookup(self, song_id: str) -> Song:
        # Not run in self._scope: in-flight fetches belong to the cache
        return await self._cache.get(song_id)

    async def _fetch_song(self, song_id: str) -> Song:
        return self._resolver.resolve(await self._track_service.get_track(song_id))

    # =========================================================================
    # LOADING
    # =========================================================================

    async def load_song(self, song: Song) -> FileResource:
        return await self._scope.run(self._load_song(song))

    # Hey future me, the per-id lock makes concurrent loads of the same song wait for the first
    # one instead of both writing <id>.mp3.tmp. Once the file is renamed into place every later
    # call returns right after the exists() check - no network at all.
    async def _load_song(self, song: Song) -> FileResource:
        if self._song_dir is None:
            raise SongLoadingError("Provider is not initialized")
        path = self._song_dir / f"{song.id}.mp3"
        tmp_path = self._song_dir / f"{song.id}.mp3.tmp"

        lock = self._download_locks.setdefault(song.id, asyncio.Lock())
        self._download_users[song.id] = self._download_users.get(song.id, 0) + 1
        try:
            async with lock:
                if not path.exists():
                    await self._download(song, tmp_path, path)
        finally:
            self._release_download_lock(song.id, lock)
        return FileResource(path)

    # The lock stays registered while anyone holds or waits for it. lock.locked() is
    # already False between a release and the next waiter waking up, so it can't tell.
    def _release_download_lock(self, song_id: str, lock: asyncio.Lock) -> None:
        remaining = self._download_users.get(song_id, 1) - 1
        if remaining > 0:
            self._download_users[song_id] = remaining
            return
        self._download_users.pop(song_id, None)
        if self._download_locks.get(song_id) is lock:
            del self._download_locks[song_id]

    async def _download(self, song: Song, tmp_path: Path, path: Path) -> None:
        try:
            track = await self._track_service.get_track(song.id)
            await self._track_service.download(track, self._stream_quality, tmp_path)
            os.replace(tmp_path, path)
        except (ExternalServiceError, OSError) as e:
            with suppress(OSError):
                tmp_path.unlink(missing_ok=True)
            raise SongLoadingError(f"Unable to load song {song.id}: {e}") from e
        logger.debug("Loaded song %s into %s", song.id, path)
