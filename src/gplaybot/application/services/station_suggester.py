"""Suggests songs from a remote radio station seeded on the last played song."""

import asyncio
import logging
from collections import deque
from collections.abc import Iterable

from gplaybot.application.services.plugin_scope import PluginScope
from gplaybot.application.services.track_resolver import TrackResolver
from gplaybot.domain.dtos import Track
from gplaybot.domain.entities import Song
from gplaybot.domain.exceptions import (
    ExternalServiceError,
    InitializationError,
    NoSuchSongError,
)
from gplaybot.domain.ports import (
    IProvider,
    IRemoteStation,
    IStateStore,
    IStationService,
    ISuggester,
    ITrackService,
)

logger = logging.getLogger(__name__)


class StationSuggester(ISuggester):
    """
    Suggester backed by a GPlayMusic radio station.

    Hey future me – the station is the source of truth for WHAT to play, we only
    buffer its tracks locally. Three pieces of state, all guarded by _lock:
    - _recently_played: rolling window (max 200, unique ids) sent to the station as context
    - _suggestions: buffered songs not yet handed to the player
    - _station: the ONE remote station we own (recreating it deletes the old one)

    The station follows the music: a song played from the queue becomes the new seed,
    unless it's the song we suggested ourselves (then the station already fits).
    """

    RECENTLY_PLAYED_MAX_SIZE = 200
    BASE_SONG_KEY = "base_song_id"

    def __init__(
        self,
        provider: IProvider,
        track_service: ITrackService,
        station_service: IStationService,
        resolver: TrackResolver,
        state_store: IStateStore,
        fallback_song_id: str,
        max_retries: int = 5,
        retry_delay: float = 0.5,
        max_retry_delay: float = 30.0,
    ) -> None:
        self._provider = provider
        self._track_service = track_service
        self._station_service = station_service
        self._resolver = resolver
        self._state_store = state_store
        self._fallback_song_id = fallback_song_id
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._max_retry_delay = max_retry_delay

        self._scope = PluginScope(self.name)
        self._lock = asyncio.Lock()
        self._recently_played: deque[Song] = deque(maxlen=self.RECENTLY_PLAYED_MAX_SIZE)
        self._suggestions: list[Song] = []
        self._station: IRemoteStation | None = None
        self._seed_song_id: str | None = None
        self._base_song: Song | None = None
        self._last_suggested: Song | None = None
        self._retiring: set[asyncio.Task[None]] = set()

    @property
    def name(self) -> str:
        return "GPlayMusic DefaultSuggester"

    @property
    def description(self) -> str:
        return "Suggest songs from a GPlayMusic station based on the last played song."

    @property
    def subject(self) -> str:
        if self._base_song is not None:
            return f"Based on {self._base_song.title}"
        return self.name

    @property
    def station(self) -> IRemoteStation | None:
        return self._station

    @property
    def recently_played(self) -> list[Song]:
        return list(self._recently_played)

    @property
    def pending_suggestions(self) -> list[Song]:
        return list(self._suggestions)

    async def initialize(self) -> None:
        """Resolve the base song and create the first station.

        Raises:
            InitializationError: If the base song or the station can't be obtained
        """
        song_id = self._state_store.get_state(self.BASE_SONG_KEY) or self._fallback_song_id
        try:
            base_song = await self._provider.lookup(song_id)
        except NoSuchSongError as e:
            raise InitializationError("Could not find fallback song") from e
        self._base_song = base_song

        try:
            async with self._lock:
                await self._scope.run(self._create_station(base_song))
        except ExternalServiceError as e:
            raise InitializationError(
                f"Unable to create station on song {base_song.id}"
            ) from e

    async def suggest_next(self) -> Song:
        return await self._scope.run(self._suggest_next())

    async def get_next_suggestions(self, max_length: int) -> list[Song]:
        return await self._scope.run(self._get_next_suggestions(max_length))

    async def notify_played(self, song: Song, from_queue: bool = False) -> None:
        await self._scope.run(self._notify_played(song, from_queue))

    async def remove_suggestion(self, song: Song) -> None:
        # TODO: send a thumbs-down rating for the track once the backend client supports it
        async with self._lock:
            self._handle_recently_played(song)

    async def close(self) -> None:
        """Cancel outstanding work and delete the remote station(s)."""
        await self._scope.close()
        if self._retiring:
            await asyncio.gather(*self._retiring, return_exceptions=True)
        if self._station is not None:
            await self._delete_station(self._station)
            self._station = None

    async def _suggest_next(self) -> Song:
        async with self._lock:
            await self._fill(1)
            if self._suggestions:
                next_song = self._suggestions.pop(0)
            elif self._base_song is not None:
                logger.warning("No station songs available, suggesting base song.")
                next_song = self._base_song
            else:
                raise InitializationError("Suggester is not initialized")
            self._last_suggested = next_song
            return next_song

    async def _get_next_suggestions(self, max_length: int) -> list[Song]:
        async with self._lock:
            await self._fill(max_length)
            return self._suggestions[:max_length]

    async def _notify_played(self, song: Song, from_queue: bool) -> None:
        async with self._lock:
            self._handle_recently_played(song)
            if not from_queue:
                return
            try:
                await self._create_station(song)
            except ExternalServiceError:
                logger.exception(
                    "Error while creating station on key %s. Using old station.", song.id
                )

    # Hey future me, this loop used to retry FOREVER when the station kept failing. Now every
    # failed or useless fetch (error, empty page, only duplicates) counts as an attempt, with
    # exponential backoff in between. After max_retries in a row we return with a short buffer
    # and the caller falls back (suggest_next -> base song). Success resets the counter.
    async def _fill(self, max_length: int) -> None:
        if len(self._suggestions) >= max_length:
            return
        if self._station is None:
            logger.error("No station available, can't fetch suggestions.")
            return

        context = await self._songs_to_tracks(self._recently_played)
        failures = 0
        delay = self._retry_delay
        while len(self._suggestions) < max_length:
            added = 0
            try:
                tracks = await self._station.get_tracks(
                    context, recently_played=True, new_recommendations=True
                )
                added = self._buffer_tracks(tracks)
            except ExternalServiceError:
                logger.exception("Error while fetching station songs")

            if added:
                failures = 0
                delay = self._retry_delay
                continue

            failures += 1
            if failures >= self._max_retries:
                logger.error(
                    "Giving up on station songs after %d attempts (%d/%d buffered)",
                    failures,
                    len(self._suggestions),
                    max_length,
                )
                return
            await asyncio.sleep(delay)
            delay = min(delay * 2, self._max_retry_delay)

    def _buffer_tracks(self, tracks: Iterable[Track]) -> int:
        buffered = {song.id for song in self._suggestions}
        added = 0
        for track in tracks:
            song = self._resolver.resolve(track)
            if song.id in buffered:
                continue
            buffered.add(song.id)
            self._suggestions.append(song)
            added += 1
        return added

    async def _songs_to_tracks(self, songs: Iterable[Song]) -> list[Track]:
        songs = list(songs)
        results = await asyncio.gather(
            *(self._track_service.get_track(song.id) for song in songs),
            return_exceptions=True,
        )
        tracks: list[Track] = []
        for song, result in zip(songs, results, strict=True):
            if isinstance(result, ExternalServiceError):
                logger.warning("Error while fetching track %s: %s", song.id, result.message)
            elif isinstance(result, BaseException):
                raise result
            else:
                tracks.append(result)
        return tracks

    async def _create_station(self, song: Song) -> bool:
        """Recreate the station seeded on song.

        Returns:
            False if the song is the one we suggested or already the seed
        """
        if self._last_suggested is not None and song.id == self._last_suggested.id:
            return False
        if song.id == self._seed_song_id and self._station is not None:
            return False

        track = await self._track_service.get_track(song.id)
        station = await self._station_service.create(
            track, f"Station on {song.title}", is_public=False
        )
        logger.info("Created station %s on '%s'", station.station_id, song.title)

        self._state_store.set_state(self.BASE_SONG_KEY, song.id)
        self._base_song = song
        self._seed_song_id = song.id
        old_station, self._station = self._station, station
        self._suggestions.clear()
        if old_station is not None:
            # Shielded: a close() cancelling this call still waits for the delete
            await asyncio.shield(self._retire_station(old_station))
        return True

    def _retire_station(self, station: IRemoteStation) -> asyncio.Task[None]:
        task = asyncio.create_task(self._delete_station(station))
        self._retiring.add(task)
        task.add_done_callback(self._retiring.discard)
        return task

    async def _delete_station(self, station: IRemoteStation) -> None:
        try:
            await station.delete()
        except ExternalServiceError:
            logger.exception("Could not delete station %s", station.station_id)

    def _handle_recently_played(self, song: Song) -> None:
        # deque(maxlen=200) drops the oldest entry when a new one is appended to a full window
        if not any(played.id == song.id for played in self._recently_played):
            self._recently_played.append(song)
        self._suggestions = [s for s in self._suggestions if s.id != song.id]
